# ==================== INITIALIZATION ====================

import argparse
import logging

from . import create_app, get_pipeline
from .extensions import socketio
from .models import init_db

logger = logging.getLogger(__name__)


def parse_arguments():
    parser = argparse.ArgumentParser(description='VitalWatch patient monitoring backend')
    parser.add_argument('--host', default='0.0.0.0', help='bind address (default: 0.0.0.0)')
    parser.add_argument('--port', '-p', type=int, default=None, help='port (default: PORT or 3001)')
    parser.add_argument('--no-mqtt', action='store_true', help='do not connect to the MQTT broker')
    return parser.parse_args()


def main():
    args = parse_arguments()
    app = create_app()

    with app.app_context():
        init_db()
        logger.info("Database tables created")

    gateway = get_pipeline(app).gateway
    if app.config['MQTT_ENABLED'] and not args.no_mqtt:
        gateway.start()

    port = args.port or app.config['PORT']
    logger.info(f"Server running on port {port}")
    try:
        socketio.run(app, host=args.host, port=port, allow_unsafe_werkzeug=True)
    finally:
        gateway.stop()


if __name__ == '__main__':
    main()
