"""VitalWatch: patient monitoring backend.

Sensor readings arrive over MQTT, are paired and stored as vitals, checked
against alert thresholds and pushed to dashboards over Socket.IO.
"""

import logging
from dataclasses import dataclass

from flask import Flask

from .alerts import AlertDisseminator
from .config import Config
from .correlator import ReadingCorrelator
from .extensions import cors, db, jwt, socketio
from .gateway import IngestionGateway
from .notifier import DEFAULT_SENDER, SmtpMailer
from .publisher import Publisher, SocketIOPublisher
from .vitals import VitalsPersister

__version__ = '0.1.0'

EXTENSION_KEY = 'vitalwatch'


@dataclass
class Pipeline:
    """Ingestion components shared by the gateway and the HTTP layer"""
    publisher: Publisher
    persister: VitalsPersister
    disseminator: AlertDisseminator
    gateway: IngestionGateway


def build_pipeline(app, publisher=None, mailer=None):
    config = app.config
    publisher = publisher or SocketIOPublisher(socketio)
    if mailer is None:
        mailer = SmtpMailer.from_config(config)

    persister = VitalsPersister(
        publisher,
        default_patient_id=config['DEFAULT_PATIENT_ID'],
        allow_dynamic_patients=config['ALLOW_DYNAMIC_PATIENTS'],
    )
    disseminator = AlertDisseminator(
        publisher,
        mailer=mailer,
        fallback_email=config.get('ALERT_FALLBACK_EMAIL'),
        sender=config.get('SMTP_FROM') or config.get('SMTP_USER') or DEFAULT_SENDER,
    )
    correlator = ReadingCorrelator(
        pairing_window=config['PAIRING_WINDOW_SECONDS'],
        fallback_window=config['FALLBACK_PAIRING_WINDOW_SECONDS'],
    )
    gateway = IngestionGateway(
        app,
        persister,
        disseminator,
        correlator=correlator,
        topic=config['MQTT_TOPIC'],
        structured_prefix=config['MQTT_STRUCTURED_PREFIX'],
        heart_rate_high=config['HEART_RATE_HIGH'],
        spo2_low=config['SPO2_LOW'],
    )
    return Pipeline(publisher=publisher, persister=persister, disseminator=disseminator, gateway=gateway)


def create_app(config_class=Config, publisher=None, mailer=None):
    app = Flask(__name__)
    app.config.from_object(config_class)

    logging.basicConfig(level=getattr(logging, app.config['LOG_LEVEL'], logging.INFO))

    db.init_app(app)
    jwt.init_app(app)
    cors.init_app(app)
    socketio.init_app(
        app,
        cors_allowed_origins='*',
        async_mode=app.config['SOCKETIO_ASYNC_MODE'],
        ping_timeout=app.config['SOCKETIO_PING_TIMEOUT'],
        ping_interval=app.config['SOCKETIO_PING_INTERVAL'],
    )

    app.extensions[EXTENSION_KEY] = build_pipeline(app, publisher=publisher, mailer=mailer)

    from . import sockets  # noqa: F401  registers Socket.IO handlers
    from .routes import api_bp, register_error_handlers
    app.register_blueprint(api_bp)
    register_error_handlers(app)

    return app


def get_pipeline(app):
    return app.extensions[EXTENSION_KEY]
