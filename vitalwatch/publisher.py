"""Live-update channel port.

Vitals and alert events are pushed to every connected dashboard. Delivery is
fire-and-forget: a failed emit is logged and never reaches the caller.
"""

import logging

logger = logging.getLogger(__name__)

VITALS_EVENT = 'vitals'
ALERT_NEW_EVENT = 'alerts:new'
ALERT_UPDATE_EVENT = 'alerts:update'


class Publisher:
    """Broadcast an event to all live-update clients"""

    def publish(self, event, payload):
        raise NotImplementedError


class SocketIOPublisher(Publisher):
    """Publisher backed by the Flask-SocketIO server"""

    def __init__(self, socketio):
        self.socketio = socketio

    def publish(self, event, payload):
        try:
            self.socketio.emit(event, payload)
        except Exception as e:
            logger.error(f"Broadcast of '{event}' failed: {str(e)}")
