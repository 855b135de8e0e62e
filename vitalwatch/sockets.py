# ==================== WEBSOCKET EVENTS ====================

import logging

from flask import request
from flask_socketio import emit

from .extensions import socketio

logger = logging.getLogger(__name__)


@socketio.on('connect')
def handle_connect():
    """WebSocket connection handler"""
    logger.info(f"Client connected: {request.sid}")
    emit('connection_response', {'data': 'Connected to VitalWatch'})


@socketio.on('disconnect')
def handle_disconnect(reason=None):
    """Handle WebSocket disconnection"""
    logger.info(f"Client disconnected: {request.sid} ({reason})")
