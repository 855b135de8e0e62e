# ==================== API ROUTES ====================

import logging
from datetime import datetime, timedelta
from functools import wraps

from flask import Blueprint, current_app, request
from flask_jwt_extended import create_access_token, get_jwt_identity, jwt_required
from werkzeug.security import check_password_hash

from .extensions import db
from .models import Alert, Patient, Staff, Vital

logger = logging.getLogger(__name__)

api_bp = Blueprint('api', __name__, url_prefix='/api')

ACTIVE_MONITOR_WINDOW = timedelta(minutes=5)


def pipeline():
    from . import get_pipeline
    return get_pipeline(current_app)


def parse_since(value):
    """Parse an ISO8601 'since' filter; accept 'Z' as UTC"""
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace('Z', '+00:00'))
    except ValueError:
        raise ValueError(f"Invalid datetime: {value}")
    if parsed.tzinfo is not None:
        parsed = parsed.replace(tzinfo=None) - parsed.utcoffset()
    return parsed


def require_role(*allowed_roles):
    """Decorator to check the staff role of the token holder"""
    def decorator(fn):
        @wraps(fn)
        @jwt_required()
        def wrapper(*args, **kwargs):
            staff = db.session.get(Staff, int(get_jwt_identity()))
            if not staff or staff.role not in allowed_roles:
                return {'error': 'Insufficient permissions'}, 403
            return fn(*args, **kwargs)
        return wrapper
    return decorator


# Authentication Routes
@api_bp.route('/auth/login', methods=['POST'])
def login():
    """Staff login - returns JWT token"""
    data = request.get_json(silent=True) or {}
    staff = Staff.query.filter_by(username=data.get('username')).first()
    if not staff or not check_password_hash(staff.password_hash, data.get('password') or ''):
        return {'error': 'Invalid credentials'}, 401

    token = create_access_token(identity=str(staff.id), additional_claims={'role': staff.role})
    return {'token': token, 'user': staff.to_dict()}, 200


@api_bp.route('/me', methods=['GET'])
@require_role('doctor', 'nurse')
def me():
    staff = db.session.get(Staff, int(get_jwt_identity()))
    return staff.to_dict(), 200


@api_bp.route('/health', methods=['GET'])
def health():
    gateway = pipeline().gateway
    connected = gateway.client is not None and gateway.client.is_connected()
    return {'status': 'ok', 'mqtt_connected': connected, 'timestamp': datetime.utcnow().isoformat()}, 200


# Vitals Routes
@api_bp.route('/vitals', methods=['GET'])
def list_vitals():
    """Latest readings across all patients"""
    rows = Vital.query.join(Patient).order_by(Vital.timestamp.desc(), Vital.id.desc()).limit(100).all()
    return [row.to_dict() for row in rows], 200


@api_bp.route('/vitals/history', methods=['GET'])
def vitals_history():
    try:
        since = parse_since(request.args.get('since'))
    except ValueError as e:
        return {'error': str(e)}, 400
    query = Vital.query
    if since:
        query = query.filter(Vital.timestamp >= since)
    rows = query.order_by(Vital.timestamp.desc(), Vital.id.desc()).limit(2000).all()
    return [row.to_dict() for row in rows], 200


@api_bp.route('/vitals/<patient_id>', methods=['GET'])
def patient_vitals(patient_id):
    rows = (
        Vital.query
        .filter_by(patient_id=patient_id)
        .order_by(Vital.timestamp.desc(), Vital.id.desc())
        .limit(200)
        .all()
    )
    return [row.to_dict() for row in rows], 200


# Alert Routes
@api_bp.route('/alerts', methods=['GET'])
def active_alerts():
    """Unacknowledged alerts, newest first"""
    rows = (
        Alert.query
        .filter_by(acknowledged=False)
        .order_by(Alert.timestamp.desc(), Alert.id.desc())
        .all()
    )
    return [row.to_dict() for row in rows], 200


@api_bp.route('/alerts/history', methods=['GET'])
def alerts_history():
    try:
        since = parse_since(request.args.get('since'))
    except ValueError as e:
        return {'error': str(e)}, 400
    query = Alert.query
    if since:
        query = query.filter(Alert.timestamp >= since)
    rows = query.order_by(Alert.timestamp.desc(), Alert.id.desc()).limit(2000).all()
    return [row.to_dict() for row in rows], 200


@api_bp.route('/alerts/<int:alert_id>/acknowledge', methods=['PUT'])
def acknowledge_alert(alert_id):
    """Acknowledge an alert"""
    if not pipeline().disseminator.acknowledge(alert_id):
        return {'error': 'Alert not found'}, 404
    return {'message': 'Alert acknowledged'}, 200


@api_bp.route('/dashboard/stats', methods=['GET'])
def dashboard_stats():
    cutoff = datetime.utcnow() - ACTIVE_MONITOR_WINDOW
    active_monitors = (
        db.session.query(Vital.patient_id)
        .filter(Vital.timestamp >= cutoff)
        .distinct()
        .count()
    )
    return {
        'totalPatients': Patient.query.count(),
        'activeMonitors': active_monitors,
        'criticalAlerts': Alert.query.filter_by(severity='critical', acknowledged=False).count(),
        'totalNurses': Staff.query.filter_by(role='nurse').count(),
    }, 200


# ==================== ERROR HANDLERS ====================

def register_error_handlers(app):
    @app.errorhandler(404)
    def not_found(error):
        return {'error': 'Endpoint not found'}, 404

    @app.errorhandler(500)
    def internal_error(error):
        db.session.rollback()
        logger.error(f"Internal server error: {str(error)}")
        return {'error': 'Internal server error'}, 500
