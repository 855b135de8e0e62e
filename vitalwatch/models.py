# ==================== DATABASE MODELS ====================

import logging
from datetime import datetime

from sqlalchemy import insert
from sqlalchemy.exc import IntegrityError
from werkzeug.security import generate_password_hash

from .extensions import db

logger = logging.getLogger(__name__)


def isoformat(value):
    return value.isoformat() if value else None


class Staff(db.Model):
    """Staff member with doctor/nurse role"""
    __tablename__ = 'staff'

    id = db.Column(db.Integer, primary_key=True)
    employe_id = db.Column(db.String(30), unique=True, nullable=False)
    username = db.Column(db.String(80), unique=True, nullable=False, index=True)
    email = db.Column(db.String(120), unique=True, nullable=False)
    password_hash = db.Column(db.String(255), nullable=False)
    role = db.Column(db.String(20), nullable=False, default='nurse')  # doctor, nurse
    is_admin = db.Column(db.Boolean, default=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    patients = db.relationship('Patient', back_populates='assigned_nurse')

    def to_dict(self):
        return {
            'id': self.id,
            'employe_id': self.employe_id,
            'username': self.username,
            'email': self.email,
            'role': self.role,
            'is_admin': bool(self.is_admin),
        }


class Patient(db.Model):
    """Patient identified by an externally assigned id"""
    __tablename__ = 'patients'

    id = db.Column(db.String(64), primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    contact = db.Column(db.String(200))
    room = db.Column(db.String(20))
    condition = db.Column(db.String(50), default='stable')
    assigned_nurse_id = db.Column(db.Integer, db.ForeignKey('staff.id'))
    date_of_birth = db.Column(db.String(20))
    gender = db.Column(db.String(20))
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    assigned_nurse = db.relationship('Staff', back_populates='patients')
    vitals = db.relationship('Vital', back_populates='patient')
    alerts = db.relationship('Alert', back_populates='patient')


class Vital(db.Model):
    """Append-only vitals reading"""
    __tablename__ = 'vitals'

    id = db.Column(db.Integer, primary_key=True)
    patient_id = db.Column(db.String(64), db.ForeignKey('patients.id'), index=True, nullable=False)
    heart_rate = db.Column(db.Integer)
    spo2 = db.Column(db.Integer)
    timestamp = db.Column(db.DateTime, default=datetime.utcnow, index=True)

    patient = db.relationship('Patient', back_populates='vitals')

    def to_event(self):
        return {
            'patient_id': self.patient_id,
            'heart_rate': self.heart_rate,
            'spo2': self.spo2,
            'timestamp': isoformat(self.timestamp),
        }

    def to_dict(self):
        data = {'id': self.id}
        data.update(self.to_event())
        if self.patient is not None:
            data['name'] = self.patient.name
            data['room'] = self.patient.room
        return data


class Alert(db.Model):
    """Threshold or emergency alert"""
    __tablename__ = 'alerts'

    id = db.Column(db.Integer, primary_key=True)
    patient_id = db.Column(db.String(64), db.ForeignKey('patients.id'), index=True, nullable=False)
    type = db.Column(db.String(50), nullable=False)  # heart_rate, spo2, emergency, ...
    severity = db.Column(db.String(20), nullable=False)  # warning, critical
    message = db.Column(db.Text)
    heart_rate = db.Column(db.Integer)
    spo2 = db.Column(db.Integer)
    timestamp = db.Column(db.DateTime, default=datetime.utcnow, index=True)
    acknowledged = db.Column(db.Boolean, default=False, nullable=False)

    patient = db.relationship('Patient', back_populates='alerts')

    def to_dict(self):
        """Alert joined with patient name and room for display"""
        return {
            'id': self.id,
            'patient_id': self.patient_id,
            'type': self.type,
            'severity': self.severity,
            'message': self.message,
            'heart_rate': self.heart_rate,
            'spo2': self.spo2,
            'timestamp': isoformat(self.timestamp),
            'acknowledged': bool(self.acknowledged),
            'name': self.patient.name if self.patient else None,
            'room': self.patient.room if self.patient else None,
        }


# ==================== HELPERS ====================

def insert_patient_if_missing(patient_id, name='ESP32 Patient', contact='N/A', condition='stable'):
    """Insert a minimal patient row, ignoring a concurrent duplicate"""
    stmt = insert(Patient).values(
        id=patient_id,
        name=name,
        contact=contact,
        room=None,
        condition=condition,
        created_at=datetime.utcnow(),
    ).prefix_with('OR IGNORE', dialect='sqlite')
    try:
        db.session.execute(stmt)
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        logger.debug(f"Patient {patient_id} was created concurrently")


def init_db():
    """Create tables and seed an admin doctor on an empty staff table"""
    db.create_all()
    if db.session.query(Staff).count() == 0:
        db.session.add(Staff(
            employe_id='EMP-ADMIN',
            username='admin',
            email='admin@example.com',
            password_hash=generate_password_hash('admin123'),
            role='doctor',
            is_admin=True,
        ))
        db.session.commit()
        logger.info("Seeded default admin account")
