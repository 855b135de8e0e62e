import logging
from datetime import datetime

from .extensions import db
from .models import Patient, Vital, insert_patient_if_missing
from .publisher import VITALS_EVENT

logger = logging.getLogger(__name__)


class VitalsPersister:
    """Writes one immutable vitals row per qualifying ingestion event"""

    def __init__(self, publisher, default_patient_id, allow_dynamic_patients=False):
        self.publisher = publisher
        self.default_patient_id = default_patient_id
        self.allow_dynamic_patients = allow_dynamic_patients

    def patient_allowed(self, patient_id):
        return self.allow_dynamic_patients or patient_id == self.default_patient_id

    def ensure_patient(self, patient_id):
        """True if the patient exists or was created now"""
        if not patient_id:
            return False
        if db.session.get(Patient, patient_id) is not None:
            return True
        if not self.patient_allowed(patient_id):
            return False
        insert_patient_if_missing(patient_id)
        logger.info(f"Created patient record for {patient_id}")
        return True

    def record(self, patient_id, heart_rate, spo2, timestamp=None):
        """Insert a reading and publish it; None when skipped or failed"""
        try:
            if not self.ensure_patient(patient_id):
                logger.warning(f"Skipping vitals for unknown patient {patient_id}")
                return None
            vital = Vital(
                patient_id=patient_id,
                heart_rate=heart_rate,
                spo2=spo2,
                timestamp=timestamp or datetime.utcnow(),
            )
            db.session.add(vital)
            db.session.commit()
        except Exception as e:
            db.session.rollback()
            logger.error(f"Failed to store vitals for {patient_id}: {str(e)}")
            return None

        logger.info(f"Stored vitals patient={patient_id} hr={heart_rate} spo2={spo2}")
        self.publisher.publish(VITALS_EVENT, vital.to_event())
        return vital

    def latest(self, patient_id):
        """Most recent persisted reading for a patient"""
        return (
            Vital.query
            .filter_by(patient_id=patient_id)
            .order_by(Vital.timestamp.desc(), Vital.id.desc())
            .first()
        )
