import logging

from sqlalchemy.exc import SQLAlchemyError

from .extensions import db
from .models import Alert, Staff
from .notifier import DEFAULT_SENDER, is_valid_email
from .publisher import ALERT_NEW_EVENT, ALERT_UPDATE_EVENT

logger = logging.getLogger(__name__)


def compose_alert_email(alert):
    """Subject and plain-text body for an alert record"""
    patient_id = alert.get('patient_id') or 'Unknown'
    severity = str(alert.get('severity') or 'info').upper()
    alert_type = alert.get('type') or 'alert'
    subject = f"[{severity}] Patient {patient_id} {alert_type}"

    vitals = []
    if alert.get('heart_rate') is not None:
        vitals.append(f"HR: {alert['heart_rate']}")
    if alert.get('spo2') is not None:
        vitals.append(f"SpO2: {alert['spo2']}")

    lines = [
        f"Patient: {patient_id}",
        f"Type: {alert_type}",
        f"Severity: {severity}",
    ]
    if alert.get('message'):
        lines.append(f"Message: {alert['message']}")
    if vitals:
        lines.append(f"Vitals: {' | '.join(vitals)}")
    if alert.get('timestamp'):
        lines.append(f"Time: {alert['timestamp']}")
    return subject, '\n'.join(lines)


class AlertDisseminator:
    """Persists, broadcasts and emails alerts.

    The three steps are independent: a failed broadcast or email never undoes
    the stored alert, and email is best-effort only.
    """

    def __init__(self, publisher, mailer=None, fallback_email=None, sender=None):
        self.publisher = publisher
        self.mailer = mailer
        self.fallback_email = fallback_email
        self.sender = sender or DEFAULT_SENDER

    def raise_alert(self, patient_id, decision):
        """Store an AlertDecision for a patient; returns the joined record"""
        try:
            alert = Alert(
                patient_id=patient_id,
                type=decision.type,
                severity=decision.severity,
                message=decision.message,
                heart_rate=decision.heart_rate,
                spo2=decision.spo2,
                acknowledged=False,
            )
            db.session.add(alert)
            db.session.commit()
            record = db.session.get(Alert, alert.id).to_dict()
        except Exception as e:
            db.session.rollback()
            logger.error(f"Failed to store {decision.type} alert for {patient_id}: {str(e)}")
            return None

        logger.info(f"Stored {record['severity']} {record['type']} alert {record['id']} for {patient_id}")
        self.publisher.publish(ALERT_NEW_EVENT, record)
        self.notify_staff(record)
        return record

    def recipients(self):
        """Doctor addresses plus the fallback address, valid and de-duplicated"""
        addresses = [row.email for row in Staff.query.filter_by(role='doctor').order_by(Staff.id).all() if row.email]
        if self.fallback_email:
            addresses.append(self.fallback_email)
        unique = []
        for address in addresses:
            if is_valid_email(address) and address not in unique:
                unique.append(address)
        return unique

    def notify_staff(self, alert):
        if self.mailer is None:
            return
        try:
            recipients = self.recipients()
        except SQLAlchemyError as e:
            logger.error(f"Could not load alert recipients: {str(e)}")
            return
        if not recipients:
            return

        subject, body = compose_alert_email(alert)
        logger.info(f"Mailing alert {alert.get('id')} to {len(recipients)} recipients")
        try:
            self.mailer.send(self.sender, self.sender, subject, body, bcc=recipients)
        except Exception as e:
            logger.error(f"BCC send failed, falling back to per-recipient: {str(e)}")
            for address in recipients:
                try:
                    self.mailer.send(self.sender, address, subject, body)
                except Exception as e2:
                    logger.error(f"Send to {address} failed: {str(e2)}")

    def acknowledge(self, alert_id):
        """Mark an alert acknowledged; False if the id is unknown.

        Acknowledging an already acknowledged alert changes nothing and does
        not broadcast again.
        """
        alert = db.session.get(Alert, alert_id)
        if alert is None:
            return False
        if alert.acknowledged:
            return True

        alert.acknowledged = True
        db.session.commit()
        logger.info(f"Alert {alert.id} acknowledged")
        self.publisher.publish(ALERT_UPDATE_EVENT, {'id': alert.id, 'acknowledged': True})
        return True
