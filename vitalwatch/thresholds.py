# ==================== ALERT RULES ====================

from dataclasses import dataclass
from typing import Optional

from .correlator import HEART_RATE, SPO2
from .parsing import DEFAULT_EMERGENCY_MESSAGE

EMERGENCY = 'emergency'

WARNING = 'warning'
CRITICAL = 'critical'

HEART_RATE_HIGH = 100
SPO2_LOW = 90


@dataclass(frozen=True)
class AlertDecision:
    """Alert to raise; severity is fixed at creation and never recomputed"""
    type: str
    severity: str
    message: str
    heart_rate: Optional[int] = None
    spo2: Optional[int] = None


def evaluate(heart_rate, spo2, heart_rate_high=HEART_RATE_HIGH, spo2_low=SPO2_LOW):
    """Rules are independent, so one reading may yield both alerts"""
    decisions = []
    if heart_rate is not None and heart_rate > heart_rate_high:
        decisions.append(AlertDecision(
            type=HEART_RATE,
            severity=WARNING,
            message='High heart rate detected',
            heart_rate=heart_rate,
            spo2=spo2,
        ))
    if spo2 is not None and spo2 < spo2_low:
        decisions.append(AlertDecision(
            type=SPO2,
            severity=CRITICAL,
            message='Low SpO2 detected',
            heart_rate=heart_rate,
            spo2=spo2,
        ))
    return decisions


def emergency_alert(message, heart_rate=None, spo2=None):
    return AlertDecision(
        type=EMERGENCY,
        severity=CRITICAL,
        message=message or DEFAULT_EMERGENCY_MESSAGE,
        heart_rate=heart_rate,
        spo2=spo2,
    )
