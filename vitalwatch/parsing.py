"""Payload dialects accepted on the sensor topics.

Structured topics (``<prefix>heartrate``, ``<prefix>spo2``,
``<prefix>emergency``) carry a plain-text number or message for the default
patient. Any other topic carries a JSON document
``{"patient_id": ..., "heart_rate": ..., "spo2": ...}``.
"""

import json
import math
import re
from dataclasses import dataclass
from typing import Optional, Union

from .correlator import HEART_RATE, MAX_READING, SPO2, sanitize

DEFAULT_EMERGENCY_MESSAGE = 'Emergency triggered'

TOPIC_SUFFIXES = {
    '/heartrate': HEART_RATE,
    '/spo2': SPO2,
}
EMERGENCY_SUFFIX = '/emergency'

_LEADING_DECIMAL = re.compile(r'^[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?')


class MalformedPayload(ValueError):
    """Raised when a broker message cannot be turned into a reading"""


@dataclass(frozen=True)
class Partial:
    """One side of a reading from a structured topic"""
    kind: str
    value: float


@dataclass(frozen=True)
class Full:
    """Both sides of a reading from a JSON payload"""
    patient_id: str
    heart_rate: Optional[int]
    spo2: Optional[int]


@dataclass(frozen=True)
class Emergency:
    message: str


@dataclass(frozen=True)
class Unrouted:
    """Structured-namespace topic without a known suffix"""
    topic: str


ParsedReading = Union[Partial, Full, Emergency, Unrouted]


def decode(payload):
    if isinstance(payload, (bytes, bytearray)):
        try:
            payload = bytes(payload).decode('utf-8')
        except UnicodeDecodeError as e:
            raise MalformedPayload(f"payload is not UTF-8: {e}") from e
    return str(payload).strip()


def parse_decimal(text):
    """Leading decimal number of a sensor string, e.g. '72' or '97.4 %'"""
    match = _LEADING_DECIMAL.match(text)
    if not match:
        raise MalformedPayload(f"not a number: {text!r}")
    value = float(match.group(0))
    if math.isinf(value) or value <= 0:
        raise MalformedPayload(f"not a positive reading: {text!r}")
    if value > MAX_READING:
        raise MalformedPayload(f"reading out of range: {text!r}")
    return value


def parse_structured(topic, payload):
    text = decode(payload)
    if topic.endswith(EMERGENCY_SUFFIX):
        return Emergency(message=text or DEFAULT_EMERGENCY_MESSAGE)
    for suffix, kind in TOPIC_SUFFIXES.items():
        if topic.endswith(suffix):
            return Partial(kind=kind, value=parse_decimal(text))
    return Unrouted(topic=topic)


def parse_json(payload):
    text = decode(payload)
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise MalformedPayload(f"invalid JSON: {e.msg}") from e
    if not isinstance(data, dict):
        raise MalformedPayload("JSON payload is not an object")

    patient_id = data.get('patient_id')
    if patient_id is None or patient_id == '':
        raise MalformedPayload("patient_id missing")
    return Full(
        patient_id=str(patient_id),
        heart_rate=sanitize(data.get('heart_rate')),
        spo2=sanitize(data.get('spo2')),
    )


def parse_message(topic, payload, structured_prefix):
    """Select the dialect by topic and parse the payload"""
    if structured_prefix and topic.startswith(structured_prefix):
        return parse_structured(topic, payload)
    return parse_json(payload)
