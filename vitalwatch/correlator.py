"""Pairing of independently arriving heart-rate and SpO2 samples.

Sensors publish heart rate and SpO2 on separate topics, so the two values of
one physical measurement arrive as two messages in no particular order. The
correlator remembers the last sample of each stream and decides whether the
other stream is fresh enough to be stored alongside a new sample.
"""

import math
import threading
from dataclasses import dataclass
from typing import Optional

HEART_RATE = 'heart_rate'
SPO2 = 'spo2'
READING_KINDS = (HEART_RATE, SPO2)

PAIRING_WINDOW_SECONDS = 15.0
FALLBACK_PAIRING_WINDOW_SECONDS = 10.0

# upper bound for any heart-rate or SpO2 sample
MAX_READING = 1000

@dataclass
class CorrelationState:
    """Last known sample of each stream, timestamps in epoch seconds"""
    heart_rate: Optional[int] = None
    heart_rate_at: float = 0.0
    spo2: Optional[int] = None
    spo2_at: float = 0.0


@dataclass(frozen=True)
class PairedReading:
    heart_rate: Optional[int]
    spo2: Optional[int]

    @property
    def is_complete(self):
        return self.heart_rate is not None and self.spo2 is not None


def sanitize(value):
    """Return a plausible positive reading rounded half-up, or None"""
    if isinstance(value, bool) or value is None:
        return None
    try:
        number = float(value)
    except (TypeError, ValueError, OverflowError):
        return None
    if math.isnan(number) or math.isinf(number) or number <= 0 or number > MAX_READING:
        return None
    return int(math.floor(number + 0.5))


class ReadingCorrelator:
    """Owns one CorrelationState; one instance per device or ingestion session.

    The state is guarded by a lock because the MQTT client delivers messages
    on its own network thread while HTTP handlers may read snapshots.
    """

    def __init__(self, state=None, pairing_window=PAIRING_WINDOW_SECONDS,
                 fallback_window=FALLBACK_PAIRING_WINDOW_SECONDS):
        self.state = state if state is not None else CorrelationState()
        self.pairing_window = pairing_window
        self.fallback_window = fallback_window
        self._lock = threading.Lock()

    def observe(self, kind, value, now):
        """Record a sample and pair it with the other stream if still fresh.

        Returns None when the value is not a positive number; the state is
        left untouched in that case.
        """
        if kind not in READING_KINDS:
            raise ValueError(f"Unknown reading kind: {kind}")
        reading = sanitize(value)
        if reading is None:
            return None

        with self._lock:
            state = self.state
            if kind == HEART_RATE:
                state.heart_rate = reading
                state.heart_rate_at = now
                spo2 = state.spo2 if state.spo2 is not None and (now - state.spo2_at) < self.pairing_window else None
                return PairedReading(heart_rate=reading, spo2=spo2)

            state.spo2 = reading
            state.spo2_at = now
            heart_rate = state.heart_rate if state.heart_rate is not None and (now - state.heart_rate_at) < self.pairing_window else None
            return PairedReading(heart_rate=heart_rate, spo2=reading)

    def fallback(self):
        """Both stored samples, if they were taken close enough to each other"""
        with self._lock:
            state = self.state
            if state.heart_rate is None or state.spo2 is None:
                return None
            if abs(state.heart_rate_at - state.spo2_at) >= self.fallback_window:
                return None
            return PairedReading(heart_rate=state.heart_rate, spo2=state.spo2)

    def snapshot(self):
        """Current values without consuming or resetting them"""
        with self._lock:
            return PairedReading(heart_rate=self.state.heart_rate, spo2=self.state.spo2)
