"""Tests for heart-rate / SpO2 pairing."""

import pytest

from vitalwatch.correlator import HEART_RATE, SPO2, CorrelationState, ReadingCorrelator, sanitize


class TestSanitize:
    """Test input sanitation of raw readings."""

    @pytest.mark.parametrize('value', [None, 'abc', '', 0, -5, 1001, 10 ** 20, 10 ** 400, float('nan'), float('inf'), True])
    def test_rejects_non_positive_or_non_numeric(self, value):
        assert sanitize(value) is None

    def test_rounds_half_up(self):
        assert sanitize(72.5) == 73
        assert sanitize('96.4') == 96
        assert sanitize(80) == 80
        assert sanitize(1000) == 1000


class TestObserve:
    """Test primary pairing within the freshness window."""

    def test_first_reading_has_no_counterpart(self):
        correlator = ReadingCorrelator()
        paired = correlator.observe(HEART_RATE, 72, now=0.0)
        assert paired.heart_rate == 72
        assert paired.spo2 is None

    def test_pairs_within_window(self):
        correlator = ReadingCorrelator()
        correlator.observe(HEART_RATE, 72, now=0.0)
        paired = correlator.observe(SPO2, 97, now=14.0)
        assert (paired.heart_rate, paired.spo2) == (72, 97)
        assert paired.is_complete

    def test_stale_counterpart_is_dropped(self):
        correlator = ReadingCorrelator()
        correlator.observe(HEART_RATE, 72, now=0.0)
        paired = correlator.observe(SPO2, 97, now=16.0)
        assert paired.heart_rate is None
        assert paired.spo2 == 97

    def test_window_boundary_is_exclusive(self):
        correlator = ReadingCorrelator()
        correlator.observe(SPO2, 95, now=0.0)
        assert correlator.observe(HEART_RATE, 80, now=15.0).spo2 is None

    def test_invalid_value_leaves_state_untouched(self):
        state = CorrelationState()
        correlator = ReadingCorrelator(state=state)
        correlator.observe(HEART_RATE, 72, now=1.0)
        assert correlator.observe(HEART_RATE, 'abc', now=2.0) is None
        assert state.heart_rate == 72
        assert state.heart_rate_at == 1.0

    def test_unknown_kind(self):
        with pytest.raises(ValueError):
            ReadingCorrelator().observe('temperature', 37, now=0.0)


class TestFallbackAndSnapshot:
    """Test the secondary pairing path and emergency snapshots."""

    def test_fallback_needs_both_streams(self):
        correlator = ReadingCorrelator()
        correlator.observe(HEART_RATE, 72, now=0.0)
        assert correlator.fallback() is None

    def test_fallback_within_ten_seconds(self):
        correlator = ReadingCorrelator()
        correlator.observe(HEART_RATE, 72, now=0.0)
        correlator.observe(SPO2, 97, now=9.0)
        paired = correlator.fallback()
        assert (paired.heart_rate, paired.spo2) == (72, 97)

    def test_fallback_outside_ten_seconds(self):
        correlator = ReadingCorrelator()
        correlator.observe(HEART_RATE, 72, now=0.0)
        correlator.observe(SPO2, 97, now=12.0)
        assert correlator.fallback() is None

    def test_snapshot_does_not_consume_state(self):
        correlator = ReadingCorrelator()
        correlator.observe(HEART_RATE, 88, now=0.0)
        first = correlator.snapshot()
        second = correlator.snapshot()
        assert first == second
        assert first.heart_rate == 88
        assert first.spo2 is None
