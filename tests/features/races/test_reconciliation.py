"""
Tests for daily distance reconciliation.

Covers sample parsing, the max-merge rule and the derived totals.
"""

from datetime import date, datetime, timezone

import pytest

from racetrack.features.races.reconciliation import (
    DaySample,
    has_reached_finish,
    merge_daily_distances,
    parse_day,
    parse_distance,
    parse_samples,
    total_distance,
)


D1 = date(2024, 1, 1)
D2 = date(2024, 1, 2)
D3 = date(2024, 1, 3)


# =============================================================================
# Test Parsing
# =============================================================================

class TestParseDay:
    """Tests for parse_day function."""

    def test_plain_date_string(self):
        assert parse_day("2024-01-01") == D1

    def test_utc_timestamp(self):
        assert parse_day("2024-01-01T23:30:00Z") == D1

    def test_offset_timestamp_normalized_to_utc(self):
        """00:30 at +02:00 is still the previous UTC day."""
        assert parse_day("2024-01-02T00:30:00+02:00") == D1

    def test_date_and_datetime_objects(self):
        assert parse_day(D2) == D2
        assert parse_day(datetime(2024, 1, 3, 1, 0, tzinfo=timezone.utc)) == D3

    def test_garbage(self):
        assert parse_day("yesterday") is None
        assert parse_day("") is None
        assert parse_day(None) is None
        assert parse_day(20240101) is None


class TestParseDistance:
    """Tests for parse_distance function."""

    def test_numbers(self):
        assert parse_distance(4) == 4.0
        assert parse_distance("5.5") == 5.5
        assert parse_distance(0) == 0.0

    def test_rejected_values(self):
        for value in (-1, float("nan"), float("inf"), "abc", None, True, [1]):
            assert parse_distance(value) is None

    def test_daily_cap(self):
        assert parse_distance(1000, max_km=1000) == 1000.0
        assert parse_distance(1000.5, max_km=1000) is None
        assert parse_distance(1e308, max_km=1000) is None
        assert parse_distance(1e308) == 1e308


class TestParseSamples:
    """Tests for parse_samples function."""

    def test_skips_malformed_items(self):
        items = [
            {"date": "2024-01-01", "distanceKm": 4.0},
            {"date": "not-a-date", "distanceKm": 1.0},
            {"date": "2024-01-02", "distanceKm": -2},
            {"distanceKm": 3.0},
            "2024-01-03",
            {"day": "2024-01-03", "distance_km": 2.5},
        ]
        samples, skipped = parse_samples(items)
        assert samples == [DaySample(D1, 4.0), DaySample(D3, 2.5)]
        assert skipped == 4

    def test_implausible_distances_skipped(self):
        items = [
            {"date": "2024-01-01", "distanceKm": 1e35},
            {"date": "2024-01-02", "distanceKm": 1e308},
            {"date": "2024-01-03", "distanceKm": 42.2},
        ]
        samples, skipped = parse_samples(items, max_distance_km=1000)
        assert samples == [DaySample(D3, 42.2)]
        assert skipped == 2

    def test_empty_batch(self):
        assert parse_samples([]) == ([], 0)


# =============================================================================
# Test Merge
# =============================================================================

class TestMergeDailyDistances:
    """Tests for merge_daily_distances function."""

    def test_new_days_are_gained(self):
        result = merge_daily_distances({}, [DaySample(D1, 4.0), DaySample(D2, 7.0)])
        assert result.days == {D1: 4.0, D2: 7.0}
        assert result.gained_km == pytest.approx(11.0)
        assert result.changed_days == [D1, D2]
        assert result.total_km == pytest.approx(11.0)

    def test_lower_value_never_regresses(self):
        """An under-reported resend keeps the larger stored value."""
        result = merge_daily_distances({D1: 5.0}, [DaySample(D1, 3.0)])
        assert result.days == {D1: 5.0}
        assert result.gained_km == 0
        assert result.changed_days == []

    def test_higher_value_gains_difference(self):
        result = merge_daily_distances({D1: 5.0}, [DaySample(D1, 6.5)])
        assert result.days[D1] == 6.5
        assert result.gained_km == pytest.approx(1.5)

    def test_duplicate_days_in_one_batch(self):
        """Within a batch the running maximum applies per day."""
        result = merge_daily_distances(
            {},
            [DaySample(D1, 3.0), DaySample(D1, 5.0), DaySample(D1, 4.0)],
        )
        assert result.days == {D1: 5.0}
        assert result.gained_km == pytest.approx(5.0)

    def test_idempotent(self):
        """Applying the same batch twice gains nothing the second time."""
        batch = [DaySample(D1, 4.0), DaySample(D2, 2.25)]
        first = merge_daily_distances({D1: 1.0}, batch)
        second = merge_daily_distances(first.days, batch)
        assert second.days == first.days
        assert second.gained_km == 0
        assert second.total_km == first.total_km

    def test_monotonic_per_day(self):
        history: dict = {}
        for value in (2.0, 1.0, 3.5, 0.0, 3.0):
            previous = history.get(D1, 0.0)
            history = merge_daily_distances(history, [DaySample(D1, value)]).days
            assert history[D1] >= previous

    def test_input_not_mutated(self):
        existing = {D1: 1.0}
        merge_daily_distances(existing, [DaySample(D1, 9.0)])
        assert existing == {D1: 1.0}

    def test_zero_sample_creates_day(self):
        result = merge_daily_distances({}, [DaySample(D1, 0.0)])
        assert result.days == {D1: 0.0}
        assert result.gained_km == 0


# =============================================================================
# Test Totals
# =============================================================================

class TestTotals:
    """Tests for total_distance and has_reached_finish."""

    def test_total_is_exact_sum(self):
        assert total_distance([0.1] * 10) == 1.0

    def test_total_of_nothing(self):
        assert total_distance([]) == 0.0

    def test_finish_threshold_inclusive(self):
        assert has_reached_finish(10.0, 10.0)
        assert has_reached_finish(11.0, 9.9964)
        assert not has_reached_finish(9.99, 10.0)
