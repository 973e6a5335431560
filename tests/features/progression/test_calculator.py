"""
Tests for XP and level arithmetic.
"""

import math

import pytest

from racetrack.features.progression import (
    level_from_xp,
    progression_snapshot,
    xp_for_distance,
    xp_threshold,
)


# =============================================================================
# Test Level Curve
# =============================================================================

class TestXpThreshold:
    """Tests for xp_threshold function."""

    def test_first_level_is_free(self):
        assert xp_threshold(0) == 0
        assert xp_threshold(1) == 0

    def test_known_thresholds(self):
        """threshold(L) = floor(100 * (L - 1)^1.5)."""
        assert xp_threshold(2) == 100
        assert xp_threshold(3) == 282
        assert xp_threshold(5) == 800
        assert xp_threshold(10) == 2700

    def test_strictly_increasing(self):
        thresholds = [xp_threshold(level) for level in range(1, 200)]
        assert all(a < b for a, b in zip(thresholds, thresholds[1:]))


class TestLevelFromXp:
    """Tests for level_from_xp function."""

    def test_zero_xp(self):
        assert level_from_xp(0) == 1

    def test_exact_threshold(self):
        """Reaching a threshold exactly grants the level."""
        assert level_from_xp(99) == 1
        assert level_from_xp(100) == 2
        assert level_from_xp(281) == 2
        assert level_from_xp(282) == 3

    def test_bracket_property(self):
        """threshold(L) <= xp < threshold(L + 1) for every xp."""
        for xp in list(range(0, 5000)) + [10_000, 123_456, 9_999_999]:
            level = level_from_xp(xp)
            assert level >= 1
            assert xp_threshold(level) <= xp < xp_threshold(level + 1)

    def test_invalid_xp_sanitized(self):
        assert level_from_xp(-50) == 1
        assert level_from_xp(float("nan")) == 1

    def test_huge_xp_bracketed(self):
        """Astronomical totals resolve quickly and still satisfy the bracket."""
        for xp in (1e34, 1e36, 1e60, 1e300, 1.7e308):
            level = level_from_xp(xp)
            assert level > 1
            assert xp_threshold(level) <= xp < xp_threshold(level + 1)

    def test_monotonic_in_xp(self):
        levels = [level_from_xp(10.0 ** k) for k in range(0, 300, 7)]
        assert levels == sorted(levels)


# =============================================================================
# Test Snapshot
# =============================================================================

class TestProgressionSnapshot:
    """Tests for progression_snapshot function."""

    def test_snapshot_fields(self):
        snap = progression_snapshot(110)
        assert snap.level == 2
        assert snap.current_level_xp == 100
        assert snap.next_level_xp == 282
        assert snap.in_level_xp == 10
        assert snap.xp_to_next_level == 172
        assert snap.progress == pytest.approx(round(10 / 182, 4))

    def test_progress_in_range(self):
        for xp in range(0, 3000, 7):
            snap = progression_snapshot(xp)
            assert 0 <= snap.progress < 1

    def test_to_dict_is_camel_case(self):
        data = progression_snapshot(0).to_dict()
        assert data == {
            "level": 1,
            "totalXp": 0,
            "currentLevelXp": 0,
            "nextLevelXp": 100,
            "inLevelXp": 0,
            "xpToNextLevel": 100,
            "progress": 0.0,
        }


# =============================================================================
# Test XP For Distance
# =============================================================================

class TestXpForDistance:
    """Tests for xp_for_distance function."""

    def test_floor_of_km_times_rate(self):
        assert xp_for_distance(4.0) == 40
        assert xp_for_distance(7.0) == 70
        assert xp_for_distance(1.29) == 12

    def test_custom_rate(self):
        assert xp_for_distance(2.5, xp_per_km=3) == 7

    def test_no_gain_no_xp(self):
        assert xp_for_distance(0) == 0
        assert xp_for_distance(-3.0) == 0
        assert xp_for_distance(math.inf) == 0

    def test_overflowing_product_gives_nothing(self):
        """km * rate beyond float range is refused instead of raising."""
        assert xp_for_distance(1e308, xp_per_km=10) == 0
        assert xp_for_distance(1.7e308, xp_per_km=2) == 0
