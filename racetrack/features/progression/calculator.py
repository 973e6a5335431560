"""
XP and level arithmetic.

Pure functions, no state. Level curve:

    threshold(L) = 0                          for L <= 1
    threshold(L) = floor(100 * (L - 1)^1.5)   otherwise

A user's level is the greatest L whose threshold does not exceed their XP.
"""

import math
from dataclasses import dataclass, asdict

XP_PER_KM = 10
LEVEL_CURVE_BASE = 100
LEVEL_CURVE_EXPONENT = 1.5


@dataclass(frozen=True)
class ProgressionSnapshot:
    """Where a user stands on the level curve."""

    level: int
    total_xp: int | float
    current_level_xp: int   # threshold of the current level
    next_level_xp: int      # threshold of the next level
    in_level_xp: int | float
    xp_to_next_level: int | float
    progress: float         # 0..1, 4 decimals

    def to_dict(self) -> dict:
        """camelCase payload for API responses."""
        data = asdict(self)
        return {
            "level": data["level"],
            "totalXp": data["total_xp"],
            "currentLevelXp": data["current_level_xp"],
            "nextLevelXp": data["next_level_xp"],
            "inLevelXp": data["in_level_xp"],
            "xpToNextLevel": data["xp_to_next_level"],
            "progress": data["progress"],
        }


def _sanitize_xp(total_xp: float) -> float:
    if total_xp is None or not math.isfinite(total_xp) or total_xp < 0:
        return 0
    return total_xp


def xp_threshold(level: int) -> int | float:
    """XP needed to reach `level`."""
    if level <= 1:
        return 0
    raw = LEVEL_CURVE_BASE * (level - 1) ** LEVEL_CURVE_EXPONENT
    if not math.isfinite(raw):
        # Beyond float range: no finite XP total reaches this level
        return math.inf
    return math.floor(raw)


def level_from_xp(total_xp: float) -> int:
    """
    Greatest level whose threshold is <= total_xp. Always >= 1.

    Gallops an upper bound, then bisects on the threshold, so the cost is
    logarithmic in the level.
    """
    xp = _sanitize_xp(total_xp)
    lo, hi = 1, 2
    while xp_threshold(hi) <= xp:
        lo, hi = hi, hi * 2

    # threshold(lo) <= xp < threshold(hi)
    while hi - lo > 1:
        mid = (lo + hi) // 2
        if xp_threshold(mid) <= xp:
            lo = mid
        else:
            hi = mid
    return lo


def progression_snapshot(total_xp: float) -> ProgressionSnapshot:
    """Build the full progression view for a lifetime XP total."""
    xp = _sanitize_xp(total_xp)
    level = level_from_xp(xp)
    current_level_xp = xp_threshold(level)
    next_level_xp = xp_threshold(level + 1)
    in_level_xp = xp - current_level_xp
    needed = max(1, next_level_xp - current_level_xp)

    return ProgressionSnapshot(
        level=level,
        total_xp=xp,
        current_level_xp=current_level_xp,
        next_level_xp=next_level_xp,
        in_level_xp=in_level_xp,
        xp_to_next_level=max(0, next_level_xp - xp),
        progress=round(in_level_xp / needed, 4),
    )


def xp_for_distance(delta_km: float, xp_per_km: int = XP_PER_KM) -> int:
    """XP earned for a confirmed distance gain: floor(km * rate)."""
    if delta_km is None or not math.isfinite(delta_km) or delta_km <= 0:
        return 0
    xp = delta_km * xp_per_km
    if not math.isfinite(xp):
        return 0
    return math.floor(xp)
