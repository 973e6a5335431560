"""Progression feature module: XP curve, levels and snapshots."""

from .calculator import (
    XP_PER_KM,
    ProgressionSnapshot,
    xp_threshold,
    level_from_xp,
    progression_snapshot,
    xp_for_distance,
)

__all__ = [
    "XP_PER_KM",
    "ProgressionSnapshot",
    "xp_threshold",
    "level_from_xp",
    "progression_snapshot",
    "xp_for_distance",
]
