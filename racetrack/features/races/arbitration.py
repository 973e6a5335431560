"""
Finish arbitration.

Decides who won a race from participant completion data. Three states:

    NONE ──first completion──▶ PROVISIONAL ──window elapsed──▶ FINAL
      ▲                          │    ▲                          │
      └──no completed left───────┘    └──earlier finisher found──┘

- The earliest finisher is the completed participant with the smallest
  completion time; ties go to the smallest user id.
- A provisional winner becomes final once `now` reaches the end of the
  confirmation window and nobody earlier has shown up.
- If the recomputed earliest finisher differs from the recorded winner, any
  final decision is revoked and a new window starts for the new finisher.

`reconcile_finish` is a pure function of the stored resolution, the current
finishers and `now`. Callers invoke it on every path that reads or writes
completion data and persist the result only when it reports a change.
There is no timer: a race nobody looks at never finalizes.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Iterable, NamedTuple, Optional

logger = logging.getLogger(__name__)

DEFAULT_CONFIRMATION_WINDOW_MS = 90_000


class FinishStatus:
    """Arbitration states."""

    NONE = "none"
    PROVISIONAL = "provisional"
    FINAL = "final"


class Finisher(NamedTuple):
    """A completed participant."""

    user_id: str
    completed_at: datetime


@dataclass(frozen=True)
class FinishResolution:
    """Last known arbitration outcome of a race."""

    provisional_winner_id: Optional[str] = None
    provisional_at: Optional[datetime] = None
    confirmation_window_ends_at: Optional[datetime] = None
    final_winner_id: Optional[str] = None
    finalized_at: Optional[datetime] = None

    @property
    def status(self) -> str:
        if self.final_winner_id is not None:
            return FinishStatus.FINAL
        if self.provisional_winner_id is not None:
            return FinishStatus.PROVISIONAL
        return FinishStatus.NONE

    @property
    def recorded_winner_id(self) -> Optional[str]:
        """Final winner if decided, else the provisional one."""
        return self.final_winner_id or self.provisional_winner_id

    @property
    def is_empty(self) -> bool:
        return self == EMPTY_RESOLUTION


EMPTY_RESOLUTION = FinishResolution()


def confirmation_window(window_ms: int = DEFAULT_CONFIRMATION_WINDOW_MS) -> timedelta:
    return timedelta(milliseconds=max(0, window_ms))


def earliest_finisher(finishers: Iterable[Finisher]) -> Optional[Finisher]:
    """
    First finisher by completion time, user id breaking ties.

    Entries without a completion time are ignored.
    """
    candidates = [f for f in finishers if f.completed_at is not None]
    if not candidates:
        return None
    return min(candidates, key=lambda f: (f.completed_at, str(f.user_id)))


def reconcile_finish(
    resolution: FinishResolution,
    finishers: Iterable[Finisher],
    now: datetime,
    window: timedelta,
) -> tuple[FinishResolution, bool]:
    """
    Re-derive the finish resolution from current data.

    Args:
        resolution: Stored resolution (EMPTY_RESOLUTION when none)
        finishers: Completed participants of the race
        now: Observation time
        window: Confirmation window length

    Returns:
        (new resolution, changed); persist only when changed is True
    """
    leader = earliest_finisher(finishers)

    if leader is None:
        updated = EMPTY_RESOLUTION
        if not resolution.is_empty:
            logger.info(
                "Finish resolution cleared: no completed participants "
                f"(was {resolution.recorded_winner_id})"
            )
    elif resolution.recorded_winner_id != leader.user_id:
        if resolution.final_winner_id is not None:
            logger.warning(
                f"Final winner {resolution.final_winner_id} revoked: "
                f"{leader.user_id} finished earlier at {leader.completed_at.isoformat()}"
            )
        elif resolution.provisional_winner_id is not None:
            logger.info(
                f"Provisional winner {resolution.provisional_winner_id} "
                f"replaced by {leader.user_id}"
            )
        updated = FinishResolution(
            provisional_winner_id=leader.user_id,
            provisional_at=leader.completed_at,
            confirmation_window_ends_at=now + window,
        )
    elif (
        resolution.provisional_winner_id != leader.user_id
        or resolution.provisional_at != leader.completed_at
        or resolution.confirmation_window_ends_at is None
    ):
        # Same winner, stale bookkeeping: refresh the record, keep the window.
        updated = FinishResolution(
            provisional_winner_id=leader.user_id,
            provisional_at=leader.completed_at,
            confirmation_window_ends_at=resolution.confirmation_window_ends_at or now + window,
            final_winner_id=resolution.final_winner_id,
            finalized_at=resolution.finalized_at,
        )
    else:
        updated = resolution

    if (
        updated.provisional_winner_id is not None
        and updated.final_winner_id is None
        and now >= updated.confirmation_window_ends_at
    ):
        updated = FinishResolution(
            provisional_winner_id=updated.provisional_winner_id,
            provisional_at=updated.provisional_at,
            confirmation_window_ends_at=updated.confirmation_window_ends_at,
            final_winner_id=updated.provisional_winner_id,
            finalized_at=now,
        )
        logger.info(f"Winner {updated.final_winner_id} finalized")

    return updated, updated != resolution


def finish_state(
    resolution: FinishResolution,
    window_ms: int = DEFAULT_CONFIRMATION_WINDOW_MS,
) -> dict:
    """API projection of a finish resolution."""
    def _iso(value: Optional[datetime]) -> Optional[str]:
        return value.isoformat() + "Z" if value is not None else None

    return {
        "status": resolution.status,
        "winnerUserId": resolution.recorded_winner_id,
        "provisionalWinnerUserId": resolution.provisional_winner_id,
        "provisionalAt": _iso(resolution.provisional_at),
        "confirmationWindowEndsAt": _iso(resolution.confirmation_window_ends_at),
        "finalWinnerUserId": resolution.final_winner_id,
        "finalizedAt": _iso(resolution.finalized_at),
        "confirmationWindowMs": window_ms,
    }
