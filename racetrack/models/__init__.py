"""
Database Models

Feature models live next to their features:
- racetrack.features.users.models: User
- racetrack.features.races.models: Race, Participant, DailyDistance

Import them from there; this package only owns the declarative Base.
"""

from racetrack.models.base import Base

__all__ = ["Base"]
