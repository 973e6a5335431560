"""
Domain exceptions.

Every error raised by the race engine derives from RaceTrackError and
carries the HTTP status the API layer answers with.
"""


class RaceTrackError(Exception):
    """Base race engine error."""

    status_code = 400

    def __init__(self, message: str, **context):
        super().__init__(message)
        self.message = message
        self.context = context


class NotFoundError(RaceTrackError):
    """Race, user or participant lookup failed."""

    status_code = 404


class ValidationError(RaceTrackError):
    """Domain validation failed (race window, coordinates, names)."""
    pass


class RaceClosedError(RaceTrackError):
    """Race has already ended and can no longer be joined."""
    pass


class AlreadyParticipantError(RaceTrackError):
    """User already participates in the race."""
    pass


class OngoingParticipationError(RaceTrackError):
    """User already holds a participation in another ongoing race."""

    def __init__(self, message: str, conflicting_race: dict):
        super().__init__(message, conflicting_race=conflicting_race)
        self.conflicting_race = conflicting_race


class UserAlreadyExistsError(RaceTrackError):
    """A user with the same email already exists."""

    status_code = 409


class ConcurrentUpdateError(RaceTrackError):
    """Another writer modified the race or user during this read-modify-write cycle."""

    status_code = 409
