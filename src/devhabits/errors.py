"""Domain error hierarchy.

Services raise these; the HTTP layer maps each class to a status code in
``devhabits.middleware.error_handler``. Anything that is not a
``DevHabitsError`` is treated as an internal error.
"""

from __future__ import annotations


class DevHabitsError(Exception):
    """Base class for expected, typed failures returned to the direct caller."""

    status_code: int = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(DevHabitsError):
    """Malformed or inconsistent input."""

    status_code = 400


class NotFoundError(DevHabitsError):
    """A user, habit, connection or repository does not exist (or is not yours)."""

    status_code = 404

    def __init__(self, resource: str, identifier: object) -> None:
        super().__init__(f"{resource} not found: {identifier}")
        self.resource = resource
        self.identifier = identifier


class ConflictError(DevHabitsError):
    """The request conflicts with current state."""

    status_code = 409


class AlreadyCompletedToday(ConflictError):
    """A manual check-in already exists for this habit today."""

    def __init__(self, habit_id: object) -> None:
        super().__init__("Habit already completed today")
        self.habit_id = habit_id


class ExternalServiceError(DevHabitsError):
    """GitHub (token exchange, user fetch, repository listing) failed."""

    status_code = 502
