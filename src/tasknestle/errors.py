"""Error taxonomy shared by services and the HTTP layer.

Every failure a service reports is one of the six kinds below. The HTTP
layer maps ``status_code`` straight onto the response; nothing is retried.
"""
from typing import Optional


class TaskNestleError(Exception):
    """Base class for all expected application errors."""

    status_code = 500

    def __init__(self, message: str, errors: Optional[list[dict]] = None):
        super().__init__(message)
        self.message = message
        self.errors = errors


class ValidationFailed(TaskNestleError):
    """Malformed or semantically invalid input."""

    status_code = 400


class Unauthenticated(TaskNestleError):
    """Missing, malformed or expired credentials."""

    status_code = 401


class Forbidden(TaskNestleError):
    """Authenticated principal denied by policy."""

    status_code = 403


class NotFound(TaskNestleError):
    """Referenced entity does not exist."""

    status_code = 404


class Conflict(TaskNestleError):
    """Request conflicts with current state (duplicate email, membership)."""

    status_code = 400


class Internal(TaskNestleError):
    """Unexpected failure."""

    status_code = 500


class PrincipalNotFound(Unauthenticated):
    """Token is valid but its subject no longer exists."""


class AlreadyMember(Conflict):
    """User is already a member of the project."""


class AlreadyRegistered(Conflict):
    """An account already exists for the invited email."""


class AssigneeNotMember(ValidationFailed):
    """Task assignee is not a member of the task's project."""


class InvalidToken(ValidationFailed):
    """Invitation token is corrupt, expired or of the wrong type."""


class ProjectGone(NotFound):
    """Project referenced by an invitation no longer exists."""
