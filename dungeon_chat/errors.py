"""Error taxonomy for room, message and character operations.

Every error raised by a game operation derives from GameError and carries the
HTTP status the API layer answers with. The message is human-readable and is
sent to the client as-is.
"""


class GameError(Exception):
    """Base class for rejected game operations."""

    status_code = 400


class ValidationError(GameError):
    """Bad or missing input (blank name, missing room code, bad roll syntax)."""

    status_code = 400


class AuthenticationError(GameError):
    """The operation needs an authenticated identity and none was given."""

    status_code = 401


class AuthorizationError(GameError):
    """A non-leader attempted a leader-only action."""

    status_code = 403


class NotFoundError(GameError):
    """Unknown room, participant or character sheet."""

    status_code = 404


class DuplicateError(GameError):
    """A character sheet already exists for this room and identity."""

    status_code = 409


class CapacityError(GameError):
    """The room already holds the maximum number of participants."""

    status_code = 409


class StatBudgetError(GameError):
    """Ability scores break the point-buy rules."""

    status_code = 422


class AllocationError(GameError):
    """No free room code could be found. The user may simply try again."""

    status_code = 503


class ConfigurationError(GameError):
    """The server is missing configuration the operation needs (e.g. the AI backend)."""

    status_code = 500
