"""Error kinds raised by the gameshare engines.

Each operation ends in at most one of these. Mapping a kind to a transport
status (HTTP code, CLI exit code) is left to the caller.
"""


class GameShareError(Exception):
    """Base class for all gameshare errors."""

    kind = "error"
    retryable = False

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ValidationError(GameShareError):
    """Malformed input: bad date range, missing reference, bad capacity."""

    kind = "validation"


class NotFoundError(GameShareError):
    """A referenced entity does not exist."""

    kind = "not_found"


class ForbiddenError(GameShareError):
    """The principal lacks the role or ownership required for the action."""

    kind = "forbidden"


class ConflictError(GameShareError):
    """The resource is not in a state compatible with the requested transition."""

    kind = "conflict"


class CapacityExceededError(ConflictError):
    """The event has no free places left."""

    kind = "capacity_exceeded"


class DuplicateRegistrationError(ConflictError):
    """The attendee already holds a registration for the event."""

    kind = "duplicate_registration"


class DependencyError(GameShareError):
    """A collaborator (store, directory, catalog) failed or was unreachable."""

    kind = "dependency"
    retryable = True
