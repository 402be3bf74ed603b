"""Exceptions raised by dispute operations."""


class DisputeError(Exception):
    """Base class for dispute errors surfaced to callers."""
    pass


class ValidationError(DisputeError):
    """Raised when input is malformed, before anything is written."""
    pass


class NotFoundError(DisputeError):
    """Raised when a referenced dispute or message does not exist."""
    pass


class InvalidStateError(DisputeError):
    """Raised when an operation is not permitted from the current status."""
    pass


class PermissionDeniedError(DisputeError):
    """Raised when the acting party may not perform the operation."""
    pass


class StorageError(DisputeError):
    """Raised when the evidence store fails to persist an upload."""
    pass


class DependencyDegraded(Exception):
    """A best-effort collaborator failed or is unavailable.

    Only ever raised inside background paths; it is logged there and never
    reaches the caller of a dispute operation.
    """
    pass
