"""Domain exceptions."""

from typing import Any


class DomainException(Exception):
    """Base exception for all domain exceptions."""

    # Hey future me, we store message as an attribute so code can inspect it without parsing
    # str(exception). This is the base class - DON'T raise it directly! Always use a specific
    # subclass so callers can catch precisely.
    def __init__(self, message: str, *args: Any) -> None:
        super().__init__(message, *args)
        self.message = message


class EntityNotFoundException(DomainException):
    """Raised when an entity is not found."""

    # Used for "get by ID" lookups that miss, e.g. jobStatus("abc") for a pruned record.
    # entity_type/entity_id are kept separately so the API layer can log them structured.
    def __init__(self, entity_type: str, entity_id: Any) -> None:
        super().__init__(f"{entity_type} with id {entity_id} not found")
        self.entity_type = entity_type
        self.entity_id = entity_id


class ValidationException(DomainException):
    """Raised when entity validation fails.

    Example: a Job with options its type doesn't recognize, or a sync job
    without a target.
    """

    pass


class InvalidStateException(DomainException):
    """Raised when an entity is in an invalid state for the requested operation."""

    pass


class InvalidTransition(InvalidStateException):
    """A JobStatus was asked to move through a disallowed transition.

    Hey future me - this is a PROGRAMMING bug, not a runtime hiccup!
    Lifecycle is strictly Queued -> Processing -> Completed|Failed. If you see this
    in the logs, some code path is re-using a job id or double-dispatching a job.
    Never catch-and-ignore it.
    """

    def __init__(self, job_id: str, current: Any, requested: Any) -> None:
        current_value = getattr(current, "value", current)
        requested_value = getattr(requested, "value", requested)
        super().__init__(
            f"Job {job_id}: transition {current_value} -> {requested_value} is not allowed"
        )
        self.job_id = job_id
        self.current = current
        self.requested = requested


class ConfigurationError(DomainException):
    """Application misconfiguration.

    Raised when rate-limit or option values are missing or invalid. The scheduler
    refuses to register triggers while this is unresolved.
    """

    pass


class TransientExternalError(DomainException):
    """Network or API failure while talking to the metadata provider.

    Recorded as a Failed job. Never retried automatically - the operator
    restarts failed jobs explicitly.
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


__all__ = [
    "ConfigurationError",
    "DomainException",
    "EntityNotFoundException",
    "InvalidStateException",
    "InvalidTransition",
    "TransientExternalError",
    "ValidationException",
]
