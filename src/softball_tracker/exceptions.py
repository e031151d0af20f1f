class SoftballError(Exception):
    """Base class for all softball tracker errors."""


class DomainError(SoftballError):
    """Raised when an operation would violate a game or lineup rule."""


class ValidationError(SoftballError):
    """Raised when a command is malformed before any use case runs."""

    def __init__(self, message: str, field: str | None = None) -> None:
        self.field = field
        super().__init__(message)


class ConcurrencyError(SoftballError):
    def __init__(self, stream_id: str, expected_version: int, actual_version: int) -> None:
        self.stream_id = stream_id
        self.expected_version = expected_version
        self.actual_version = actual_version
        super().__init__(
            f"Concurrency conflict on stream {stream_id}: "
            f"expected version {expected_version}, actual version {actual_version}"
        )


class EventStreamError(SoftballError):
    """Raised when an event stream cannot be replayed into an aggregate."""


class InconsistentStateError(SoftballError):
    """Raised when a compensating action could not complete.

    The system may be inconsistent and requires manual intervention.
    """

    def __init__(self, operation: str, reason: str) -> None:
        self.operation = operation
        self.reason = reason
        super().__init__(
            f"Compensation for {operation} failed: {reason}. "
            "System may be inconsistent, requires manual intervention"
        )
