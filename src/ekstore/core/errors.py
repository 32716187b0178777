"""Exception hierarchy for the event store access layer."""


class EventStoreError(Exception):
    """Base class for all errors raised by ekstore."""

    pass


class ValidationError(EventStoreError):
    """Raised when caller-supplied input is rejected before any backend mutation."""

    pass


class BackendOperationError(EventStoreError):
    """Raised when the backend refuses a save, remove or commit."""

    pass


class SessionClosedError(EventStoreError):
    """Raised when an operation is attempted on a closed store."""

    pass


class BackendUnavailableError(EventStoreError):
    """Raised when a backend cannot be opened on this platform."""

    pass
