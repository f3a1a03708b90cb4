"""Exception hierarchy for the listener engine."""


class ListenerError(Exception):
    """Base class for listener errors."""


class ConfigurationError(ListenerError, ValueError):
    """Raised when listener configuration is invalid. The engine never starts."""


class QueueServiceError(ListenerError):
    """
    Raised when a call to the remote queue fails.

    Fatal to the current poll cycle when raised from count/receive;
    logged and swallowed when raised from delete/extend.
    """

    def __init__(self, message: str, operation: str | None = None, cause: Exception | None = None):
        self.operation = operation
        self.cause = cause
        super().__init__(message)
