"""
Error taxonomy for AI Observe.

Every failure a caller can see maps to one of these classes.
"""


class ObserveError(Exception):
    """Base class for all AI Observe errors."""


class ValidationError(ObserveError):
    """Raised when required request input is missing.

    Raised before any provider call or store write.
    """


class ProviderError(ObserveError):
    """Raised when the completion provider call fails.

    The failed attempt has already been recorded as an error CallRecord
    when this is raised.
    """

    def __init__(self, message: str, latency_ms: int):
        super().__init__(message)
        self.message = message
        self.latency_ms = latency_ms


class StorageError(ObserveError):
    """Raised when the metrics store cannot be read or written."""


class BreakdownDecodeError(ObserveError):
    """Raised when a persisted token breakdown cannot be decoded."""


class ConfigError(ValueError):
    """Raised when a configuration file is invalid."""
