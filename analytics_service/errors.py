"""Analytics-specific exceptions."""


class AnalyticsError(Exception):
    """Base class for errors raised by the analytics service."""


class PersistenceError(AnalyticsError):
    """Raised when the statistics document cannot be written to (or read from) storage.

    The store never adopts a document it failed to persist, so callers can
    retry without worrying about the in-memory cache drifting from disk.
    """


class CorruptStateError(AnalyticsError):
    """Raised by a storage backend when the persisted bytes cannot be parsed."""


class AuthorizationError(AnalyticsError):
    """Raised when the admin secret supplied for a reset does not match."""


class PayloadTooLargeError(AnalyticsError):
    """Raised when a request body exceeds the configured size cap."""


class InvalidPayloadError(AnalyticsError):
    """Raised when a request body is not valid JSON."""
