"""Exception types raised across the sync and job layers."""


class PriceWatchError(Exception):
    """Base class for all application errors."""


class ConfigurationError(PriceWatchError):
    """Required configuration is missing or invalid. Fatal at startup."""


class FetchError(PriceWatchError):
    """A vendor catalog query failed (timeout, bad status, malformed payload)."""

    def __init__(self, message: str, term: str = None, status_code: int = None):
        super().__init__(message)
        self.term = term
        self.status_code = status_code


class PersistenceError(PriceWatchError):
    """A catalog store operation failed."""


class JobExecutionError(PriceWatchError):
    """An error escaped a sync or refresh run."""


class JobNotFoundError(PriceWatchError):
    """No job exists with the given id."""


class JobConflictError(PriceWatchError):
    """A job for the same source is already active."""

    def __init__(self, message: str, source_keys=None):
        super().__init__(message)
        self.source_keys = list(source_keys or [])


class UnknownSourceError(PriceWatchError):
    """The requested merchant or source key is not registered."""


class InvalidModeError(PriceWatchError):
    """The requested sync mode is not supported."""
