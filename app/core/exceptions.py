"""NAPWATCH — Error Taxonomy."""


class NapWatchError(Exception):
    """Base class for engine errors."""


class ConfigurationError(NapWatchError, ValueError):
    """Raised when an audit configuration update is rejected.

    The engine state is left untouched when this is raised.
    """

    def __init__(self, message: str, errors: list | None = None):
        self.errors = errors or []
        super().__init__(message)


class ProviderError(NapWatchError):
    """Raised inside a platform provider; always converted to a FetchFailure."""

    def __init__(
        self,
        message: str,
        reason: str = "network",
        status_code: int = 0,
        attempts: int = 1,
    ):
        self.reason = reason
        self.status_code = status_code
        self.attempts = attempts
        super().__init__(message)


class IdentityRecordError(NapWatchError, ValueError):
    """Raised when a master identity update does not produce a valid record."""

    def __init__(self, message: str, errors: list | None = None):
        self.errors = errors or []
        super().__init__(message)
