"""Exception types raised by the locator healing core."""


class HealingError(Exception):
    """Base class for errors raised by the healing core."""
    pass


class HealingValidationError(HealingError, ValueError):
    """Raised when a failure record is missing or malformed."""

    def __init__(self, message: str, field: str = None):
        super().__init__(message)
        self.field = field


class ProviderError(HealingError):
    """Raised by a strategy provider that cannot produce candidates."""

    def __init__(self, message: str, provider: str = None):
        super().__init__(message)
        self.provider = provider


class LearningStoreError(HealingError):
    """Raised when the learning store cannot persist or reload outcomes."""
    pass


class ConfigurationError(HealingError):
    """Raised when configuration is invalid or cannot be loaded."""
    pass
