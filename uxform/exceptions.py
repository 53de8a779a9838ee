import logging
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class UxFormError(Exception):
    """Base exception for form engine errors."""
    pass

class UnknownFieldError(UxFormError, KeyError):
    """Exception raised when an operation names a field missing from the configuration."""

    def __init__(self, name):
        self.name = name
        self.message = f"Field '{name}' is not declared in the form configuration."
        super().__init__(self.message)

    def __str__(self):
        return self.message

class ConfigurationError(UxFormError, ValueError):
    """Exception raised when a field configuration is malformed."""
    pass

class InvalidStrategyError(ConfigurationError):
    """Exception raised for an unrecognized validation strategy."""
    pass


def global_error_handler(error: Exception, description: str = None):
    logger.error("%s: %s", description or error.__class__.__name__, error, exc_info=error)

_global_error_handler = global_error_handler

def set_global_error_handler(handler: Optional[Callable[[Exception, Optional[str]], None]]):
    """Sets the handler used to report errors the engine recovers from. ``None`` restores the default."""
    global _global_error_handler
    _global_error_handler = handler or global_error_handler

def report_error(error: Exception, description: str = None):
    _global_error_handler(error, description)
