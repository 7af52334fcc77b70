from .rate_limiter import RateLimiter
from .logger import setup_logging, get_logger, DEFAULT_LOG_DIR, DEFAULT_LOG_FORMAT
from .exceptions import (
    MigratorError,
    ConfigurationError,
    AuthenticationError,
    RateLimitError,
    RemoteStoreError,
    ItemNotFoundError,
    SetupError,
    SelectionError,
    VerificationError,
)

__all__ = [
    "RateLimiter",
    "setup_logging",
    "get_logger",
    "DEFAULT_LOG_DIR",
    "DEFAULT_LOG_FORMAT",
    "MigratorError",
    "ConfigurationError",
    "AuthenticationError",
    "RateLimitError",
    "RemoteStoreError",
    "ItemNotFoundError",
    "SetupError",
    "SelectionError",
    "VerificationError",
]
