"""Custom exception classes for the drive-migrator."""

from typing import Optional


class MigratorError(Exception):
    """Base exception class for all migrator errors."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class ConfigurationError(MigratorError):
    """Raised when configuration is invalid or missing."""

    def __init__(self, message: str, config_key: Optional[str] = None) -> None:
        self.config_key = config_key
        super().__init__(message)


class AuthenticationError(MigratorError):
    """Raised when a Google account cannot be authenticated or is denied."""

    def __init__(self, message: str, provider: Optional[str] = None) -> None:
        self.provider = provider
        super().__init__(message)


class RateLimitError(MigratorError):
    """Raised when the Drive API rejects a request for exceeding its quota."""

    def __init__(self, message: str, retry_after: Optional[float] = None) -> None:
        self.retry_after = retry_after
        super().__init__(message)


class RemoteStoreError(MigratorError):
    """Raised when a remote store operation fails."""

    def __init__(self, message: str, item_id: Optional[str] = None) -> None:
        self.item_id = item_id
        super().__init__(message)


class ItemNotFoundError(RemoteStoreError):
    """Raised when a file or folder does not exist in the remote store."""


class SetupError(MigratorError):
    """Raised before a run starts when a client handle is missing or unusable."""

    def __init__(self, message: str, side: Optional[str] = None) -> None:
        self.side = side
        super().__init__(message)


class SelectionError(MigratorError):
    """Raised when the requested selection cannot be resolved."""

    def __init__(self, message: str, item_id: Optional[str] = None) -> None:
        self.item_id = item_id
        super().__init__(message)


class VerificationError(MigratorError):
    """Raised when a verification query fails and the pass is aborted."""

    def __init__(self, message: str, item_id: Optional[str] = None) -> None:
        self.item_id = item_id
        super().__init__(message)
