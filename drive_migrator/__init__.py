"""Drive Migrator - Copy selected Google Drive items between two accounts."""

__version__ = "0.1.0"

from .config import ConfigManager
from .migration.engine import MigrationEngine, MigrationResult
from .migration.outcome import OutcomeEntry, OutcomeLog, OutcomeStatus
from .migration.progress import ProgressSnapshot, ProgressTracker
from .migration.verify import Verifier
from .auth import GoogleDriveAuthProvider
from .drive import DriveItem, GoogleDriveClient, ItemKind, RemoteStore

__all__ = [
    "ConfigManager",
    "MigrationEngine",
    "MigrationResult",
    "OutcomeEntry",
    "OutcomeLog",
    "OutcomeStatus",
    "ProgressSnapshot",
    "ProgressTracker",
    "Verifier",
    "GoogleDriveAuthProvider",
    "DriveItem",
    "GoogleDriveClient",
    "ItemKind",
    "RemoteStore",
]
