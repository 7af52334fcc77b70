from .engine import DEFAULT_WINDOW_SIZE, MigrationEngine, MigrationResult
from .outcome import OutcomeEntry, OutcomeLog, OutcomeStatus
from .progress import ProgressSnapshot, ProgressTracker
from .verify import Verifier

__all__ = [
    "DEFAULT_WINDOW_SIZE",
    "MigrationEngine",
    "MigrationResult",
    "OutcomeEntry",
    "OutcomeLog",
    "OutcomeStatus",
    "ProgressSnapshot",
    "ProgressTracker",
    "Verifier",
]
