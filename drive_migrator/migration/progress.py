import threading
from dataclasses import asdict, dataclass
from typing import Dict

from .outcome import OutcomeStatus


@dataclass(frozen=True)
class ProgressSnapshot:
    total: int = 0
    processed: int = 0
    succeeded: int = 0
    failed: int = 0
    skipped: int = 0

    @property
    def remaining(self) -> int:
        return self.total - self.processed

    @property
    def percent(self) -> float:
        if self.total == 0:
            return 0.0
        return self.processed / self.total * 100

    @property
    def is_complete(self) -> bool:
        return self.processed == self.total

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)


class ProgressTracker:
    """Running counts for one migration run.

    Every ``record`` call updates processed and exactly one sub-count under
    a single lock, so ``succeeded + failed + skipped == processed`` holds for
    any snapshot.
    """

    def __init__(self, total: int = 0) -> None:
        if total < 0:
            raise ValueError("total must be >= 0")
        self._lock = threading.Lock()
        self._snapshot = ProgressSnapshot(total=total)

    @property
    def total(self) -> int:
        return self._snapshot.total

    def snapshot(self) -> ProgressSnapshot:
        with self._lock:
            return self._snapshot

    def record(self, status: OutcomeStatus) -> ProgressSnapshot:
        with self._lock:
            current = self._snapshot
            if current.processed >= current.total:
                raise ValueError(
                    f"Cannot record more than {current.total} outcomes in this run"
                )
            self._snapshot = ProgressSnapshot(
                total=current.total,
                processed=current.processed + 1,
                succeeded=current.succeeded + (status is OutcomeStatus.SUCCESS),
                failed=current.failed + (status is OutcomeStatus.FAILED),
                skipped=current.skipped + (status is OutcomeStatus.SKIPPED),
            )
            return self._snapshot
