import json
import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Tuple

from ..drive.items import DriveItem

logger = logging.getLogger(__name__)


class OutcomeStatus(Enum):
    SUCCESS = "success"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class OutcomeEntry:
    source_id: str
    source_name: str
    dest_id: str
    dest_name: str
    timestamp: datetime
    status: OutcomeStatus
    error: Optional[str] = None

    def __post_init__(self) -> None:
        if self.status is OutcomeStatus.FAILED:
            if not self.error:
                raise ValueError("FAILED outcome requires an error message")
        elif self.error:
            raise ValueError(f"{self.status.value} outcome must not carry an error")

    @classmethod
    def success(cls, item: DriveItem, dest_id: str) -> "OutcomeEntry":
        return cls(
            source_id=item.id,
            source_name=item.name,
            dest_id=dest_id,
            dest_name=item.name,
            timestamp=datetime.now(timezone.utc),
            status=OutcomeStatus.SUCCESS,
        )

    @classmethod
    def skipped(cls, item: DriveItem, existing_id: str) -> "OutcomeEntry":
        return cls(
            source_id=item.id,
            source_name=item.name,
            dest_id=existing_id,
            dest_name=item.name,
            timestamp=datetime.now(timezone.utc),
            status=OutcomeStatus.SKIPPED,
        )

    @classmethod
    def failed(cls, item: DriveItem, error: str) -> "OutcomeEntry":
        return cls(
            source_id=item.id,
            source_name=item.name,
            dest_id="",
            dest_name="",
            timestamp=datetime.now(timezone.utc),
            status=OutcomeStatus.FAILED,
            error=error,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "source_id": self.source_id,
            "source_name": self.source_name,
            "dest_id": self.dest_id,
            "dest_name": self.dest_name,
            "timestamp": self.timestamp.isoformat(),
            "status": self.status.value,
            "error": self.error,
        }


class OutcomeLog:
    """Append-only record of a single run, in completion order.

    Readers get tuple copies so they never observe a half-applied append.
    """

    def __init__(self) -> None:
        self._entries: List[OutcomeEntry] = []
        self._lock = threading.Lock()

    def append(self, entry: OutcomeEntry) -> None:
        with self._lock:
            self._entries.append(entry)

    def entries(self) -> Tuple[OutcomeEntry, ...]:
        with self._lock:
            return tuple(self._entries)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __iter__(self) -> Iterator[OutcomeEntry]:
        return iter(self.entries())

    def by_status(self, status: OutcomeStatus) -> List[OutcomeEntry]:
        return [e for e in self.entries() if e.status is status]

    def export_to_json(self, output_path: Path) -> int:
        entries = self.entries()
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_text(
            json.dumps([e.to_dict() for e in entries], indent=2) + "\n",
            encoding="utf-8",
        )
        logger.info("Exported %d outcome entries to %s", len(entries), output_path)
        return len(entries)
