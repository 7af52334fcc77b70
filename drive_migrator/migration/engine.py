import asyncio
import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, List, Optional, Sequence, Tuple, TypeVar, Union

from ..drive.items import DriveItem, MetadataOverrides, unique_by_id
from ..drive.store import DEFAULT_PROVENANCE_KEY, RemoteStore
from ..utils.exceptions import MigratorError, SelectionError, SetupError
from ..utils.rate_limiter import RateLimiter
from .outcome import OutcomeEntry, OutcomeLog, OutcomeStatus
from .progress import ProgressSnapshot, ProgressTracker

logger = logging.getLogger(__name__)

DEFAULT_WINDOW_SIZE = 5

T = TypeVar("T")

ProgressCallback = Callable[[OutcomeEntry, ProgressSnapshot], None]
CancelEvent = Union[asyncio.Event, threading.Event]


@dataclass(frozen=True)
class MigrationResult:
    snapshot: ProgressSnapshot
    entries: Tuple[OutcomeEntry, ...]
    cancelled: bool = False

    def by_status(self, status: OutcomeStatus) -> List[OutcomeEntry]:
        return [e for e in self.entries if e.status is status]


def check_client(client: Optional[RemoteStore], side: str) -> RemoteStore:
    if client is None:
        raise SetupError(f"No {side} client was provided", side=side)
    if not client.is_connected():
        raise SetupError(f"The {side} client is not connected", side=side)
    return client


def folder_note(item: DriveItem, migrated_at: datetime) -> str:
    return (
        f"[MIGRATION LOG] Original ID: {item.id} | "
        f"Migrated at: {migrated_at.isoformat(timespec='seconds')}"
    )


def file_note(item: DriveItem, migrated_at: datetime) -> str:
    size = item.size if item.size is not None else "unknown"
    return (
        f"[MIGRATION LOG] Original ID: {item.id} | Size: {size} | "
        f"Migrated: {migrated_at.isoformat(timespec='seconds')}"
    )


class MigrationEngine:
    """Copies a flat selection of Drive items into a destination folder.

    The selection is processed in consecutive windows of ``window_size``
    items. Items inside a window run concurrently and the next window only
    starts once every item of the current one has an outcome. Each
    destination object is tagged with ``provenance_key`` set to the source
    id, which is what makes re-runs skip already migrated items.
    """

    def __init__(
        self,
        source_client: Optional[RemoteStore],
        dest_client: Optional[RemoteStore],
        window_size: int = DEFAULT_WINDOW_SIZE,
        provenance_key: str = DEFAULT_PROVENANCE_KEY,
        rate_limiter: Optional[RateLimiter] = None,
    ) -> None:
        if window_size < 1:
            raise ValueError("window_size must be >= 1")
        if not provenance_key:
            raise ValueError("provenance_key must not be empty")
        self._source = source_client
        self._dest = dest_client
        self._window_size = window_size
        self._provenance_key = provenance_key
        self._rate_limiter = rate_limiter or RateLimiter()
        self._log = OutcomeLog()
        self._progress = ProgressTracker()
        self._record_lock = threading.Lock()
        self._on_progress: Optional[ProgressCallback] = None

    @property
    def window_size(self) -> int:
        return self._window_size

    @property
    def outcome_log(self) -> OutcomeLog:
        return self._log

    @property
    def progress(self) -> ProgressTracker:
        return self._progress

    def set_progress_callback(self, callback: Optional[ProgressCallback]) -> None:
        self._on_progress = callback

    def _reset_run_state(self, total: int) -> None:
        self._log = OutcomeLog()
        self._progress = ProgressTracker(total=total)

    async def _call(self, fn: Callable[..., T], *args: Any) -> T:
        async with self._rate_limiter:
            return await asyncio.to_thread(fn, *args)

    async def list_folder(self, folder_id: str) -> List[DriveItem]:
        source = check_client(self._source, "source")
        return await self._call(source.list_children, folder_id)

    async def resolve_selection(self, item_ids: Sequence[str]) -> List[DriveItem]:
        source = check_client(self._source, "source")
        items: List[DriveItem] = []
        for item_id in dict.fromkeys(item_ids):
            try:
                items.append(await self._call(source.get_item, item_id))
            except MigratorError as e:
                raise SelectionError(
                    f"Could not resolve source item {item_id}: {e}", item_id=item_id
                ) from e
        return items

    async def migrate(
        self,
        selection: Sequence[DriveItem],
        dest_container_id: str = "root",
        cancel_event: Optional[CancelEvent] = None,
    ) -> MigrationResult:
        """Migrate ``selection`` into ``dest_container_id``.

        Items with a repeated id are dropped before the run, so the log and
        the snapshot total count distinct items.
        """
        check_client(self._source, "source")
        check_client(self._dest, "destination")

        items = unique_by_id(selection)
        if len(items) != len(selection):
            logger.warning(
                "Ignoring %d repeated items in selection", len(selection) - len(items)
            )
        self._reset_run_state(len(items))

        if not items:
            logger.info("Empty selection, nothing to migrate")
            return MigrationResult(snapshot=self._progress.snapshot(), entries=())

        logger.info(
            "Migrating %d items into %s (window size %d)",
            len(items),
            dest_container_id,
            self._window_size,
        )

        cancelled = False
        for start in range(0, len(items), self._window_size):
            if cancel_event is not None and cancel_event.is_set():
                logger.warning(
                    "Migration cancelled, %d items were not started",
                    len(items) - start,
                )
                cancelled = True
                break

            window = items[start : start + self._window_size]
            logger.debug(
                "Dispatching items %d-%d of %d",
                start + 1,
                start + len(window),
                len(items),
            )
            await asyncio.gather(
                *(self._process_item(item, dest_container_id) for item in window)
            )

        snapshot = self._progress.snapshot()
        logger.info(
            "Migration finished: %d succeeded, %d failed, %d skipped of %d",
            snapshot.succeeded,
            snapshot.failed,
            snapshot.skipped,
            snapshot.total,
        )
        return MigrationResult(
            snapshot=snapshot, entries=self._log.entries(), cancelled=cancelled
        )

    async def _process_item(self, item: DriveItem, dest_parent_id: str) -> None:
        try:
            entry = await self.migrate_item(item, dest_parent_id)
        except Exception as e:
            message = str(e) or type(e).__name__
            logger.warning("Failed to migrate %s (%s): %s", item.name, item.id, message)
            entry = OutcomeEntry.failed(item, message)
        self._record(entry)

    async def migrate_item(self, item: DriveItem, dest_parent_id: str) -> OutcomeEntry:
        dest = check_client(self._dest, "destination")

        existing_id = await self._call(
            dest.find_by_provenance_tag, dest_parent_id, item.id, self._provenance_key
        )
        if existing_id:
            logger.info(
                "Skipping %s (%s): already migrated as %s",
                item.name,
                item.id,
                existing_id,
            )
            return OutcomeEntry.skipped(item, existing_id)

        migrated_at = datetime.now(timezone.utc)
        tags = {self._provenance_key: item.id}

        if item.is_container:
            folder_id = await self._call(
                dest.create_container, item.name, dest_parent_id
            )
            overrides = MetadataOverrides(
                description=folder_note(item, migrated_at), properties=tags
            )
            await self._call(dest.update_metadata, folder_id, overrides)
            logger.info("Created folder %s as %s", item.name, folder_id)
            return OutcomeEntry.success(item, folder_id)

        overrides = MetadataOverrides(
            description=file_note(item, migrated_at), properties=tags
        )
        copied = await self._call(dest.copy_object, item.id, dest_parent_id, overrides)
        logger.info("Copied %s as %s", item.name, copied.id)
        return OutcomeEntry.success(item, copied.id)

    def _record(self, entry: OutcomeEntry) -> None:
        with self._record_lock:
            self._log.append(entry)
            snapshot = self._progress.record(entry.status)

        if self._on_progress:
            try:
                self._on_progress(entry, snapshot)
            except Exception:
                logger.exception("Progress callback failed for %s", entry.source_id)
