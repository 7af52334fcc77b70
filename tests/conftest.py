import threading
import time
from contextlib import contextmanager
from dataclasses import replace
from typing import Dict, Iterable, Iterator, List, Optional, Tuple

import pytest

from drive_migrator.drive.items import DriveItem, ItemKind, MetadataOverrides
from drive_migrator.drive.store import DEFAULT_PROVENANCE_KEY
from drive_migrator.utils.exceptions import ItemNotFoundError
from drive_migrator.utils.rate_limiter import RateLimiter


class FakeDriveStore:
    """In-memory Drive account that records calls and concurrent in-flight ops."""

    def __init__(
        self,
        items: Iterable[Tuple[DriveItem, str]] = (),
        shared_from: Optional["FakeDriveStore"] = None,
        delay: float = 0.0,
    ) -> None:
        self.connected = True
        self.objects: Dict[str, DriveItem] = {}
        self.parents: Dict[str, str] = {}
        self.calls: List[Tuple[str, str]] = []
        self.in_flight = 0
        self.max_in_flight = 0
        self._shared_from = shared_from
        self._delay = delay
        self._failures: Dict[Tuple[str, str], Exception] = {}
        self._lock = threading.Lock()
        self._data_lock = threading.RLock()
        self._counter = 0
        for item, parent_id in items:
            self.add(item, parent_id)

    def add(self, item: DriveItem, parent_id: str = "root") -> DriveItem:
        with self._data_lock:
            self.objects[item.id] = item
            self.parents[item.id] = parent_id
        return item

    def remove(self, item_id: str) -> None:
        with self._data_lock:
            del self.objects[item_id]
            del self.parents[item_id]

    def fail(self, operation: str, key: str, error: Exception) -> None:
        self._failures[(operation, key)] = error

    def clear_failures(self) -> None:
        self._failures.clear()

    def calls_to(self, operation: str) -> List[str]:
        return [key for op, key in self.calls if op == operation]

    def children(self, parent_id: str) -> List[DriveItem]:
        with self._data_lock:
            return [
                item
                for item_id, item in self.objects.items()
                if self.parents[item_id] == parent_id
            ]

    def _new_id(self) -> str:
        with self._lock:
            self._counter += 1
            return f"dest-{self._counter}"

    @contextmanager
    def _operation(self, operation: str, key: str) -> Iterator[None]:
        with self._lock:
            self.calls.append((operation, key))
            self.in_flight += 1
            self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self._delay:
                time.sleep(self._delay)
            error = self._failures.get((operation, key))
            if error is not None:
                raise error
            yield
        finally:
            with self._lock:
                self.in_flight -= 1

    def is_connected(self) -> bool:
        return self.connected

    def list_children(self, container_id: str = "root") -> List[DriveItem]:
        with self._operation("list_children", container_id):
            return self.children(container_id)

    def get_item(self, item_id: str) -> DriveItem:
        with self._operation("get_item", item_id):
            if item_id not in self.objects:
                raise ItemNotFoundError(f"File not found: {item_id}", item_id=item_id)
            return self.objects[item_id]

    def create_container(self, name: str, parent_id: str) -> str:
        with self._operation("create_container", name):
            folder = DriveItem(
                id=self._new_id(),
                name=name,
                kind=ItemKind.CONTAINER,
                mime_type="application/vnd.google-apps.folder",
            )
            self.add(folder, parent_id)
            return folder.id

    def copy_object(
        self, object_id: str, dest_parent_id: str, overrides: MetadataOverrides
    ) -> DriveItem:
        with self._operation("copy_object", object_id):
            source = self._shared_from or self
            original = source.objects.get(object_id)
            if original is None:
                raise ItemNotFoundError(f"File not found: {object_id}")
            copy = replace(
                original,
                id=self._new_id(),
                description=overrides.description,
                properties=dict(overrides.properties),
            )
            self.add(copy, dest_parent_id)
            return copy

    def update_metadata(self, object_id: str, overrides: MetadataOverrides) -> None:
        with self._operation("update_metadata", object_id):
            with self._data_lock:
                current = self.objects[object_id]
                properties = dict(current.properties)
                properties.update(overrides.properties)
                self.objects[object_id] = replace(
                    current,
                    description=overrides.description or current.description,
                    properties=properties,
                )

    def find_by_provenance_tag(
        self,
        parent_id: str,
        source_id: str,
        key: str = DEFAULT_PROVENANCE_KEY,
    ) -> Optional[str]:
        with self._operation("find_by_provenance_tag", source_id):
            for item in self.children(parent_id):
                if item.properties.get(key) == source_id:
                    return item.id
            return None


def make_file(item_id: str, name: str, size: Optional[int] = 1024) -> DriveItem:
    return DriveItem(
        id=item_id, name=name, kind=ItemKind.FILE, mime_type="text/plain", size=size
    )


def make_folder(item_id: str, name: str) -> DriveItem:
    return DriveItem(
        id=item_id,
        name=name,
        kind=ItemKind.CONTAINER,
        mime_type="application/vnd.google-apps.folder",
    )


@pytest.fixture
def fast_limiter() -> RateLimiter:
    return RateLimiter(requests_per_second=10000.0, burst_size=10000)


@pytest.fixture
def selection() -> List[DriveItem]:
    return [make_file("f1", "a.txt"), make_folder("f2", "Folder")]


@pytest.fixture
def source_store(selection: List[DriveItem]) -> FakeDriveStore:
    return FakeDriveStore(items=[(item, "root") for item in selection])


@pytest.fixture
def dest_store(source_store: FakeDriveStore) -> FakeDriveStore:
    return FakeDriveStore(shared_from=source_store)
