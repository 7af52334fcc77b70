from typing import List, Optional, Protocol, runtime_checkable

from .items import DriveItem, MetadataOverrides

DEFAULT_PROVENANCE_KEY = "original_id"


@runtime_checkable
class RemoteStore(Protocol):
    """Operations the migration engine needs from an authenticated store.

    Implementations are synchronous and raise ``MigratorError`` subclasses;
    the engine runs them in worker threads.
    """

    def is_connected(self) -> bool: ...

    def list_children(self, container_id: str = "root") -> List[DriveItem]: ...

    def get_item(self, item_id: str) -> DriveItem: ...

    def create_container(self, name: str, parent_id: str) -> str: ...

    def copy_object(
        self, object_id: str, dest_parent_id: str, overrides: MetadataOverrides
    ) -> DriveItem: ...

    def update_metadata(self, object_id: str, overrides: MetadataOverrides) -> None: ...

    def find_by_provenance_tag(
        self,
        parent_id: str,
        source_id: str,
        key: str = DEFAULT_PROVENANCE_KEY,
    ) -> Optional[str]: ...
