from .client import GoogleDriveClient
from .items import (
    FOLDER_MIME_TYPE,
    DriveItem,
    ItemKind,
    MetadataOverrides,
    format_size,
    unique_by_id,
)
from .store import DEFAULT_PROVENANCE_KEY, RemoteStore

__all__ = [
    "GoogleDriveClient",
    "FOLDER_MIME_TYPE",
    "DriveItem",
    "ItemKind",
    "MetadataOverrides",
    "format_size",
    "unique_by_id",
    "DEFAULT_PROVENANCE_KEY",
    "RemoteStore",
]
