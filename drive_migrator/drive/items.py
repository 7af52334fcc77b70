from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Mapping, Optional

FOLDER_MIME_TYPE = "application/vnd.google-apps.folder"

ITEM_FIELDS = "id,name,mimeType,size,description,properties"


class ItemKind(Enum):
    FILE = "file"
    CONTAINER = "container"


@dataclass(frozen=True)
class DriveItem:
    """Read-only snapshot of a file or folder as listed in the source store."""

    id: str
    name: str
    kind: ItemKind
    mime_type: str = ""
    size: Optional[int] = None
    description: Optional[str] = None
    properties: Mapping[str, str] = field(default_factory=dict, hash=False)

    def __post_init__(self) -> None:
        if not self.id:
            raise ValueError("DriveItem.id must not be empty")
        object.__setattr__(
            self, "properties", MappingProxyType(dict(self.properties))
        )

    @property
    def is_container(self) -> bool:
        return self.kind is ItemKind.CONTAINER

    @classmethod
    def from_api(cls, resource: Dict[str, Any]) -> "DriveItem":
        mime_type = resource.get("mimeType", "")
        size = resource.get("size")
        return cls(
            id=resource["id"],
            name=resource.get("name", ""),
            kind=ItemKind.CONTAINER
            if mime_type == FOLDER_MIME_TYPE
            else ItemKind.FILE,
            mime_type=mime_type,
            size=int(size) if size is not None else None,
            description=resource.get("description"),
            properties=resource.get("properties") or {},
        )


@dataclass(frozen=True)
class MetadataOverrides:
    """Description and property tags applied to a destination object."""

    description: Optional[str] = None
    properties: Mapping[str, str] = field(default_factory=dict, hash=False)

    def to_body(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {}
        if self.description is not None:
            body["description"] = self.description
        if self.properties:
            body["properties"] = dict(self.properties)
        return body


def format_size(size: Optional[int]) -> str:
    if size is None:
        return "unknown"
    if size < 1024:
        return f"{size} B"
    value = size / 1024
    for unit in ("KB", "MB"):
        if value < 1024:
            return f"{value:.1f} {unit}"
        value /= 1024
    return f"{value:.1f} GB"


def unique_by_id(items: Iterable[DriveItem]) -> List[DriveItem]:
    """Drop repeated ids, keeping the first occurrence and the original order."""
    seen = set()
    unique: List[DriveItem] = []
    for item in items:
        if item.id in seen:
            continue
        seen.add(item.id)
        unique.append(item)
    return unique
