import logging
import threading
from typing import Any, Dict, List, NoReturn, Optional

from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from drive_migrator.utils.exceptions import (
    AuthenticationError,
    ItemNotFoundError,
    RateLimitError,
    RemoteStoreError,
)

from .items import FOLDER_MIME_TYPE, ITEM_FIELDS, DriveItem, MetadataOverrides
from .store import DEFAULT_PROVENANCE_KEY

logger = logging.getLogger(__name__)


def _quote(value: str) -> str:
    return value.replace("\\", "\\\\").replace("'", "\\'")


class GoogleDriveClient:
    """Drive v3 client for one account.

    A built service wraps a single httplib2 connection, which must not be
    used by two threads at once. The engine runs calls on worker threads,
    so every thread gets its own service.
    """

    def __init__(self, credentials: Any, label: str = "drive") -> None:
        self._credentials = credentials
        self._label = label
        self._connected = False
        self._local = threading.local()

    @property
    def label(self) -> str:
        return self._label

    def _build_service(self) -> Any:
        return build(
            "drive", "v3", credentials=self._credentials, cache_discovery=False
        )

    def connect(self) -> None:
        self._local = threading.local()
        self._local.service = self._build_service()
        self._connected = True
        logger.info("Connected to Google Drive API (%s)", self._label)

    def is_connected(self) -> bool:
        return self._connected

    def _ensure_connected(self) -> Any:
        if not self._connected:
            raise RemoteStoreError(
                f"Not connected to Google Drive ({self._label}). Call connect() first."
            )
        service = getattr(self._local, "service", None)
        if service is None:
            service = self._build_service()
            self._local.service = service
            logger.debug(
                "Built Drive service for thread %s (%s)",
                threading.current_thread().name,
                self._label,
            )
        return service

    def _handle_http_error(
        self, error: HttpError, item_id: Optional[str] = None
    ) -> NoReturn:
        status = error.resp.status

        if status == 429:
            retry_after = error.resp.get("retry-after")
            retry_seconds = float(retry_after) if retry_after else None
            raise RateLimitError(
                f"Google Drive API rate limit exceeded: {error}",
                retry_after=retry_seconds,
            )

        if status in (401, 403):
            raise AuthenticationError(
                f"Google Drive authentication error ({status}): {error}",
                provider="google_drive",
            )

        if status == 404:
            raise ItemNotFoundError(
                f"Item not found in Google Drive: {error}",
                item_id=item_id,
            )

        raise RemoteStoreError(
            f"Google Drive API error ({status}): {error}",
            item_id=item_id,
        )

    def list_children(self, container_id: str = "root") -> List[DriveItem]:
        service = self._ensure_connected()
        query = f"'{_quote(container_id)}' in parents and trashed = false"
        page_token: Optional[str] = None
        items: List[DriveItem] = []

        while True:
            try:
                request_kwargs: Dict[str, Any] = {
                    "q": query,
                    "fields": f"nextPageToken, files({ITEM_FIELDS})",
                    "pageSize": 1000,
                }
                if page_token:
                    request_kwargs["pageToken"] = page_token

                response = service.files().list(**request_kwargs).execute()
            except HttpError as e:
                self._handle_http_error(e, item_id=container_id)

            items.extend(DriveItem.from_api(data) for data in response.get("files", []))

            page_token = response.get("nextPageToken")
            if not page_token:
                break

        logger.debug("Listed %d children of %s", len(items), container_id)
        return items

    def get_item(self, item_id: str) -> DriveItem:
        service = self._ensure_connected()
        try:
            result = service.files().get(fileId=item_id, fields=ITEM_FIELDS).execute()
        except HttpError as e:
            self._handle_http_error(e, item_id=item_id)
        return DriveItem.from_api(result)

    def create_container(self, name: str, parent_id: str) -> str:
        service = self._ensure_connected()
        body: Dict[str, Any] = {"name": name, "mimeType": FOLDER_MIME_TYPE}
        if parent_id:
            body["parents"] = [parent_id]
        try:
            result = service.files().create(body=body, fields="id").execute()
        except HttpError as e:
            self._handle_http_error(e, item_id=parent_id)

        folder_id: str = result["id"]
        logger.debug("Created folder %r as %s under %s", name, folder_id, parent_id)
        return folder_id

    def copy_object(
        self, object_id: str, dest_parent_id: str, overrides: MetadataOverrides
    ) -> DriveItem:
        service = self._ensure_connected()
        body = overrides.to_body()
        body["parents"] = [dest_parent_id]
        try:
            result = (
                service.files()
                .copy(fileId=object_id, body=body, fields=ITEM_FIELDS)
                .execute()
            )
        except HttpError as e:
            self._handle_http_error(e, item_id=object_id)
        return DriveItem.from_api(result)

    def update_metadata(self, object_id: str, overrides: MetadataOverrides) -> None:
        service = self._ensure_connected()
        try:
            service.files().update(
                fileId=object_id, body=overrides.to_body(), fields="id"
            ).execute()
        except HttpError as e:
            self._handle_http_error(e, item_id=object_id)

    def find_by_provenance_tag(
        self,
        parent_id: str,
        source_id: str,
        key: str = DEFAULT_PROVENANCE_KEY,
    ) -> Optional[str]:
        service = self._ensure_connected()
        query = (
            f"'{_quote(parent_id)}' in parents and "
            f"properties has {{ key='{_quote(key)}' and value='{_quote(source_id)}' }}"
            " and trashed = false"
        )
        try:
            response = (
                service.files()
                .list(q=query, fields="files(id)", pageSize=1)
                .execute()
            )
        except HttpError as e:
            self._handle_http_error(e, item_id=source_id)

        files = response.get("files", [])
        return files[0]["id"] if files else None

    def get_folder_name(self, folder_id: str) -> str:
        if folder_id == "root":
            return "My Drive"
        return self.get_item(folder_id).name
