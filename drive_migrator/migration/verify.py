import asyncio
import logging
from typing import List, Optional, Sequence

from ..drive.items import DriveItem, unique_by_id
from ..drive.store import DEFAULT_PROVENANCE_KEY, RemoteStore
from ..utils.exceptions import VerificationError
from ..utils.rate_limiter import RateLimiter
from .engine import check_client

logger = logging.getLogger(__name__)


class Verifier:
    """Checks the destination store for a tagged copy of every selected item.

    Works from the destination alone and ignores any outcome log, so it
    also catches copies deleted after the run. A failed query aborts the
    whole pass with ``VerificationError``.

    Repeated ids in a selection are checked once, first occurrence wins,
    the same way ``MigrationEngine.migrate`` collapses them. The missing
    count is therefore over distinct items, not over the raw selection
    length.
    """

    def __init__(
        self,
        dest_client: Optional[RemoteStore],
        provenance_key: str = DEFAULT_PROVENANCE_KEY,
        rate_limiter: Optional[RateLimiter] = None,
    ) -> None:
        self._dest = dest_client
        self._provenance_key = provenance_key
        self._rate_limiter = rate_limiter or RateLimiter()

    async def find_missing(
        self,
        selection: Sequence[DriveItem],
        dest_container_id: str = "root",
    ) -> List[DriveItem]:
        dest = check_client(self._dest, "destination")
        items = unique_by_id(selection)
        missing: List[DriveItem] = []

        for item in items:
            try:
                async with self._rate_limiter:
                    found = await asyncio.to_thread(
                        dest.find_by_provenance_tag,
                        dest_container_id,
                        item.id,
                        self._provenance_key,
                    )
            except Exception as e:
                raise VerificationError(
                    f"Verification query failed for {item.name} ({item.id}): {e}",
                    item_id=item.id,
                ) from e

            if not found:
                logger.info("Missing at destination: %s (%s)", item.name, item.id)
                missing.append(item)

        logger.info(
            "Verification complete: %d of %d items missing in %s",
            len(missing),
            len(items),
            dest_container_id,
        )
        return missing

    async def verify(
        self,
        selection: Sequence[DriveItem],
        dest_container_id: str = "root",
    ) -> int:
        return len(await self.find_missing(selection, dest_container_id))
