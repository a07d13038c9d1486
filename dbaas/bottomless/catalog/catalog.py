"""
Generation catalog for bottomless.

The catalog enumerates, inspects and prunes the generations of one
database. It relies only on the object store gateway and the generation
clock: generations are the common prefixes of

    list(prefix="<db_name>-", delimiter="/")

and, because generation identifiers embed a reversed timestamp, the
ascending listing yields the newest generation first.

Invariants:
    - Every enumeration follows continuation markers to completion (or to
      the requested limit)
    - A prefix that cannot be decoded aborts the enumeration with
      MalformedKeyError
    - Date filters compare UTC calendar dates, both bounds inclusive

How to change safely:
    - Listing/removal is not coordinated with live replicator sessions;
      removing a generation that is still being written is an operator error
    - Keep remove() key-by-key; bulk delete must still follow markers
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import date, datetime
from typing import List, Optional, Union

from ..errors import GenerationNotFoundError
from ..generation import GENERATION_TEXT_LEN, GenerationClock
from ..keys import DELIMITER, database_prefix, generation_from_prefix, generation_prefix
from ..storage.base import ObjectStore, StorageError, iter_list_pages
from .metadata import ConsistencyMetadata, SnapshotSummary

logger = logging.getLogger(__name__)

# "-" + canonical generation text + "/"
GENERATION_SUFFIX_LEN = GENERATION_TEXT_LEN + 2


@dataclass
class GenerationInfo:
    """Description of one generation.

    Attributes:
        generation: Generation identifier
        created_at: Decoded creation time (UTC)
        change_counter: Remote change counter (verbose only)
        consistent_frame: Last consistent WAL frame (verbose only)
        snapshot: Consolidated snapshot summary (verbose only)
    """

    generation: uuid.UUID
    created_at: datetime
    change_counter: Optional[int] = None
    consistent_frame: Optional[int] = None
    snapshot: Optional[SnapshotSummary] = None


async def detect_db(store: ObjectStore) -> Optional[str]:
    """Guess the database name from the first generation prefix in the bucket.

    Returns:
        The database name, or None when the bucket is empty, the listing
        fails or the first prefix does not end in ``-<generation>/``
    """
    try:
        page = await store.list_page("", delimiter=DELIMITER)
    except StorageError as e:
        logger.warning(f"Failed to list bucket {store.bucket}: {e}")
        return None

    if not page.common_prefixes:
        return None

    prefix = page.common_prefixes[0]
    cut = len(prefix) - GENERATION_SUFFIX_LEN
    if cut < 0 or prefix[cut] != "-":
        return None
    return prefix[:cut]


class GenerationCatalog:
    """Lists and removes the generations of one database.

    Attributes:
        store: Object store holding the generations
        db_name: Database name
        clock: Clock used to decode generation identifiers
        metadata: Accessor for per-generation markers

    Example:
        >>> catalog = GenerationCatalog(store, "mydb")
        >>> for info in await catalog.list_generations(limit=5):
        ...     print(info.generation, info.created_at)
    """

    def __init__(
        self,
        store: ObjectStore,
        db_name: str,
        clock: Optional[GenerationClock] = None,
    ) -> None:
        self.store = store
        self.db_name = db_name
        self.clock = clock or GenerationClock()
        self.metadata = ConsistencyMetadata(store, db_name)

    detect_db = staticmethod(detect_db)

    def _parse_prefix(self, prefix: str) -> uuid.UUID:
        return self.clock.parse(generation_from_prefix(self.db_name, prefix))

    async def _describe(self, generation: uuid.UUID, created_at: datetime) -> GenerationInfo:
        return GenerationInfo(
            generation=generation,
            created_at=created_at,
            change_counter=await self.metadata.get_remote_change_counter(generation),
            consistent_frame=await self.metadata.get_last_consistent_frame(generation),
            snapshot=await self.metadata.snapshot_summary(generation),
        )

    async def list_generations(
        self,
        limit: Optional[int] = None,
        older_than: Optional[date] = None,
        newer_than: Optional[date] = None,
        verbose: bool = False,
    ) -> List[GenerationInfo]:
        """List generations, newest first.

        Args:
            limit: Stop after this many matching generations
            older_than: Exclude generations created after this date
            newer_than: Exclude generations created before this date
            verbose: Also fetch markers and snapshot summary

        Returns:
            Matching generations in listing order (newest first)

        Raises:
            MalformedKeyError: If a listed prefix is not a generation
            StorageTransportError: If a listing page fails
        """
        results: List[GenerationInfo] = []
        if limit is not None and limit <= 0:
            return results

        async for page in iter_list_pages(
            self.store, database_prefix(self.db_name), delimiter=DELIMITER
        ):
            for prefix in page.common_prefixes:
                generation = self._parse_prefix(prefix)
                created_at = self.clock.decode(generation)
                created_on = created_at.date()
                if newer_than is not None and created_on < newer_than:
                    continue
                if older_than is not None and created_on > older_than:
                    continue

                if verbose:
                    results.append(await self._describe(generation, created_at))
                else:
                    results.append(GenerationInfo(generation=generation, created_at=created_at))

                if limit is not None and len(results) >= limit:
                    return results

        if not results:
            logger.info("No generations found", extra={"db_name": self.db_name})
        return results

    async def latest_generation(self) -> Optional[uuid.UUID]:
        """Newest generation, found with a single one-item listing."""
        page = await self.store.list_page(
            database_prefix(self.db_name), delimiter=DELIMITER, max_keys=1
        )
        if not page.common_prefixes:
            return None
        return self._parse_prefix(page.common_prefixes[0])

    async def list_generation(self, generation: Union[uuid.UUID, str]) -> GenerationInfo:
        """Detailed report on a single generation.

        Raises:
            GenerationNotFoundError: If no object exists under the generation
        """
        if not isinstance(generation, uuid.UUID):
            generation = self.clock.parse(generation)

        page = await self.store.list_page(
            generation_prefix(self.db_name, generation), max_keys=1
        )
        if not page.objects:
            raise GenerationNotFoundError(generation, self.db_name)

        return await self._describe(generation, self.clock.decode(generation))

    async def remove(self, generation: Union[uuid.UUID, str], verbose: bool = False) -> int:
        """Delete every object of a generation.

        Returns:
            Number of objects removed (0 when the generation is empty)
        """
        prefix = generation_prefix(self.db_name, generation)
        removed = 0
        async for page in iter_list_pages(self.store, prefix):
            for obj in page.objects:
                if verbose:
                    logger.info(f"Removing {obj.key}")
                await self.store.delete(obj.key)
                removed += 1

        if removed == 0:
            if verbose:
                logger.info("No objects found", extra={"prefix": prefix})
        else:
            logger.info(
                "Removed generation",
                extra={"generation": str(generation), "objects": removed},
            )
        return removed

    async def remove_many(self, older_than: date, verbose: bool = False) -> int:
        """Remove every generation created strictly before a date.

        Returns:
            Number of generations removed
        """
        removed_count = 0
        async for page in iter_list_pages(
            self.store, database_prefix(self.db_name), delimiter=DELIMITER
        ):
            for prefix in page.common_prefixes:
                generation = self._parse_prefix(prefix)
                if self.clock.decode(generation).date() >= older_than:
                    continue
                if verbose:
                    logger.info(f"Removing {generation}")
                await self.remove(generation, verbose)
                removed_count += 1

        if verbose:
            logger.info(f"Removed {removed_count} generations")
        return removed_count
