"""
Boot and restore of a database from its remote generations.

The restore process:
1. Resolve the generation (the newest one when none is given)
2. Page through every object under the generation prefix
3. Download each page object, skipping metadata markers and db.gz
4. Write each page at page_no * PAGE_SIZE in the target file

Invariants:
    - boot() returns exactly the pages stored in the generation, no more,
      no fewer, however many listing pages that takes
    - An existing target file is backed up before being overwritten
    - A key that is neither a marker nor a 12-digit page number aborts
      the restore

How to change safely:
    - Test restore against a paginated bucket (InMemoryObjectStore with a
      small max_keys)
    - Never restore into the live database file of a running session
"""

from __future__ import annotations

import logging
import shutil
import time
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional, Union

from .catalog.catalog import GenerationCatalog
from .errors import GenerationNotFoundError
from .generation import GenerationClock
from .keys import METADATA_OBJECTS, PAGE_SIZE, generation_prefix, page_no_from_name
from .storage.base import ObjectStore, iter_list_pages

logger = logging.getLogger(__name__)


@dataclass
class RestoreResult:
    """Result of restore operation.

    Attributes:
        success: Whether restore succeeded
        generation: Generation restored from
        pages_restored: Number of pages written
        target_path: File that was written
        duration_ms: Total restore duration
        error: Error message if failed
    """

    success: bool
    generation: Optional[str]
    pages_restored: int
    target_path: Optional[str]
    duration_ms: int
    error: Optional[str] = None


class GenerationRestorer:
    """Rebuilds database pages from a generation.

    Example:
        >>> restorer = GenerationRestorer(store, "mydb")
        >>> result = await restorer.restore("/var/lib/app/mydb")
        >>> print(f"Restored {result.pages_restored} pages from {result.generation}")
    """

    def __init__(
        self,
        store: ObjectStore,
        db_name: str,
        clock: Optional[GenerationClock] = None,
        page_size: int = PAGE_SIZE,
    ) -> None:
        self.store = store
        self.db_name = db_name
        self.clock = clock or GenerationClock()
        self.page_size = page_size
        self.catalog = GenerationCatalog(store, db_name, self.clock)

    async def boot(self, generation: Union[uuid.UUID, str]) -> Dict[int, bytes]:
        """Download every page of a generation.

        Returns:
            Mapping of page number to page bytes

        Raises:
            MalformedKeyError: If an object name is not a page number or marker
            StorageTransportError: If a listing or download fails
        """
        logger.info("Bootstrapping", extra={"db_name": self.db_name, "generation": str(generation)})
        prefix = generation_prefix(self.db_name, generation)
        pages: Dict[int, bytes] = {}

        async for page in iter_list_pages(self.store, prefix):
            for obj in page.objects:
                name = obj.key[len(prefix):]
                if name in METADATA_OBJECTS:
                    continue
                page_no = page_no_from_name(name, obj.key)
                logger.debug(f"Object {obj.key}")
                pages[page_no] = await self.store.get(obj.key)

        return pages

    async def resolve_generation(
        self, generation: Optional[Union[uuid.UUID, str]] = None
    ) -> uuid.UUID:
        """Return the given generation, or the newest one.

        Raises:
            GenerationNotFoundError: If the database has no generation
        """
        if generation is not None:
            if isinstance(generation, uuid.UUID):
                return generation
            return self.clock.parse(generation)
        latest = await self.catalog.latest_generation()
        if latest is None:
            raise GenerationNotFoundError("<latest>", self.db_name)
        return latest

    async def restore(
        self,
        target_path: Union[str, Path],
        generation: Optional[Union[uuid.UUID, str]] = None,
        dry_run: bool = False,
    ) -> RestoreResult:
        """Write a generation's pages into a database file.

        Args:
            target_path: Database file to (re)create
            generation: Generation to restore, newest when omitted
            dry_run: Download and validate pages without writing

        Returns:
            RestoreResult indicating success/failure
        """
        start_time = time.time()
        target = Path(target_path)
        resolved: Optional[uuid.UUID] = None

        try:
            resolved = await self.resolve_generation(generation)
            logger.info(f"Starting restore of {self.db_name} from generation {resolved}")

            pages = await self.boot(resolved)
            for page_no, data in pages.items():
                if len(data) != self.page_size:
                    raise ValueError(
                        f"Page {page_no} of generation {resolved} has {len(data)} bytes"
                    )

            if not dry_run:
                self._write_pages(target, pages)

            duration_ms = int((time.time() - start_time) * 1000)
            logger.info(
                "Restore completed",
                extra={
                    "generation": str(resolved),
                    "pages": len(pages),
                    "target": str(target),
                    "dry_run": dry_run,
                },
            )
            return RestoreResult(
                success=True,
                generation=str(resolved),
                pages_restored=len(pages),
                target_path=str(target),
                duration_ms=duration_ms,
            )

        except Exception as e:
            logger.error(f"Restore failed: {e}", exc_info=True)
            duration_ms = int((time.time() - start_time) * 1000)
            return RestoreResult(
                success=False,
                generation=str(resolved) if resolved else None,
                pages_restored=0,
                target_path=str(target),
                duration_ms=duration_ms,
                error=str(e),
            )

    def _write_pages(self, target: Path, pages: Dict[int, bytes]) -> None:
        # Backup existing database if present
        if target.exists():
            backup_path = target.with_name(target.name + ".backup")
            shutil.copy2(target, backup_path)
            logger.info(f"Backed up existing database to {backup_path}")

        target.parent.mkdir(parents=True, exist_ok=True)
        with open(target, "wb") as f:
            for page_no in sorted(pages):
                f.seek(page_no * self.page_size)
                f.write(pages[page_no])
