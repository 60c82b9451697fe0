"""One-shot copy of fallback-store papers into the record store."""

import logging
from dataclasses import dataclass
from typing import Optional

from litreview.database.fallback import FallbackStore
from litreview.database.repository import RecordStore
from litreview.errors import CatalogError
from litreview.models.paper import Paper, generate_paper_id

logger = logging.getLogger(__name__)


@dataclass
class MigrationReport:
    """Outcome of a migration run; partial success is a normal result."""

    migrated: int
    failed: int
    total: int


class Migrator:
    """Best-effort migration from the fallback store to the record store."""

    def __init__(self, record_store: RecordStore, fallback_store: FallbackStore):
        self.record_store = record_store
        self.fallback_store = fallback_store

    def run(self, papers: Optional[list[Paper]] = None) -> MigrationReport:
        """Copy every paper into the record store.

        Args:
            papers: Papers to migrate; defaults to the fallback store payload.
                Missing ids are assigned in place.

        Returns:
            MigrationReport with migrated / failed counts
        """
        if papers is None:
            papers = self.fallback_store.load() or []
        if not papers:
            return MigrationReport(migrated=0, failed=0, total=0)

        logger.info("Starting migration of %d papers to the record store", len(papers))
        migrated = 0
        for paper in papers:
            try:
                if not paper.id:
                    paper.id = generate_paper_id()
                self.record_store.put(paper, paper.pdf_data)
                if paper.thumbnail:
                    self.record_store.put_thumbnail(paper.id, paper.thumbnail)
                migrated += 1
            except CatalogError as e:
                logger.warning("Error migrating paper %r: %s", paper.title, e)

        logger.info("Migration completed: %d/%d papers migrated", migrated, len(papers))
        if migrated > 0:
            self.fallback_store.clear()
        return MigrationReport(
            migrated=migrated,
            failed=len(papers) - migrated,
            total=len(papers),
        )
