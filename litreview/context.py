"""Explicitly constructed catalog context shared by the CLI and the web app."""

import logging
from dataclasses import dataclass
from typing import Optional

from litreview.config import Settings
from litreview.console import ConsoleUI
from litreview.database.blobs import BlobRegistry
from litreview.database.fallback import FallbackStore
from litreview.database.repository import RecordStore
from litreview.errors import StoreUnavailable
from litreview.services.catalog_service import CatalogService
from litreview.services.export_service import StaticExporter
from litreview.services.ingest_service import IngestService
from litreview.services.release_service import GitHubReleasesClient, ReleaseUploader
from litreview.services.static_loader import StaticDataLoader

logger = logging.getLogger(__name__)


@dataclass
class CatalogContext:
    """Everything a command needs, wired once per process."""

    settings: Settings
    ui: ConsoleUI
    record_store: RecordStore
    fallback_store: FallbackStore
    catalog: CatalogService
    ingest: IngestService
    static_loader: Optional[StaticDataLoader] = None

    def exporter(self) -> StaticExporter:
        return StaticExporter(self.catalog)

    def uploader(self) -> ReleaseUploader:
        gh = self.settings.github
        client = GitHubReleasesClient(gh.owner, gh.repo, gh.token)
        return ReleaseUploader(client, cdn_base=self.settings.cdn_base, delay=self.settings.upload_delay)


def build_context(
    settings: Settings,
    ui: Optional[ConsoleUI] = None,
    use_static: bool = True,
) -> CatalogContext:
    """Create stores and services for *settings*.

    A record store that fails to open is kept but marked unavailable, so
    the catalog falls back to the fallback store.
    """
    ui = ui or ConsoleUI()
    record_store = RecordStore(settings.db_path, BlobRegistry())
    try:
        record_store.init()
    except StoreUnavailable as e:
        logger.warning("%s; using fallback storage", e)
        ui.warning("Persistent storage unavailable, using fallback storage")

    fallback_store = FallbackStore(
        settings.fallback_path,
        quota_bytes=settings.fallback_quota_bytes,
        thumbnail_limit=settings.thumbnail_limit,
    )

    static_loader = None
    if use_static and settings.static_data_dir is not None:
        static_loader = StaticDataLoader(settings.static_data_dir)

    catalog = CatalogService(
        record_store,
        fallback_store,
        static_loader=static_loader,
        ui=ui,
        page_size=settings.page_size,
    )
    return CatalogContext(
        settings=settings,
        ui=ui,
        record_store=record_store,
        fallback_store=fallback_store,
        catalog=catalog,
        ingest=IngestService(catalog, ui),
        static_loader=static_loader,
    )
