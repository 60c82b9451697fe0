"""Service layer."""

from litreview.services.catalog_service import CatalogService, LoadSource
from litreview.services.export_service import ExportBundle, ExportOptions, StaticExporter
from litreview.services.ingest_service import IngestService, normalize_record
from litreview.services.release_service import GitHubReleasesClient, ReleaseUploader
from litreview.services.static_loader import StaticDataLoader

__all__ = [
    "CatalogService",
    "ExportBundle",
    "ExportOptions",
    "GitHubReleasesClient",
    "IngestService",
    "LoadSource",
    "ReleaseUploader",
    "StaticDataLoader",
    "StaticExporter",
    "normalize_record",
]
