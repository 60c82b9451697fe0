# tests/conftest.py
"""
Pytest configuration and shared fixtures.
Adds the project root to sys.path so `import litreview` works without install.
"""

import sys
from pathlib import Path

import fitz
import pytest

project_root = Path(__file__).parent.parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

from litreview.database.blobs import BlobRegistry  # noqa: E402
from litreview.database.fallback import FallbackStore  # noqa: E402
from litreview.database.repository import RecordStore  # noqa: E402
from litreview.models.paper import Paper  # noqa: E402
from litreview.services.catalog_service import CatalogService  # noqa: E402

SAMPLE_PDF_TEXT = (
    "Wearable Haptic Feedback for Smart Watch Interaction\n"
    "Alice Smith and Bob Jones\n"
    "Proceedings of CHI Conference on Human Factors, 2021\n"
    "DOI: 10.1145/3411764.3445000\n"
    "Abstract\n"
    "We present a wearable device that renders haptic feedback on the wrist while the user\n"
    "interacts with a smart watch, and evaluate it in two controlled studies with 24 people.\n"
    "\n"
    "Keywords: wearable, haptics, smart watch\n"
    "\n"
    "1. Introduction\n"
)


class RecordingUI:
    """Collects notifications instead of printing them."""

    def __init__(self):
        self.messages: list[tuple[str, str]] = []
        self.reports: list[dict] = []

    def info(self, message):
        self.messages.append(("info", message))

    def success(self, message):
        self.messages.append(("success", message))

    def warning(self, message):
        self.messages.append(("warning", message))

    def error(self, message):
        self.messages.append(("error", message))

    def storage_report(self, info):
        self.reports.append(info)

    def upload_results(self, outcomes):
        self.messages.append(("results", f"{sum(o.success for o in outcomes)}/{len(outcomes)}"))


def make_paper(**overrides) -> Paper:
    values = dict(
        title="Mobile Touch Interaction",
        authors=["Alice Smith", "Bob Jones"],
        year=2020,
        journal="CHI",
        research_area="Mobile Device",
        keywords=["touch", "mobile"],
        citations=12,
        abstract="A study of one-handed touch input.",
    )
    values.update(overrides)
    return Paper(**values)


@pytest.fixture
def paper_factory():
    return make_paper


@pytest.fixture
def ui():
    return RecordingUI()


@pytest.fixture
def record_store(tmp_path):
    store = RecordStore(tmp_path / "papers.db", BlobRegistry())
    store.init()
    return store


@pytest.fixture
def unavailable_store(tmp_path):
    """A record store that was never initialized (unavailable)."""
    return RecordStore(tmp_path / "missing" / "papers.db")


@pytest.fixture
def fallback_store(tmp_path):
    return FallbackStore(tmp_path / "fallback.json")


@pytest.fixture
def catalog(record_store, fallback_store, ui):
    return CatalogService(record_store, fallback_store, ui=ui)


@pytest.fixture
def fallback_catalog(unavailable_store, fallback_store, ui):
    return CatalogService(unavailable_store, fallback_store, ui=ui)


@pytest.fixture
def pdf_bytes() -> bytes:
    """A small two-page PDF with bibliographic text on page one."""
    doc = fitz.open()
    page = doc.new_page()
    page.insert_text((50, 72), SAMPLE_PDF_TEXT, fontsize=9)
    doc.new_page().insert_text((50, 72), "Second page body text.", fontsize=9)
    data = doc.tobytes()
    doc.close()
    return data
