"""Catalog service: the in-memory paper collection and its command/query API."""

import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from litreview.database.blobs import BlobRegistry
from litreview.database.fallback import FallbackStore
from litreview.database.migration import Migrator
from litreview.database.repository import RecordStore
from litreview.errors import QuotaExceeded, ValidationError
from litreview.models.filters import (
    DEFAULT_SORT,
    PAGE_SIZE,
    YEAR_MAX,
    YEAR_MIN,
    Facets,
    FilterState,
    Page,
    derive_facets,
    filter_papers,
    paginate,
    sort_papers,
    split_list,
)
from litreview.models.paper import PLACEHOLDER_URL, Paper, derive_h_index, generate_paper_id
from litreview.services.pdf_service import from_data_url, to_data_url
from litreview.utils import parse_year

logger = logging.getLogger(__name__)

# Fields replaced as a whole by ``edit``
EDITABLE_FIELDS = (
    "title",
    "authors",
    "journal",
    "year",
    "research_area",
    "methodology",
    "study_type",
    "abstract",
    "keywords",
    "citations",
    "downloads",
    "doi",
)


class LoadSource(str, Enum):
    """Where the initial collection came from."""

    STATIC = "static"
    RECORD_STORE = "record_store"
    FALLBACK = "fallback"
    EMPTY = "empty"


def parse_count(value: Any) -> Optional[int]:
    """Read a citation or download count; blank means zero, junk means None."""
    if value is None or (isinstance(value, str) and not value.strip()):
        return 0
    if isinstance(value, bool):
        return None
    try:
        count = int(str(value).strip())
    except ValueError:
        return None
    return count if count >= 0 else None


def validate_fields(fields: dict[str, Any]) -> None:
    """Check the required-field policy for a full record.

    Raises:
        ValidationError: Listing every offending field
    """
    invalid = []
    if not split_list(fields.get("authors")):
        invalid.append("authors")
    if not str(fields.get("journal") or "").strip():
        invalid.append("journal")
    year = parse_year(fields.get("year"))
    if year is None or year < YEAR_MIN or year > YEAR_MAX:
        invalid.append("year")
    for name in ("citations", "downloads"):
        if parse_count(fields.get(name)) is None:
            invalid.append(name)
    if invalid:
        raise ValidationError(invalid)


class CatalogService:
    """Owns the paper collection, the session filter state and persistence.

    Mutations persist first (record store, or the fallback store when the
    record store is unavailable) and only then touch memory, so a failed
    write leaves the collection as it was.
    """

    def __init__(
        self,
        record_store: Optional[RecordStore],
        fallback_store: FallbackStore,
        static_loader=None,
        ui=None,
        page_size: int = PAGE_SIZE,
    ):
        """Initialize catalog service.

        Args:
            record_store: Primary store; ignored unless ``available``
            fallback_store: Capacity-bounded store used otherwise
            static_loader: Optional StaticDataLoader tried first on load
            ui: ConsoleUI used for user notifications
            page_size: Papers per listing page
        """
        self.record_store = record_store
        self.fallback_store = fallback_store
        self.static_loader = static_loader
        self.ui = ui
        self.page_size = page_size

        self.filter_state = FilterState()
        self.sort_key = DEFAULT_SORT
        self.current_page = 1

        self._papers: list[Paper] = []
        self._filtered: list[Paper] = []
        self._facets = derive_facets([])
        self._load_source: Optional[LoadSource] = None

    # ------------------------------------------------------------------
    # State accessors
    # ------------------------------------------------------------------

    @property
    def papers(self) -> list[Paper]:
        return list(self._papers)

    @property
    def filtered(self) -> list[Paper]:
        return list(self._filtered)

    @property
    def load_source(self) -> Optional[LoadSource]:
        return self._load_source

    @property
    def uses_record_store(self) -> bool:
        return self.record_store is not None and self.record_store.available

    @property
    def blobs(self) -> Optional[BlobRegistry]:
        return self.record_store.blobs if self.record_store is not None else None

    def get(self, paper_id: str) -> Optional[Paper]:
        return next((p for p in self._papers if p.id == paper_id), None)

    async def open_pdf(self, paper_id: str) -> tuple[Optional[bytes], Optional[str]]:
        """Locate the PDF of a paper.

        Returns:
            ``(data, None)`` when the bytes are available locally,
            ``(None, url)`` for an external URL, ``(None, None)`` otherwise
        """
        paper = self._require(paper_id)
        url = paper.pdf_url or PLACEHOLDER_URL

        if self._load_source is LoadSource.STATIC and self.static_loader is not None:
            data = await self.static_loader.get_paper_data(paper_id)
            url = (data or {}).get("pdfUrl") or PLACEHOLDER_URL
            if BlobRegistry.is_blob_url(url):
                return self.static_loader.blobs.resolve(url), None

        if BlobRegistry.is_blob_url(url):
            data = self.resolve_blob(url)
            if data is not None:
                return data, None
        if url.startswith("data:"):
            return from_data_url(url)[0], None
        if url.startswith(("http://", "https://")):
            return None, url
        if self.uses_record_store:
            pdf = self.record_store.get_binary(paper_id)
            if pdf is not None:
                self.record_store.release(pdf.url)
                return pdf.data, None
        return None, None

    def resolve_blob(self, url: str) -> Optional[bytes]:
        """Bytes behind a session reference made by the record store or static data."""
        registries = [self.blobs]
        if self.static_loader is not None:
            registries.append(self.static_loader.blobs)
        for registry in registries:
            if registry is not None:
                data = registry.resolve(url)
                if data is not None:
                    return data
        return None

    async def resolve_static_files(self) -> int:
        """Point static papers that carry a PDF at its decoded blob or CDN URL.

        Per-paper files are fetched on demand only, so this runs before
        anything that needs every file, such as a re-export.

        Returns:
            Number of papers whose PDF location was resolved
        """
        if self._load_source is not LoadSource.STATIC or self.static_loader is None:
            return 0
        pending = [
            p for p in self._papers
            if p.is_persistent_pdf and p.pdf_url in ("", PLACEHOLDER_URL)
        ]
        await self.static_loader.preload_papers([p.id for p in pending])

        resolved = 0
        for paper in pending:
            data = await self.static_loader.get_paper_data(paper.id) or {}
            url = data.get("pdfUrl")
            if not url or url == PLACEHOLDER_URL:
                logger.warning("Static data for %s has no PDF", paper.id)
                continue
            paper.pdf_url = url
            paper.original_file_name = paper.original_file_name or data.get("originalFileName")
            resolved += 1
        logger.info("Resolved %d/%d static PDFs", resolved, len(pending))
        return resolved

    def _require(self, paper_id: str) -> Paper:
        paper = self.get(paper_id)
        if paper is None:
            raise KeyError(paper_id)
        return paper

    # ------------------------------------------------------------------
    # Load
    # ------------------------------------------------------------------

    async def load(self) -> LoadSource:
        """Populate the collection: static data, record store, fallback, empty.

        Only the first call loads and notifies; later calls return the
        first outcome.
        """
        if self._load_source is not None:
            return self._load_source

        source = LoadSource.EMPTY
        papers: list[Paper] = []

        if self.static_loader is not None and await self.static_loader.initialize():
            papers = self._papers_from_static()
            source = LoadSource.STATIC
        elif self.uses_record_store and self.record_store.count() > 0:
            papers = self.record_store.get_all()
            self._refresh_blob_refs(papers)
            source = LoadSource.RECORD_STORE
        else:
            fallback = self.fallback_store.load()
            if fallback:
                papers = fallback
                source = LoadSource.FALLBACK

        self._papers = papers
        self._load_source = source
        self._refresh()

        if source is LoadSource.FALLBACK and self.uses_record_store:
            report = Migrator(self.record_store, self.fallback_store).run(self._papers)
            if report.migrated:
                self._notify(
                    "success",
                    f"Migrated {report.migrated}/{report.total} papers to persistent storage",
                )

        self._notify_loaded(source, len(papers))
        return source

    def _papers_from_static(self) -> list[Paper]:
        papers = []
        for meta in self.static_loader.get_all_papers():
            paper = Paper.from_dict(meta)
            paper.thumbnail = self.static_loader.get_thumbnail(paper.id)
            paper.original_thumbnail = paper.thumbnail
            # The PDF itself stays in the per-paper file until requested
            paper.is_persistent_pdf = bool(meta.get("hasFile"))
            papers.append(paper)
        return papers

    def _refresh_blob_refs(self, papers: list[Paper]) -> None:
        """Replace session references persisted in an earlier session."""
        for paper in papers:
            stale = BlobRegistry.is_blob_url(paper.pdf_url) and paper.pdf_url not in self.record_store.blobs
            if not (stale or (paper.is_persistent_pdf and paper.pdf_url == PLACEHOLDER_URL)):
                continue
            pdf = self.record_store.get_binary(paper.id)
            if pdf is not None:
                paper.pdf_url = pdf.url
                paper.is_persistent_pdf = True
            else:
                logger.warning("PDF for %s is no longer available", paper.id)
                paper.pdf_url = PLACEHOLDER_URL
                paper.is_persistent_pdf = False

    def _notify_loaded(self, source: LoadSource, count: int) -> None:
        if source is LoadSource.STATIC:
            self._notify("success", f"Loaded {count} papers from static data")
        elif source is LoadSource.RECORD_STORE:
            self._notify("success", f"Loaded {count} papers from persistent storage")
        elif source is LoadSource.FALLBACK:
            self._notify("info", f"Loaded {count} papers from fallback storage")
        else:
            self._notify("info", "No saved papers found, starting with an empty catalog")

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def add(self, paper: Paper) -> str:
        """Persist and append a paper.

        Returns:
            The id of the added paper

        Raises:
            WriteError: If the record store write failed
            QuotaExceeded: If the fallback store is full
        """
        paper = paper.copy()
        existing = {p.id for p in self._papers}
        if not paper.id or paper.id in existing:
            paper.id = generate_paper_id()
            while paper.id in existing:
                paper.id = generate_paper_id()
        paper.date_added = paper.date_added or datetime.now(timezone.utc).isoformat()
        paper.h_index = derive_h_index(paper.citations)

        binary = paper.pdf_data
        if binary is None and paper.pdf_url.startswith("data:application/pdf"):
            binary, _ = from_data_url(paper.pdf_url)

        if self.uses_record_store:
            if binary is not None:
                paper.pdf_url = PLACEHOLDER_URL
                paper.is_persistent_pdf = True
            self.record_store.put(paper, binary, paper.original_file_name)
            if paper.thumbnail:
                self.record_store.put_thumbnail(paper.id, paper.thumbnail)
            if binary is not None:
                pdf = self.record_store.get_binary(paper.id)
                if pdf is not None:
                    paper.pdf_url = pdf.url
                    paper.is_persistent_pdf = True
        else:
            if binary is not None:
                paper.pdf_url = to_data_url(binary, "application/pdf")
                paper.is_persistent_pdf = True
            self._save_fallback(self._papers + [paper])

        paper.pdf_data = None
        self._papers.append(paper)
        self._refresh(reset_page=True)
        logger.info("Added paper %s (%s)", paper.id, paper.title)
        return paper.id

    def edit(self, paper_id: str, fields: dict[str, Any]) -> Paper:
        """Replace the editable fields of a paper.

        Args:
            paper_id: Paper to edit
            fields: Full set of editable values; ``venue`` is accepted for
                ``journal`` and comma strings for list fields

        Returns:
            The updated paper

        Raises:
            KeyError: If no paper has this id
            ValidationError: If a required field or a count is invalid
        """
        current = self._require(paper_id)
        values = dict(fields)
        if "venue" in values and "journal" not in values:
            values["journal"] = values.pop("venue")
        validate_fields(values)

        citations = parse_count(values.get("citations"))
        updated = current.copy(
            title=str(values.get("title") or current.title),
            authors=split_list(values.get("authors")),
            journal=str(values["journal"]).strip(),
            year=parse_year(values.get("year")),
            research_area=str(values.get("research_area") or current.research_area),
            methodology=str(values.get("methodology") or current.methodology),
            study_type=str(values.get("study_type") or current.study_type),
            abstract=str(values.get("abstract") or ""),
            keywords=split_list(values.get("keywords")),
            citations=citations,
            h_index=derive_h_index(citations),
            downloads=parse_count(values.get("downloads")),
            doi=str(values.get("doi") or ""),
        )
        self._persist(updated)
        self._replace(updated)
        self._refresh()
        self._notify("success", "Paper information updated")
        return updated

    def set_thumbnail(self, paper_id: str, image: Optional[str]) -> Paper:
        """Set (or with ``None`` clear) the displayed thumbnail."""
        current = self._require(paper_id)
        updated = current.copy(thumbnail=image or None)
        if self.uses_record_store:
            self.record_store.put_thumbnail(paper_id, updated.thumbnail)
        else:
            self._save_fallback([updated if p.id == paper_id else p for p in self._papers])
        self._replace(updated)
        return updated

    def reset_thumbnail(self, paper_id: str) -> Paper:
        """Restore the generated thumbnail, or clear when there is none."""
        return self.set_thumbnail(paper_id, self._require(paper_id).original_thumbnail)

    def remove_thumbnail(self, paper_id: str) -> Paper:
        return self.set_thumbnail(paper_id, None)

    def delete(self, paper_id: str) -> None:
        """Remove a paper from the store and the collection."""
        paper = self._require(paper_id)
        remaining = [p for p in self._papers if p.id != paper_id]
        if self.uses_record_store:
            self.record_store.delete(paper_id)
            if BlobRegistry.is_blob_url(paper.pdf_url):
                self.record_store.release(paper.pdf_url)
        else:
            self._save_fallback(remaining)
        self._papers = remaining
        self._refresh()
        logger.info("Deleted paper %s", paper_id)

    def _persist(self, paper: Paper) -> None:
        if self.uses_record_store:
            self.record_store.put(paper)
        else:
            self._save_fallback([paper if p.id == paper.id else p for p in self._papers])

    def _replace(self, paper: Paper) -> None:
        self._papers = [paper if p.id == paper.id else p for p in self._papers]
        self._filtered = [paper if p.id == paper.id else p for p in self._filtered]

    def _save_fallback(self, papers: list[Paper]) -> None:
        try:
            self.fallback_store.save(papers)
        except QuotaExceeded as e:
            self._notify("error", f"{e}. Remove old papers or enable the record store.")
            if self.ui is not None:
                self.ui.storage_report(self.storage_info())
            raise

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def filter(self, state: Optional[FilterState] = None) -> list[Paper]:
        """Papers matching *state* (default: the session filter state)."""
        return filter_papers(self._papers, state or self.filter_state)

    def sort(self, papers: Optional[list[Paper]] = None, key: Optional[str] = None) -> list[Paper]:
        return sort_papers(self._filtered if papers is None else papers, key or self.sort_key)

    def apply_filters(
        self,
        state: Optional[FilterState] = None,
        sort_key: Optional[str] = None,
    ) -> list[Paper]:
        """Set the session filter/sort, recompute the listing and go to page 1."""
        if state is not None:
            self.filter_state = state
        if sort_key is not None:
            self.sort_key = sort_key
        self._refresh(reset_page=True)
        return self.filtered

    def reset_filters(self) -> list[Paper]:
        return self.apply_filters(FilterState(), DEFAULT_SORT)

    def paginate(self, page: Optional[int] = None, page_size: Optional[int] = None) -> Page:
        result = paginate(
            self._filtered,
            self.current_page if page is None else page,
            page_size or self.page_size,
        )
        self.current_page = result.page
        return result

    def go_to_page(self, page: int) -> Page:
        return self.paginate(page)

    def facets(self) -> Facets:
        return self._facets

    def statistics(self) -> dict[str, Any]:
        """Summary numbers for the listing header."""
        years = [p.year for p in self._papers if p.year]
        return {
            "total": len(self._papers),
            "filtered": len(self._filtered),
            "total_citations": sum(p.citations for p in self._papers),
            "with_files": sum(1 for p in self._papers if p.has_file),
            "year_range": (min(years), max(years)) if years else None,
            "research_areas": dict(self._facets.research_areas),
        }

    def storage_info(self) -> dict[str, Any]:
        """Storage usage of both stores, shown when the fallback store is full."""
        info: dict[str, Any] = {
            "backend": "record_store" if self.uses_record_store else "fallback",
            "papers": len(self._papers),
            "fallback": self.fallback_store.usage(),
        }
        if self.uses_record_store:
            info["record_store"] = self.record_store.usage()
        return info

    def _refresh(self, reset_page: bool = False) -> None:
        self._facets = derive_facets(self._papers)
        self._filtered = sort_papers(filter_papers(self._papers, self.filter_state), self.sort_key)
        if reset_page:
            self.current_page = 1

    def _notify(self, level: str, message: str) -> None:
        if self.ui is None:
            logger.info(message)
            return
        getattr(self.ui, level)(message)
