"""File ingestion: turn JSON, CSV, PDF and DOC files into papers."""

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

import pandas as pd

from litreview.errors import CatalogError, ParseError
from litreview.models.filters import split_list
from litreview.models.paper import (
    DEFAULT_AREA,
    DEFAULT_METHODOLOGY,
    DEFAULT_STUDY_TYPE,
    PLACEHOLDER_URL,
    Paper,
    derive_h_index,
)
from litreview.services.pdf_service import read_pdf
from litreview.utils import (
    classify_research_area,
    clean_abstract,
    clean_title,
    extract_paper_info,
    normalize_doi,
    parse_year,
)

logger = logging.getLogger(__name__)

AUTO_CATEGORY = "auto"
UNKNOWN_AUTHOR = "Unknown Author"
UNKNOWN_JOURNAL = "Unknown Journal"
SUPPORTED_SUFFIXES = (".json", ".csv", ".pdf", ".doc", ".docx")

# Canonical key → accepted spellings, first match wins
_FIELD_ALIASES: dict[str, tuple[str, ...]] = {
    "title": ("title", "Title"),
    "authors": ("authors", "Authors"),
    "year": ("year", "Year"),
    "journal": ("journal", "Journal", "venue", "Venue"),
    "research_area": ("researchArea", "Research Field"),
    "methodology": ("methodology", "Method"),
    "study_type": ("studyType", "Type"),
    "keywords": ("keywords", "Keywords"),
    "citations": ("citations", "Citations"),
    "downloads": ("downloads", "Downloads"),
    "abstract": ("abstract", "Abstract"),
    "doi": ("doi", "DOI"),
    "pdf_url": ("pdfUrl", "PDF Link"),
    "website_url": ("websiteUrl", "Website Link"),
}


def _pick(data: dict[str, Any], name: str) -> Any:
    for key in _FIELD_ALIASES[name]:
        value = data.get(key)
        if value is None:
            continue
        if isinstance(value, float) and pd.isna(value):
            continue
        if isinstance(value, str) and not value.strip():
            continue
        return value
    return None


def _to_int(value: Any) -> int:
    if value is None or value == "":
        return 0
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return 0


def normalize_record(data: Any, category: str = AUTO_CATEGORY) -> Paper:
    """Map one input record onto a canonical :class:`Paper`.

    Accepts the camelCase export keys, the CSV header spellings and
    ``venue`` for the journal.  ``category`` overrides the research area
    unless it is ``"auto"``.

    Raises:
        ParseError: If *data* is not a mapping or lacks title, authors or year
    """
    if not isinstance(data, dict):
        raise ParseError(f"Unrecognized record shape: {type(data).__name__}")

    title = _pick(data, "title")
    authors = _pick(data, "authors")
    year = parse_year(_pick(data, "year"))
    missing = [
        name for name, value in (("title", title), ("authors", authors), ("year", year))
        if not value
    ]
    if missing:
        raise ParseError(f"Record missing required fields ({', '.join(missing)})")

    if category == AUTO_CATEGORY:
        research_area = _pick(data, "research_area") or DEFAULT_AREA
    else:
        research_area = category

    citations = _to_int(_pick(data, "citations"))
    doi = _pick(data, "doi")
    return Paper(
        id=str(data["id"]) if data.get("id") else None,
        title=clean_title(str(title)),
        authors=split_list(authors) or [UNKNOWN_AUTHOR],
        year=year,
        journal=str(_pick(data, "journal") or UNKNOWN_JOURNAL),
        research_area=str(research_area),
        methodology=str(_pick(data, "methodology") or DEFAULT_METHODOLOGY),
        study_type=str(_pick(data, "study_type") or DEFAULT_STUDY_TYPE),
        keywords=split_list(_pick(data, "keywords")),
        citations=citations,
        h_index=derive_h_index(citations),
        downloads=_to_int(_pick(data, "downloads")),
        abstract=clean_abstract(str(_pick(data, "abstract") or "")),
        doi=normalize_doi(str(doi)) if doi else "",
        pdf_url=str(_pick(data, "pdf_url") or PLACEHOLDER_URL),
        website_url=str(_pick(data, "website_url") or PLACEHOLDER_URL),
        thumbnail=data.get("thumbnail") or None,
        original_thumbnail=data.get("originalThumbnail") or data.get("thumbnail") or None,
    )


def manual_entry(fields: dict[str, Any]) -> Paper:
    """Build a paper from manually entered form values.

    Comma separated strings are accepted for authors and keywords.
    """
    citations = _to_int(fields.get("citations"))
    doi = fields.get("doi") or ""
    return Paper(
        title=clean_title(str(fields.get("title") or "")),
        authors=split_list(fields.get("authors")),
        year=parse_year(fields.get("year")),
        journal=str(fields.get("journal") or fields.get("venue") or ""),
        research_area=str(fields.get("research_area") or DEFAULT_AREA),
        methodology=str(fields.get("methodology") or DEFAULT_METHODOLOGY),
        study_type=str(fields.get("study_type") or DEFAULT_STUDY_TYPE),
        keywords=split_list(fields.get("keywords")),
        citations=citations,
        h_index=derive_h_index(citations),
        downloads=_to_int(fields.get("downloads")),
        abstract=str(fields.get("abstract") or ""),
        doi=normalize_doi(doi) if doi else "",
        pdf_url=str(fields.get("pdf_url") or PLACEHOLDER_URL),
        website_url=str(fields.get("website_url") or PLACEHOLDER_URL),
    )


@dataclass
class FileOutcome:
    """Result of ingesting a single file."""

    file_name: str
    success: bool
    paper_ids: list[str] = field(default_factory=list)
    error: Optional[str] = None


class IngestService:
    """Parses input files and adds the resulting papers to a catalog."""

    def __init__(self, catalog=None, ui=None):
        """Initialize ingest service.

        Args:
            catalog: CatalogService receiving parsed papers (parse-only when None)
            ui: ConsoleUI for the batch summary
        """
        self.catalog = catalog
        self.ui = ui

    def parse_file(self, path: Path, category: str = AUTO_CATEGORY) -> list[Paper]:
        """Parse one file into papers.

        Raises:
            ParseError: For unsupported extensions, unreadable content or
                records missing required fields
        """
        path = Path(path)
        suffix = path.suffix.lower()
        try:
            if suffix == ".json":
                return self._parse_json(path, category)
            if suffix == ".csv":
                return self._parse_csv(path, category)
            if suffix == ".pdf":
                return [self._parse_pdf(path, category)]
            if suffix in (".doc", ".docx"):
                return [self._parse_doc(path, category)]
        except ParseError as e:
            e.file_name = path.name
            raise
        except OSError as e:
            raise ParseError(f"Cannot read file: {e}", file_name=path.name) from e
        raise ParseError("Unsupported file format", file_name=path.name)

    def ingest_files(self, paths: list[Path], category: str = AUTO_CATEGORY) -> list[FileOutcome]:
        """Parse and add every file; one failing file never stops the batch."""
        outcomes: list[FileOutcome] = []
        if self.ui:
            self.ui.info(f"Processing {len(paths)} file(s)...")

        for path in paths:
            path = Path(path)
            try:
                papers = self.parse_file(path, category)
                ids = []
                for paper in papers:
                    ids.append(self.catalog.add(paper) if self.catalog else paper.id)
                outcomes.append(FileOutcome(file_name=path.name, success=True, paper_ids=ids))
            except CatalogError as e:
                logger.warning("Error processing %s: %s", path.name, e)
                outcomes.append(FileOutcome(file_name=path.name, success=False, error=str(e)))

        if self.ui:
            self.ui.upload_results(outcomes)
        return outcomes

    # -- parsers ---------------------------------------------------------

    def _parse_json(self, path: Path, category: str) -> list[Paper]:
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise ParseError(f"Invalid JSON: {e}") from e

        records = data if isinstance(data, list) else [data]
        if not records:
            raise ParseError("JSON file contains no records")
        return [normalize_record(record, category) for record in records]

    def _parse_csv(self, path: Path, category: str) -> list[Paper]:
        try:
            df = pd.read_csv(path, dtype=str, keep_default_na=False, encoding="utf-8-sig")
        except (pd.errors.ParserError, pd.errors.EmptyDataError, UnicodeDecodeError) as e:
            raise ParseError(f"CSV file is empty or format is incorrect: {e}") from e

        df.columns = [str(c).strip() for c in df.columns]
        papers = []
        for row in df.to_dict(orient="records"):
            try:
                papers.append(normalize_record(row, category))
            except ParseError as e:
                logger.debug("Skipping CSV row: %s", e)
        if not papers:
            raise ParseError("No valid paper data found in CSV file")
        return papers

    def _parse_pdf(self, path: Path, category: str) -> Paper:
        data = path.read_bytes()
        content = read_pdf(data)
        info = extract_paper_info(content.text)
        stem = path.stem

        if category == AUTO_CATEGORY:
            research_area = classify_research_area(f"{info['title'] or ''} {content.text[:500]}")
        else:
            research_area = category

        abstract = info["abstract"]
        if not abstract:
            abstract = f"{content.text[:300].strip()}..." if content.text.strip() else (
                f'Paper parsed from PDF file "{path.name}", please manually edit relevant information.'
            )

        logger.debug("Parsed PDF %s (%d pages)", path.name, content.page_count)
        return Paper(
            title=info["title"] or stem,
            authors=info["authors"] or [UNKNOWN_AUTHOR],
            year=info["year"] or datetime.now().year,
            journal=info["journal"] or UNKNOWN_JOURNAL,
            research_area=research_area,
            keywords=info["keywords"],
            abstract=clean_abstract(abstract),
            doi=info["doi"] or "",
            thumbnail=content.thumbnail,
            original_thumbnail=content.thumbnail,
            original_file_name=path.name,
            pdf_file_size=len(data),
            is_persistent_pdf=True,
            pdf_data=data,
        )

    def _parse_doc(self, path: Path, category: str) -> Paper:
        if not path.exists():
            raise ParseError("File not found")
        return Paper(
            title=path.stem,
            authors=[UNKNOWN_AUTHOR],
            year=datetime.now().year,
            journal=UNKNOWN_JOURNAL,
            research_area=DEFAULT_AREA if category == AUTO_CATEGORY else category,
            abstract=f'Paper parsed from DOC file "{path.name}", please manually edit relevant information.',
        )
