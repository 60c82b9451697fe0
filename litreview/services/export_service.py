"""Static export: JSON bundle for static hosting, PDF assets and CSV results."""

import json
import logging
import zipfile
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

import pandas as pd

from litreview.database.blobs import BlobRegistry
from litreview.database.repository import RecordStore
from litreview.models.paper import Paper
from litreview.services.pdf_service import from_data_url, to_data_url

logger = logging.getLogger(__name__)

BUNDLE_VERSION = "1.0"
DEFAULT_CDN_BASE = "https://cdn.jsdelivr.net/gh"
UNRESOLVED_TAG = "undefined"
CSV_HEADERS = [
    "Title", "Authors", "Year", "Journal", "Research Field",
    "Method", "Type", "Keywords", "Citations", "DOI",
]


def cdn_url(cdn_base: str, owner: str, repo: str, tag: Optional[str], paper_id: str) -> str:
    """Content-delivery URL of the release asset ``<paper_id>.pdf``."""
    return f"{cdn_base.rstrip('/')}/{owner}/{repo}@{tag or UNRESOLVED_TAG}/{paper_id}.pdf"


@dataclass
class ExportOptions:
    """How PDFs are carried by the bundle."""

    use_hosted_release: bool = False
    repo_owner: str = "your-username"
    repo_name: str = "your-repo"
    release_tag: Optional[str] = None
    cdn_base: str = DEFAULT_CDN_BASE


@dataclass
class PdfAsset:
    """A PDF queued for upload as release asset ``standard_file_name``."""

    paper_id: str
    file_name: str
    data: bytes = field(repr=False)

    @property
    def standard_file_name(self) -> str:
        return f"{self.paper_id}.pdf"

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass
class ReleaseInfo:
    tag: str
    name: str
    body: str
    draft: bool = False
    prerelease: bool = False

    def to_payload(self) -> dict[str, Any]:
        """Request body for the release-creation endpoint."""
        return {
            "tag_name": self.tag,
            "name": self.name,
            "body": self.body,
            "draft": self.draft,
            "prerelease": self.prerelease,
        }


def generate_release_info(
    total_papers: int,
    now: Optional[datetime] = None,
    tag: Optional[str] = None,
) -> ReleaseInfo:
    """Build release metadata, tagged ``vYYYY.MM.DD`` unless *tag* is given."""
    now = now or datetime.now(timezone.utc)
    tag = tag or f"v{now.year}.{now.month:02d}.{now.day:02d}"
    body = (
        "Automated release of literature review data\n\n"
        f"- Export date: {now.isoformat()}\n"
        f"- Total papers: {total_papers}\n"
        "- Contains JSON metadata and PDF files\n\n"
        f"Access via jsDelivr CDN: {DEFAULT_CDN_BASE}/[owner]/[repo]@{tag}/"
    )
    return ReleaseInfo(tag=tag, name=f"Literature Data Release {tag}", body=body)


@dataclass
class ExportBundle:
    """Deployable file set; ``json_files`` is keyed by deploy path."""

    json_files: dict[str, dict[str, Any]]
    pdf_assets: list[PdfAsset]
    release_info: ReleaseInfo
    options: ExportOptions

    def paper_files(self) -> dict[str, dict[str, Any]]:
        return {
            path: data for path, data in self.json_files.items()
            if path.startswith("data/papers/")
        }

    def copy(self) -> "ExportBundle":
        """Copy deep enough that per-paper dicts can be rewritten safely."""
        return ExportBundle(
            json_files={path: dict(data) for path, data in self.json_files.items()},
            pdf_assets=list(self.pdf_assets),
            release_info=self.release_info,
            options=replace(self.options),
        )

    def instructions(self) -> dict[str, Any]:
        """Manual upload steps for this bundle."""
        opts = self.options
        tag = opts.release_tag or self.release_info.tag
        steps = [
            "1. Create a new release on GitHub:",
            f"   - Tag: {tag}",
            f"   - Title: {self.release_info.name}",
            f"   - Description: {self.release_info.body}",
            "",
            "2. Upload PDF files to the release:",
            *[f"   - {asset.standard_file_name}" for asset in self.pdf_assets],
            "",
            "3. Update your repository with JSON files:",
            *[f"   - {path}" for path in self.json_files],
            "",
            "4. Your PDFs will be available via jsDelivr CDN:",
            f"   {opts.cdn_base}/{opts.repo_owner}/{opts.repo_name}@{tag}/[filename].pdf",
        ]
        return {
            "steps": steps,
            "pdf_count": len(self.pdf_assets),
            "json_file_count": len(self.json_files),
        }


class StaticExporter:
    """Builds an :class:`ExportBundle` from the current catalog."""

    def __init__(self, catalog, record_store: Optional[RecordStore] = None):
        """Initialize exporter.

        Args:
            catalog: CatalogService providing the papers
            record_store: Source of stored PDFs and thumbnails (defaults to
                the catalog's record store when it is available)
        """
        self.catalog = catalog
        if record_store is None and catalog.uses_record_store:
            record_store = catalog.record_store
        self.record_store = record_store

    def export_bundle(self, options: Optional[ExportOptions] = None) -> ExportBundle:
        """Serialize the catalog into index, listing, thumbnails and per-paper files.

        In hosted mode every paper with a PDF points at its CDN URL and the
        PDF is queued as a release asset; otherwise the PDF is inlined as
        ``pdfBase64``.  A missing release tag is filled in from the
        generated release before the bundle is returned.
        """
        options = replace(options or ExportOptions())
        papers = self.catalog.papers
        logger.info("Starting static export of %d papers", len(papers))

        paper_files: dict[str, dict[str, Any]] = {}
        pdf_assets: list[PdfAsset] = []
        has_file: dict[str, bool] = {}

        for paper in papers:
            try:
                record, asset = self._export_paper(paper, options)
            except (OSError, ValueError) as e:
                logger.warning("Failed to export PDF of paper %s: %s", paper.id, e)
                record, asset = self._paper_record(paper, options, None), None
            if asset is not None:
                pdf_assets.append(asset)
            has_file[paper.id] = bool(record.get("hasFile"))
            paper_files[f"data/papers/{paper.id}.json"] = record

        papers_data = self._papers_metadata(papers, has_file)
        json_files: dict[str, dict[str, Any]] = {
            "data/index.json": self._index(papers_data["papers"]),
            "data/papers.json": papers_data,
            "data/thumbnails.json": self._thumbnails(papers),
            **paper_files,
        }

        release_info = generate_release_info(len(papers), tag=options.release_tag)
        if options.use_hosted_release and not options.release_tag:
            options.release_tag = release_info.tag
            for record in paper_files.values():
                if record.get("pdfUrl"):
                    record["pdfUrl"] = record["pdfUrl"].replace(
                        f"@{UNRESOLVED_TAG}", f"@{release_info.tag}"
                    )

        logger.info(
            "Static export completed: %d JSON files, %d PDF assets",
            len(json_files),
            len(pdf_assets),
        )
        return ExportBundle(
            json_files=json_files,
            pdf_assets=pdf_assets,
            release_info=release_info,
            options=options,
        )

    # -- per paper -------------------------------------------------------

    def _export_paper(self, paper: Paper, options: ExportOptions) -> tuple[dict[str, Any], Optional[PdfAsset]]:
        source = self._resolve_pdf(paper)
        record = self._paper_record(paper, options, source)
        asset = None
        if source is not None:
            data, file_name = source
            asset = PdfAsset(paper_id=paper.id, file_name=file_name, data=data)
        return record, asset

    def _paper_record(
        self,
        paper: Paper,
        options: ExportOptions,
        source: Optional[tuple[bytes, str]],
    ) -> dict[str, Any]:
        record = paper.to_dict()
        record["venue"] = paper.journal
        record.pop("pdfBase64", None)

        if source is not None:
            data, file_name = source
            record["originalFileName"] = file_name
            record["hasFile"] = True
            if options.use_hosted_release:
                record["pdfUrl"] = cdn_url(
                    options.cdn_base, options.repo_owner, options.repo_name,
                    options.release_tag, paper.id,
                )
            else:
                record["pdfBase64"] = to_data_url(data, "application/pdf")
                record.pop("pdfUrl", None)
            return record

        url = record.get("pdfUrl") or ""
        external = url.startswith(("http://", "https://"))
        record["hasFile"] = external
        if not external:
            if options.use_hosted_release:
                record["pdfUrl"] = "#"
            else:
                record.pop("pdfUrl", None)
        return record

    def _resolve_pdf(self, paper: Paper) -> Optional[tuple[bytes, str]]:
        """Find the PDF bytes of a paper in memory, the record store or its URL."""
        file_name = paper.original_file_name or f"{paper.id}.pdf"
        if paper.pdf_data:
            return paper.pdf_data, file_name

        if self.record_store is not None:
            pdf = self.record_store.get_binary(paper.id)
            if pdf is not None:
                self.record_store.release(pdf.url)
                return pdf.data, pdf.file_name or file_name

        url = paper.pdf_url or ""
        if url.startswith("data:"):
            data, _ = from_data_url(url)
            return data, file_name
        if BlobRegistry.is_blob_url(url):
            data = self.catalog.resolve_blob(url)
            if data is not None:
                return data, file_name
        return None

    # -- bundle files ----------------------------------------------------

    @staticmethod
    def _papers_metadata(papers: list[Paper], has_file: dict[str, bool]) -> dict[str, Any]:
        items = []
        for paper in papers:
            meta = paper.to_metadata()
            meta["hasFile"] = has_file.get(paper.id, False)
            items.append(meta)
        return {
            "version": BUNDLE_VERSION,
            "exportDate": _now(),
            "totalPapers": len(items),
            "papers": items,
        }

    def _thumbnails(self, papers: list[Paper]) -> dict[str, Any]:
        thumbnails: dict[str, str] = {}
        for paper in papers:
            image = paper.thumbnail
            if not image and self.record_store is not None:
                image = self.record_store.get_thumbnail(paper.id)
            if image:
                thumbnails[paper.id] = image
        return {"version": BUNDLE_VERSION, "exportDate": _now(), "thumbnails": thumbnails}

    @staticmethod
    def _index(metadata: list[dict[str, Any]]) -> dict[str, Any]:
        categories: dict[str, list[str]] = {}
        years: set[int] = set()
        venues: set[str] = set()
        keywords: set[str] = set()
        for meta in metadata:
            if meta.get("researchArea"):
                categories.setdefault(meta["researchArea"], []).append(meta["id"])
            if meta.get("year"):
                years.add(meta["year"])
            if meta.get("venue"):
                venues.add(meta["venue"])
            keywords.update(k for k in meta.get("keywords") or [] if k)
        return {
            "version": BUNDLE_VERSION,
            "exportDate": _now(),
            "totalPapers": len(metadata),
            "categories": categories,
            "years": sorted(years, reverse=True),
            "venues": sorted(venues),
            "keywords": sorted(keywords),
            "dataFiles": {"papers": "papers.json", "thumbnails": "thumbnails.json"},
        }


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Writers
# ---------------------------------------------------------------------------

def write_directory(bundle: ExportBundle, out_dir: Path) -> Path:
    """Write the bundle under *out_dir*; PDFs go to ``pdfs/`` unless hosted."""
    out_dir = Path(out_dir)
    for rel_path, data in bundle.json_files.items():
        target = out_dir / rel_path
        target.parent.mkdir(parents=True, exist_ok=True)
        with open(target, "w", encoding="utf-8") as f:
            json.dump(data, f, ensure_ascii=False, indent=2)

    if not bundle.options.use_hosted_release:
        pdf_dir = out_dir / "pdfs"
        for asset in bundle.pdf_assets:
            pdf_dir.mkdir(parents=True, exist_ok=True)
            (pdf_dir / asset.standard_file_name).write_bytes(asset.data)
    return out_dir


def write_zip(bundle: ExportBundle, path: Path) -> Path:
    """Pack the bundle into a ZIP archive at *path*."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with zipfile.ZipFile(path, "w", compression=zipfile.ZIP_DEFLATED) as zf:
        for rel_path, data in bundle.json_files.items():
            zf.writestr(rel_path, json.dumps(data, ensure_ascii=False, indent=2))
        if not bundle.options.use_hosted_release:
            for asset in bundle.pdf_assets:
                zf.writestr(f"pdfs/{asset.standard_file_name}", asset.data)
    return path


def export_csv(papers: list[Paper], path: Path) -> Path:
    """Write the results table as UTF-8 CSV with a byte-order mark.

    Args:
        papers: Papers to export (usually the filtered listing)
        path: Target CSV file

    Returns:
        Path to the created file
    """
    rows = [
        [
            p.title,
            "; ".join(p.authors),
            p.year if p.year is not None else "",
            p.journal,
            p.research_area,
            p.methodology,
            p.study_type,
            "; ".join(p.keywords),
            p.citations,
            p.doi,
        ]
        for p in papers
    ]
    df = pd.DataFrame(rows, columns=CSV_HEADERS)
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(path, index=False, encoding="utf-8-sig")
    return path
