"""Loader for an exported static bundle (local directory or web URL)."""

import asyncio
import json
import logging
from collections import Counter
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator, Optional, Union

import httpx

from litreview.database.blobs import BlobRegistry
from litreview.services.pdf_service import from_data_url

logger = logging.getLogger(__name__)

TIMEOUT = 30.0


class StaticDataLoader:
    """Reads ``index.json``, ``papers.json`` and ``thumbnails.json`` eagerly
    and per-paper files lazily, once per id.

    Inline ``pdfBase64`` payloads are decoded into ``blob:`` references owned
    by this loader; :meth:`clear_cache` releases them.
    """

    def __init__(
        self,
        base: Union[str, Path],
        client: Optional[httpx.AsyncClient] = None,
        blobs: Optional[BlobRegistry] = None,
    ):
        """Initialize loader.

        Args:
            base: Bundle ``data/`` directory, or the URL it is served under
            client: httpx client for remote bundles
            blobs: Registry for decoded PDFs (a private one by default)
        """
        self.base = str(base)
        self.is_remote = self.base.startswith(("http://", "https://"))
        self._client = client
        self.blobs = blobs or BlobRegistry()

        self.index_data: Optional[dict[str, Any]] = None
        self.papers_data: Optional[dict[str, Any]] = None
        self.thumbnails_data: Optional[dict[str, Any]] = None

        self._cache: dict[str, dict[str, Any]] = {}
        self._pending: dict[str, asyncio.Task] = {}

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    async def initialize(self) -> bool:
        """Load the eager bundle files.

        Returns:
            False when no bundle is present or it cannot be read
        """
        if not await self.is_available():
            logger.debug("No static data at %s", self.base)
            return False
        try:
            self.index_data = await self._load_json("index.json")
            self.papers_data = await self._load_json("papers.json")
            self.thumbnails_data = await self._load_json("thumbnails.json")
        except (OSError, ValueError, httpx.HTTPError) as e:
            logger.error("Failed to initialize static data: %s", e)
            return False
        logger.info("Found %d papers in static data", self.index_data.get("totalPapers", 0))
        return True

    async def is_available(self) -> bool:
        if not self.is_remote:
            return (Path(self.base) / "index.json").is_file()
        try:
            async with self._session() as client:
                response = await client.head(self._url("index.json"))
        except httpx.HTTPError:
            return False
        return response.is_success

    async def _load_json(self, name: str) -> dict[str, Any]:
        if not self.is_remote:
            with open(Path(self.base) / name, "r", encoding="utf-8") as f:
                return json.load(f)
        async with self._session() as client:
            response = await client.get(self._url(name))
            response.raise_for_status()
            return response.json()

    def _url(self, name: str) -> str:
        return f"{self.base.rstrip('/')}/{name}"

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[httpx.AsyncClient]:
        if self._client is not None:
            yield self._client
        else:
            async with httpx.AsyncClient(timeout=TIMEOUT) as client:
                yield client

    # ------------------------------------------------------------------
    # Eager data
    # ------------------------------------------------------------------

    def get_all_papers(self) -> list[dict[str, Any]]:
        return list(self.papers_data.get("papers", [])) if self.papers_data else []

    def get_thumbnail(self, paper_id: str) -> Optional[str]:
        if not self.thumbnails_data:
            return None
        return (self.thumbnails_data.get("thumbnails") or {}).get(paper_id)

    # ------------------------------------------------------------------
    # Per-paper data
    # ------------------------------------------------------------------

    async def get_paper_data(self, paper_id: str) -> Optional[dict[str, Any]]:
        """Full record of one paper, fetched at most once.

        Concurrent callers share the same fetch.  Failures return None and
        are not cached.
        """
        if paper_id in self._cache:
            return self._cache[paper_id]

        task = self._pending.get(paper_id)
        if task is None:
            task = asyncio.ensure_future(self._fetch_paper(paper_id))
            self._pending[paper_id] = task
        try:
            data = await task
        finally:
            self._pending.pop(paper_id, None)

        if data is not None:
            self._cache[paper_id] = data
        return data

    async def _fetch_paper(self, paper_id: str) -> Optional[dict[str, Any]]:
        try:
            data = await self._load_json(f"papers/{paper_id}.json")
        except (OSError, ValueError, httpx.HTTPError) as e:
            logger.error("Failed to load paper data for %s: %s", paper_id, e)
            return None

        inline = data.pop("pdfBase64", None)
        if inline:
            try:
                pdf, mime = from_data_url(inline)
                data["pdfUrl"] = self.blobs.create(pdf, mime)
            except ValueError as e:
                logger.warning("Failed to decode PDF for paper %s: %s", paper_id, e)
        return data

    async def preload_papers(self, paper_ids: list[str]) -> None:
        await asyncio.gather(*(self.get_paper_data(pid) for pid in paper_ids), return_exceptions=True)
        logger.debug("Preloaded %d papers", len(paper_ids))

    def clear_cache(self) -> None:
        """Release every decoded PDF, then drop cached records."""
        for data in self._cache.values():
            url = data.get("pdfUrl")
            if BlobRegistry.is_blob_url(url):
                self.blobs.revoke(url)
        self._cache.clear()
        logger.debug("Static data cache cleared")

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_papers_by_category(self, category: str) -> list[dict[str, Any]]:
        if not self.index_data:
            return []
        ids = set((self.index_data.get("categories") or {}).get(category, []))
        return [p for p in self.get_all_papers() if p.get("id") in ids]

    def get_papers_by_year(self, year: int) -> list[dict[str, Any]]:
        return [p for p in self.get_all_papers() if p.get("year") == year]

    def get_papers_by_venue(self, venue: str) -> list[dict[str, Any]]:
        return [p for p in self.get_all_papers() if p.get("venue") == venue]

    def search_papers(self, query: str) -> list[dict[str, Any]]:
        term = query.lower()

        def matches(paper: dict[str, Any]) -> bool:
            fields = [
                paper.get("title") or "",
                " ".join(paper.get("authors") or []),
                paper.get("abstract") or "",
                paper.get("venue") or "",
                *(paper.get("keywords") or []),
            ]
            return any(term in f.lower() for f in fields)

        return [p for p in self.get_all_papers() if matches(p)]

    def get_categories(self) -> list[str]:
        if not self.index_data:
            return []
        return sorted((self.index_data.get("categories") or {}).keys())

    def get_years(self) -> list[int]:
        return list(self.index_data.get("years", [])) if self.index_data else []

    def get_venues(self) -> list[str]:
        return list(self.index_data.get("venues", [])) if self.index_data else []

    def get_keywords(self) -> list[str]:
        return list(self.index_data.get("keywords", [])) if self.index_data else []

    def get_statistics(self) -> dict[str, Any]:
        papers = self.get_all_papers()
        return {
            "total_papers": len(papers),
            "total_with_files": sum(1 for p in papers if p.get("hasFile")),
            "total_with_thumbnails": sum(1 for p in papers if p.get("hasThumbnail")),
            "category_counts": dict(Counter(p["researchArea"] for p in papers if p.get("researchArea"))),
            "year_counts": dict(Counter(p["year"] for p in papers if p.get("year"))),
            "venue_counts": dict(Counter(p["venue"] for p in papers if p.get("venue"))),
        }

