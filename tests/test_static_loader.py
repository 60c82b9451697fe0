"""Tests for loading an exported bundle back (local directory and URL)."""

import asyncio
import json

import httpx
import pytest

from litreview.database.blobs import BlobRegistry
from litreview.database.fallback import FallbackStore
from litreview.services.catalog_service import CatalogService, LoadSource
from litreview.services.export_service import ExportOptions, StaticExporter, write_directory
from litreview.services.pdf_service import from_data_url
from litreview.services.static_loader import StaticDataLoader

from conftest import make_paper


@pytest.fixture
def exported(catalog, tmp_path):
    """Export a three-paper catalog and return (data dir, ids)."""
    ids = [
        catalog.add(make_paper(title="Haptic Gloves", pdf_data=b"%PDF-glove", research_area="Immersive Interaction",
                               journal="UIST", year=2022, keywords=["haptics"])),
        catalog.add(make_paper(title="Screen Readers", research_area="Accessible Interaction",
                               journal="ASSETS", year=2019, thumbnail="data:image/jpeg;base64,T")),
        catalog.add(make_paper(title="Thumb Reach", journal="CHI", year=2022)),
    ]
    bundle = StaticExporter(catalog).export_bundle()
    out = write_directory(bundle, tmp_path / "site")
    return out / "data", ids


class TestLocalBundle:
    @pytest.mark.asyncio
    async def test_missing_bundle(self, tmp_path):
        loader = StaticDataLoader(tmp_path / "nothing")
        assert not await loader.initialize()
        assert loader.get_all_papers() == []

    @pytest.mark.asyncio
    async def test_round_trip_keeps_ids_and_metadata(self, exported):
        data_dir, ids = exported
        loader = StaticDataLoader(data_dir)
        assert await loader.initialize()
        papers = loader.get_all_papers()
        assert [p["id"] for p in papers] == ids
        assert papers[0]["title"] == "Haptic Gloves"
        assert loader.get_thumbnail(ids[1]) == "data:image/jpeg;base64,T"

    @pytest.mark.asyncio
    async def test_inline_pdf_becomes_a_reference(self, exported):
        data_dir, ids = exported
        loader = StaticDataLoader(data_dir)
        await loader.initialize()

        data = await loader.get_paper_data(ids[0])
        assert "pdfBase64" not in data
        assert BlobRegistry.is_blob_url(data["pdfUrl"])
        assert loader.blobs.resolve(data["pdfUrl"]) == b"%PDF-glove"

    @pytest.mark.asyncio
    async def test_per_paper_data_is_fetched_once(self, exported, monkeypatch):
        data_dir, ids = exported
        loader = StaticDataLoader(data_dir)
        await loader.initialize()

        calls = []
        original = loader._fetch_paper

        async def counting(paper_id):
            calls.append(paper_id)
            await asyncio.sleep(0)
            return await original(paper_id)

        monkeypatch.setattr(loader, "_fetch_paper", counting)
        first, second = await asyncio.gather(loader.get_paper_data(ids[0]), loader.get_paper_data(ids[0]))
        third = await loader.get_paper_data(ids[0])

        assert calls == [ids[0]]
        assert first is second is third
        assert len(loader.blobs) == 1

    @pytest.mark.asyncio
    async def test_failed_fetch_is_not_cached(self, exported):
        data_dir, _ = exported
        loader = StaticDataLoader(data_dir)
        await loader.initialize()
        assert await loader.get_paper_data("paper_missing") is None
        assert "paper_missing" not in loader._cache

    @pytest.mark.asyncio
    async def test_clear_cache_releases_references(self, exported):
        data_dir, ids = exported
        loader = StaticDataLoader(data_dir)
        await loader.initialize()
        await loader.preload_papers(ids)
        url = loader._cache[ids[0]]["pdfUrl"]

        loader.clear_cache()
        assert url not in loader.blobs
        assert loader._cache == {}

    @pytest.mark.asyncio
    async def test_queries(self, exported):
        data_dir, ids = exported
        loader = StaticDataLoader(data_dir)
        await loader.initialize()

        assert [p["id"] for p in loader.get_papers_by_category("Accessible Interaction")] == [ids[1]]
        assert [p["id"] for p in loader.get_papers_by_year(2022)] == [ids[0], ids[2]]
        assert [p["id"] for p in loader.get_papers_by_venue("CHI")] == [ids[2]]
        assert [p["id"] for p in loader.search_papers("HAPTICS")] == [ids[0]]
        assert loader.get_years() == [2022, 2019]
        assert loader.get_venues() == ["ASSETS", "CHI", "UIST"]
        assert "Immersive Interaction" in loader.get_categories()

        stats = loader.get_statistics()
        assert stats["total_papers"] == 3
        assert stats["total_with_files"] == 1
        assert stats["total_with_thumbnails"] == 1
        assert stats["year_counts"] == {2022: 2, 2019: 1}


class TestRemoteBundle:
    @pytest.mark.asyncio
    async def test_loads_over_http(self, exported):
        data_dir, ids = exported

        def handler(request: httpx.Request) -> httpx.Response:
            name = request.url.path.removeprefix("/site/data/")
            path = data_dir / name
            if not path.is_file():
                return httpx.Response(404)
            if request.method == "HEAD":
                return httpx.Response(200)
            return httpx.Response(200, json=json.loads(path.read_text(encoding="utf-8")))

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            loader = StaticDataLoader("https://example.org/site/data", client=client)
            assert loader.is_remote
            assert await loader.initialize()
            assert len(loader.get_all_papers()) == 3
            data = await loader.get_paper_data(ids[0])
            assert loader.blobs.resolve(data["pdfUrl"]) == b"%PDF-glove"
            assert await loader.get_paper_data("paper_missing") is None

    @pytest.mark.asyncio
    async def test_unreachable_bundle(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("offline", request=request)

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            loader = StaticDataLoader("https://example.org/data", client=client)
            assert not await loader.initialize()


class TestCatalogFromStaticData:
    @pytest.mark.asyncio
    async def test_static_data_takes_precedence(self, exported, record_store, fallback_store, ui):
        data_dir, ids = exported
        loader = StaticDataLoader(data_dir)
        catalog = CatalogService(record_store, fallback_store, static_loader=loader, ui=ui)

        assert await catalog.load() is LoadSource.STATIC
        assert [p.id for p in catalog.papers] == ids
        assert catalog.get(ids[1]).thumbnail == "data:image/jpeg;base64,T"
        assert await catalog.open_pdf(ids[0]) == (b"%PDF-glove", None)
        assert ("success", "Loaded 3 papers from static data") in ui.messages

    @pytest.mark.asyncio
    async def test_static_papers_keep_their_files(self, exported, unavailable_store, tmp_path, ui):
        data_dir, ids = exported
        catalog = CatalogService(
            unavailable_store, FallbackStore(tmp_path / "empty.json"), static_loader=StaticDataLoader(data_dir), ui=ui
        )
        await catalog.load()

        assert catalog.statistics()["with_files"] == 1
        assert catalog.get(ids[0]).to_metadata()["hasFile"] is True
        assert catalog.get(ids[1]).to_metadata()["hasFile"] is False

    @pytest.mark.asyncio
    async def test_reexport_carries_static_pdfs(self, exported, unavailable_store, tmp_path, ui):
        data_dir, ids = exported
        catalog = CatalogService(
            unavailable_store, FallbackStore(tmp_path / "empty.json"), static_loader=StaticDataLoader(data_dir), ui=ui
        )
        await catalog.load()

        assert await catalog.resolve_static_files() == 1
        bundle = StaticExporter(catalog).export_bundle()
        record = bundle.json_files[f"data/papers/{ids[0]}.json"]
        assert from_data_url(record["pdfBase64"])[0] == b"%PDF-glove"
        assert record["hasFile"] is True
        assert "pdfBase64" not in bundle.json_files[f"data/papers/{ids[2]}.json"]
