"""Tests for the catalog command/query service."""

import pytest

from litreview.database.blobs import BlobRegistry
from litreview.database.fallback import FallbackStore
from litreview.database.repository import RecordStore
from litreview.errors import QuotaExceeded, ValidationError
from litreview.models.filters import FilterState
from litreview.models.paper import PLACEHOLDER_URL
from litreview.services.catalog_service import CatalogService, LoadSource, validate_fields

from conftest import RecordingUI, make_paper


def edit_fields(**overrides):
    fields = {
        "title": "Edited Title",
        "authors": "Alice Smith, Carol White",
        "journal": "UIST",
        "year": 2021,
        "research_area": "Mobile Device",
        "methodology": "Mixed Methods",
        "study_type": "Empirical",
        "abstract": "Edited abstract.",
        "keywords": "touch; wrist",
        "citations": 30,
        "downloads": 4,
        "doi": "",
    }
    fields.update(overrides)
    return fields


# ============================================================================
# Adding papers
# ============================================================================


class TestAdd:
    def test_ids_are_unique_even_for_duplicate_input(self, catalog):
        first = catalog.add(make_paper(id="dup"))
        second = catalog.add(make_paper(id="dup"))
        third = catalog.add(make_paper())
        assert first == "dup"
        assert len({first, second, third}) == 3

    def test_add_derives_h_index_and_date(self, catalog):
        paper_id = catalog.add(make_paper(citations=10, h_index=99))
        paper = catalog.get(paper_id)
        assert paper.h_index == 3
        assert paper.date_added

    def test_add_does_not_modify_the_argument(self, catalog):
        paper = make_paper()
        catalog.add(paper)
        assert paper.id is None

    def test_binary_goes_to_record_store(self, catalog, record_store):
        paper_id = catalog.add(make_paper(pdf_data=b"%PDF-1.4", original_file_name="a.pdf"))
        paper = catalog.get(paper_id)

        assert paper.pdf_data is None
        assert paper.is_persistent_pdf
        assert BlobRegistry.is_blob_url(paper.pdf_url)
        assert catalog.blobs.resolve(paper.pdf_url) == b"%PDF-1.4"
        assert record_store.get_binary(paper_id).file_name == "a.pdf"

    def test_fallback_catalog_inlines_binary(self, fallback_catalog, fallback_store):
        paper_id = fallback_catalog.add(make_paper(pdf_data=b"%PDF-1.4"))
        paper = fallback_catalog.get(paper_id)
        assert paper.pdf_url.startswith("data:application/pdf;base64,")
        assert [p.id for p in fallback_store.load()] == [paper_id]

    def test_scenario_sort_by_year(self, catalog):
        for year in (2019, 2021, 2020):
            catalog.add(make_paper(year=year))
        assert [p.year for p in catalog.sort(catalog.papers, "year-desc")] == [2021, 2020, 2019]

    def test_add_resets_to_first_page(self, catalog):
        for _ in range(30):
            catalog.add(make_paper())
        catalog.go_to_page(3)
        catalog.add(make_paper())
        assert catalog.current_page == 1


# ============================================================================
# Editing
# ============================================================================


class TestEdit:
    @pytest.mark.parametrize("year", [1900, 2030])
    def test_year_boundaries_accepted(self, year):
        validate_fields(edit_fields(year=year))

    @pytest.mark.parametrize("year", [1899, 2031, None, "abc"])
    def test_year_outside_range_rejected(self, year):
        with pytest.raises(ValidationError) as exc_info:
            validate_fields(edit_fields(year=year))
        assert exc_info.value.fields == ["year"]

    def test_all_offending_fields_are_listed(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_fields(edit_fields(authors=" , ", journal="", year=1800))
        assert exc_info.value.fields == ["authors", "journal", "year"]

    @pytest.mark.parametrize("value", ["many", "-3", "1.5", True])
    def test_counts_must_be_whole_numbers(self, value):
        with pytest.raises(ValidationError) as exc_info:
            validate_fields(edit_fields(citations=value, downloads=value))
        assert exc_info.value.fields == ["citations", "downloads"]

    @pytest.mark.parametrize("value", [None, "", " 7 ", 0])
    def test_blank_or_numeric_counts_accepted(self, value):
        validate_fields(edit_fields(citations=value, downloads=value))

    def test_non_numeric_count_rejected_by_edit(self, catalog, record_store):
        paper_id = catalog.add(make_paper(citations=12))
        with pytest.raises(ValidationError) as exc_info:
            catalog.edit(paper_id, edit_fields(citations="lots"))
        assert exc_info.value.fields == ["citations"]
        assert catalog.get(paper_id).citations == 12
        assert record_store.get(paper_id).citations == 12

    def test_edit_replaces_fields(self, catalog, ui, record_store):
        paper_id = catalog.add(make_paper())
        updated = catalog.edit(paper_id, edit_fields())

        assert updated.authors == ["Alice Smith", "Carol White"]
        assert updated.keywords == ["touch", "wrist"]
        assert updated.h_index == 10
        assert catalog.get(paper_id).title == "Edited Title"
        assert record_store.get(paper_id).journal == "UIST"
        assert ("success", "Paper information updated") in ui.messages

    def test_edit_accepts_venue(self, catalog):
        paper_id = catalog.add(make_paper())
        fields = edit_fields()
        fields["venue"] = fields.pop("journal")
        assert catalog.edit(paper_id, fields).journal == "UIST"

    def test_rejected_edit_changes_nothing(self, catalog, record_store):
        paper_id = catalog.add(make_paper(year=2020))
        with pytest.raises(ValidationError):
            catalog.edit(paper_id, edit_fields(year=1899))
        assert catalog.get(paper_id).year == 2020
        assert record_store.get(paper_id).title == "Mobile Touch Interaction"

    def test_unknown_id(self, catalog):
        with pytest.raises(KeyError):
            catalog.edit("missing", edit_fields())

    def test_edit_on_fallback_catalog_persists(self, fallback_catalog, fallback_store):
        paper_id = fallback_catalog.add(make_paper())
        fallback_catalog.edit(paper_id, edit_fields())
        assert fallback_store.load()[0].title == "Edited Title"


# ============================================================================
# Thumbnails and deletion
# ============================================================================


class TestThumbnails:
    def test_set_reset_remove(self, catalog, record_store):
        generated = "data:image/jpeg;base64,GEN"
        paper_id = catalog.add(make_paper(thumbnail=generated, original_thumbnail=generated))

        catalog.set_thumbnail(paper_id, "data:image/jpeg;base64,CUSTOM")
        assert record_store.get_thumbnail(paper_id) == "data:image/jpeg;base64,CUSTOM"

        assert catalog.reset_thumbnail(paper_id).thumbnail == generated
        assert record_store.get_thumbnail(paper_id) == generated

        assert catalog.remove_thumbnail(paper_id).thumbnail is None
        assert record_store.get_thumbnail(paper_id) is None
        assert catalog.get(paper_id).original_thumbnail == generated

    def test_reset_without_generated_thumbnail_clears(self, catalog):
        paper_id = catalog.add(make_paper(thumbnail="data:image/jpeg;base64,X"))
        assert catalog.reset_thumbnail(paper_id).thumbnail is None


class TestDelete:
    def test_delete_releases_reference(self, catalog, record_store):
        paper_id = catalog.add(make_paper(pdf_data=b"%PDF"))
        url = catalog.get(paper_id).pdf_url
        catalog.delete(paper_id)

        assert catalog.get(paper_id) is None
        assert record_store.get(paper_id) is None
        assert url not in record_store.blobs

    def test_delete_on_fallback_catalog(self, fallback_catalog, fallback_store):
        keep = fallback_catalog.add(make_paper())
        gone = fallback_catalog.add(make_paper())
        fallback_catalog.delete(gone)
        assert [p.id for p in fallback_store.load()] == [keep]


# ============================================================================
# Quota handling
# ============================================================================


class TestQuota:
    def test_quota_exceeded_leaves_collection_unchanged(self, tmp_path, unavailable_store):
        ui = RecordingUI()
        store = FallbackStore(tmp_path / "fb.json", quota_bytes=3_000)
        catalog = CatalogService(unavailable_store, store, ui=ui)
        catalog.add(make_paper())

        with pytest.raises(QuotaExceeded):
            catalog.add(make_paper(abstract="x" * 5_000))

        assert len(catalog.papers) == 1
        assert len(store.load()) == 1
        assert ui.messages[-1][0] == "error"
        assert ui.reports and ui.reports[0]["backend"] == "fallback"


# ============================================================================
# Filtering, sorting, paging
# ============================================================================


class TestQueries:
    @pytest.fixture
    def filled(self, catalog):
        for i in range(25):
            catalog.add(make_paper(
                title=f"Paper {i:02d}",
                year=2000 + i,
                citations=i,
                research_area="Mobile Device" if i % 2 else "General",
            ))
        return catalog

    def test_filter_is_pure(self, filled):
        before = filled.filtered
        result = filled.filter(FilterState(category="General"))
        assert len(result) == 13
        assert filled.filtered == before
        assert filled.filter_state == FilterState()

    def test_apply_filters_updates_listing_and_page(self, filled):
        filled.go_to_page(2)
        listing = filled.apply_filters(FilterState(year_min=2010, year_max=2014), "year-asc")
        assert [p.year for p in listing] == [2010, 2011, 2012, 2013, 2014]
        assert filled.current_page == 1

    def test_reset_filters(self, filled):
        filled.apply_filters(FilterState(query="Paper 01"))
        assert len(filled.reset_filters()) == 25

    def test_paginate_clamps(self, filled):
        page = filled.paginate(10)
        assert page.page == 3
        assert page.total_pages == 3
        assert len(page.items) == 1
        assert filled.current_page == 3

    def test_facets_and_statistics(self, filled):
        assert filled.facets().research_areas == {"General": 13, "Mobile Device": 12}
        stats = filled.statistics()
        assert stats["total"] == 25
        assert stats["year_range"] == (2000, 2024)
        assert stats["total_citations"] == sum(range(25))


# ============================================================================
# Loading
# ============================================================================


class TestLoad:
    @pytest.mark.asyncio
    async def test_empty(self, catalog):
        assert await catalog.load() is LoadSource.EMPTY
        assert catalog.papers == []

    @pytest.mark.asyncio
    async def test_fallback_papers_are_migrated(self, record_store, fallback_store, ui):
        fallback_store.save([make_paper(id="p1"), make_paper(id="p2")])
        catalog = CatalogService(record_store, fallback_store, ui=ui)

        assert await catalog.load() is LoadSource.FALLBACK
        assert [p.id for p in catalog.papers] == ["p1", "p2"]
        assert record_store.count() == 2
        assert fallback_store.load() is None
        assert any("Migrated 2/2" in message for _, message in ui.messages)

    @pytest.mark.asyncio
    async def test_fallback_without_record_store(self, fallback_catalog, fallback_store):
        fallback_store.save([make_paper(id="p1")])
        assert await fallback_catalog.load() is LoadSource.FALLBACK
        assert fallback_store.load() is not None

    @pytest.mark.asyncio
    async def test_load_is_idempotent(self, catalog, record_store, ui):
        record_store.put(make_paper(id="p1"))
        assert await catalog.load() is LoadSource.RECORD_STORE
        count = len(ui.messages)
        assert await catalog.load() is LoadSource.RECORD_STORE
        assert len(catalog.papers) == 1
        assert len(ui.messages) == count

    @pytest.mark.asyncio
    async def test_missing_stored_pdf_is_cleared(self, catalog, record_store):
        record_store.put(make_paper(id="p1", is_persistent_pdf=True))
        await catalog.load()
        paper = catalog.get("p1")
        assert not paper.is_persistent_pdf
        assert not paper.has_file

    @pytest.mark.asyncio
    async def test_new_session_gets_fresh_references(self, tmp_path, catalog):
        paper_id = catalog.add(make_paper(pdf_data=b"%PDF-session"))

        store = RecordStore(tmp_path / "papers.db", BlobRegistry())
        store.init()
        reloaded = CatalogService(store, FallbackStore(tmp_path / "other.json"))
        await reloaded.load()

        paper = reloaded.get(paper_id)
        assert BlobRegistry.is_blob_url(paper.pdf_url)
        assert store.blobs.resolve(paper.pdf_url) == b"%PDF-session"

    @pytest.mark.asyncio
    async def test_open_pdf(self, catalog):
        stored = catalog.add(make_paper(pdf_data=b"%PDF-stored"))
        external = catalog.add(make_paper(pdf_url="https://example.org/x.pdf"))
        missing = catalog.add(make_paper())

        assert await catalog.open_pdf(stored) == (b"%PDF-stored", None)
        assert await catalog.open_pdf(external) == (None, "https://example.org/x.pdf")
        assert await catalog.open_pdf(missing) == (None, None)

    @pytest.mark.asyncio
    async def test_open_pdf_from_fallback_data_url(self, fallback_catalog):
        paper_id = fallback_catalog.add(make_paper(pdf_data=b"%PDF-inline"))
        assert await fallback_catalog.open_pdf(paper_id) == (b"%PDF-inline", None)

    def test_storage_info(self, catalog):
        catalog.add(make_paper(pdf_data=b"1234"))
        info = catalog.storage_info()
        assert info["backend"] == "record_store"
        assert info["record_store"]["pdf_bytes"] == 4
        assert info["papers"] == 1
