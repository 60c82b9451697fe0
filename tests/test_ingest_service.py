"""Tests for record normalization and file ingestion."""

import json
from datetime import datetime

import pytest

from litreview.errors import ParseError
from litreview.services.ingest_service import (
    IngestService,
    UNKNOWN_JOURNAL,
    manual_entry,
    normalize_record,
)

from conftest import RecordingUI


class TestNormalizeRecord:
    def test_camel_case_record(self):
        paper = normalize_record({
            "id": "paper_1",
            "title": "  Eye   Tracking in VR ",
            "authors": ["A. One", "B. Two"],
            "year": "2021",
            "venue": "IEEE VR",
            "researchArea": "Immersive Interaction",
            "citations": "31",
            "doi": "https://doi.org/10.1109/VR.2021.00042",
        })
        assert paper.id == "paper_1"
        assert paper.title == "Eye Tracking in VR"
        assert paper.year == 2021
        assert paper.journal == "IEEE VR"
        assert paper.research_area == "Immersive Interaction"
        assert paper.citations == 31
        assert paper.h_index == 10
        assert paper.doi == "10.1109/vr.2021.00042"

    def test_csv_header_spellings(self):
        paper = normalize_record({
            "Title": "Gesture Input",
            "Authors": "A; B",
            "Year": "2019",
            "Journal": "MobileHCI",
            "Method": "Qualitative",
            "Type": "Case Study",
            "Keywords": "gesture, wrist",
        })
        assert paper.authors == ["A", "B"]
        assert paper.methodology == "Qualitative"
        assert paper.study_type == "Case Study"
        assert paper.keywords == ["gesture", "wrist"]

    def test_category_overrides_area(self):
        record = {"title": "T", "authors": "A", "year": 2020, "researchArea": "General"}
        assert normalize_record(record, "Mobile Device").research_area == "Mobile Device"
        assert normalize_record(record).research_area == "General"

    @pytest.mark.parametrize(
        "record",
        [
            {"authors": "A", "year": 2020},
            {"title": "T", "year": 2020},
            {"title": "T", "authors": "A"},
            {"title": "T", "authors": "A", "year": ""},
        ],
    )
    def test_missing_required_fields(self, record):
        with pytest.raises(ParseError):
            normalize_record(record)

    @pytest.mark.parametrize("record", [["title"], "title", 42, None])
    def test_unrecognized_shapes(self, record):
        with pytest.raises(ParseError):
            normalize_record(record)

    def test_defaults(self):
        paper = normalize_record({"title": "T", "authors": "A", "year": 2020})
        assert paper.journal == UNKNOWN_JOURNAL
        assert paper.pdf_url == "#"
        assert paper.h_index == 0

    def test_manual_entry(self):
        paper = manual_entry({"title": "T", "authors": "A, B", "year": "2020", "venue": "CHI", "citations": "9"})
        assert paper.authors == ["A", "B"]
        assert paper.journal == "CHI"
        assert paper.h_index == 3


class TestParseFile:
    def test_json_object_and_list(self, tmp_path):
        single = tmp_path / "one.json"
        single.write_text(json.dumps({"title": "T", "authors": ["A"], "year": 2020}), encoding="utf-8")
        many = tmp_path / "many.json"
        many.write_text(json.dumps([
            {"title": "T1", "authors": ["A"], "year": 2020},
            {"title": "T2", "authors": ["B"], "year": 2021},
        ]), encoding="utf-8")

        service = IngestService()
        assert [p.title for p in service.parse_file(single)] == ["T"]
        assert [p.title for p in service.parse_file(many)] == ["T1", "T2"]

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text("{oops", encoding="utf-8")
        with pytest.raises(ParseError) as exc_info:
            IngestService().parse_file(path)
        assert exc_info.value.file_name == "broken.json"

    def test_json_record_missing_fields(self, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text(json.dumps({"title": "T"}), encoding="utf-8")
        with pytest.raises(ParseError):
            IngestService().parse_file(path)

    def test_csv_keeps_valid_rows(self, tmp_path):
        path = tmp_path / "papers.csv"
        path.write_text(
            "\ufeffTitle,Authors,Year,Journal,Citations\n"
            "First,A; B,2020,CHI,12\n"
            ",C,2021,UIST,1\n"
            "Third,D,2019,,\n",
            encoding="utf-8",
        )
        papers = IngestService().parse_file(path)
        assert [p.title for p in papers] == ["First", "Third"]
        assert papers[0].authors == ["A", "B"]
        assert papers[0].citations == 12
        assert papers[1].journal == UNKNOWN_JOURNAL

    def test_csv_without_valid_rows(self, tmp_path):
        path = tmp_path / "empty.csv"
        path.write_text("Title,Authors,Year\n,,\n", encoding="utf-8")
        with pytest.raises(ParseError):
            IngestService().parse_file(path)

    def test_pdf(self, tmp_path, pdf_bytes):
        path = tmp_path / "haptics.pdf"
        path.write_bytes(pdf_bytes)
        (paper,) = IngestService().parse_file(path, "HCI New Wearable Devices")

        assert paper.title == "Wearable Haptic Feedback for Smart Watch Interaction"
        assert paper.year == 2021
        assert paper.research_area == "HCI New Wearable Devices"
        assert paper.pdf_data == pdf_bytes
        assert paper.pdf_file_size == len(pdf_bytes)
        assert paper.original_file_name == "haptics.pdf"
        assert paper.is_persistent_pdf
        assert paper.thumbnail.startswith("data:image/jpeg;base64,")
        assert paper.original_thumbnail == paper.thumbnail

    def test_corrupt_pdf(self, tmp_path):
        path = tmp_path / "corrupt.pdf"
        path.write_bytes(b"not a pdf at all")
        with pytest.raises(ParseError) as exc_info:
            IngestService().parse_file(path)
        assert exc_info.value.file_name == "corrupt.pdf"

    def test_doc_placeholder(self, tmp_path):
        path = tmp_path / "draft.docx"
        path.write_bytes(b"PK")
        (paper,) = IngestService().parse_file(path)
        assert paper.title == "draft"
        assert paper.year == datetime.now().year

    def test_unsupported_format(self, tmp_path):
        path = tmp_path / "notes.txt"
        path.write_text("hello", encoding="utf-8")
        with pytest.raises(ParseError, match="Unsupported file format"):
            IngestService().parse_file(path)


class TestIngestFiles:
    def test_batch_continues_after_failure(self, tmp_path, catalog, pdf_bytes):
        good = tmp_path / "good.json"
        good.write_text(json.dumps({"title": "T", "authors": ["A"], "year": 2020}), encoding="utf-8")
        bad = tmp_path / "bad.txt"
        bad.write_text("x", encoding="utf-8")
        pdf = tmp_path / "paper.pdf"
        pdf.write_bytes(pdf_bytes)

        ui = RecordingUI()
        outcomes = IngestService(catalog, ui).ingest_files([good, bad, pdf])

        assert [o.success for o in outcomes] == [True, False, True]
        assert outcomes[1].error == "Unsupported file format"
        assert len(catalog.papers) == 2
        stored = catalog.get(outcomes[2].paper_ids[0])
        assert stored.pdf_data is None
        assert catalog.record_store.get_binary(stored.id).data == pdf_bytes
        assert ("results", "2/3") in ui.messages
