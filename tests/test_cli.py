"""Tests for the argument parser and the CLI commands."""

import io
import json

import pytest
from rich.console import Console

from litreview.cli import create_parser, fields_from_args, filter_state_from_args, main
from litreview.console import ConsoleUI
from litreview.models.filters import YEAR_MAX, YEAR_MIN


@pytest.fixture(autouse=True)
def quiet(monkeypatch):
    """Send console output into a buffer and ignore any real token."""
    buffer = io.StringIO()
    monkeypatch.delenv("GITHUB_TOKEN", raising=False)
    monkeypatch.setattr(
        "litreview.cli.ConsoleUI",
        lambda: ConsoleUI(Console(file=buffer, width=200)),
    )
    return buffer


def run(base_dir, *args):
    return main(["--base-dir", str(base_dir), *args])


class TestParser:
    def test_list_filters(self):
        args = create_parser().parse_args([
            "list", "-q", "touch", "--method", "Qualitative", "--method", "Survey",
            "--year-min", "2010", "--cite-min", "5", "--sort", "citations-desc",
        ])
        state = filter_state_from_args(args)
        assert state.query == "touch"
        assert state.methodologies == {"Qualitative", "Survey"}
        assert (state.year_min, state.year_max) == (2010, YEAR_MAX)
        assert state.citation_min == 5
        assert args.sort_key == "citations-desc"

    def test_defaults(self):
        state = filter_state_from_args(create_parser().parse_args(["list"]))
        assert (state.year_min, state.year_max) == (YEAR_MIN, YEAR_MAX)
        assert state.category == "all"

    def test_unknown_sort_key_rejected(self):
        with pytest.raises(SystemExit):
            create_parser().parse_args(["list", "--sort", "random"])

    def test_thumbnail_options_are_exclusive(self):
        with pytest.raises(SystemExit):
            create_parser().parse_args(["thumbnail", "p1", "--reset", "--remove"])

    def test_only_given_fields_are_collected(self):
        args = create_parser().parse_args(["edit", "p1", "--year", "2020", "--journal", "CHI"])
        assert fields_from_args(args) == {"year": 2020, "journal": "CHI"}


class TestCommands:
    def test_add_list_edit_export(self, tmp_path, quiet):
        assert run(tmp_path, "add", "--title", "Smart Rings", "--authors", "A, B",
                   "--year", "2022", "--journal", "CHI", "--citations", "9") == 0
        assert run(tmp_path, "list") == 0
        assert "Smart Rings" in quiet.getvalue()
        assert (tmp_path / "litreview.db").is_file()

        out = tmp_path / "site"
        assert run(tmp_path, "export", "--out", str(out)) == 0
        listing = json.loads((out / "data" / "papers.json").read_text(encoding="utf-8"))
        paper_id = listing["papers"][0]["id"]
        assert listing["papers"][0]["hIndex"] == 3

        assert run(tmp_path, "edit", paper_id, "--year", "2023") == 0
        assert run(tmp_path, "show", paper_id) == 0
        assert "2023" in quiet.getvalue()

        csv_path = tmp_path / "results.csv"
        assert run(tmp_path, "csv", str(csv_path)) == 0
        assert "Smart Rings" in csv_path.read_text(encoding="utf-8-sig")

        assert run(tmp_path, "delete", paper_id) == 0
        assert run(tmp_path, "show", paper_id) == 1

    def test_invalid_manual_entry(self, tmp_path, quiet):
        assert run(tmp_path, "add", "--title", "No Venue", "--authors", "A", "--year", "2020") == 1
        assert "journal" in quiet.getvalue()

    def test_invalid_edit_year(self, tmp_path):
        run(tmp_path, "add", "--title", "T", "--authors", "A", "--year", "2020", "--journal", "CHI")
        out = tmp_path / "site"
        run(tmp_path, "export", "--out", str(out))
        paper_id = json.loads((out / "data" / "papers.json").read_text(encoding="utf-8"))["papers"][0]["id"]
        assert run(tmp_path, "edit", paper_id, "--year", "1899") == 1

    def test_configure_writes_github_yaml(self, tmp_path):
        assert run(tmp_path, "configure", "--owner", "octo", "--repo", "papers", "--token", "t0k") == 0
        text = (tmp_path / ".metadata" / "github.yaml").read_text(encoding="utf-8")
        assert "owner: octo" in text
        assert "repo: papers" in text

    def test_deploy_without_configuration(self, tmp_path, quiet):
        assert run(tmp_path, "deploy", "--out", str(tmp_path / "site")) == 0
        assert "GitHub token is required" in quiet.getvalue()
        assert not (tmp_path / "site").exists()

    def test_ingest_json(self, tmp_path):
        path = tmp_path / "papers.json"
        path.write_text(json.dumps([
            {"title": "One", "authors": ["A"], "year": 2020, "venue": "CHI"},
            {"title": "Two", "authors": ["B"], "year": 2021, "venue": "UIST"},
        ]), encoding="utf-8")
        assert run(tmp_path, "ingest", str(path)) == 0

        out = tmp_path / "site"
        run(tmp_path, "export", "--out", str(out))
        index = json.loads((out / "data" / "index.json").read_text(encoding="utf-8"))
        assert index["totalPapers"] == 2
        assert index["venues"] == ["CHI", "UIST"]

    def test_storage_and_charts(self, tmp_path, quiet):
        run(tmp_path, "add", "--title", "T", "--authors", "A", "--year", "2020", "--journal", "CHI")
        assert run(tmp_path, "storage") == 0
        assert run(tmp_path, "charts", "--out", str(tmp_path / "charts")) == 0
        assert (tmp_path / "charts" / "timeline.png").is_file()
