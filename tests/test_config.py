"""Tests for settings loading and the explicit context wiring."""

from pathlib import Path

import pytest
import yaml

from litreview.config import GitHubConfig, Settings, _load_github, save_github_config
from litreview.context import build_context
from litreview.services.catalog_service import LoadSource


@pytest.fixture(autouse=True)
def no_token_env(monkeypatch):
    monkeypatch.delenv("GITHUB_TOKEN", raising=False)


def write_yaml(path: Path, data: dict) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(yaml.safe_dump(data), encoding="utf-8")


def test_defaults_without_config(tmp_path):
    settings = Settings.load(tmp_path)
    assert settings.metadata_dir == tmp_path / ".metadata"
    assert settings.metadata_dir.is_dir()
    assert settings.db_path == tmp_path / "litreview.db"
    assert settings.page_size == 12
    assert settings.static_data_dir is None
    assert not settings.github.configured


def test_example_templates_are_copied(tmp_path):
    write_yaml(tmp_path / ".metadata.example" / "catalog.yaml", {"page_size": 20})
    settings = Settings.load(tmp_path)
    assert (tmp_path / ".metadata" / "catalog.yaml").is_file()
    assert settings.page_size == 20


def test_catalog_yaml_values(tmp_path):
    write_yaml(tmp_path / ".metadata" / "catalog.yaml", {
        "db_path": "data/papers.db",
        "static_data_dir": "https://example.org/data",
        "fallback_quota_bytes": 1000,
        "upload_delay": 0,
    })
    settings = Settings.load(tmp_path)
    assert settings.db_path == tmp_path / "data" / "papers.db"
    assert settings.static_data_dir == "https://example.org/data"
    assert settings.fallback_quota_bytes == 1000
    assert settings.upload_delay == 0


def test_local_static_dir_is_resolved(tmp_path):
    write_yaml(tmp_path / ".metadata" / "catalog.yaml", {"static_data_dir": "site/data"})
    assert Settings.load(tmp_path).static_data_dir == tmp_path / "site" / "data"


def test_github_token_from_env(tmp_path, monkeypatch):
    path = tmp_path / "github.yaml"
    save_github_config(path, GitHubConfig(owner="u", repo="r", token="from-file"))
    assert _load_github(path).token == "from-file"

    monkeypatch.setenv("GITHUB_TOKEN", "from-env")
    config = _load_github(path)
    assert (config.owner, config.repo, config.token) == ("u", "r", "from-env")
    assert config.configured


def test_update_rejects_unknown_fields():
    settings = Settings()
    settings.update(page_size=5)
    assert settings.page_size == 5
    with pytest.raises(AttributeError):
        settings.update(colour="blue")


def test_build_context_with_broken_record_store(tmp_path, ui):
    blocker = tmp_path / "blocked"
    blocker.write_text("x", encoding="utf-8")
    settings = Settings.load(tmp_path)
    settings.update(db_path=blocker / "papers.db")

    ctx = build_context(settings, ui)
    assert not ctx.catalog.uses_record_store
    assert ctx.ui is ui
    assert ui.messages[0][0] == "warning"


@pytest.mark.asyncio
async def test_build_context_uses_static_data(tmp_path, ui):
    settings = Settings.load(tmp_path)
    settings.update(static_data_dir=tmp_path / "missing")
    ctx = build_context(settings, ui)
    assert ctx.static_loader is not None
    assert await ctx.catalog.load() is LoadSource.EMPTY
