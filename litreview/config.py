"""Configuration management.

All user-editable configuration lives under ``.metadata/``:

* ``catalog.yaml`` – storage locations, page size, fallback quota, CDN base
* ``github.yaml``  – release repository owner/name and access token

On first run, missing files are copied from ``.metadata.example/``.
``GITHUB_TOKEN`` in the environment takes precedence over the token file.
"""

import logging
import os
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional, Union

import yaml

from litreview.database.fallback import DEFAULT_QUOTA_BYTES, THUMBNAIL_LIMIT
from litreview.models.filters import PAGE_SIZE
from litreview.services.export_service import DEFAULT_CDN_BASE
from litreview.services.release_service import UPLOAD_DELAY

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# GitHub release target
# ---------------------------------------------------------------------------

@dataclass
class GitHubConfig:
    """Repository that receives release assets."""

    owner: str = ""
    repo: str = ""
    token: Optional[str] = None

    @property
    def configured(self) -> bool:
        return bool(self.owner and self.repo and self.token)


# ---------------------------------------------------------------------------
# Settings dataclass
# ---------------------------------------------------------------------------

@dataclass
class Settings:
    """Application settings.

    Usage::

        settings = Settings.load()                 # repository root
        settings = Settings.load(Path("/srv/lit"))  # explicit project dir
        settings.update(db_path=Path(...))          # runtime change
    """

    base_dir: Path = Path(".")
    metadata_dir: Path = Path(".metadata")
    db_path: Path = Path("litreview.db")
    fallback_path: Path = Path(".metadata/fallback.json")
    export_dir: Path = Path("exports")
    static_data_dir: Optional[Union[Path, str]] = None
    chart_dir: Path = Path("exports/charts")

    page_size: int = PAGE_SIZE
    fallback_quota_bytes: int = DEFAULT_QUOTA_BYTES
    thumbnail_limit: int = THUMBNAIL_LIMIT
    cdn_base: str = DEFAULT_CDN_BASE
    upload_delay: float = UPLOAD_DELAY

    github: GitHubConfig = field(default_factory=GitHubConfig)

    def update(self, **kwargs: Any) -> None:
        """Mutate settings fields at runtime.

        >>> Settings.load().update(db_path=Path("/tmp/test.db"))
        """
        for key, value in kwargs.items():
            if not hasattr(self, key):
                raise AttributeError(f"Settings has no field '{key}'")
            setattr(self, key, value)

    # ── Factory ───────────────────────────────────────────────────────

    @classmethod
    def load(cls, base_dir: Optional[Path] = None) -> "Settings":
        """Read settings from ``<base_dir>/.metadata``.

        *base_dir* defaults to the repository root one level above
        ``litreview/``.
        """
        if base_dir is None:
            base_dir = Path(__file__).resolve().parent.parent
        base_dir = Path(base_dir)

        metadata_dir = base_dir / ".metadata"
        cls._ensure_default_files(base_dir, metadata_dir)

        catalog = _load_yaml(metadata_dir / "catalog.yaml")
        github = _load_github(metadata_dir / "github.yaml")

        def path_of(key: str, default: str) -> Path:
            value = Path(str(catalog.get(key) or default))
            return value if value.is_absolute() else base_dir / value

        static_dir = catalog.get("static_data_dir")
        if static_dir and not str(static_dir).startswith(("http://", "https://")):
            static_dir = path_of("static_data_dir", static_dir)
        export_dir = path_of("export_dir", "exports")
        return cls(
            base_dir=base_dir,
            metadata_dir=metadata_dir,
            db_path=path_of("db_path", "litreview.db"),
            fallback_path=path_of("fallback_path", ".metadata/fallback.json"),
            export_dir=export_dir,
            static_data_dir=static_dir or None,
            chart_dir=export_dir / "charts",
            page_size=int(catalog.get("page_size") or PAGE_SIZE),
            fallback_quota_bytes=int(catalog.get("fallback_quota_bytes") or DEFAULT_QUOTA_BYTES),
            thumbnail_limit=int(catalog.get("thumbnail_limit") or THUMBNAIL_LIMIT),
            cdn_base=str(catalog.get("cdn_base") or DEFAULT_CDN_BASE),
            upload_delay=float(catalog.get("upload_delay", UPLOAD_DELAY)),
            github=github,
        )

    # ── Private ───────────────────────────────────────────────────────

    @staticmethod
    def _ensure_default_files(base_dir: Path, metadata_dir: Path) -> None:
        """Copy ``.metadata.example/`` templates when real files are missing."""
        metadata_dir.mkdir(parents=True, exist_ok=True)

        example_dir = base_dir / ".metadata.example"
        if not example_dir.exists():
            return

        for example_file in example_dir.iterdir():
            if example_file.is_file():
                target = metadata_dir / example_file.name
                if not target.exists():
                    shutil.copy2(example_file, target)
                    logger.info("Created .metadata/%s from template", example_file.name)


# ---------------------------------------------------------------------------
# YAML loaders
# ---------------------------------------------------------------------------

def _load_yaml(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        logger.warning("Ignoring unreadable config %s: %s", path, e)
        return {}
    return data if isinstance(data, dict) else {}


def _load_github(path: Path) -> GitHubConfig:
    """Load the release target from ``github.yaml`` (token may come from env)."""
    data = _load_yaml(path)
    token = os.environ.get("GITHUB_TOKEN") or data.get("token") or None
    return GitHubConfig(
        owner=str(data.get("owner") or ""),
        repo=str(data.get("repo") or ""),
        token=str(token) if token else None,
    )


def save_github_config(path: Path, config: GitHubConfig) -> None:
    """Persist the release target to ``github.yaml``."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        f.write("# GitHub repository that receives PDF release assets\n")
        f.write("# token: personal access token with repo scope (or set GITHUB_TOKEN)\n")
        yaml.dump(
            {"owner": config.owner, "repo": config.repo, "token": config.token or ""},
            f,
            default_flow_style=False,
            allow_unicode=True,
            sort_keys=False,
        )
