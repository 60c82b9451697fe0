"""Fallback store: a capacity-bounded JSON text file holding paper metadata."""

import json
import logging
from pathlib import Path
from typing import Any, Optional

from litreview.errors import QuotaExceeded, WriteError
from litreview.models.paper import Paper

logger = logging.getLogger(__name__)

STORAGE_KEY = "literaturePapers"
DEFAULT_QUOTA_BYTES = 5 * 1024 * 1024
THUMBNAIL_LIMIT = 50_000


class FallbackStore:
    """Stores a simplified copy of the catalog when the record store is down.

    Binaries are never written and oversized thumbnails are dropped; the
    whole payload must fit into ``quota_bytes``.
    """

    def __init__(
        self,
        path: Path,
        quota_bytes: int = DEFAULT_QUOTA_BYTES,
        thumbnail_limit: int = THUMBNAIL_LIMIT,
    ):
        self.path = Path(path)
        self.quota_bytes = quota_bytes
        self.thumbnail_limit = thumbnail_limit

    def load(self) -> Optional[list[Paper]]:
        """Return the stored papers, or None when nothing usable is stored."""
        payload = self._read()
        raw = payload.get(STORAGE_KEY)
        if not isinstance(raw, list) or not raw:
            return None
        papers = []
        for item in raw:
            if isinstance(item, dict):
                papers.append(Paper.from_dict(item))
        return papers or None

    def save(self, papers: list[Paper]) -> None:
        """Replace the stored payload with *papers*.

        Raises:
            QuotaExceeded: If the serialized payload is larger than the quota;
                the previous payload is left in place
            WriteError: If the file cannot be written
        """
        payload = self._read()
        payload[STORAGE_KEY] = [self._prepare(p) for p in papers]
        text = json.dumps(payload, ensure_ascii=False)
        used = len(text.encode("utf-8"))
        if used > self.quota_bytes:
            logger.warning("Fallback payload of %d bytes exceeds quota %d", used, self.quota_bytes)
            raise QuotaExceeded(used, self.quota_bytes)
        self._write(text)
        logger.debug("Saved %d papers to fallback store (%d bytes)", len(papers), used)

    def clear(self) -> None:
        """Drop the stored paper payload."""
        payload = self._read()
        if STORAGE_KEY in payload:
            del payload[STORAGE_KEY]
            self._write(json.dumps(payload, ensure_ascii=False))

    def usage(self) -> dict[str, int]:
        used = self.path.stat().st_size if self.path.exists() else 0
        return {"used_bytes": used, "quota_bytes": self.quota_bytes}

    def _prepare(self, paper: Paper) -> dict[str, Any]:
        record = paper.to_dict()
        if record.get("thumbnail") and len(record["thumbnail"]) >= self.thumbnail_limit:
            record["thumbnail"] = None
        if record.get("originalThumbnail") and len(record["originalThumbnail"]) >= self.thumbnail_limit:
            record["originalThumbnail"] = None
        return record

    def _read(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.error("Failed to parse fallback store %s: %s", self.path, e)
            return {}
        return data if isinstance(data, dict) else {}

    def _write(self, text: str) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, "w", encoding="utf-8") as f:
                f.write(text)
        except OSError as e:
            raise WriteError(f"Cannot write fallback store {self.path}: {e}") from e
