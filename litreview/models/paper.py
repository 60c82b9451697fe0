"""Paper data model."""

import random
import string
import time
from dataclasses import dataclass, field, replace
from typing import Any, Optional

RESEARCH_AREAS = (
    "Accessible Interaction",
    "HCI New Wearable Devices",
    "Immersive Interaction",
    "Mobile Device",
    "Special Scenarios",
    "General",
)
DEFAULT_AREA = "General"
DEFAULT_METHODOLOGY = "Experimental"
DEFAULT_STUDY_TYPE = "Empirical"
PLACEHOLDER_URL = "#"

# Python attribute → wire (JSON) key
_WIRE_NAMES: dict[str, str] = {
    "id": "id",
    "title": "title",
    "authors": "authors",
    "year": "year",
    "journal": "journal",
    "research_area": "researchArea",
    "methodology": "methodology",
    "study_type": "studyType",
    "keywords": "keywords",
    "citations": "citations",
    "h_index": "hIndex",
    "downloads": "downloads",
    "abstract": "abstract",
    "doi": "doi",
    "pdf_url": "pdfUrl",
    "website_url": "websiteUrl",
    "thumbnail": "thumbnail",
    "original_thumbnail": "originalThumbnail",
    "original_file_name": "originalFileName",
    "pdf_file_size": "pdfFileSize",
    "is_persistent_pdf": "isPersistentPDF",
    "date_added": "dateAdded",
}

_BASE36 = string.digits + string.ascii_lowercase


def generate_paper_id() -> str:
    """Return a new id of the form ``paper_<epoch ms>_<9 base36 chars>``."""
    suffix = "".join(random.choices(_BASE36, k=9))
    return f"paper_{int(time.time() * 1000)}_{suffix}"


def derive_h_index(citations: int) -> int:
    """H-index proxy used throughout the catalog."""
    return max(citations, 0) // 3


@dataclass
class Paper:
    """Represents a research paper with metadata."""

    title: str
    authors: list[str] = field(default_factory=list)
    year: Optional[int] = None
    journal: str = ""
    research_area: str = DEFAULT_AREA
    methodology: str = DEFAULT_METHODOLOGY
    study_type: str = DEFAULT_STUDY_TYPE
    keywords: list[str] = field(default_factory=list)
    citations: int = 0
    h_index: int = 0
    downloads: int = 0
    abstract: str = ""
    doi: str = ""
    pdf_url: str = PLACEHOLDER_URL
    website_url: str = PLACEHOLDER_URL
    thumbnail: Optional[str] = None
    original_thumbnail: Optional[str] = None
    original_file_name: Optional[str] = None
    pdf_file_size: Optional[int] = None
    is_persistent_pdf: bool = False
    date_added: Optional[str] = None

    # Set once the paper is added to a catalog
    id: Optional[str] = None

    # In-memory PDF bytes, never serialized
    pdf_data: Optional[bytes] = field(default=None, repr=False, compare=False)

    @property
    def venue(self) -> str:
        return self.journal

    @property
    def has_file(self) -> bool:
        return bool(self.pdf_data) or self.is_persistent_pdf or self.pdf_url not in ("", PLACEHOLDER_URL)

    def copy(self, **changes: Any) -> "Paper":
        """Return a shallow copy with list fields duplicated."""
        changes.setdefault("authors", list(self.authors))
        changes.setdefault("keywords", list(self.keywords))
        return replace(self, **changes)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the camelCase wire form (no binary payload)."""
        data: dict[str, Any] = {}
        for attr, key in _WIRE_NAMES.items():
            value = getattr(self, attr)
            if isinstance(value, list):
                value = list(value)
            data[key] = value
        return data

    def to_metadata(self) -> dict[str, Any]:
        """Lightweight projection used in listings: no binaries or images."""
        return {
            "id": self.id,
            "title": self.title,
            "authors": list(self.authors),
            "year": self.year,
            "venue": self.journal,
            "journal": self.journal,
            "researchArea": self.research_area,
            "methodology": self.methodology,
            "studyType": self.study_type,
            "keywords": list(self.keywords),
            "citations": self.citations,
            "downloads": self.downloads,
            "hIndex": self.h_index,
            "abstract": self.abstract,
            "doi": self.doi,
            "websiteUrl": self.website_url,
            "dateAdded": self.date_added,
            "hasFile": self.has_file,
            "hasThumbnail": bool(self.thumbnail),
            "dataFile": f"papers/{self.id}.json",
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Paper":
        """Build a Paper from its wire form.

        Expects an already-canonical record (as written by :meth:`to_dict`);
        untrusted input goes through ``normalize_record`` instead.
        """
        kwargs: dict[str, Any] = {}
        for attr, key in _WIRE_NAMES.items():
            if key in data and data[key] is not None:
                kwargs[attr] = data[key]
        if "journal" not in kwargs and data.get("venue"):
            kwargs["journal"] = data["venue"]
        kwargs.setdefault("title", "Untitled")
        kwargs["authors"] = list(kwargs.get("authors") or [])
        kwargs["keywords"] = list(kwargs.get("keywords") or [])
        if kwargs.get("id") is not None:
            kwargs["id"] = str(kwargs["id"])
        return cls(**kwargs)
