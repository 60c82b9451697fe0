"""Filter state plus the shared helpers for filtering, sorting and paging papers."""

import math
from collections import Counter
from dataclasses import dataclass, field
from typing import Optional

from litreview.models.paper import Paper

YEAR_MIN = 1900
YEAR_MAX = 2030
PAGE_SIZE = 12

SORT_KEYS = ("year-desc", "year-asc", "citations-desc", "citations-asc", "title-asc")
DEFAULT_SORT = "year-desc"


@dataclass
class FilterState:
    """Session filter settings; every active predicate must match."""

    query: str = ""
    category: str = "all"
    year_min: int = YEAR_MIN
    year_max: int = YEAR_MAX
    methodologies: set[str] = field(default_factory=set)
    study_types: set[str] = field(default_factory=set)
    venue: str = ""
    citation_min: Optional[int] = None
    citation_max: Optional[int] = None

    def matches(self, paper: Paper) -> bool:
        """Return True when *paper* satisfies every active predicate."""
        if self.query:
            haystack = " ".join(
                [
                    paper.title or "",
                    " ".join(paper.authors),
                    paper.abstract or "",
                    " ".join(paper.keywords),
                ]
            ).lower()
            if self.query.lower() not in haystack:
                return False

        if self.category != "all" and paper.research_area != self.category:
            return False

        year = paper.year if paper.year is not None else 0
        if year < self.year_min or year > self.year_max:
            return False

        if self.methodologies and paper.methodology not in self.methodologies:
            return False
        if self.study_types and paper.study_type not in self.study_types:
            return False
        if self.venue and paper.journal != self.venue:
            return False

        if self.citation_min is not None and paper.citations < self.citation_min:
            return False
        if self.citation_max is not None and paper.citations > self.citation_max:
            return False
        return True


@dataclass
class Facets:
    """Distinct filter values with per-value paper counts."""

    methodologies: dict[str, int]
    study_types: dict[str, int]
    venues: dict[str, int]
    research_areas: dict[str, int]


@dataclass
class Page:
    """One page of a paper listing."""

    items: list[Paper]
    page: int
    total_pages: int
    total: int

    @property
    def has_previous(self) -> bool:
        return self.page > 1

    @property
    def has_next(self) -> bool:
        return self.page < self.total_pages


def filter_papers(papers: list[Paper], state: FilterState) -> list[Paper]:
    """Return the papers matching *state*, in their original order."""
    return [p for p in papers if state.matches(p)]


def sort_papers(papers: list[Paper], sort_key: str = DEFAULT_SORT) -> list[Paper]:
    """Return a new, stably sorted list.

    Args:
        papers: Papers to sort
        sort_key: One of ``SORT_KEYS``; anything else sorts newest first

    Returns:
        Sorted copy of *papers*
    """
    if sort_key == "year-asc":
        return sorted(papers, key=lambda p: p.year or 0)
    if sort_key == "citations-desc":
        return sorted(papers, key=lambda p: p.citations, reverse=True)
    if sort_key == "citations-asc":
        return sorted(papers, key=lambda p: p.citations)
    if sort_key == "title-asc":
        return sorted(papers, key=lambda p: (p.title or "").casefold())
    # 'year-desc' or any unrecognized value
    return sorted(papers, key=lambda p: p.year or 0, reverse=True)


def paginate(papers: list[Paper], page: int, page_size: int = PAGE_SIZE) -> Page:
    """Slice *papers* into a page, clamping *page* into the valid range."""
    total = len(papers)
    total_pages = max(1, math.ceil(total / page_size))
    page = min(max(page, 1), total_pages)
    start = (page - 1) * page_size
    return Page(
        items=papers[start:start + page_size],
        page=page,
        total_pages=total_pages,
        total=total,
    )


def derive_facets(papers: list[Paper]) -> Facets:
    """Count distinct methodology, study type, venue and area values."""
    return Facets(
        methodologies=dict(Counter(p.methodology for p in papers if p.methodology)),
        study_types=dict(Counter(p.study_type for p in papers if p.study_type)),
        venues=dict(sorted(Counter(p.journal for p in papers if p.journal).items())),
        research_areas=dict(Counter(p.research_area for p in papers if p.research_area)),
    )


def split_list(value) -> list[str]:
    """Parse a comma / semicolon separated string (or a list) into clean items."""
    if value is None:
        return []
    if isinstance(value, (list, tuple, set)):
        return [str(v).strip() for v in value if str(v).strip()]
    s = str(value).replace(";", ",")
    return [item.strip() for item in s.split(",") if item.strip()]
