"""Utility functions."""

from litreview.utils.text import (
    classify_research_area,
    clean_abstract,
    clean_title,
    extract_paper_info,
    normalize_doi,
    parse_year,
)

__all__ = [
    "classify_research_area",
    "clean_abstract",
    "clean_title",
    "extract_paper_info",
    "normalize_doi",
    "parse_year",
]
