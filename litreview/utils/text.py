"""Text utilities: DOI/title/abstract cleaning and PDF text heuristics."""

import re
from datetime import datetime
from typing import Any, Optional

from bs4 import BeautifulSoup

# DOI regex pattern: 10.XXXX/... format
DOI_RE = re.compile(r"\b10\.\d{4,9}/[-._;()/:A-Z0-9]+\b", re.IGNORECASE)

# Keyword lists used to guess a research area from title and first-page text
AREA_KEYWORDS: dict[str, list[str]] = {
    "Accessible Interaction": [
        "accessibility", "impairment", "disability", "visually impaired",
        "motor impairment", "blind", "deaf", "assistive", "accessible",
        "touchscreen", "motor disabilities", "visual disabilities",
    ],
    "HCI New Wearable Devices": [
        "wearable", "earput", "behind-the-ear", "ear-based", "clothing buttons",
        "wearable device", "smart watch", "fitness tracker",
        "augmented reality glasses", "ear-worn", "button", "clothing",
    ],
    "Immersive Interaction": [
        "mixed reality", "virtual reality", "immersive", "vr", "mr",
        "digital shapes", "virtual environment", "desktop virtual reality",
        "presentation", "boundary", "immersion", "virtual world",
    ],
    "Mobile Device": [
        "mobile", "smartphone", "finger", "gesture", "touch interaction",
        "one-handed", "mobile input", "finger-grained", "smart devices",
        "touch", "mobile device",
    ],
    "Special Scenarios": [
        "conductor", "musical", "string instruments", "performance",
        "sleight of hand", "finger motion", "expressiveness", "visualization",
        "musical interface", "gesture elicitation", "interface morphologies",
    ],
}


def normalize_doi(doi: str) -> str:
    """Normalize DOI by removing URL prefixes and converting to lowercase."""
    doi = doi.strip()
    for prefix in ("https://doi.org/", "http://doi.org/", "https://dx.doi.org/", "http://dx.doi.org/"):
        doi = doi.replace(prefix, "")
    return doi.strip().lower()


def clean_title(text: str) -> str:
    """Clean title by removing MathML/HTML tags and normalizing whitespace.

    Returns:
        Cleaned title string, or "Untitled" if empty
    """
    if not text or not isinstance(text, str):
        return text or "Untitled"

    text = re.sub(r"<math[\s>].*?</math>", " ", text, flags=re.DOTALL | re.IGNORECASE)
    text = re.sub(r"<[^>]+>", " ", text)
    text = (
        text.replace("&nbsp;", " ")
        .replace("&amp;", "&")
        .replace("&lt;", "<")
        .replace("&gt;", ">")
        .replace("&quot;", '"')
        .replace("&#39;", "'")
    )
    text = " ".join(text.split()).strip()
    return text or "Untitled"


# ---------------------------------------------------------------------------
# LaTeX → plain-text conversion
# ---------------------------------------------------------------------------

_GREEK = "alpha beta gamma delta epsilon zeta eta theta iota kappa lambda mu nu xi pi rho sigma tau upsilon phi chi psi omega"
_GREEK_CHARS = "αβγδεζηθικλμνξπρστυφχψω"
_LATEX_SYMBOLS = {"\\" + name: char for name, char in zip(_GREEK.split(), _GREEK_CHARS)}
_LATEX_SYMBOLS.update({
    r"\times": "×", r"\cdot": "·", r"\pm": "±", r"\leq": "≤", r"\geq": "≥",
    r"\neq": "≠", r"\approx": "≈", r"\sim": "~", r"\infty": "∞",
    r"\rightarrow": "→", r"\leftarrow": "←", r"\ldots": "…", r"\circ": "°",
})
_LATEX_CMD_RE = re.compile(
    "|".join(re.escape(k) for k in sorted(_LATEX_SYMBOLS, key=len, reverse=True))
)
_LATEX_PATTERNS: list[tuple[re.Pattern, str]] = [
    (re.compile(r"\\frac\s*\{([^}]*)\}\s*\{([^}]*)\}"), r"\1/\2"),
    (re.compile(r"\\sqrt\s*\{([^}]*)\}"), r"√(\1)"),
    (re.compile(r"\\(?:text|mathrm|mathbf|mathit|textit|emph)\s*\{([^}]*)\}"), r"\1"),
    (re.compile(r"\^\{([^}]*)\}"), r"^\1"),
    (re.compile(r"_\{([^}]*)\}"), r"_\1"),
]


def _latex_to_plain(text: str) -> str:
    """Best-effort conversion of inline LaTeX math to readable plain text."""
    text = re.sub(r"\$\$(.*?)\$\$", r" \1 ", text, flags=re.DOTALL)
    text = re.sub(r"\$(.*?)\$", r" \1 ", text)
    for pat, repl in _LATEX_PATTERNS:
        text = pat.sub(repl, text)
    text = _LATEX_CMD_RE.sub(lambda m: _LATEX_SYMBOLS[m.group()], text)
    text = text.replace("{", "").replace("}", "")
    return " ".join(text.split())


def clean_abstract(text: str) -> str:
    """Clean abstract text.

    1. Strip MathML blocks and HTML tags.
    2. Strip a leading "Abstract" prefix.
    3. Convert inline LaTeX math to plain-text Unicode.
    """
    if not text:
        return text or ""

    if "<" in text:
        soup = BeautifulSoup(text, "html.parser")
        for math_tag in soup.find_all(["math", "mml:math"]):
            math_tag.decompose()
        text = soup.get_text(" ")

    text = re.sub(r"^\s*abstract[\s.:;—–-]*", "", text, flags=re.IGNORECASE).strip()
    return _latex_to_plain(text).strip()


def parse_year(value: Any) -> Optional[int]:
    """Coerce ``2021``, ``"2021"`` or a date string like ``"May 3, 2021"`` to a year."""
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return int(value)
    s = str(value).strip()
    if re.fullmatch(r"\d{4}", s):
        return int(s)
    from dateutil import parser as dtparser

    try:
        return dtparser.parse(s, default=datetime(1, 1, 1)).year
    except (ValueError, OverflowError):
        return None


def classify_research_area(text: str) -> str:
    """Return the first research area whose keyword occurs in *text*."""
    text_lower = (text or "").lower()
    for area, keywords in AREA_KEYWORDS.items():
        for keyword in keywords:
            if keyword in text_lower:
                return area
    return "General"


def extract_paper_info(text: str, current_year: Optional[int] = None) -> dict[str, Any]:
    """Heuristically pull bibliographic fields out of the first PDF pages.

    Args:
        text: Plain text of the first pages (newline separated)
        current_year: Upper bound for detected years (defaults to this year)

    Returns:
        Dict with title, authors, year, journal, abstract, keywords and doi;
        undetected fields are None or empty
    """
    current_year = current_year or datetime.now().year
    info: dict[str, Any] = {
        "title": None,
        "authors": [],
        "year": None,
        "journal": None,
        "abstract": None,
        "keywords": [],
        "doi": None,
    }

    # Title: first reasonably long line among the first five
    lines = [line.strip() for line in text.split("\n") if line.strip()]
    for line in lines[:5]:
        if 20 < len(line) < 200 and "@" not in line and "Abstract" not in line:
            info["title"] = line
            break

    doi_match = re.search(r"(?:DOI|doi)[\s:]*(\d{2}\.\d{4,9}/\S+)", text, re.IGNORECASE)
    if doi_match:
        info["doi"] = normalize_doi(doi_match.group(1))
    else:
        bare = DOI_RE.search(text)
        if bare:
            info["doi"] = normalize_doi(bare.group(0))

    # Most recent plausible year
    years = [int(y) for y in re.findall(r"\b(?:19|20)\d{2}\b", text)]
    years = [y for y in years if 1990 <= y <= current_year]
    if years:
        info["year"] = max(years)

    abstract_match = re.search(
        r"abstract[\s\n]*(.{100,1000}?)(?:\n\n|keywords|introduction)",
        text,
        re.IGNORECASE | re.DOTALL,
    )
    if abstract_match:
        info["abstract"] = " ".join(abstract_match.group(1).split())

    keywords_match = re.search(
        r"keywords?[\s:\-]*(.{10,200}?)(?:\n\n|\d+\.|introduction)",
        text,
        re.IGNORECASE | re.DOTALL,
    )
    if keywords_match:
        parts = re.split(r"[,;]", keywords_match.group(1))
        info["keywords"] = [k.strip() for k in parts if len(k.strip()) > 1][:8]

    author_patterns = [
        r"([A-Z][a-z]+(?:\s+[A-Z][a-z]*)*(?:\s*,\s*[A-Z][a-z]+(?:\s+[A-Z][a-z]*)*)*)\s+(?:and|&)\s+([A-Z][a-z]+(?:\s+[A-Z][a-z]*)*)",
        r"([A-Z][a-z]+(?:\s+[A-Z]\.)*\s+[A-Z][a-z]+)(?:\s*,\s*([A-Z][a-z]+(?:\s+[A-Z]\.)*\s+[A-Z][a-z]+))*\s+et\s+al\.",
    ]
    for pattern in author_patterns:
        match = re.search(pattern, text)
        if match:
            names = re.split(r"\s+and\s+|\s*&\s*|,\s*", match.group(0))
            info["authors"] = [
                n.strip() for n in names if n.strip() and n.strip() not in ("et", "al.", "et al.")
            ]
            break

    venue_patterns = [
        r"(?:In\s+)?Proceedings\s+of\s+(.{5,50}?)(?:\s*,|\s*\d{4}|\n)",
        r"(?:Published\s+in\s+)?([A-Z][a-zA-Z\s&]+(?:Journal|Conference|Workshop|Symposium))",
    ]
    for i, pattern in enumerate(venue_patterns):
        match = re.search(pattern, text, re.IGNORECASE if i == 0 else 0)
        if match:
            info["journal"] = match.group(1).strip()
            break

    return info
