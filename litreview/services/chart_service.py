"""Catalog charts rendered to PNG with matplotlib."""

import logging
from collections import Counter
from pathlib import Path

import matplotlib

matplotlib.use("Agg")
import matplotlib.pyplot as plt  # noqa: E402

from litreview.models.paper import Paper  # noqa: E402

logger = logging.getLogger(__name__)

CITATION_BUCKETS = (("0-10", 0, 10), ("11-30", 11, 30), ("31-50", 31, 50), ("51+", 51, None))
CHART_NAMES = ("timeline", "research_areas", "methodology", "citations")


def citation_distribution(papers: list[Paper]) -> dict[str, int]:
    """Count papers per citation bucket."""
    counts = {label: 0 for label, _, _ in CITATION_BUCKETS}
    for paper in papers:
        for label, low, high in CITATION_BUCKETS:
            if paper.citations >= low and (high is None or paper.citations <= high):
                counts[label] += 1
                break
    return counts


class ChartService:
    """Renders the four overview charts of a paper collection."""

    def __init__(self, output_dir: Path, dpi: int = 120):
        self.output_dir = Path(output_dir)
        self.dpi = dpi

    def render_all(self, papers: list[Paper]) -> dict[str, Path]:
        """Render every chart and return chart name → PNG path."""
        self.output_dir.mkdir(parents=True, exist_ok=True)
        paths = {
            "timeline": self.timeline(papers),
            "research_areas": self.research_areas(papers),
            "methodology": self.methodology(papers),
            "citations": self.citations(papers),
        }
        logger.info("Rendered %d charts to %s", len(paths), self.output_dir)
        return paths

    def timeline(self, papers: list[Paper]) -> Path:
        """Line chart of papers published per year."""
        counts = Counter(p.year for p in papers if p.year)
        years = sorted(counts)
        fig, ax = plt.subplots(figsize=(8, 4))
        ax.plot(years, [counts[y] for y in years], marker="o", color="#3b82f6")
        ax.fill_between(years, [counts[y] for y in years], alpha=0.1, color="#3b82f6")
        ax.set_title("Publication Timeline")
        ax.set_xlabel("Year")
        ax.set_ylabel("Papers")
        return self._save(fig, "timeline")

    def research_areas(self, papers: list[Paper]) -> Path:
        """Pie chart of the research-area share."""
        counts = Counter(p.research_area for p in papers if p.research_area)
        fig, ax = plt.subplots(figsize=(6, 6))
        if counts:
            ax.pie(list(counts.values()), labels=list(counts.keys()), autopct="%1.0f%%")
        ax.set_title("Research Field Distribution")
        return self._save(fig, "research_areas")

    def methodology(self, papers: list[Paper]) -> Path:
        """Bar chart of methodology counts."""
        counts = Counter(p.methodology for p in papers if p.methodology)
        fig, ax = plt.subplots(figsize=(8, 4))
        ax.bar(list(counts.keys()), list(counts.values()), color="#10b981")
        ax.set_title("Research Methodology Distribution")
        ax.set_ylabel("Papers")
        ax.tick_params(axis="x", labelrotation=30)
        return self._save(fig, "methodology")

    def citations(self, papers: list[Paper]) -> Path:
        """Bar chart of papers per citation bucket."""
        dist = citation_distribution(papers)
        fig, ax = plt.subplots(figsize=(6, 4))
        ax.bar(list(dist.keys()), list(dist.values()), color="#f59e0b")
        ax.set_title("Citation Distribution")
        ax.set_xlabel("Citations")
        ax.set_ylabel("Papers")
        return self._save(fig, "citations")

    def _save(self, fig, name: str) -> Path:
        path = self.output_dir / f"{name}.png"
        path.parent.mkdir(parents=True, exist_ok=True)
        fig.tight_layout()
        fig.savefig(path, dpi=self.dpi)
        plt.close(fig)
        return path
