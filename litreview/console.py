"""Console UI for terminal output using Rich."""

from typing import Any, Optional

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from litreview.models.filters import Page
from litreview.models.paper import Paper


def format_size(num_bytes: int) -> str:
    """Human readable byte count (``1.5 MB``)."""
    if num_bytes < 1024:
        return f"{num_bytes} Bytes"
    size = float(num_bytes)
    for unit in ("KB", "MB"):
        size /= 1024
        if size < 1024:
            return f"{size:.2f} {unit}"
    return f"{size / 1024:.2f} GB"


class ConsoleUI:
    """Rich-based console UI for paper display and notifications."""

    def __init__(self, console: Optional[Console] = None):
        """Initialize console."""
        self._console = console or Console()

    @property
    def console(self) -> Console:
        return self._console

    def info(self, message: str) -> None:
        """Print an info message."""
        self._console.print(message)

    def success(self, message: str) -> None:
        """Print a success message in green."""
        self._console.print(f"[green]{message}[/green]")

    def warning(self, message: str) -> None:
        """Print a warning message in yellow."""
        self._console.print(f"[yellow]Warning:[/yellow] {message}")

    def error(self, message: str) -> None:
        """Print an error message in red."""
        self._console.print(f"[red]Error:[/red] {message}")

    def display_page(self, page: Page, title: str = "Papers") -> None:
        """Display one listing page followed by its navigation line."""
        self.display_papers(page.items, title=f"{title} ({page.total} matching)")
        self._console.print(f"Page {page.page} of {page.total_pages}")

    def display_papers(self, papers: list[Paper], title: str = "Papers") -> None:
        """Display papers in a formatted table.

        Args:
            papers: List of papers to display
            title: Table title
        """
        table = Table(title=title)
        table.add_column("ID", overflow="fold")
        table.add_column("Year", justify="right")
        table.add_column("Title", overflow="fold")
        table.add_column("Authors", overflow="fold")
        table.add_column("Journal", overflow="fold")
        table.add_column("Area")
        table.add_column("Cites", justify="right")
        table.add_column("PDF", justify="center")

        for paper in papers:
            authors = ", ".join(paper.authors[:3]) + (" et al." if len(paper.authors) > 3 else "")
            table.add_row(
                paper.id or "-",
                str(paper.year) if paper.year else "-",
                paper.title,
                authors or "-",
                paper.journal or "-",
                paper.research_area,
                str(paper.citations),
                "yes" if paper.has_file else "-",
            )

        if papers:
            self._console.print(table)
        else:
            self._console.print("No papers found.")

    def paper_detail(self, paper: Paper) -> None:
        """Show every field of one paper."""
        rows = [
            ("Authors", ", ".join(paper.authors) or "-"),
            ("Year", str(paper.year or "-")),
            ("Journal", paper.journal or "-"),
            ("Research Field", paper.research_area),
            ("Methodology", paper.methodology),
            ("Study Type", paper.study_type),
            ("Keywords", ", ".join(paper.keywords) or "-"),
            ("Citations", f"{paper.citations} (h-index {paper.h_index})"),
            ("Downloads", str(paper.downloads)),
            ("DOI", paper.doi or "-"),
            ("PDF", paper.original_file_name or ("available" if paper.has_file else "-")),
            ("Thumbnail", "custom" if paper.thumbnail and paper.thumbnail != paper.original_thumbnail
                else ("generated" if paper.thumbnail else "-")),
        ]
        table = Table(show_header=False, box=None)
        table.add_column(style="bold")
        table.add_column(overflow="fold")
        for label, value in rows:
            table.add_row(label, value)
        self._console.print(Panel(table, title=paper.title, subtitle=paper.id or ""))
        if paper.abstract:
            self._console.print(paper.abstract)

    def upload_results(self, outcomes: list[Any]) -> None:
        """Summarize a file-ingest batch."""
        ok = [o for o in outcomes if o.success]
        failed = [o for o in outcomes if not o.success]
        if ok:
            self.success(f"Successfully processed {len(ok)} file(s)")
        for outcome in failed:
            self.error(f"{outcome.file_name}: {outcome.error}")
        if failed:
            self.warning(f"{len(failed)} file(s) failed to process")

    def storage_report(self, info: dict[str, Any]) -> None:
        """Print storage usage of both stores."""
        table = Table(title="Storage usage")
        table.add_column("Store")
        table.add_column("Usage", overflow="fold")

        fallback = info.get("fallback", {})
        table.add_row(
            "Fallback store",
            f"{format_size(fallback.get('used_bytes', 0))} of {format_size(fallback.get('quota_bytes', 0))}",
        )
        record = info.get("record_store")
        if record:
            table.add_row(
                "Record store",
                f"{record['papers']} papers, {record['pdfs']} PDFs "
                f"({format_size(record['pdf_bytes'])}), {record['thumbnails']} thumbnails, "
                f"database {format_size(record['db_bytes'])}",
            )
        else:
            table.add_row("Record store", "unavailable")
        self._console.print(table)
        self._console.print(f"Active backend: [bold]{info.get('backend')}[/bold], {info.get('papers', 0)} papers in memory")

    def upload_progress(self, progress: dict[str, Any]) -> None:
        """Print one progress event of a release deploy."""
        if "current" in progress:
            status = "[green]ok[/green]" if progress.get("status") == "uploaded" else f"[red]{progress.get('error')}[/red]"
            self._console.print(f"  [{progress['current']}/{progress['total']}] {progress['file_name']} {status}")
        elif progress.get("message"):
            self._console.print(f"[bold]{progress['message']}[/bold]")

    def instructions(self, lines: list[str], title: str = "Next steps") -> None:
        self._console.print(Panel("\n".join(lines), title=title))
