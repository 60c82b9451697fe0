"""Command-line interface handlers."""

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Any, Optional

from rich.logging import RichHandler
from rich.progress import Progress, SpinnerColumn, TextColumn

from litreview.config import GitHubConfig, Settings, save_github_config
from litreview.console import ConsoleUI
from litreview.context import CatalogContext, build_context
from litreview.errors import CatalogError, ValidationError
from litreview.models.filters import DEFAULT_SORT, SORT_KEYS, YEAR_MAX, YEAR_MIN, FilterState
from litreview.models.paper import RESEARCH_AREAS
from litreview.services.catalog_service import validate_fields
from litreview.services.chart_service import ChartService
from litreview.services.export_service import ExportOptions, export_csv, write_directory, write_zip
from litreview.services.ingest_service import AUTO_CATEGORY, manual_entry
from litreview.services.pdf_service import image_to_thumbnail
from litreview.services.publish_service import DEFAULT_REPO_NAME, publish_site

logger = logging.getLogger(__name__)


def configure_logging(verbose: bool = False, console=None) -> None:
    """Route log records through rich; ``verbose`` enables debug output."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True, show_path=verbose)],
        force=True,
    )


class LitReviewCLI:
    """CLI application for the literature catalog."""

    def __init__(self, settings: Optional[Settings] = None, context: Optional[CatalogContext] = None):
        """Initialize CLI with settings.

        Args:
            settings: Application settings (loaded from ``.metadata`` if not provided)
            context: Prebuilt context (built from *settings* if not provided)
        """
        self.settings = settings or Settings.load()
        self.ctx = context or build_context(self.settings)
        self.ui = self.ctx.ui
        self.catalog = self.ctx.catalog
        asyncio.run(self.catalog.load())

    # -- ingest / add ----------------------------------------------------

    def cmd_ingest(self, paths: list[Path], category: str = AUTO_CATEGORY) -> None:
        """Parse files and add every paper they contain."""
        with Progress(
            SpinnerColumn(),
            TextColumn("[bold blue]{task.description}"),
            console=self.ui.console,
            transient=True,
        ) as progress:
            progress.add_task(f"Processing {len(paths)} file(s)...", total=None)
            outcomes = self.ctx.ingest.ingest_files(paths, category)
        added = sum(len(o.paper_ids) for o in outcomes)
        self.ui.info(f"Papers added: [bold]{added}[/bold]")

    def cmd_add(self, fields: dict[str, Any]) -> None:
        """Add one manually entered paper."""
        validate_fields(fields)
        paper_id = self.catalog.add(manual_entry(fields))
        self.ui.success(f"Paper added successfully: {paper_id}")

    # -- listing ---------------------------------------------------------

    def cmd_list(self, state: FilterState, sort_key: str = DEFAULT_SORT, page: int = 1) -> None:
        self.catalog.apply_filters(state, sort_key)
        self.ui.display_page(self.catalog.paginate(page))

    def cmd_show(self, paper_id: str) -> None:
        self.ui.paper_detail(self._paper(paper_id))

    # -- mutations -------------------------------------------------------

    def cmd_edit(self, paper_id: str, changes: dict[str, Any]) -> None:
        """Edit a paper; unspecified fields keep their current value."""
        paper = self._paper(paper_id)
        fields: dict[str, Any] = {
            "title": paper.title,
            "authors": paper.authors,
            "journal": paper.journal,
            "year": paper.year,
            "research_area": paper.research_area,
            "methodology": paper.methodology,
            "study_type": paper.study_type,
            "abstract": paper.abstract,
            "keywords": paper.keywords,
            "citations": paper.citations,
            "downloads": paper.downloads,
            "doi": paper.doi,
        }
        fields.update(changes)
        self.catalog.edit(paper_id, fields)

    def cmd_thumbnail(
        self,
        paper_id: str,
        image: Optional[Path] = None,
        reset: bool = False,
        remove: bool = False,
    ) -> None:
        if reset:
            self.catalog.reset_thumbnail(paper_id)
            self.ui.success("Thumbnail reset to default")
        elif remove:
            self.catalog.remove_thumbnail(paper_id)
            self.ui.success("Thumbnail removed")
        elif image is not None:
            self.catalog.set_thumbnail(paper_id, image_to_thumbnail(image))
            self.ui.success("Thumbnail updated successfully")
        else:
            self.ui.warning("Nothing to do: pass --image, --reset or --remove")

    def cmd_delete(self, paper_id: str) -> None:
        self._paper(paper_id)
        self.catalog.delete(paper_id)
        self.ui.success(f"Deleted {paper_id}")

    # -- export / publish ------------------------------------------------

    def cmd_export(self, out_dir: Path, zip_path: Optional[Path] = None, hosted: bool = False) -> None:
        """Export the catalog as a static bundle directory or ZIP."""
        gh = self.settings.github
        options = ExportOptions(
            use_hosted_release=hosted,
            repo_owner=gh.owner or "your-username",
            repo_name=gh.repo or "your-repo",
            cdn_base=self.settings.cdn_base,
        )
        asyncio.run(self.catalog.resolve_static_files())
        bundle = self.ctx.exporter().export_bundle(options)
        if zip_path is not None:
            target = write_zip(bundle, zip_path)
        else:
            target = write_directory(bundle, out_dir)
        self.ui.success(
            f"Exported {len(bundle.json_files)} JSON files and {len(bundle.pdf_assets)} PDFs to {target}"
        )
        if hosted:
            self.ui.instructions(bundle.instructions()["steps"], title="Upload instructions")

    def cmd_deploy(self, out_dir: Path) -> None:
        """Export in hosted mode, upload PDFs to a release, write the final JSON."""
        gh = self.settings.github
        uploader = self.ctx.uploader()
        check = uploader.client.validate_config()
        if not check["valid"]:
            for issue in check["issues"]:
                self.ui.error(issue)
            return

        options = ExportOptions(
            use_hosted_release=True,
            repo_owner=gh.owner,
            repo_name=gh.repo,
            cdn_base=self.settings.cdn_base,
        )
        asyncio.run(self.catalog.resolve_static_files())
        bundle = self.ctx.exporter().export_bundle(options)
        outcome = asyncio.run(uploader.deploy(bundle, self.ui.upload_progress))
        write_directory(outcome.bundle, out_dir)

        summary = outcome.instructions["summary"]
        self.ui.success(
            f"Uploaded {summary['successful_uploads']}/{summary['total_pdfs']} PDFs to {outcome.release.html_url}"
        )
        self.ui.instructions(outcome.instructions["next_steps"], title="Deployment complete")

    def cmd_csv(self, path: Path, state: FilterState, sort_key: str = DEFAULT_SORT) -> None:
        papers = self.catalog.apply_filters(state, sort_key)
        export_csv(papers, path)
        self.ui.success(f"Exported {len(papers)} papers to {path}")

    def cmd_charts(self, out_dir: Optional[Path] = None) -> None:
        paths = ChartService(out_dir or self.settings.chart_dir).render_all(self.catalog.papers)
        for name, path in paths.items():
            self.ui.info(f"{name}: {path}")

    def cmd_storage(self) -> None:
        self.ui.storage_report(self.catalog.storage_info())

    def cmd_configure(self, owner: Optional[str], repo: Optional[str], token: Optional[str]) -> None:
        """Update and save the GitHub release target."""
        current = self.settings.github
        config = GitHubConfig(
            owner=owner or current.owner,
            repo=repo or current.repo,
            token=token or current.token,
        )
        save_github_config(self.settings.metadata_dir / "github.yaml", config)
        self.settings.update(github=config)
        self.ui.success(f"Release target set to {config.owner}/{config.repo}")

    def _paper(self, paper_id: str):
        paper = self.catalog.get(paper_id)
        if paper is None:
            raise CatalogError(f"No paper with id {paper_id}")
        return paper


def cmd_publish(username: str, repo_name: str, ui: ConsoleUI) -> None:
    """Push the site repository and print the GitHub Pages steps."""
    ui.info(f"Repository: https://github.com/{username}/{repo_name}")
    result = publish_site(username, repo_name)
    ui.success("Deployment complete!")
    ui.instructions(result.next_steps)


def cmd_serve(host: str, port: int) -> None:
    import uvicorn

    uvicorn.run("litreview.gui.app:create_app", factory=True, host=host, port=port)


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------

def _add_filter_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--query", "-q", default="", help="Search title, authors, abstract and keywords")
    parser.add_argument("--category", default="all", help="Research area (default: all)")
    parser.add_argument("--year-min", type=int, default=YEAR_MIN)
    parser.add_argument("--year-max", type=int, default=YEAR_MAX)
    parser.add_argument("--method", action="append", default=[], dest="methodologies",
                        help="Methodology (repeatable)")
    parser.add_argument("--type", action="append", default=[], dest="study_types",
                        help="Study type (repeatable)")
    parser.add_argument("--venue", default="")
    parser.add_argument("--cite-min", type=int, default=None)
    parser.add_argument("--cite-max", type=int, default=None)
    parser.add_argument(
        "--sort",
        default=DEFAULT_SORT,
        choices=SORT_KEYS,
        dest="sort_key",
        help=f"Sort order (default: {DEFAULT_SORT})",
    )


def _add_field_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--title")
    parser.add_argument("--authors", help="Comma separated author names")
    parser.add_argument("--year", type=int)
    parser.add_argument("--journal", help="Journal or venue")
    parser.add_argument("--area", dest="research_area", choices=RESEARCH_AREAS)
    parser.add_argument("--methodology")
    parser.add_argument("--study-type")
    parser.add_argument("--keywords", help="Comma separated keywords")
    parser.add_argument("--citations", type=int)
    parser.add_argument("--downloads", type=int)
    parser.add_argument("--abstract")
    parser.add_argument("--doi")


FIELD_NAMES = (
    "title", "authors", "year", "journal", "research_area", "methodology",
    "study_type", "keywords", "citations", "downloads", "abstract", "doi",
)


def filter_state_from_args(args: argparse.Namespace) -> FilterState:
    return FilterState(
        query=args.query,
        category=args.category,
        year_min=args.year_min,
        year_max=args.year_max,
        methodologies=set(args.methodologies),
        study_types=set(args.study_types),
        venue=args.venue,
        citation_min=args.cite_min,
        citation_max=args.cite_max,
    )


def fields_from_args(args: argparse.Namespace) -> dict[str, Any]:
    return {name: getattr(args, name) for name in FIELD_NAMES if getattr(args, name) is not None}


def create_parser() -> argparse.ArgumentParser:
    """Create argument parser for CLI.

    Returns:
        Configured ArgumentParser
    """
    parser = argparse.ArgumentParser(
        prog="litreview",
        description="Literature catalog: ingest, browse, export and publish papers",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    parser.add_argument("--base-dir", type=Path, default=None, help="Project directory holding .metadata/")

    subparsers = parser.add_subparsers(dest="command", required=True)

    ingest_parser = subparsers.add_parser("ingest", help="Add papers from PDF, JSON, CSV or DOC files")
    ingest_parser.add_argument("paths", nargs="+", type=Path)
    ingest_parser.add_argument(
        "--category",
        default=AUTO_CATEGORY,
        choices=(AUTO_CATEGORY, *RESEARCH_AREAS),
        help="Research area for every file (default: auto)",
    )

    add_parser = subparsers.add_parser("add", help="Add a paper manually")
    _add_field_arguments(add_parser)

    list_parser = subparsers.add_parser("list", help="List papers with filters")
    _add_filter_arguments(list_parser)
    list_parser.add_argument("--page", type=int, default=1)

    show_parser = subparsers.add_parser("show", help="Show one paper")
    show_parser.add_argument("id")

    edit_parser = subparsers.add_parser("edit", help="Edit paper fields")
    edit_parser.add_argument("id")
    _add_field_arguments(edit_parser)

    thumb_parser = subparsers.add_parser("thumbnail", help="Change a paper thumbnail")
    thumb_parser.add_argument("id")
    group = thumb_parser.add_mutually_exclusive_group(required=True)
    group.add_argument("--image", type=Path, help="Image file (max 5MB)")
    group.add_argument("--reset", action="store_true", help="Restore the generated thumbnail")
    group.add_argument("--remove", action="store_true", help="Remove the thumbnail")

    delete_parser = subparsers.add_parser("delete", help="Delete a paper")
    delete_parser.add_argument("id")

    export_parser = subparsers.add_parser("export", help="Export a static data bundle")
    export_parser.add_argument("--out", type=Path, default=Path("site"), help="Output directory (default: site)")
    export_parser.add_argument("--zip", type=Path, default=None, dest="zip_path", help="Write a ZIP archive instead")
    export_parser.add_argument("--hosted", action="store_true", help="Reference PDFs on the CDN instead of inlining")

    deploy_parser = subparsers.add_parser("deploy", help="Upload PDFs to a GitHub release and export")
    deploy_parser.add_argument("--out", type=Path, default=Path("site"))

    csv_parser = subparsers.add_parser("csv", help="Export the filtered listing as CSV")
    csv_parser.add_argument("path", type=Path)
    _add_filter_arguments(csv_parser)

    charts_parser = subparsers.add_parser("charts", help="Render catalog charts")
    charts_parser.add_argument("--out", type=Path, default=None)

    subparsers.add_parser("storage", help="Show storage usage")

    config_parser = subparsers.add_parser("configure", help="Set the GitHub release target")
    config_parser.add_argument("--owner")
    config_parser.add_argument("--repo")
    config_parser.add_argument("--token")

    publish_parser = subparsers.add_parser("publish", help="Push the site to GitHub Pages")
    publish_parser.add_argument("username")
    publish_parser.add_argument("--repo", default=DEFAULT_REPO_NAME)

    serve_parser = subparsers.add_parser("serve", help="Run the JSON API server")
    serve_parser.add_argument("--host", default="127.0.0.1")
    serve_parser.add_argument("--port", type=int, default=8000)

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point for CLI."""
    parser = create_parser()
    args = parser.parse_args(argv)
    ui = ConsoleUI()
    configure_logging(args.verbose, ui.console)

    try:
        if args.command == "publish":
            cmd_publish(args.username, args.repo, ui)
            return 0
        if args.command == "serve":
            cmd_serve(args.host, args.port)
            return 0

        settings = Settings.load(args.base_dir)
        cli = LitReviewCLI(settings, build_context(settings, ui))

        if args.command == "ingest":
            cli.cmd_ingest(args.paths, args.category)
        elif args.command == "add":
            cli.cmd_add(fields_from_args(args))
        elif args.command == "list":
            cli.cmd_list(filter_state_from_args(args), args.sort_key, args.page)
        elif args.command == "show":
            cli.cmd_show(args.id)
        elif args.command == "edit":
            cli.cmd_edit(args.id, fields_from_args(args))
        elif args.command == "thumbnail":
            cli.cmd_thumbnail(args.id, args.image, args.reset, args.remove)
        elif args.command == "delete":
            cli.cmd_delete(args.id)
        elif args.command == "export":
            cli.cmd_export(args.out, args.zip_path, args.hosted)
        elif args.command == "deploy":
            cli.cmd_deploy(args.out)
        elif args.command == "csv":
            cli.cmd_csv(args.path, filter_state_from_args(args), args.sort_key)
        elif args.command == "charts":
            cli.cmd_charts(args.out)
        elif args.command == "storage":
            cli.cmd_storage()
        elif args.command == "configure":
            cli.cmd_configure(args.owner, args.repo, args.token)
    except ValidationError as e:
        ui.error(f"Please fill in all required fields correctly: {', '.join(e.fields)}")
        return 1
    except CatalogError as e:
        ui.error(str(e))
        return 1
    return 0


def run_cli() -> None:
    sys.exit(main())
