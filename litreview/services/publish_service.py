"""Publish the site repository to GitHub Pages with git."""

import logging
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from litreview.errors import CatalogError, PreconditionFailed

logger = logging.getLogger(__name__)

DEFAULT_REPO_NAME = "literature-review-system"


@dataclass
class PublishResult:
    repo_url: str
    pages_url: str
    remote_added: bool
    next_steps: list[str] = field(default_factory=list)


def _git(args: list[str], cwd: Optional[Path]) -> subprocess.CompletedProcess:
    try:
        return subprocess.run(["git", *args], cwd=cwd, capture_output=True, text=True)
    except OSError as e:
        raise CatalogError(f"Cannot run git: {e}") from e


def _checked(args: list[str], cwd: Optional[Path]) -> None:
    result = _git(args, cwd)
    if result.returncode != 0:
        raise CatalogError(f"git {' '.join(args)} failed: {result.stderr.strip()}")


def publish_site(
    username: str,
    repo_name: str = DEFAULT_REPO_NAME,
    cwd: Optional[Path] = None,
) -> PublishResult:
    """Push the current repository to ``github.com/<username>/<repo_name>``.

    Adds ``origin`` when it is missing, renames the branch to ``main`` and
    pushes it.  Enabling GitHub Pages stays a manual step, listed in
    ``next_steps``.

    Raises:
        PreconditionFailed: If no username is given
        CatalogError: If a git command fails
    """
    if not username:
        raise PreconditionFailed("Please provide your GitHub username")

    repo_url = f"https://github.com/{username}/{repo_name}"
    pages_url = f"https://{username}.github.io/{repo_name}"
    logger.info("Deploying to %s", repo_url)

    remote_added = False
    if _git(["remote", "get-url", "origin"], cwd).returncode != 0:
        _checked(["remote", "add", "origin", f"{repo_url}.git"], cwd)
        remote_added = True
        logger.info("Added remote origin %s.git", repo_url)

    _checked(["branch", "-M", "main"], cwd)
    _checked(["push", "-u", "origin", "main"], cwd)

    return PublishResult(
        repo_url=repo_url,
        pages_url=pages_url,
        remote_added=remote_added,
        next_steps=[
            f"1. Visit {repo_url}",
            "2. Click Settings → Pages",
            "3. Source: Deploy from a branch",
            "4. Branch: main, Folder: / (root)",
            "5. Click Save",
            f"Your site will be available in a few minutes at {pages_url}",
        ],
    )
