"""Common routes: version, facets, statistics, storage and release target."""

from dataclasses import asdict

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from litreview import __version__
from litreview.config import GitHubConfig, save_github_config
from litreview.context import CatalogContext
from litreview.models.filters import SORT_KEYS
from litreview.models.paper import RESEARCH_AREAS

router = APIRouter()


def get_context(request: Request) -> CatalogContext:
    """Dependency: the context attached to the running app."""
    return request.app.state.context


# ============================================================================
# Catalog overview
# ============================================================================


@router.get("/api/version")
async def version():
    return JSONResponse({"version": __version__})


@router.get("/api/facets")
async def facets(ctx: CatalogContext = Depends(get_context)):
    """Distinct filter values with counts, plus the fixed option lists."""
    data = asdict(ctx.catalog.facets())
    data["sort_keys"] = list(SORT_KEYS)
    data["areas"] = list(RESEARCH_AREAS)
    return JSONResponse(data)


@router.get("/api/stats")
async def stats(ctx: CatalogContext = Depends(get_context)):
    data = ctx.catalog.statistics()
    data["source"] = ctx.catalog.load_source.value if ctx.catalog.load_source else None
    return JSONResponse(data)


@router.get("/api/storage")
async def storage(ctx: CatalogContext = Depends(get_context)):
    return JSONResponse(ctx.catalog.storage_info())


# ============================================================================
# GitHub release target (/api/github)
# ============================================================================


class GitHubPayload(BaseModel):
    """Request body for updating the release target."""
    owner: str
    repo: str
    token: str | None = None


@router.get("/api/github")
async def get_github(ctx: CatalogContext = Depends(get_context)):
    """Return the release target; the token itself is never echoed."""
    gh = ctx.settings.github
    return JSONResponse({"owner": gh.owner, "repo": gh.repo, "has_token": bool(gh.token)})


@router.put("/api/github")
async def update_github(body: GitHubPayload, ctx: CatalogContext = Depends(get_context)):
    """Update the release target and persist it to ``github.yaml``."""
    config = GitHubConfig(
        owner=body.owner.strip(),
        repo=body.repo.strip(),
        token=(body.token or "").strip() or ctx.settings.github.token,
    )
    save_github_config(ctx.settings.metadata_dir / "github.yaml", config)
    ctx.settings.update(github=config)
    return JSONResponse({"owner": config.owner, "repo": config.repo, "has_token": bool(config.token)})
