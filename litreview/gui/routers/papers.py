"""Paper list, detail, PDF and mutation endpoints."""

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import JSONResponse, RedirectResponse, Response
from pydantic import BaseModel

from litreview.context import CatalogContext
from litreview.gui.routers.common import get_context
from litreview.models.filters import DEFAULT_SORT, YEAR_MAX, YEAR_MIN, FilterState, split_list
from litreview.models.paper import Paper
from litreview.services.catalog_service import validate_fields
from litreview.services.ingest_service import manual_entry

router = APIRouter()


def _listing_item(paper: Paper) -> dict:
    item = paper.to_metadata()
    item["thumbnail"] = paper.thumbnail
    return item


def _paper_or_404(ctx: CatalogContext, paper_id: str) -> Paper:
    paper = ctx.catalog.get(paper_id)
    if paper is None:
        raise HTTPException(status_code=404, detail=f"No paper with id {paper_id}")
    return paper


# ============================================================================
# Queries
# ============================================================================


@router.get("/api/papers")
async def list_papers(
    q: str = Query("", description="Search query"),
    category: str = Query("all", description="Research area or 'all'"),
    year_min: int = Query(YEAR_MIN),
    year_max: int = Query(YEAR_MAX),
    methodology: list[str] = Query([], description="Methodologies (repeatable)"),
    study_type: list[str] = Query([], description="Study types (repeatable)"),
    venue: str = Query("", description="Venue filter"),
    cite_min: int | None = Query(None),
    cite_max: int | None = Query(None),
    sort: str = Query(DEFAULT_SORT, description="Sort key"),
    page: int = Query(1, description="1-based page number"),
    ctx: CatalogContext = Depends(get_context),
):
    """Filter, sort and page the catalog."""
    state = FilterState(
        query=q,
        category=category,
        year_min=year_min,
        year_max=year_max,
        methodologies=set(methodology),
        study_types=set(study_type),
        venue=venue,
        citation_min=cite_min,
        citation_max=cite_max,
    )
    ctx.catalog.apply_filters(state, sort)
    result = ctx.catalog.paginate(page)
    return JSONResponse({
        "items": [_listing_item(p) for p in result.items],
        "page": result.page,
        "total_pages": result.total_pages,
        "total": result.total,
        "has_previous": result.has_previous,
        "has_next": result.has_next,
    })


@router.get("/api/papers/{paper_id}")
async def paper_detail(paper_id: str, ctx: CatalogContext = Depends(get_context)):
    return JSONResponse(_paper_or_404(ctx, paper_id).to_dict())


@router.get("/api/papers/{paper_id}/pdf")
async def paper_pdf(paper_id: str, ctx: CatalogContext = Depends(get_context)):
    """Serve the PDF bytes, or redirect to its CDN URL."""
    _paper_or_404(ctx, paper_id)
    data, url = await ctx.catalog.open_pdf(paper_id)
    if data is not None:
        return Response(content=data, media_type="application/pdf")
    if url:
        return RedirectResponse(url)
    raise HTTPException(status_code=404, detail="PDF file not available")


# ============================================================================
# Mutations
# ============================================================================


class PaperPayload(BaseModel):
    """Request body for manual entry and full-record edits."""
    title: str
    authors: list[str] | str
    year: int | None = None
    journal: str = ""
    research_area: str = "General"
    methodology: str = "Experimental"
    study_type: str = "Empirical"
    keywords: list[str] | str = []
    citations: int = 0
    downloads: int = 0
    abstract: str = ""
    doi: str = ""
    pdf_url: str | None = None
    website_url: str | None = None


class ThumbnailPayload(BaseModel):
    """Request body for replacing a thumbnail with an image data URL."""
    image: str


@router.post("/api/papers", status_code=201)
async def add_paper(body: PaperPayload, ctx: CatalogContext = Depends(get_context)):
    fields = body.model_dump()
    validate_fields(fields)
    paper_id = ctx.catalog.add(manual_entry(fields))
    return JSONResponse({"id": paper_id}, status_code=201)


@router.put("/api/papers/{paper_id}")
async def edit_paper(paper_id: str, body: PaperPayload, ctx: CatalogContext = Depends(get_context)):
    """Replace every editable field; 422 lists invalid fields."""
    _paper_or_404(ctx, paper_id)
    fields = body.model_dump(exclude={"pdf_url", "website_url"})
    fields["authors"] = split_list(fields["authors"])
    fields["keywords"] = split_list(fields["keywords"])
    paper = ctx.catalog.edit(paper_id, fields)
    return JSONResponse(paper.to_dict())


@router.put("/api/papers/{paper_id}/thumbnail")
async def set_thumbnail(paper_id: str, body: ThumbnailPayload, ctx: CatalogContext = Depends(get_context)):
    _paper_or_404(ctx, paper_id)
    if not body.image.startswith("data:image/"):
        raise HTTPException(status_code=422, detail="Please select a valid image file")
    paper = ctx.catalog.set_thumbnail(paper_id, body.image)
    return JSONResponse({"id": paper.id, "thumbnail": paper.thumbnail})


@router.post("/api/papers/{paper_id}/thumbnail/reset")
async def reset_thumbnail(paper_id: str, ctx: CatalogContext = Depends(get_context)):
    _paper_or_404(ctx, paper_id)
    paper = ctx.catalog.reset_thumbnail(paper_id)
    return JSONResponse({"id": paper.id, "thumbnail": paper.thumbnail})


@router.delete("/api/papers/{paper_id}/thumbnail")
async def remove_thumbnail(paper_id: str, ctx: CatalogContext = Depends(get_context)):
    _paper_or_404(ctx, paper_id)
    paper = ctx.catalog.remove_thumbnail(paper_id)
    return JSONResponse({"id": paper.id, "thumbnail": paper.thumbnail})


@router.delete("/api/papers/{paper_id}")
async def delete_paper(paper_id: str, ctx: CatalogContext = Depends(get_context)):
    _paper_or_404(ctx, paper_id)
    ctx.catalog.delete(paper_id)
    return JSONResponse({"deleted": paper_id})
