# templates.py
import logging
import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from pydantic import Field
from sqlalchemy.ext.asyncio import AsyncSession

from designspace import catalog, graph
from designspace.access import Operation, authorize_template, enforce
from designspace.auth import get_current_user, get_optional_user
from designspace.db import commit_or_raise, get_db
from designspace.errors import NotFound
from designspace.models import Template, User
from designspace.projects import load_project
from designspace.schemas import CamelModel, RatingIn
from designspace.serializers import design_out, ok, template_out
from designspace.tiers import plan_of, visible_tiers

# --- Configuration & Setup ---
logger = logging.getLogger(__name__)
router = APIRouter(prefix="/templates", tags=["Templates"])

TEMPLATE_CATEGORIES = "^(living|bedroom|kitchen|bathroom|office|outdoor|commercial|studio|dining)$"
DIFFICULTIES = "^(beginner|intermediate|advanced)$"
STYLES = (
    "^(modern|traditional|contemporary|minimalist|industrial|scandinavian|bohemian|rustic|mid-century|art-deco)$"
)
SORT_FIELDS = "^(name|popularity|usageCount|rating|createdAt|estimatedTime)$"


class UseTemplateRequest(CamelModel):
    project_id: uuid.UUID
    name: Optional[str] = Field(None, min_length=1, max_length=100)


async def get_template_or_404(db: AsyncSession, template_id: uuid.UUID) -> Template:
    template = await db.get(Template, template_id)
    if template is None or not template.is_active:
        raise NotFound("Template not found")
    return template


def tier_clause(user: Optional[User]):
    return Template.required_subscription.in_(visible_tiers(plan_of(user)))


def listing(result: catalog.Page) -> dict:
    return {
        "templates": [template_out(t, detail=False) for t in result.items],
        "pagination": result.pagination,
    }


# ===================================================================
# Listings
# ===================================================================

@router.get("/", summary="Browse templates")
async def list_templates(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    category: Optional[str] = Query(None, pattern=TEMPLATE_CATEGORIES),
    subcategory: Optional[str] = None,
    difficulty: Optional[str] = Query(None, pattern=DIFFICULTIES),
    style: Optional[str] = Query(None, pattern=STYLES),
    featured: Optional[bool] = None,
    premium: Optional[bool] = None,
    tags: Optional[str] = None,
    min_area: Optional[float] = Query(None, alias="minArea", ge=0),
    max_area: Optional[float] = Query(None, alias="maxArea", ge=0),
    search: Optional[str] = Query(None, max_length=100),
    sort_by: str = Query("popularity", alias="sortBy", pattern=SORT_FIELDS),
    sort_order: str = Query("desc", alias="sortOrder", pattern="^(asc|desc)$"),
    db: AsyncSession = Depends(get_db),
    current_user: Optional[User] = Depends(get_optional_user),
):
    """Only templates within the caller's plan are listed; anonymous callers see free ones."""
    plan = plan_of(current_user)
    flt = catalog.TemplateFilter(
        plan=plan,
        category=category,
        subcategory=subcategory,
        difficulty=difficulty,
        style=style,
        featured=featured,
        premium=premium,
        tags=catalog.split_csv(tags),
        min_area=min_area,
        max_area=max_area,
    )
    result = await catalog.search_templates(
        db, flt, sort_by=sort_by, sort_order=sort_order, text=search, page=page, limit=limit
    )
    return ok({**listing(result), "filters": await catalog.template_facets(db, plan)})


@router.get("/categories", summary="Template categories with counts")
async def template_categories(
    db: AsyncSession = Depends(get_db),
    current_user: Optional[User] = Depends(get_optional_user),
):
    return ok({"categories": await catalog.category_summary(db, Template, tier_clause(current_user))})


@router.get("/featured", summary="Featured templates")
async def featured_templates(
    limit: int = Query(10, ge=1, le=50),
    db: AsyncSession = Depends(get_db),
    current_user: Optional[User] = Depends(get_optional_user),
):
    items = await catalog.featured(db, Template, tier_clause(current_user), limit=limit)
    return ok({"templates": [template_out(t, detail=False) for t in items]})


@router.get("/search", summary="Full-text template search")
async def search_templates(
    q: str = Query(..., min_length=1, max_length=100),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    current_user: Optional[User] = Depends(get_optional_user),
):
    flt = catalog.TemplateFilter(plan=plan_of(current_user))
    result = await catalog.search_templates(db, flt, text=q, page=page, limit=limit)
    return ok({**listing(result), "query": q})


@router.get("/category/{category}", summary="Templates in one category")
async def templates_by_category(
    category: str,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    current_user: Optional[User] = Depends(get_optional_user),
):
    flt = catalog.TemplateFilter(plan=plan_of(current_user), category=category)
    result = await catalog.search_templates(db, flt, page=page, limit=limit)
    return ok({**listing(result), "category": category})


@router.get("/style/{style}", summary="Templates in one style")
async def templates_by_style(
    style: str,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    current_user: Optional[User] = Depends(get_optional_user),
):
    flt = catalog.TemplateFilter(plan=plan_of(current_user), style=style)
    result = await catalog.search_templates(db, flt, page=page, limit=limit)
    return ok({**listing(result), "style": style})


# ===================================================================
# Single template
# ===================================================================

@router.get("/{template_id}", summary="Get a template")
async def get_template(
    template_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: Optional[User] = Depends(get_optional_user),
):
    """Viewing counts as a use, on top of the explicit /use endpoint."""
    template = await get_template_or_404(db, template_id)
    enforce(authorize_template(template, current_user))

    await graph.increment_template_usage(db, template.id)
    await commit_or_raise(db, "Server error while fetching template")
    await db.refresh(template)

    similar = await catalog.similar(db, template, tier_clause(current_user))
    return ok({"template": template_out(template), "similar": [template_out(t, detail=False) for t in similar]})


@router.post("/{template_id}/use", status_code=status.HTTP_201_CREATED, summary="Create a design from a template")
async def use_template(
    template_id: uuid.UUID,
    payload: UseTemplateRequest,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    template = await get_template_or_404(db, template_id)
    enforce(authorize_template(template, current_user))
    project = await load_project(db, payload.project_id, current_user, Operation.CREATE_DESIGN)

    design = graph.instantiate_from_template(template, project.id, payload.name)
    db.add(design)
    await commit_or_raise(db, "Server error while using template")

    # Counted after the design exists; the two writes are independent.
    await graph.increment_template_usage(db, template.id)
    await commit_or_raise(db, "Server error while using template")
    logger.info(f"Template {template.id} used for design {design.id} in project {project.id}")
    return ok({"design": design_out(design)}, "Design created from template successfully")


@router.post("/{template_id}/rate", summary="Rate a template")
async def rate_template(
    template_id: uuid.UUID,
    payload: RatingIn,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    template = await get_template_or_404(db, template_id)
    enforce(authorize_template(template, current_user))
    average, count = await graph.record_rating(db, Template, template.id, payload.rating)
    await commit_or_raise(db, "Server error while rating template")
    return ok({"averageRating": average, "ratingCount": count}, "Template rated successfully")
