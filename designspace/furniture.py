# furniture.py
import logging
import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from designspace import catalog, graph
from designspace.auth import get_current_user
from designspace.db import commit_or_raise, get_db
from designspace.errors import NotFound
from designspace.models import Furniture, User
from designspace.schemas import RatingIn
from designspace.serializers import furniture_out, ok

# --- Configuration & Setup ---
logger = logging.getLogger(__name__)
router = APIRouter(prefix="/furniture", tags=["Furniture"])

SORT_FIELDS = "^(name|price|popularity|rating|createdAt)$"


async def get_furniture_or_404(db: AsyncSession, furniture_id: uuid.UUID) -> Furniture:
    item = await db.get(Furniture, furniture_id)
    if item is None or not item.is_active:
        raise NotFound("Furniture not found")
    return item


def listing(result: catalog.Page) -> dict:
    return {"furniture": [furniture_out(f) for f in result.items], "pagination": result.pagination}


# ===================================================================
# Listings
# ===================================================================

@router.get("/", summary="Browse the furniture catalog")
async def list_furniture(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    search: Optional[str] = Query(None, max_length=100),
    category: Optional[str] = None,
    subcategory: Optional[str] = Query(None, max_length=50),
    min_price: Optional[float] = Query(None, alias="minPrice", ge=0),
    max_price: Optional[float] = Query(None, alias="maxPrice", ge=0),
    brand: Optional[str] = Query(None, max_length=50),
    style: Optional[str] = None,
    in_stock: Optional[bool] = Query(None, alias="inStock"),
    featured: Optional[bool] = None,
    tags: Optional[str] = None,
    materials: Optional[str] = None,
    colors: Optional[str] = None,
    sort_by: str = Query("popularity", alias="sortBy", pattern=SORT_FIELDS),
    sort_order: str = Query("desc", alias="sortOrder", pattern="^(asc|desc)$"),
    db: AsyncSession = Depends(get_db),
):
    """
    Filtered, paginated catalog page plus the filter values of the whole
    active catalog. `tags`, `materials` and `colors` take comma-separated lists;
    colours are matched by hex code, with or without the leading "#".
    """
    flt = catalog.FurnitureFilter(
        category=category,
        subcategory=subcategory,
        min_price=min_price,
        max_price=max_price,
        brand=brand,
        style=style,
        in_stock=in_stock,
        featured=featured,
        tags=catalog.split_csv(tags),
        materials=catalog.split_csv(materials),
        colors=catalog.split_csv(colors),
    )
    result = await catalog.search_furniture(
        db, flt, sort_by=sort_by, sort_order=sort_order, text=search, page=page, limit=limit
    )
    return ok({**listing(result), "filters": await catalog.furniture_facets(db)})


@router.get("/categories", summary="Furniture categories with counts")
async def furniture_categories(db: AsyncSession = Depends(get_db)):
    return ok({"categories": await catalog.category_summary(db, Furniture)})


@router.get("/featured", summary="Featured furniture")
async def featured_furniture(limit: int = Query(10, ge=1, le=50), db: AsyncSession = Depends(get_db)):
    items = await catalog.featured(db, Furniture, limit=limit)
    return ok({"furniture": [furniture_out(f) for f in items]})


@router.get("/trending", summary="Trending furniture")
async def trending_furniture(
    limit: int = Query(10, ge=1, le=50),
    period: str = Query("week", pattern="^(day|week|month)$"),
    db: AsyncSession = Depends(get_db),
):
    items = await catalog.trending(db, period=period, limit=limit)
    return ok({"furniture": [furniture_out(f) for f in items], "period": period})


@router.get("/search", summary="Full-text furniture search")
async def search_furniture(
    q: str = Query(..., min_length=1, max_length=100),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
):
    result = await catalog.search_furniture(db, catalog.FurnitureFilter(), text=q, page=page, limit=limit)
    return ok({**listing(result), "query": q})


@router.get("/category/{category}", summary="Furniture in one category")
async def furniture_by_category(
    category: str,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    sort_by: str = Query("popularity", alias="sortBy", pattern=SORT_FIELDS),
    sort_order: str = Query("desc", alias="sortOrder", pattern="^(asc|desc)$"),
    db: AsyncSession = Depends(get_db),
):
    result = await catalog.search_furniture(
        db, catalog.FurnitureFilter(category=category),
        sort_by=sort_by, sort_order=sort_order, page=page, limit=limit,
    )
    return ok({**listing(result), "category": category})


# ===================================================================
# Single item
# ===================================================================

@router.get("/{furniture_id}", summary="Get a furniture item")
async def get_furniture(furniture_id: uuid.UUID, db: AsyncSession = Depends(get_db)):
    """Each view bumps the item's popularity."""
    item = await get_furniture_or_404(db, furniture_id)
    await graph.increment_popularity(db, Furniture, item.id)
    await commit_or_raise(db, "Server error while fetching furniture")
    await db.refresh(item)

    similar = await catalog.similar(db, item)
    return ok({"furniture": furniture_out(item), "similar": [furniture_out(f) for f in similar]})


@router.post("/{furniture_id}/rate", summary="Rate a furniture item")
async def rate_furniture(
    furniture_id: uuid.UUID,
    payload: RatingIn,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    item = await get_furniture_or_404(db, furniture_id)
    average, count = await graph.record_rating(db, Furniture, item.id, payload.rating)
    await commit_or_raise(db, "Server error while rating furniture")
    return ok({"averageRating": average, "ratingCount": count}, "Furniture rated successfully")
