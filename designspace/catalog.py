# catalog.py
"""
Filter, sort, paginate and search over the furniture and template catalogs.

Queries are built as SQLAlchemy selects so the same code runs on SQLite and
PostgreSQL. Tag, material and colour hex membership is matched against the
JSON text of the list column; free text is ranked by a weighted match score over
name, description and brand.
"""

import math
from datetime import timedelta
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy import String, and_, case, cast, func, literal, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from designspace.models import Furniture, Template, utcnow
from designspace.settings import settings
from designspace.tiers import visible_tiers

# Sort keys a caller may ask for, mapped to columns.
FURNITURE_SORTS = {
    "popularity": Furniture.popularity,
    "price": Furniture.retail_price,
    "rating": Furniture.rating_average,
    "name": Furniture.name,
    "createdAt": Furniture.created_at,
}
TEMPLATE_SORTS = {
    "popularity": Template.popularity,
    "rating": Template.rating_average,
    "usageCount": Template.usage_count,
    "name": Template.name,
    "createdAt": Template.created_at,
    "estimatedTime": Template.estimated_time,
}

# Relevance weight of a term hit per column.
TEXT_WEIGHTS = {"name": 10, "brand": 5, "description": 2}


# ===================================================================
# Pagination
# ===================================================================

def clamp_page(page: Optional[int], limit: Optional[int]) -> tuple:
    page = max(1, int(page or 1))
    limit = min(settings.MAX_PAGE_SIZE, max(1, int(limit or settings.DEFAULT_PAGE_SIZE)))
    return page, limit


def pagination_meta(page: int, limit: int, total: int) -> Dict[str, Any]:
    total_pages = math.ceil(total / limit) if limit else 0
    return {
        "currentPage": page,
        "totalPages": total_pages,
        "totalItems": total,
        "itemsPerPage": limit,
        "hasNextPage": page < total_pages,
        "hasPrevPage": page > 1,
    }


@dataclass
class Page:
    items: List[Any]
    total: int
    page: int
    limit: int

    @property
    def pagination(self) -> Dict[str, Any]:
        return pagination_meta(self.page, self.limit, self.total)


# ===================================================================
# Filters
# ===================================================================

def contains_member(column, value: str):
    """Matches JSON list columns containing `value` (case-insensitive)."""
    return func.lower(cast(column, String)).contains(f'"{value.lower()}"', autoescape=True)


def any_member(column, values: Sequence[str]):
    return or_(*(contains_member(column, v) for v in values))


def any_color_hex(column, hexes: Sequence[str]):
    """Matches colour lists holding an entry whose hex is one of `hexes`."""
    return or_(*(
        func.lower(cast(column, String)).contains(f'"hex": "#{h.strip().lstrip("#").lower()}"', autoescape=True)
        for h in hexes
    ))


def ilike_contains(column, value: str):
    return func.lower(column).contains(value.lower(), autoescape=True)


def split_csv(value: Optional[str]) -> List[str]:
    if not value:
        return []
    return [part.strip() for part in value.split(",") if part.strip()]


@dataclass
class FurnitureFilter:
    category: Optional[str] = None
    subcategory: Optional[str] = None
    min_price: Optional[float] = None
    max_price: Optional[float] = None
    brand: Optional[str] = None
    style: Optional[str] = None
    in_stock: Optional[bool] = None
    featured: Optional[bool] = None
    tags: List[str] = field(default_factory=list)
    materials: List[str] = field(default_factory=list)
    colors: List[str] = field(default_factory=list)

    def clauses(self) -> list:
        out = [Furniture.is_active.is_(True)]
        if self.category:
            out.append(Furniture.category == self.category)
        if self.subcategory:
            out.append(ilike_contains(Furniture.subcategory, self.subcategory))
        if self.min_price is not None:
            out.append(Furniture.retail_price >= self.min_price)
        if self.max_price is not None:
            out.append(Furniture.retail_price <= self.max_price)
        if self.brand:
            out.append(ilike_contains(Furniture.brand, self.brand))
        if self.style:
            out.append(Furniture.style == self.style)
        if self.in_stock is not None:
            out.append(Furniture.in_stock.is_(self.in_stock))
        if self.featured is not None:
            out.append(Furniture.is_featured.is_(self.featured))
        if self.tags:
            out.append(any_member(Furniture.tags, self.tags))
        if self.materials:
            out.append(any_member(Furniture.materials, self.materials))
        if self.colors:
            out.append(any_color_hex(Furniture.colors, self.colors))
        return out


@dataclass
class TemplateFilter:
    plan: Optional[str] = None
    category: Optional[str] = None
    subcategory: Optional[str] = None
    difficulty: Optional[str] = None
    style: Optional[str] = None
    featured: Optional[bool] = None
    premium: Optional[bool] = None
    tags: List[str] = field(default_factory=list)
    min_area: Optional[float] = None
    max_area: Optional[float] = None

    def clauses(self) -> list:
        # Templates above the caller's tier are never listed.
        out = [
            Template.is_active.is_(True),
            Template.required_subscription.in_(visible_tiers(self.plan)),
        ]
        if self.category:
            out.append(Template.category == self.category)
        if self.subcategory:
            out.append(ilike_contains(Template.subcategory, self.subcategory))
        if self.difficulty:
            out.append(Template.difficulty == self.difficulty)
        if self.style:
            out.append(Template.style == self.style)
        if self.featured is not None:
            out.append(Template.is_featured.is_(self.featured))
        if self.premium is not None:
            out.append(Template.is_premium.is_(self.premium))
        if self.tags:
            out.append(any_member(Template.tags, self.tags))
        if self.min_area is not None:
            out.append(Template.total_area >= self.min_area)
        if self.max_area is not None:
            out.append(Template.total_area <= self.max_area)
        return out


# ===================================================================
# Text relevance
# ===================================================================

def relevance(model, text: str):
    """Weighted count of term hits; zero means no match at all."""
    terms = [t for t in text.lower().split() if t]
    score = literal(0)
    for term in terms:
        for name, weight in TEXT_WEIGHTS.items():
            column = getattr(model, name, None)
            if column is None:
                continue
            score = score + case((func.lower(func.coalesce(column, "")).contains(term, autoescape=True), weight), else_=0)
        score = score + case((contains_member(model.tags, term), TEXT_WEIGHTS["brand"]), else_=0)
    return score


# ===================================================================
# Search
# ===================================================================

async def search(
    db: AsyncSession,
    model,
    clauses: list,
    sorts: Dict[str, Any],
    sort_by: Optional[str] = None,
    sort_order: str = "desc",
    text: Optional[str] = None,
    page: Optional[int] = None,
    limit: Optional[int] = None,
) -> Page:
    """
    Runs one catalog query.

    With `text`, rows without any term hit are dropped and the rest are
    ordered by relevance first, then by the requested sort key.
    """
    page, limit = clamp_page(page, limit)
    sort_column = sorts.get(sort_by or "popularity", sorts["popularity"])
    ordering = sort_column.asc() if sort_order == "asc" else sort_column.desc()

    where = and_(*clauses)
    order_by = [ordering, model.id]
    if text and text.strip():
        score = relevance(model, text)
        where = and_(where, score > 0)
        order_by = [score.desc(), ordering, model.id]

    total = (await db.execute(select(func.count()).select_from(model).where(where))).scalar_one()
    rows = await db.execute(
        select(model).where(where).order_by(*order_by).offset((page - 1) * limit).limit(limit)
    )
    return Page(items=list(rows.scalars().all()), total=total, page=page, limit=limit)


async def search_furniture(db: AsyncSession, flt: FurnitureFilter, **kwargs) -> Page:
    return await search(db, Furniture, flt.clauses(), FURNITURE_SORTS, **kwargs)


async def search_templates(db: AsyncSession, flt: TemplateFilter, **kwargs) -> Page:
    return await search(db, Template, flt.clauses(), TEMPLATE_SORTS, **kwargs)


# ===================================================================
# Facets
# ===================================================================

async def _distinct(db: AsyncSession, column, *where) -> List[Any]:
    result = await db.execute(
        select(column).where(*where, column.is_not(None)).distinct().order_by(column)
    )
    return [value for value in result.scalars().all() if value not in ("", None)]


async def _json_members(db: AsyncSession, column, *where, key: Optional[str] = None) -> List[str]:
    """Distinct members of a JSON list column; `key` picks a field out of object members."""
    result = await db.execute(select(column).where(*where))
    values = set()
    for row in result.scalars().all():
        for member in row or []:
            value = member.get(key) if key and isinstance(member, dict) else member
            if value:
                values.add(value)
    return sorted(values)


async def _range(db: AsyncSession, column, *where) -> Dict[str, Optional[float]]:
    low, high = (await db.execute(select(func.min(column), func.max(column)).where(*where))).one()
    return {"min": low, "max": high}


async def furniture_facets(db: AsyncSession) -> Dict[str, Any]:
    """Filter values across the whole active catalog, independent of any page."""
    active = Furniture.is_active.is_(True)
    return {
        "categories": await _distinct(db, Furniture.category, active),
        "subcategories": await _distinct(db, Furniture.subcategory, active),
        "brands": await _distinct(db, Furniture.brand, active),
        "styles": await _distinct(db, Furniture.style, active),
        "materials": await _json_members(db, Furniture.materials, active),
        "colors": await _json_members(db, Furniture.colors, active, key="hex"),
        "priceRange": await _range(db, Furniture.retail_price, active),
    }


async def template_facets(db: AsyncSession, plan: Optional[str]) -> Dict[str, Any]:
    where = (Template.is_active.is_(True), Template.required_subscription.in_(visible_tiers(plan)))
    return {
        "categories": await _distinct(db, Template.category, *where),
        "styles": await _distinct(db, Template.style, *where),
        "difficulties": await _distinct(db, Template.difficulty, *where),
        "tags": await _json_members(db, Template.tags, *where),
        "areaRange": await _range(db, Template.total_area, *where),
    }


async def category_summary(db: AsyncSession, model, *where) -> List[Dict[str, Any]]:
    """Per-category counts with the distinct subcategories seen, largest first."""
    result = await db.execute(
        select(model.category, model.subcategory).where(model.is_active.is_(True), *where)
    )
    summary: Dict[str, Dict[str, Any]] = {}
    for category, subcategory in result.all():
        entry = summary.setdefault(category, {"category": category, "count": 0, "subcategories": set()})
        entry["count"] += 1
        if subcategory:
            entry["subcategories"].add(subcategory)
    ordered = sorted(summary.values(), key=lambda e: (-e["count"], e["category"]))
    return [{**e, "subcategories": sorted(e["subcategories"])} for e in ordered]


# ===================================================================
# Shortcut listings
# ===================================================================

async def similar(db: AsyncSession, item, *where, limit: int = 5) -> list:
    model = type(item)
    result = await db.execute(
        select(model)
        .where(model.is_active.is_(True), model.category == item.category, model.id != item.id, *where)
        .order_by(model.popularity.desc(), model.id)
        .limit(limit)
    )
    return list(result.scalars().all())


async def featured(db: AsyncSession, model, *where, limit: int = 10) -> list:
    result = await db.execute(
        select(model)
        .where(model.is_active.is_(True), model.is_featured.is_(True), *where)
        .order_by(model.popularity.desc(), model.rating_average.desc(), model.id)
        .limit(limit)
    )
    return list(result.scalars().all())


TRENDING_PERIODS = {"day": timedelta(days=1), "week": timedelta(days=7), "month": timedelta(days=30)}


async def trending(db: AsyncSession, period: str = "week", limit: int = 10) -> List[Furniture]:
    """Most popular active items among those touched within `period`."""
    since = utcnow() - TRENDING_PERIODS[period]
    result = await db.execute(
        select(Furniture)
        .where(Furniture.is_active.is_(True), Furniture.updated_at >= since)
        .order_by(Furniture.popularity.desc(), Furniture.rating_average.desc(), Furniture.id)
        .limit(limit)
    )
    return list(result.scalars().all())
