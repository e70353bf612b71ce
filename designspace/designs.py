# designs.py
import logging
import uuid
from typing import Dict, List, Optional, Tuple

from fastapi import APIRouter, Depends, Query, status
from pydantic import Field
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from designspace import graph
from designspace.access import Operation, authorize, design_view, enforce
from designspace.auth import get_current_user, get_optional_user
from designspace.catalog import clamp_page, contains_member, pagination_meta
from designspace.db import commit_or_raise, get_db
from designspace.errors import InvalidState, NotFound
from designspace.models import Design, Project, User
from designspace.projects import accessible_to, get_project_or_404, load_project
from designspace.schemas import (
    CamelModel, DesignData, FurnitureItemIn, FurniturePatch, ProjectStatus, RoomCategory, WallIn, WallPatch,
)
from designspace.serializers import design_out, ok

# --- Module-level Configuration ---
logger = logging.getLogger(__name__)
router = APIRouter(prefix="/designs", tags=["Designs"])

DESIGN_SORTS = {
    "updatedAt": Design.updated_at,
    "createdAt": Design.created_at,
    "lastModified": Design.last_modified,
    "name": Design.name,
    "totalCost": Design.total_cost,
    "totalArea": Design.total_area,
}


# ===================================================================
# Pydantic Schemas for API Contracts
# ===================================================================

class DesignCreate(CamelModel):
    project_id: uuid.UUID
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    tags: List[str] = Field(default_factory=list)
    is_public: bool = False
    design_data: Optional[DesignData] = None


class DesignUpdate(DesignData):
    # A design never changes project; sending a different one is rejected.
    project_id: Optional[uuid.UUID] = None
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    status: Optional[ProjectStatus] = None
    tags: Optional[List[str]] = None
    is_public: Optional[bool] = None
    is_template: Optional[bool] = None
    template_category: Optional[RoomCategory] = None
    thumbnail: Optional[str] = None


class DuplicateRequest(CamelModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    project_id: Optional[uuid.UUID] = None


# ===================================================================
# Helpers
# ===================================================================

async def load_design(
    db: AsyncSession, design_id: uuid.UUID, user: Optional[User], operation: Operation
) -> Tuple[Design, Project]:
    """Fetches a design with its project and checks `operation` for `user`."""
    design = await db.get(Design, design_id)
    if design is None:
        raise NotFound("Design not found")
    project = await get_project_or_404(db, design.project_id)
    enforce(authorize(design_view(design, project), user, operation))
    return design, project


def text_match(search: str):
    return or_(
        func.lower(Design.name).contains(search.lower(), autoescape=True),
        func.lower(func.coalesce(Design.description, "")).contains(search.lower(), autoescape=True),
        contains_member(Design.tags, search),
    )


def ordering(sort_by: str, sort_order: str):
    column = DESIGN_SORTS.get(sort_by, DESIGN_SORTS["updatedAt"])
    return column.asc() if sort_order == "asc" else column.desc()


async def paged(db: AsyncSession, clauses: list, page: int, limit: int, sort_by: str, sort_order: str) -> Dict:
    total = (await db.execute(select(func.count()).select_from(Design).where(*clauses))).scalar_one()
    result = await db.execute(
        select(Design)
        .where(*clauses)
        .order_by(ordering(sort_by, sort_order), Design.id)
        .offset((page - 1) * limit)
        .limit(limit)
    )
    return {
        "designs": [design_out(d) for d in result.scalars().all()],
        "pagination": pagination_meta(page, limit, total),
    }


# ===================================================================
# API Endpoints
# ===================================================================

@router.get("/", summary="List designs the caller can reach")
async def list_designs(
    project_id: Optional[uuid.UUID] = Query(None, alias="projectId"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    status_filter: Optional[ProjectStatus] = Query(None, alias="status"),
    search: Optional[str] = Query(None, max_length=100),
    sort_by: str = Query("updatedAt", alias="sortBy"),
    sort_order: str = Query("desc", alias="sortOrder", pattern="^(asc|desc)$"),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Designs of one project, or of every project the caller owns or collaborates on."""
    page, limit = clamp_page(page, limit)
    if project_id is not None:
        await load_project(db, project_id, current_user, Operation.READ)
        clauses = [Design.project_id == project_id]
    else:
        reachable = select(Project.id).where(accessible_to(current_user))
        clauses = [Design.project_id.in_(reachable)]
    if status_filter:
        clauses.append(Design.status == status_filter)
    if search:
        clauses.append(text_match(search.strip()))
    return ok(await paged(db, clauses, page, limit, sort_by, sort_order))


@router.get("/public", summary="List public designs")
async def list_public_designs(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    category: Optional[RoomCategory] = None,
    search: Optional[str] = Query(None, max_length=100),
    sort_by: str = Query("updatedAt", alias="sortBy"),
    sort_order: str = Query("desc", alias="sortOrder", pattern="^(asc|desc)$"),
    db: AsyncSession = Depends(get_db),
):
    page, limit = clamp_page(page, limit)
    clauses = [Design.is_public.is_(True)]
    if category:
        clauses.append(Design.template_category == category)
    if search:
        clauses.append(text_match(search.strip()))
    return ok(await paged(db, clauses, page, limit, sort_by, sort_order))


@router.get("/{design_id}", summary="Get a design")
async def get_design(
    design_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: Optional[User] = Depends(get_optional_user),
):
    design, _ = await load_design(db, design_id, current_user, Operation.READ)
    return ok({"design": design_out(design)})


@router.post("/", status_code=status.HTTP_201_CREATED, summary="Create a design under a project")
async def create_design(
    payload: DesignCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    project = await load_project(db, payload.project_id, current_user, Operation.CREATE_DESIGN)
    design = Design(
        project_id=project.id,
        name=payload.name,
        description=payload.description,
        tags=payload.tags,
        is_public=payload.is_public,
        **(payload.design_data.documents() if payload.design_data else {}),
    )
    graph.recompute_metadata(design)
    db.add(design)
    await commit_or_raise(db, "Server error while creating design")
    logger.info(f"Design {design.id} created in project {project.id}")
    return ok({"design": design_out(design)}, "Design created successfully")


@router.put("/{design_id}", summary="Save a design")
async def update_design(
    design_id: uuid.UUID,
    payload: DesignUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    design, _ = await load_design(db, design_id, current_user, Operation.UPDATE)
    if payload.project_id is not None and payload.project_id != design.project_id:
        raise InvalidState("A design cannot be moved to another project")

    fields = {"name", "description", "status", "tags", "is_public", "is_template", "template_category", "thumbnail"}
    for key, value in payload.model_dump(exclude_unset=True, include=fields).items():
        setattr(design, key, value)
    for column, document in payload.documents().items():
        setattr(design, column, document)
    graph.recompute_metadata(design)

    await commit_or_raise(db, "Server error while updating design")
    return ok({"design": design_out(design)}, "Design updated successfully")


@router.delete("/{design_id}", summary="Delete a design")
async def delete_design(
    design_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    design, _ = await load_design(db, design_id, current_user, Operation.DELETE)
    await db.delete(design)
    await commit_or_raise(db, "Server error while deleting design")
    return ok(message="Design deleted successfully")


# --- Furniture placements ---

@router.post("/{design_id}/furniture", summary="Place a furniture item")
async def add_furniture(
    design_id: uuid.UUID,
    payload: FurnitureItemIn,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    design, _ = await load_design(db, design_id, current_user, Operation.UPDATE)
    item = graph.add_furniture(design, payload.dump())
    await commit_or_raise(db, "Server error while adding furniture")
    return ok({"design": design_out(design), "item": item}, "Furniture added successfully")


@router.put("/{design_id}/furniture/{item_id}", summary="Update a placed furniture item")
async def update_furniture(
    design_id: uuid.UUID,
    item_id: str,
    payload: FurniturePatch,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    design, _ = await load_design(db, design_id, current_user, Operation.UPDATE)
    patch = payload.model_dump(by_alias=True, exclude_unset=True)
    item = graph.update_furniture(design, item_id, patch)
    await commit_or_raise(db, "Server error while updating furniture")
    return ok({"design": design_out(design), "item": item}, "Furniture updated successfully")


@router.delete("/{design_id}/furniture/{item_id}", summary="Remove a placed furniture item")
async def remove_furniture(
    design_id: uuid.UUID,
    item_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    design, _ = await load_design(db, design_id, current_user, Operation.UPDATE)
    if graph.remove_furniture(design, item_id):
        await commit_or_raise(db, "Server error while removing furniture")
    return ok({"design": design_out(design)}, "Furniture removed successfully")


# --- Walls ---

@router.post("/{design_id}/walls", summary="Add a wall or room outline")
async def add_wall(
    design_id: uuid.UUID,
    payload: WallIn,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    design, _ = await load_design(db, design_id, current_user, Operation.UPDATE)
    wall = graph.add_wall(design, payload.dump())
    await commit_or_raise(db, "Server error while adding wall")
    return ok({"design": design_out(design), "wall": wall}, "Wall added successfully")


@router.put("/{design_id}/walls/{wall_id}", summary="Update a wall")
async def update_wall(
    design_id: uuid.UUID,
    wall_id: str,
    payload: WallPatch,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    design, _ = await load_design(db, design_id, current_user, Operation.UPDATE)
    wall = graph.update_wall(design, wall_id, payload.model_dump(by_alias=True, exclude_unset=True))
    await commit_or_raise(db, "Server error while updating wall")
    return ok({"design": design_out(design), "wall": wall}, "Wall updated successfully")


@router.delete("/{design_id}/walls/{wall_id}", summary="Remove a wall and its windows")
async def remove_wall(
    design_id: uuid.UUID,
    wall_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    design, _ = await load_design(db, design_id, current_user, Operation.UPDATE)
    if graph.remove_wall(design, wall_id):
        await commit_or_raise(db, "Server error while removing wall")
    return ok({"design": design_out(design)}, "Wall removed successfully")


@router.post("/{design_id}/duplicate", status_code=status.HTTP_201_CREATED, summary="Duplicate a design")
async def duplicate_design(
    design_id: uuid.UUID,
    payload: Optional[DuplicateRequest] = None,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Anything the caller can read can be copied into a project they can add designs to."""
    payload = payload or DuplicateRequest()
    design, _ = await load_design(db, design_id, current_user, Operation.READ)
    target = await load_project(db, payload.project_id or design.project_id, current_user, Operation.CREATE_DESIGN)

    clone = graph.duplicate_design(design, payload.name, project_id=target.id)
    db.add(clone)
    await commit_or_raise(db, "Server error while duplicating design")
    return ok({"design": design_out(clone)}, "Design duplicated successfully")
