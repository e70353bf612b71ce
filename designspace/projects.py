# projects.py
import logging
import uuid
from typing import Any, Dict, Iterable, List, Optional

from fastapi import APIRouter, Depends, Query, status
from pydantic import EmailStr, Field
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from designspace import graph
from designspace.access import Operation, authorize, enforce, project_view
from designspace.auth import get_current_user, get_optional_user, get_user_by_email
from designspace.catalog import any_member, clamp_page, contains_member, pagination_meta, split_csv
from designspace.db import commit_or_raise, get_db
from designspace.errors import NotFound
from designspace.models import Collaborator, Design, Project, User, default_project_settings
from designspace.schemas import (
    CamelModel, CollaboratorRole, ProjectSettingsIn, ProjectStatus, RoomCategory,
)
from designspace.serializers import design_summary, ok, project_out

# --- Configuration & Setup ---
logger = logging.getLogger(__name__)
router = APIRouter(prefix="/projects", tags=["Projects"])

PROJECT_SORTS = {
    "lastModified": Project.last_modified,
    "updatedAt": Project.updated_at,
    "createdAt": Project.created_at,
    "name": Project.name,
    "status": Project.status,
}


# ===================================================================
# Pydantic Schemas
# ===================================================================

class ProjectCreate(CamelModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    tags: List[str] = Field(default_factory=list)
    settings: Optional[ProjectSettingsIn] = None
    is_public: bool = False


class ProjectSettingsPatch(CamelModel):
    units: Optional[str] = Field(None, pattern="^(metric|imperial)$")
    grid_size: Optional[float] = Field(None, gt=0)
    snap_to_grid: Optional[bool] = None
    show_measurements: Optional[bool] = None


class ProjectUpdate(CamelModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    tags: Optional[List[str]] = None
    status: Optional[ProjectStatus] = None
    settings: Optional[ProjectSettingsPatch] = None
    is_public: Optional[bool] = None
    thumbnail: Optional[str] = None


class CollaboratorIn(CamelModel):
    email: EmailStr
    role: CollaboratorRole


class RoleUpdate(CamelModel):
    role: CollaboratorRole


class DuplicateRequest(CamelModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)


# ===================================================================
# Helpers
# ===================================================================

async def get_project_or_404(db: AsyncSession, project_id: uuid.UUID) -> Project:
    project = await db.get(Project, project_id)
    if project is None:
        raise NotFound("Project not found")
    return project


async def load_project(db: AsyncSession, project_id: uuid.UUID, user: Optional[User], operation: Operation) -> Project:
    """Fetches a project and checks `operation` against it for `user`."""
    project = await get_project_or_404(db, project_id)
    enforce(authorize(project_view(project), user, operation))
    return project


async def users_by_id(db: AsyncSession, ids: Iterable[uuid.UUID]) -> Dict[uuid.UUID, User]:
    ids = {i for i in ids if i is not None}
    if not ids:
        return {}
    result = await db.execute(select(User).where(User.id.in_(ids)))
    return {u.id: u for u in result.scalars().all()}


async def render_projects(db: AsyncSession, projects: List[Project]) -> List[Dict[str, Any]]:
    ids = set()
    for p in projects:
        ids.add(p.owner_id)
        ids.update(c.user_id for c in p.collaborators)
    users = await users_by_id(db, ids)
    return [project_out(p, users) for p in projects]


def accessible_to(user: User):
    """Projects the user owns or collaborates on."""
    return or_(Project.owner_id == user.id, Project.collaborators.any(Collaborator.user_id == user.id))


def text_match(search: str):
    return or_(
        func.lower(Project.name).contains(search.lower(), autoescape=True),
        func.lower(func.coalesce(Project.description, "")).contains(search.lower(), autoescape=True),
        contains_member(Project.tags, search),
    )


def ordering(sort_by: str, sort_order: str, default: str):
    column = PROJECT_SORTS.get(sort_by, PROJECT_SORTS[default])
    return column.asc() if sort_order == "asc" else column.desc()


# ===================================================================
# API Endpoints
# ===================================================================

@router.get("/", summary="List the caller's projects")
async def list_projects(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    status_filter: Optional[ProjectStatus] = Query(None, alias="status"),
    search: Optional[str] = Query(None, max_length=100),
    tags: Optional[str] = None,
    sort_by: str = Query("lastModified", alias="sortBy"),
    sort_order: str = Query("desc", alias="sortOrder", pattern="^(asc|desc)$"),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Owned and shared projects, with a per-status count of the owned ones."""
    page, limit = clamp_page(page, limit)
    clauses = [accessible_to(current_user)]
    if status_filter:
        clauses.append(Project.status == status_filter)
    if search:
        clauses.append(text_match(search.strip()))
    if split_csv(tags):
        clauses.append(any_member(Project.tags, split_csv(tags)))

    total = (await db.execute(select(func.count()).select_from(Project).where(*clauses))).scalar_one()
    result = await db.execute(
        select(Project)
        .where(*clauses)
        .order_by(ordering(sort_by, sort_order, "lastModified"), Project.id)
        .offset((page - 1) * limit)
        .limit(limit)
    )
    projects = list(result.scalars().all())

    stats_rows = await db.execute(
        select(Project.status, func.count()).where(Project.owner_id == current_user.id).group_by(Project.status)
    )
    return ok({
        "projects": await render_projects(db, projects),
        "pagination": pagination_meta(page, limit, total),
        "stats": {row[0]: row[1] for row in stats_rows.all()},
    })


@router.get("/public", summary="List public projects")
async def list_public_projects(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    category: Optional[RoomCategory] = None,
    search: Optional[str] = Query(None, max_length=100),
    sort_by: str = Query("updatedAt", alias="sortBy"),
    sort_order: str = Query("desc", alias="sortOrder", pattern="^(asc|desc)$"),
    db: AsyncSession = Depends(get_db),
):
    page, limit = clamp_page(page, limit)
    clauses = [Project.is_public.is_(True)]
    if category:
        clauses.append(Project.template_category == category)
    if search:
        clauses.append(text_match(search.strip()))

    total = (await db.execute(select(func.count()).select_from(Project).where(*clauses))).scalar_one()
    result = await db.execute(
        select(Project)
        .where(*clauses)
        .order_by(ordering(sort_by, sort_order, "updatedAt"), Project.id)
        .offset((page - 1) * limit)
        .limit(limit)
    )
    return ok({
        "projects": await render_projects(db, list(result.scalars().all())),
        "pagination": pagination_meta(page, limit, total),
    })


@router.get("/{project_id}", summary="Get a project and its designs")
async def get_project(
    project_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: Optional[User] = Depends(get_optional_user),
):
    project = await load_project(db, project_id, current_user, Operation.READ)
    query = select(Design).where(Design.project_id == project.id).order_by(Design.updated_at.desc())
    is_member = current_user is not None and (
        project.owner_id == current_user.id or any(c.user_id == current_user.id for c in project.collaborators)
    )
    if not is_member:
        # Visitors of a public project only see the designs published on their own.
        query = query.where(Design.is_public.is_(True))
    result = await db.execute(query)
    return ok({
        "project": (await render_projects(db, [project]))[0],
        "designs": [design_summary(d) for d in result.scalars().all()],
    })


@router.post("/", status_code=status.HTTP_201_CREATED, summary="Create a project")
async def create_project(
    payload: ProjectCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    project = Project(
        name=payload.name,
        description=payload.description,
        owner_id=current_user.id,
        tags=payload.tags,
        settings=payload.settings.dump() if payload.settings else default_project_settings(),
        is_public=payload.is_public,
        collaborators=[],
    )
    db.add(project)
    await commit_or_raise(db, "Server error while creating project")
    logger.info(f"Project {project.id} created by user {current_user.id}")
    return ok({"project": (await render_projects(db, [project]))[0]}, "Project created successfully")


@router.put("/{project_id}", summary="Update a project")
async def update_project(
    project_id: uuid.UUID,
    payload: ProjectUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    project = await load_project(db, project_id, current_user, Operation.UPDATE)

    changes = payload.model_dump(exclude_unset=True, exclude={"settings"})
    for key, value in changes.items():
        setattr(project, key, value)
    if payload.settings is not None:
        # Shallow merge; keys that were not sent keep their stored value.
        project.settings = {**(project.settings or {}), **payload.settings.dump()}

    await commit_or_raise(db, "Server error while updating project")
    return ok({"project": (await render_projects(db, [project]))[0]}, "Project updated successfully")


@router.delete("/{project_id}", summary="Delete a project and its designs")
async def delete_project(
    project_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    project = await load_project(db, project_id, current_user, Operation.DELETE)
    removed = await graph.delete_project_cascade(db, project)
    await commit_or_raise(db, "Server error while deleting project")
    logger.info(f"Project {project_id} deleted with {removed} designs")
    return ok(message="Project deleted successfully")


@router.post("/{project_id}/collaborators", summary="Add or re-role a collaborator")
async def add_collaborator(
    project_id: uuid.UUID,
    payload: CollaboratorIn,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    project = await load_project(db, project_id, current_user, Operation.MANAGE_COLLABORATORS)
    user = await get_user_by_email(db, payload.email)
    if user is None:
        raise NotFound("User not found")

    graph.add_collaborator(project, user.id, payload.role)
    await commit_or_raise(db, "Server error while adding collaborator")
    return ok({"project": (await render_projects(db, [project]))[0]}, "Collaborator added successfully")


@router.put("/{project_id}/collaborators/{user_id}", summary="Change a collaborator's role")
async def update_collaborator(
    project_id: uuid.UUID,
    user_id: uuid.UUID,
    payload: RoleUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    project = await load_project(db, project_id, current_user, Operation.MANAGE_COLLABORATORS)
    graph.update_collaborator_role(project, user_id, payload.role)
    await commit_or_raise(db, "Server error while updating collaborator")
    return ok({"project": (await render_projects(db, [project]))[0]}, "Collaborator role updated successfully")


@router.delete("/{project_id}/collaborators/{user_id}", summary="Remove a collaborator")
async def remove_collaborator(
    project_id: uuid.UUID,
    user_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    project = await get_project_or_404(db, project_id)
    enforce(authorize(project_view(project), current_user, Operation.REMOVE_COLLABORATOR, target_user_id=user_id))

    if graph.remove_collaborator(project, user_id):
        await commit_or_raise(db, "Server error while removing collaborator")
    return ok({"project": (await render_projects(db, [project]))[0]}, "Collaborator removed successfully")


@router.post("/{project_id}/duplicate", status_code=status.HTTP_201_CREATED, summary="Duplicate a project")
async def duplicate_project(
    project_id: uuid.UUID,
    payload: Optional[DuplicateRequest] = None,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """The caller owns the copy; every design comes along, collaborators do not."""
    project = await load_project(db, project_id, current_user, Operation.DUPLICATE)
    clone, designs = await graph.duplicate_project(db, project, current_user, payload.name if payload else None)
    await commit_or_raise(db, "Server error while duplicating project")
    logger.info(f"Project {project_id} duplicated as {clone.id} with {len(designs)} designs")
    return ok(
        {"project": (await render_projects(db, [clone]))[0], "designs": [design_summary(d) for d in designs]},
        "Project duplicated successfully",
    )
