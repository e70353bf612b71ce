# graph.py
"""
Ownership, collaboration and nesting among projects, designs and templates.

Every mutation here assumes the caller already passed an access check.
Design metadata and document versions are maintained by flush hooks
registered at the bottom of this module, so any save path gets them.
"""

import copy
import logging
import uuid
from typing import Any, Dict, Iterable, List, Optional, Tuple

from sqlalchemy import delete, event, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import object_session

from designspace.errors import InvalidState, NotFound
from designspace.models import (
    Collaborator, Design, Project, Template, User,
    default_camera, default_design_settings, default_environment, default_layers, utcnow,
)

logger = logging.getLogger(__name__)

# Structural fields a design copy carries over.
DESIGN_STRUCTURE = ("settings", "elements", "furniture", "layers", "camera", "environment")

FURNITURE_DEFAULTS = {
    "price": 0,
    "color": "#8B4513",
    "position": {"x": 0, "y": 0, "z": 0},
    "rotation": {"x": 0, "y": 0, "z": 0},
    "scale": {"x": 1, "y": 1, "z": 1},
    "customProperties": {},
}

WALL_DEFAULTS = {
    "type": "wall",
    "color": "#666666",
    "points": [],
    "completed": False,
    "thickness": 0.2,
    "height": 3,
}


def new_token(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex}"


# ===================================================================
# Metadata
# ===================================================================

def polygon_area(points: Iterable[Dict[str, float]]) -> float:
    """Shoelace area; fewer than three vertices is no area."""
    pts = list(points or [])
    if len(pts) < 3:
        return 0.0
    twice_area = 0.0
    for i, p in enumerate(pts):
        q = pts[(i + 1) % len(pts)]
        twice_area += p["x"] * q["y"] - q["x"] * p["y"]
    return abs(twice_area) / 2


def compute_metadata(elements: Optional[dict], furniture: Optional[List[dict]]) -> Dict[str, float]:
    furniture = furniture or []
    rooms = (elements or {}).get("rooms") or []
    return {
        "totalArea": sum(polygon_area(room.get("points")) for room in rooms),
        "totalCost": sum(item.get("price") or 0 for item in furniture),
        "furnitureCount": len(furniture),
    }


def recompute_metadata(design: Design) -> Dict[str, float]:
    """Derives area, cost and count from the design's current state and stores them."""
    meta = compute_metadata(design.elements, design.furniture)
    design.total_area = meta["totalArea"]
    design.total_cost = meta["totalCost"]
    design.furniture_count = meta["furnitureCount"]
    return meta


def recompute_template_metadata(template: Template) -> None:
    template.furniture_count = len(template.furniture or [])
    template.wall_count = len(template.walls or [])
    template.window_count = len(template.windows or [])
    # Placements may carry a price snapshot of the catalog item they reference.
    template.total_cost = sum(item.get("price") or 0 for item in template.furniture or [])
    derived = sum(polygon_area(w.get("points")) for w in template.walls or [] if w.get("type") == "room")
    # An authored area only stands for templates without room outlines.
    if derived:
        template.total_area = derived


# ===================================================================
# Collaborators
# ===================================================================

def find_collaborator(project: Project, user_id: uuid.UUID) -> Optional[Collaborator]:
    return next((c for c in project.collaborators if c.user_id == user_id), None)


def add_collaborator(project: Project, user_id: uuid.UUID, role: str) -> Collaborator:
    """Upsert: an existing entry gets the new role, otherwise one is appended."""
    if user_id == project.owner_id:
        raise InvalidState("The project owner cannot be added as a collaborator")

    collaborator = find_collaborator(project, user_id)
    if collaborator is not None:
        collaborator.role = role
    else:
        collaborator = Collaborator(user_id=user_id, role=role, added_at=utcnow())
        project.collaborators.append(collaborator)
    project.last_modified = utcnow()
    return collaborator


def remove_collaborator(project: Project, user_id: uuid.UUID) -> bool:
    collaborator = find_collaborator(project, user_id)
    if collaborator is None:
        return False
    project.collaborators.remove(collaborator)
    project.last_modified = utcnow()
    return True


def update_collaborator_role(project: Project, user_id: uuid.UUID, role: str) -> Collaborator:
    collaborator = find_collaborator(project, user_id)
    if collaborator is None:
        raise NotFound("Collaborator not found")
    collaborator.role = role
    project.last_modified = utcnow()
    return collaborator


# ===================================================================
# Copies
# ===================================================================

def copy_structure(design: Design) -> Dict[str, Any]:
    return {name: copy.deepcopy(getattr(design, name)) for name in DESIGN_STRUCTURE}


def duplicate_design(design: Design, new_name: Optional[str] = None, project_id: Optional[uuid.UUID] = None) -> Design:
    """Deep copy under the same project unless another one is given; version and status reset."""
    clone = Design(
        project_id=project_id or design.project_id,
        name=new_name or f"{design.name} (Copy)",
        description=design.description,
        version=1,
        status="draft",
        tags=list(design.tags or []),
        **copy_structure(design),
    )
    recompute_metadata(clone)
    return clone


async def designs_of(db: AsyncSession, project_id: uuid.UUID) -> List[Design]:
    result = await db.execute(
        select(Design).where(Design.project_id == project_id).order_by(Design.created_at)
    )
    return list(result.scalars().all())


async def duplicate_project(
    db: AsyncSession, project: Project, acting_user: User, new_name: Optional[str] = None
) -> Tuple[Project, List[Design]]:
    """
    Copies a project for `acting_user`, who owns the copy.

    Collaborators stay behind; every design is deep-copied under the new
    project. The caller commits.
    """
    clone = Project(
        id=uuid.uuid4(),
        name=new_name or f"{project.name} (Copy)",
        description=project.description,
        owner_id=acting_user.id,
        tags=list(project.tags or []),
        settings=copy.deepcopy(project.settings),
        status="draft",
        version=1,
        collaborators=[],
    )
    db.add(clone)
    # Designs reference the new row without an ORM relationship to order the inserts.
    await db.flush()

    copies = [duplicate_design(d, new_name=d.name, project_id=clone.id) for d in await designs_of(db, project.id)]
    db.add_all(copies)
    return clone, copies


async def delete_project_cascade(db: AsyncSession, project: Project) -> int:
    """Deletes a project's designs by foreign key, then the project. The caller commits."""
    result = await db.execute(delete(Design).where(Design.project_id == project.id))
    await db.delete(project)
    return result.rowcount or 0


# ===================================================================
# Nested design items
# ===================================================================

def add_furniture(design: Design, item: Dict[str, Any]) -> Dict[str, Any]:
    placed = {**copy.deepcopy(FURNITURE_DEFAULTS), **copy.deepcopy(item)}
    placed["id"] = item.get("id") or new_token("furniture")
    design.furniture = [*(design.furniture or []), placed]
    recompute_metadata(design)
    return placed


def update_furniture(design: Design, item_id: str, patch: Dict[str, Any]) -> Dict[str, Any]:
    items = copy.deepcopy(design.furniture or [])
    target = next((i for i in items if i.get("id") == item_id), None)
    if target is None:
        raise NotFound("Furniture not found")
    target.update({k: v for k, v in copy.deepcopy(patch).items() if k != "id"})
    design.furniture = items
    recompute_metadata(design)
    return target


def remove_furniture(design: Design, item_id: str) -> bool:
    items = design.furniture or []
    kept = [i for i in items if i.get("id") != item_id]
    design.furniture = kept
    recompute_metadata(design)
    return len(kept) != len(items)


def _elements(design: Design) -> Dict[str, list]:
    elements = copy.deepcopy(design.elements or {})
    for key in ("walls", "windows", "rooms"):
        elements.setdefault(key, [])
    return elements


def add_wall(design: Design, wall: Dict[str, Any]) -> Dict[str, Any]:
    """Walls of type "room" also go to the room list that drives the area."""
    wall = {**copy.deepcopy(WALL_DEFAULTS), **copy.deepcopy(wall)}
    wall["id"] = wall.get("id") or new_token("wall")
    elements = _elements(design)
    elements["walls"].append(wall)
    if wall["type"] == "room":
        elements["rooms"].append(copy.deepcopy(wall))
    design.elements = elements
    recompute_metadata(design)
    return wall


def update_wall(design: Design, wall_id: str, patch: Dict[str, Any]) -> Dict[str, Any]:
    elements = _elements(design)
    updated = None
    for key in ("walls", "rooms"):
        for wall in elements[key]:
            if wall.get("id") == wall_id:
                wall.update({k: v for k, v in copy.deepcopy(patch).items() if k != "id"})
                updated = updated or wall
    if updated is None:
        raise NotFound("Wall not found")
    design.elements = elements
    recompute_metadata(design)
    return updated


def remove_wall(design: Design, wall_id: str) -> bool:
    """Windows anchored to the wall go with it."""
    elements = _elements(design)
    before = len(elements["walls"]) + len(elements["rooms"])
    elements["walls"] = [w for w in elements["walls"] if w.get("id") != wall_id]
    elements["rooms"] = [w for w in elements["rooms"] if w.get("id") != wall_id]
    elements["windows"] = [w for w in elements["windows"] if w.get("wallId") != wall_id]
    design.elements = elements
    recompute_metadata(design)
    return before != len(elements["walls"]) + len(elements["rooms"])


# ===================================================================
# Templates
# ===================================================================

def instantiate_from_template(template: Template, project_id: uuid.UUID, name: Optional[str] = None) -> Design:
    """Builds a design that snapshots the template's layout; nothing links back to it."""
    walls = copy.deepcopy(template.walls or [])
    design = Design(
        project_id=project_id,
        name=name or template.name,
        description=f"Created from template: {template.name}",
        version=1,
        settings=default_design_settings(),
        elements={
            "walls": walls,
            "windows": copy.deepcopy(template.windows or []),
            "rooms": [copy.deepcopy(w) for w in walls if w.get("type") == "room"],
        },
        furniture=[
            {**copy.deepcopy(FURNITURE_DEFAULTS), **copy.deepcopy(item), "id": item.get("id") or new_token("furniture")}
            for item in template.furniture or []
        ],
        layers=default_layers(),
        camera=default_camera(),
        environment=default_environment(),
        status="draft",
        tags=list(template.tags or []),
    )
    recompute_metadata(design)
    return design


# ===================================================================
# Counters
# ===================================================================
# Single-statement updates: the store applies each atomically to one row and
# concurrent callers are last-writer-wins, with no cross-row transaction.

def running_mean(average, count, new_value):
    """Works on plain numbers and on column expressions alike."""
    return (average * count + new_value) / (count + 1)


async def record_rating(db: AsyncSession, model, item_id: uuid.UUID, rating: float) -> Tuple[float, int]:
    await db.execute(
        update(model)
        .where(model.id == item_id)
        .values(
            rating_average=running_mean(model.rating_average, model.rating_count, rating),
            rating_count=model.rating_count + 1,
        )
    )
    item = await db.get(model, item_id, populate_existing=True)
    return item.rating_average, item.rating_count


async def increment_popularity(db: AsyncSession, model, item_id: uuid.UUID) -> None:
    await db.execute(update(model).where(model.id == item_id).values(popularity=model.popularity + 1))


async def increment_template_usage(db: AsyncSession, template_id: uuid.UUID) -> None:
    await db.execute(
        update(Template)
        .where(Template.id == template_id)
        .values(usage_count=Template.usage_count + 1, popularity=Template.popularity + 1)
    )


# ===================================================================
# Flush hooks
# ===================================================================

def _bump_version(mapper, connection, target):
    """A save that is not the first one increments the version."""
    session = object_session(target)
    if session is not None and session.is_modified(target, include_collections=False):
        target.version = (target.version or 1) + 1
        target.last_modified = utcnow()


def _design_before_save(mapper, connection, target):
    recompute_metadata(target)


def _template_before_save(mapper, connection, target):
    recompute_template_metadata(target)


event.listen(Project, "before_update", _bump_version)
event.listen(Design, "before_update", _bump_version)
event.listen(Design, "before_insert", _design_before_save)
event.listen(Design, "before_update", _design_before_save)
event.listen(Template, "before_insert", _template_before_save)
event.listen(Template, "before_update", _template_before_save)
