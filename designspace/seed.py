# seed.py
"""
Loads a starter catalog and two sample accounts.

Run with `python -m designspace.seed` against the configured DATABASE_URL.
Rows that already exist (furniture and templates by name, users by email)
are left untouched, so running it twice is harmless.
"""

import asyncio
import sys
from datetime import timedelta
from typing import Any, Dict, List

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from designspace.auth import get_password_hash
from designspace.db import Base, async_session_maker, engine
from designspace.models import Furniture, Template, User, utcnow


def color(name: str, hex_code: str, default: bool = False) -> Dict[str, Any]:
    return {"name": name, "hex": hex_code, "isDefault": default}


SAMPLE_FURNITURE: List[Dict[str, Any]] = [
    {
        "name": "Modern Sofa",
        "description": "Comfortable 3-seater sofa with clean lines and modern design",
        "category": "Seating",
        "subcategory": "Sofas",
        "type": "Modern Sofa",
        "style": "modern",
        "price": 1299,
        "dimensions": {"width": 250, "height": 85, "depth": 90, "unit": "cm"},
        "weight": {"value": 45, "unit": "kg"},
        "materials": ["Fabric", "Wood", "Foam"],
        "colors": [color("Charcoal", "#36454F", True), color("Navy", "#1E3A8A"), color("Cream", "#F5F5DC")],
        "features": ["Removable covers", "Storage compartment", "Easy assembly"],
        "tags": ["modern", "comfortable", "living room"],
        "quantity": 15,
        "retail_price": 1299,
        "wholesale_price": 999,
        "is_featured": True,
    },
    {
        "name": "Coffee Table",
        "description": "Sleek coffee table with glass top and wooden legs",
        "category": "Tables",
        "subcategory": "Coffee Tables",
        "type": "Coffee Table",
        "style": "modern",
        "price": 599,
        "dimensions": {"width": 120, "height": 45, "depth": 60, "unit": "cm"},
        "weight": {"value": 25, "unit": "kg"},
        "materials": ["Glass", "Oak Wood"],
        "colors": [color("Natural Oak", "#D2B48C", True), color("Dark Walnut", "#8B4513")],
        "features": ["Tempered glass top", "Sturdy construction", "Easy to clean"],
        "tags": ["modern", "coffee table", "living room"],
        "quantity": 8,
        "retail_price": 599,
        "wholesale_price": 449,
    },
    {
        "name": "Floor Lamp",
        "description": "Adjustable floor lamp with LED lighting",
        "category": "Lighting",
        "subcategory": "Floor Lamps",
        "type": "Floor Lamp",
        "style": "modern",
        "price": 299,
        "dimensions": {"width": 30, "height": 160, "depth": 30, "unit": "cm"},
        "weight": {"value": 8, "unit": "kg"},
        "materials": ["Metal", "LED"],
        "colors": [color("Black", "#000000", True), color("White", "#FFFFFF"), color("Brass", "#B87333")],
        "features": ["Adjustable height", "LED bulbs included", "Touch control"],
        "tags": ["lighting", "modern", "adjustable"],
        "quantity": 20,
        "retail_price": 299,
        "wholesale_price": 199,
        "is_featured": True,
    },
    {
        "name": "Bookshelf",
        "description": "5-tier bookshelf with adjustable shelves",
        "category": "Storage",
        "subcategory": "Bookshelves",
        "type": "Bookshelf",
        "style": "scandinavian",
        "price": 799,
        "dimensions": {"width": 80, "height": 180, "depth": 30, "unit": "cm"},
        "weight": {"value": 35, "unit": "kg"},
        "materials": ["Pine Wood", "Metal"],
        "colors": [color("White", "#FFFFFF", True), color("Oak", "#D2B48C"), color("Black", "#000000")],
        "features": ["Adjustable shelves", "Easy assembly", "Sturdy construction"],
        "tags": ["storage", "bookshelf", "office"],
        "quantity": 12,
        "retail_price": 799,
        "wholesale_price": 599,
    },
    {
        "name": "Dining Chair",
        "description": "Comfortable dining chair with upholstered seat",
        "category": "Seating",
        "subcategory": "Dining Chairs",
        "type": "Dining Chair",
        "style": "traditional",
        "price": 199,
        "dimensions": {"width": 45, "height": 95, "depth": 50, "unit": "cm"},
        "weight": {"value": 12, "unit": "kg"},
        "materials": ["Wood", "Fabric", "Foam"],
        "colors": [color("Beige", "#F5F5DC", True), color("Navy", "#1E3A8A"), color("Gray", "#808080")],
        "features": ["Upholstered seat", "Sturdy legs", "Stackable"],
        "tags": ["dining", "chair", "comfortable"],
        "quantity": 25,
        "retail_price": 199,
        "wholesale_price": 149,
    },
    {
        "name": "Bed Frame",
        "description": "Platform bed frame with headboard and storage",
        "category": "Bedroom",
        "subcategory": "Bed Frames",
        "type": "Bed Frame",
        "style": "traditional",
        "price": 899,
        "dimensions": {"width": 200, "height": 30, "depth": 300, "unit": "cm"},
        "weight": {"value": 60, "unit": "kg"},
        "materials": ["Wood", "Metal"],
        "colors": [color("Natural Oak", "#D2B48C", True), color("Dark Walnut", "#8B4513"), color("White", "#FFFFFF")],
        "features": ["Storage drawers", "Headboard included", "Easy assembly"],
        "tags": ["bedroom", "bed frame", "storage"],
        "quantity": 6,
        "retail_price": 899,
        "wholesale_price": 699,
        "is_featured": True,
    },
]


def room(width: float, depth: float, wall_color: str) -> Dict[str, Any]:
    """A closed room outline centred on the origin."""
    x, y = width / 2, depth / 2
    points = [{"x": -x, "y": -y}, {"x": x, "y": -y}, {"x": x, "y": y}, {"x": -x, "y": y}]
    return {"id": "room-1", "type": "room", "color": wall_color, "points": points, "completed": True,
            "thickness": 0.2, "height": 3}


def window(width: float) -> Dict[str, Any]:
    return {"id": "window-1", "type": "window", "wallId": "room-1", "segmentIndex": 0, "t": 0.5,
            "width": width, "height": 1.2, "sill": 0.9, "color": "#22d3ee"}


# Each template places catalog items by name; `layout` is the placement state.
SAMPLE_TEMPLATES: List[Dict[str, Any]] = [
    {
        "name": "Modern Living Room",
        "description": "Contemporary living room with clean lines and modern furniture",
        "category": "living",
        "subcategory": "modern",
        "difficulty": "beginner",
        "estimated_time": 30,
        "room_size": {"width": 5, "height": 3, "depth": 4, "unit": "m"},
        "style": "modern",
        "color_scheme": {"primary": "#3B82F6", "secondary": "#10B981", "accent": "#F59E0B"},
        "walls": [room(5, 4, "#F3F4F6")],
        "windows": [window(1.5)],
        "tags": ["modern", "living room"],
        "is_featured": True,
        "placements": [
            ("Modern Sofa", {"position": {"x": 0, "y": 0, "z": 1.5}, "rotation": {"x": 0, "y": 180, "z": 0},
                             "color": "#36454F"}),
            ("Coffee Table", {"position": {"x": 0, "y": 0, "z": 0}, "color": "#D2B48C"}),
        ],
    },
    {
        "name": "Cozy Bedroom",
        "description": "Warm and inviting bedroom with comfortable furniture",
        "category": "bedroom",
        "subcategory": "master",
        "difficulty": "beginner",
        "estimated_time": 25,
        "room_size": {"width": 4, "height": 3, "depth": 3, "unit": "m"},
        "style": "traditional",
        "color_scheme": {"primary": "#8B5CF6", "secondary": "#06B6D4", "accent": "#F97316"},
        "walls": [room(4, 3, "#F8FAFC")],
        "windows": [window(1.2)],
        "tags": ["cozy", "bedroom"],
        "is_featured": True,
        "placements": [
            ("Bed Frame", {"position": {"x": 0, "y": 0, "z": 0}, "color": "#D2B48C"}),
        ],
    },
]

SAMPLE_USERS: List[Dict[str, Any]] = [
    {"first_name": "John", "last_name": "Doe", "email": "john@example.com", "password": "password123",
     "subscription_plan": "pro"},
    {"first_name": "Jane", "last_name": "Smith", "email": "jane@example.com", "password": "password123",
     "subscription_plan": "free"},
]


def placement(item: Furniture, layout: Dict[str, Any]) -> Dict[str, Any]:
    """A template placement carrying a snapshot of the catalog item it references."""
    return {
        "furnitureId": str(item.id),
        "name": item.name,
        "category": item.category,
        "type": item.type,
        "price": item.current_price(),
        "position": {"x": 0, "y": 0, "z": 0},
        "rotation": {"x": 0, "y": 0, "z": 0},
        "scale": {"x": 1, "y": 1, "z": 1},
        **layout,
    }


async def _existing(db: AsyncSession, column, values) -> set:
    result = await db.execute(select(column).where(column.in_(list(values))))
    return set(result.scalars().all())


async def seed(db: AsyncSession) -> Dict[str, int]:
    """Inserts whatever sample rows are missing and returns how many of each were created."""
    created = {"users": 0, "furniture": 0, "templates": 0}

    known_emails = await _existing(db, User.email, (u["email"] for u in SAMPLE_USERS))
    for data in SAMPLE_USERS:
        if data["email"] in known_emails:
            continue
        fields = {k: v for k, v in data.items() if k != "password"}
        user = User(hashed_password=get_password_hash(data["password"]), **fields)
        if user.subscription_plan != "free":
            user.current_period_end = utcnow() + timedelta(days=30)
        db.add(user)
        created["users"] += 1

    known_furniture = await _existing(db, Furniture.name, (f["name"] for f in SAMPLE_FURNITURE))
    for data in SAMPLE_FURNITURE:
        if data["name"] not in known_furniture:
            db.add(Furniture(**data))
            created["furniture"] += 1
    await db.flush()

    catalog = {f.name: f for f in (await db.execute(select(Furniture))).scalars().all()}
    known_templates = await _existing(db, Template.name, (t["name"] for t in SAMPLE_TEMPLATES))
    for data in SAMPLE_TEMPLATES:
        if data["name"] in known_templates:
            continue
        fields = {k: v for k, v in data.items() if k != "placements"}
        furniture = [placement(catalog[name], layout) for name, layout in data["placements"]]
        db.add(Template(furniture=furniture, **fields))
        created["templates"] += 1

    await db.commit()
    return created


async def run() -> Dict[str, int]:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    try:
        async with async_session_maker() as db:
            return await seed(db)
    finally:
        await engine.dispose()


def main():
    print("📦 Seeding sample catalog...")
    created = asyncio.run(run())
    for kind, count in created.items():
        print(f"  created {count} {kind}")
    print("🎉 Seeding complete.")


if __name__ == "__main__":
    try:
        main()
    except Exception as e:
        print("❌ Error:", e)
        sys.exit(1)
