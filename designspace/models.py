# models.py
"""
Database models for designspace.

Projects own their designs; designs carry their floor plan, furniture
placements and scene settings as JSON documents. Templates and furniture are
catalog entities. Anything the catalog filters or sorts on is a real column,
the rest of a document's nested state lives in JSON columns.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Boolean, Column, DateTime, Float, ForeignKey, Integer, JSON, String,
    UniqueConstraint, Uuid,
)
from sqlalchemy.orm import relationship, validates

from designspace.db import Base

# Shown for furniture listed without any colour.
DEFAULT_COLOR_HEX = "#8B4513"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_aware(value):
    """SQLite hands datetimes back without tzinfo; treat those as UTC."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


# -----------------------
# Document defaults
# -----------------------

def default_project_settings() -> dict:
    return {"units": "metric", "gridSize": 0.5, "snapToGrid": True, "showMeasurements": True}


def default_design_settings() -> dict:
    return {
        "gridVisible": True,
        "snapToGrid": True,
        "showMeasurements": True,
        "zoomLevel": 100,
        "activeMode": "2D",
    }


def empty_elements() -> dict:
    return {"walls": [], "windows": [], "rooms": []}


def default_layers() -> list:
    return [
        {"id": "floor", "name": "Floor Plan", "visible": True, "active": True, "order": 0},
        {"id": "furniture", "name": "Furniture", "visible": True, "active": False, "order": 1},
        {"id": "lighting", "name": "Lighting", "visible": True, "active": False, "order": 2},
    ]


def default_camera() -> dict:
    return {
        "position": {"x": 15, "y": 15, "z": 15},
        "target": {"x": 0, "y": 0, "z": 0},
        "fov": 60,
    }


def default_environment() -> dict:
    return {
        "lighting": {"ambientIntensity": 0.2, "directionalIntensity": 0.6, "pointIntensity": 0.2},
        "background": "city",
        "customBackground": None,
    }


# -----------------------
# Models
# -----------------------

class User(Base):
    __tablename__ = "users"
    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    email = Column(String(320), unique=True, nullable=False, index=True)
    hashed_password = Column(String(512), nullable=False)
    first_name = Column(String(50), nullable=True)
    last_name = Column(String(50), nullable=True)
    role = Column(String(16), nullable=False, default="user")

    # Subscription
    subscription_plan = Column(String(16), nullable=False, default="free")
    subscription_status = Column(String(16), nullable=False, default="active")
    current_period_end = Column(DateTime(timezone=True), nullable=True)
    stripe_customer_id = Column(String(128), nullable=True)
    stripe_subscription_id = Column(String(128), nullable=True)

    # Deactivation is a soft flag; users are never hard-deleted.
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)


class Project(Base):
    __tablename__ = "projects"
    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(100), nullable=False)
    description = Column(String(500), nullable=True)
    owner_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    settings = Column(JSON, nullable=False, default=default_project_settings)
    thumbnail = Column(String(1024), nullable=True)
    tags = Column(JSON, nullable=False, default=list)
    is_public = Column(Boolean, nullable=False, default=False, index=True)
    is_template = Column(Boolean, nullable=False, default=False)
    template_category = Column(String(32), nullable=True)
    status = Column(String(16), nullable=False, default="draft", index=True)
    version = Column(Integer, nullable=False, default=1)
    last_modified = Column(DateTime(timezone=True), default=utcnow)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    collaborators = relationship(
        "Collaborator",
        back_populates="project",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="Collaborator.added_at",
    )


class Collaborator(Base):
    __tablename__ = "project_collaborators"
    # A user appears at most once per project.
    __table_args__ = (UniqueConstraint("project_id", "user_id", name="uq_project_collaborator"),)

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    project_id = Column(Uuid, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    role = Column(String(16), nullable=False, default="viewer")
    added_at = Column(DateTime(timezone=True), default=utcnow)

    project = relationship("Project", back_populates="collaborators")


class Design(Base):
    __tablename__ = "designs"
    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    project_id = Column(Uuid, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    description = Column(String(500), nullable=True)
    version = Column(Integer, nullable=False, default=1)

    settings = Column(JSON, nullable=False, default=default_design_settings)
    elements = Column(JSON, nullable=False, default=empty_elements)
    furniture = Column(JSON, nullable=False, default=list)
    layers = Column(JSON, nullable=False, default=list)
    camera = Column(JSON, nullable=True)
    environment = Column(JSON, nullable=False, default=default_environment)

    # Derived; recomputed before every flush (see graph.py).
    total_area = Column(Float, nullable=False, default=0)
    total_cost = Column(Float, nullable=False, default=0)
    furniture_count = Column(Integer, nullable=False, default=0)
    last_rendered = Column(DateTime(timezone=True), nullable=True)

    is_template = Column(Boolean, nullable=False, default=False)
    template_category = Column(String(32), nullable=True)
    is_public = Column(Boolean, nullable=False, default=False, index=True)
    tags = Column(JSON, nullable=False, default=list)
    thumbnail = Column(String(1024), nullable=True)
    render_images = Column(JSON, nullable=False, default=list)
    status = Column(String(16), nullable=False, default="draft", index=True)
    last_modified = Column(DateTime(timezone=True), default=utcnow)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    @validates("project_id")
    def _project_is_fixed(self, key, value):
        if self.project_id is not None and value != self.project_id:
            raise ValueError("A design cannot be moved to another project")
        return value


class Template(Base):
    __tablename__ = "templates"
    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(100), nullable=False)
    description = Column(String(500), nullable=False)
    category = Column(String(32), nullable=False, index=True)
    subcategory = Column(String(50), nullable=True)
    difficulty = Column(String(16), nullable=False, default="beginner")
    estimated_time = Column(Integer, nullable=False, default=30)  # minutes
    room_size = Column(JSON, nullable=True)
    design_id = Column(Uuid, nullable=True)
    thumbnail = Column(String(1024), nullable=True)
    images = Column(JSON, nullable=False, default=list)
    tags = Column(JSON, nullable=False, default=list)
    style = Column(String(32), nullable=False, index=True)
    color_scheme = Column(JSON, nullable=True)

    # Embedded layout, copied into designs on use.
    furniture = Column(JSON, nullable=False, default=list)
    walls = Column(JSON, nullable=False, default=list)
    windows = Column(JSON, nullable=False, default=list)

    total_area = Column(Float, nullable=False, default=0)
    total_cost = Column(Float, nullable=False, default=0)
    furniture_count = Column(Integer, nullable=False, default=0)
    wall_count = Column(Integer, nullable=False, default=0)
    window_count = Column(Integer, nullable=False, default=0)

    required_subscription = Column(String(16), nullable=False, default="free", index=True)
    features = Column(JSON, nullable=False, default=list)

    is_active = Column(Boolean, nullable=False, default=True, index=True)
    is_featured = Column(Boolean, nullable=False, default=False)
    is_premium = Column(Boolean, nullable=False, default=False)
    popularity = Column(Integer, nullable=False, default=0)
    usage_count = Column(Integer, nullable=False, default=0)
    rating_average = Column(Float, nullable=False, default=0)
    rating_count = Column(Integer, nullable=False, default=0)
    author_id = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    seo = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)


class Furniture(Base):
    __tablename__ = "furniture"
    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(100), nullable=False)
    description = Column(String(500), nullable=True)
    category = Column(String(32), nullable=False, index=True)
    subcategory = Column(String(50), nullable=True)
    type = Column(String(50), nullable=False)
    brand = Column(String(50), nullable=True)
    model = Column(String(50), nullable=True)
    style = Column(String(32), nullable=True)
    price = Column(Float, nullable=False, default=0)
    currency = Column(String(8), nullable=False, default="USD")
    dimensions = Column(JSON, nullable=True)
    weight = Column(JSON, nullable=True)
    materials = Column(JSON, nullable=False, default=list)
    colors = Column(JSON, nullable=False, default=list)  # [{name, hex, isDefault}]
    images = Column(JSON, nullable=False, default=list)
    model_3d = Column(JSON, nullable=True)
    specifications = Column(JSON, nullable=False, default=dict)
    features = Column(JSON, nullable=False, default=list)
    tags = Column(JSON, nullable=False, default=list)

    # Availability
    in_stock = Column(Boolean, nullable=False, default=True)
    quantity = Column(Integer, nullable=True)
    lead_time = Column(Integer, nullable=True)  # days

    # Pricing
    retail_price = Column(Float, nullable=False)
    wholesale_price = Column(Float, nullable=True)
    sale_price = Column(Float, nullable=True)
    sale_start = Column(DateTime(timezone=True), nullable=True)
    sale_end = Column(DateTime(timezone=True), nullable=True)

    rating_average = Column(Float, nullable=False, default=0)
    rating_count = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True, index=True)
    is_featured = Column(Boolean, nullable=False, default=False)
    is_premium = Column(Boolean, nullable=False, default=False)
    popularity = Column(Integer, nullable=False, default=0)
    seo = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    def on_sale(self, now: datetime = None) -> bool:
        now = now or utcnow()
        start, end = as_aware(self.sale_start), as_aware(self.sale_end)
        return bool(self.sale_price) and start is not None and end is not None and start <= now <= end

    def current_price(self, now: datetime = None) -> float:
        return self.sale_price if self.on_sale(now) else self.retail_price

    def discount_percentage(self, now: datetime = None) -> int:
        if not self.on_sale(now) or not self.retail_price:
            return 0
        return round((self.retail_price - self.sale_price) / self.retail_price * 100)

    def is_available(self) -> bool:
        return bool(self.is_active and self.in_stock and (self.quantity is None or self.quantity > 0))

    def default_color(self) -> str:
        """Hex of the colour flagged as default, else of the first one listed."""
        colors = self.colors or []
        for color in colors:
            if color.get("isDefault"):
                return color["hex"]
        return colors[0]["hex"] if colors else DEFAULT_COLOR_HEX


class DesignFile(Base):
    """A user's saved editor scene, kept apart from the project graph."""
    __tablename__ = "design_files"
    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    description = Column(String(300), nullable=True)
    scene_data = Column(JSON, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)
