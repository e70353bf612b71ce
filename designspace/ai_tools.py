# ai_tools.py
import asyncio
import colorsys
import logging
import random
from typing import Any, Dict, List, Literal, Optional, get_args

import httpx
from fastapi import APIRouter, Depends
from pydantic import Field
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from designspace.auth import get_current_user
from designspace.db import get_db
from designspace.errors import ServiceUnavailable
from designspace.models import Furniture, User
from designspace.schemas import CamelModel
from designspace.serializers import furniture_out, ok
from designspace.settings import settings
from designspace.tiers import require_subscription

# --- Module-level Configuration ---
logger = logging.getLogger(__name__)
router = APIRouter(prefix="/ai-tools", tags=["AI Tools"])

RoomType = Literal["living", "bedroom", "kitchen", "bathroom", "office", "dining"]
DesignStyle = Literal[
    "modern", "traditional", "contemporary", "minimalist", "industrial", "scandinavian", "bohemian", "rustic"
]
Mood = Literal["cozy", "energetic", "calm", "luxurious", "playful", "professional"]

# Catalog categories worth suggesting per room.
ROOM_FURNITURE = {
    "living": ["Seating", "Tables", "Lighting", "Decorative"],
    "bedroom": ["Bedroom", "Storage", "Lighting", "Decorative"],
    "kitchen": ["Tables", "Seating", "Storage"],
    "bathroom": ["Storage", "Decorative", "Lighting"],
    "office": ["Tables", "Seating", "Storage", "Lighting"],
    "dining": ["Tables", "Seating", "Lighting"],
}

# Per-plan monthly allowance per tool; -1 is unlimited.
TOOLS = ("smartWizard", "roomScan", "designGenerator", "colorPalette", "furnitureSuggestions")
TOOL_LIMITS = {
    "free": dict.fromkeys(TOOLS, 0),
    "pro": dict.fromkeys(TOOLS, 100),
    "enterprise": dict.fromkeys(TOOLS, -1),
}

# Room size assumed when a scan carries no expected dimensions, in metres.
DEFAULT_SCAN_DIMENSIONS = {"width": 4, "height": 3, "depth": 5}


# ===================================================================
# Pydantic Schemas for API Contracts
# ===================================================================

class Dimensions(CamelModel):
    width: float = Field(..., gt=0)
    length: float = Field(..., gt=0)
    height: float = Field(2.7, gt=0)


class FurnitureSuggestionRequest(CamelModel):
    room_type: RoomType
    dimensions: Optional[Dimensions] = None
    budget: Optional[float] = Field(None, ge=0)
    style: Optional[DesignStyle] = None


class ColorPaletteRequest(CamelModel):
    base_color: Optional[str] = Field(None, pattern="^#[0-9A-Fa-f]{6}$")
    style: Literal["monochromatic", "analogous", "complementary", "triadic", "tetradic"] = "analogous"
    mood: Optional[Mood] = None


class DesignGeneratorRequest(CamelModel):
    room_type: RoomType
    style: Optional[DesignStyle] = None
    mood: Optional[Mood] = None
    room_size: Dimensions
    budget: Optional[float] = Field(None, ge=0)


class RoomDimensions(CamelModel):
    width: float = Field(..., ge=1)
    height: float = Field(..., ge=1)
    depth: float = Field(..., ge=1)


class SmartWizardRequest(CamelModel):
    room_type: RoomType
    dimensions: RoomDimensions
    preferences: Dict[str, Any] = Field(default_factory=dict)
    budget: Optional[float] = Field(None, ge=0)


class RoomScanRequest(CamelModel):
    image: str = Field(..., min_length=1)
    room_type: Optional[RoomType] = None
    expected_dimensions: Optional[Dict[str, float]] = None


# ===================================================================
# Generative collaborator
# ===================================================================

async def _make_request(method: str, url: str, **kwargs) -> Any:
    """
    Retry-enabled async HTTP request helper.

    Transport errors and non-2xx answers are retried with exponential
    backoff; anything else fails at once. Raises ServiceUnavailable once the
    attempts are exhausted.
    """
    last_exc = None
    async with httpx.AsyncClient(timeout=settings.AI_HTTP_TIMEOUT) as client:
        for attempt in range(settings.AI_MAX_RETRIES + 1):
            try:
                response = await client.request(method, url, **kwargs)
                response.raise_for_status()
                return response.json()
            except (httpx.RequestError, httpx.HTTPStatusError) as e:
                last_exc = e
                logger.warning(
                    f"HTTP {method} to {url} failed (attempt {attempt + 1}/{settings.AI_MAX_RETRIES + 1}): {e}"
                )
                if attempt < settings.AI_MAX_RETRIES:
                    # 0.5s, 1s, 2s, ...
                    await asyncio.sleep(0.5 * (2 ** attempt))

    raise ServiceUnavailable(f"Generative service is unavailable after multiple retries: {last_exc}")


async def ask_generator(tool: str, payload: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """Forwards a tool call to the configured service, or returns None when there is none."""
    if not settings.AI_API_URL:
        return None
    headers = {"Authorization": f"Bearer {settings.AI_API_KEY}"} if settings.AI_API_KEY else {}
    url = f"{settings.AI_API_URL.rstrip('/')}/{tool}"
    data = await _make_request("POST", url, json=payload, headers=headers)
    if not isinstance(data, dict):
        raise ServiceUnavailable("Generative service returned an unexpected response format.")
    return data


# ===================================================================
# Local stand-ins
# ===================================================================

def _hex_to_hls(value: str):
    r, g, b = (int(value[i:i + 2], 16) / 255 for i in (1, 3, 5))
    return colorsys.rgb_to_hls(r, g, b)


def _hls_to_hex(h: float, l: float, s: float) -> str:
    r, g, b = colorsys.hls_to_rgb(h % 1.0, min(max(l, 0), 1), min(max(s, 0), 1))
    return "#{:02x}{:02x}{:02x}".format(round(r * 255), round(g * 255), round(b * 255))


HUE_OFFSETS = {
    "monochromatic": [0, 0, 0, 0],
    "analogous": [0, 1 / 12, -1 / 12, 2 / 12],
    "complementary": [0, 0.5, 0, 0.5],
    "triadic": [0, 1 / 3, 2 / 3, 0],
    "tetradic": [0, 0.25, 0.5, 0.75],
}
MOOD_LIGHTNESS = {"calm": 0.7, "cozy": 0.45, "energetic": 0.5, "luxurious": 0.3, "playful": 0.6, "professional": 0.4}


def palette_standin(req: ColorPaletteRequest) -> Dict[str, Any]:
    base = req.base_color or _hls_to_hex(random.random(), 0.5, 0.5)
    h, l, s = _hex_to_hls(base)
    l = MOOD_LIGHTNESS.get(req.mood, l)
    offsets = HUE_OFFSETS[req.style]
    lightness = [l, l + 0.15, l - 0.15, 0.9] if req.style == "monochromatic" else [l, l, l, 0.92]
    colors = [_hls_to_hex(h + off, lit, s if i < 3 else 0.05) for i, (off, lit) in enumerate(zip(offsets, lightness))]
    return {
        "palette": colors,
        "primary": colors[0],
        "secondary": colors[1],
        "accent": colors[2],
        "neutral": colors[3],
        "usage": {"primary": "60%", "secondary": "30%", "accent": "10%"},
    }


async def suggest_from_catalog(
    db: AsyncSession, room_type: str, style: Optional[str], budget: Optional[float], count: int = 6
) -> List[Furniture]:
    """Random picks from the active catalog for the room, kept within `budget` when given."""
    query = select(Furniture).where(
        Furniture.is_active.is_(True), Furniture.category.in_(ROOM_FURNITURE[room_type])
    )
    if style:
        query = query.where(Furniture.style == style)
    candidates = list((await db.execute(query)).scalars().all())
    random.shuffle(candidates)

    picked, spent = [], 0.0
    for item in candidates:
        price = item.current_price()
        if budget is not None and spent + price > budget:
            continue
        picked.append(item)
        spent += price
        if len(picked) == count:
            break
    return picked


def room_outline(width: float, length: float) -> Dict[str, Any]:
    points = [{"x": 0, "y": 0}, {"x": width, "y": 0}, {"x": width, "y": length}, {"x": 0, "y": length}]
    return {"id": "room-1", "type": "room", "color": "#666666", "points": points, "completed": True,
            "thickness": 0.2, "height": 3}


async def layout_standin(
    db: AsyncSession,
    room_type: str,
    width: float,
    length: float,
    style: Optional[str] = None,
    mood: Optional[str] = None,
    budget: Optional[float] = None,
) -> Dict[str, Any]:
    """A room outline furnished from the catalog, with a palette to match."""
    room = room_outline(width, length)
    items = await suggest_from_catalog(db, room_type, style, budget)
    placements = [
        {
            "furnitureId": str(f.id),
            "name": f.name,
            "category": f.category,
            "type": f.type,
            "price": f.current_price(),
            "position": {
                "x": round(random.uniform(0.5, max(width - 0.5, 0.5)), 2),
                "y": 0,
                "z": round(random.uniform(0.5, max(length - 0.5, 0.5)), 2),
            },
            "rotation": {"x": 0, "y": random.choice([0, 90, 180, 270]), "z": 0},
        }
        for f in items
    ]
    return {
        "layout": {"walls": [room], "rooms": [room], "windows": []},
        "furniture": placements,
        "colorScheme": palette_standin(ColorPaletteRequest(mood=mood)),
        "estimatedCost": round(sum(p["price"] for p in placements), 2),
        "confidence": round(random.uniform(0.7, 0.95), 2),
    }


def _preference(preferences: Dict[str, Any], key: str, allowed) -> Optional[str]:
    value = preferences.get(key)
    return value if value in get_args(allowed) else None


# ===================================================================
# API Endpoints
# ===================================================================

@router.post("/furniture-suggestions", summary="Suggest furniture for a room")
async def furniture_suggestions(
    req: FurnitureSuggestionRequest,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_subscription("pro")),
):
    remote = await ask_generator("furniture-suggestions", req.dump())
    if remote is not None:
        return ok(remote, "Furniture suggestions generated successfully")

    items = await suggest_from_catalog(db, req.room_type, req.style, req.budget)
    return ok(
        {
            "suggestions": [furniture_out(f) for f in items],
            "totalCost": round(sum(f.current_price() for f in items), 2),
            "budget": req.budget,
        },
        "Furniture suggestions generated successfully",
    )


@router.post("/color-palette", summary="Generate a colour palette")
async def color_palette(
    req: ColorPaletteRequest,
    current_user: User = Depends(require_subscription("pro")),
):
    remote = await ask_generator("color-palette", req.dump())
    return ok(remote if remote is not None else palette_standin(req), "Color palette generated successfully")


@router.post("/smart-wizard", summary="Lay out a room from its dimensions")
async def smart_wizard(
    req: SmartWizardRequest,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_subscription("pro")),
):
    remote = await ask_generator("smart-wizard", req.dump())
    if remote is not None:
        return ok(remote, "Room layout generated successfully")

    dims = req.dimensions
    result = await layout_standin(
        db,
        req.room_type,
        dims.width,
        dims.depth,
        style=_preference(req.preferences, "style", DesignStyle),
        mood=_preference(req.preferences, "mood", Mood),
        budget=req.budget,
    )
    room = result["layout"]["rooms"][0]
    for wall in result["layout"]["walls"]:
        wall["height"] = dims.height
    # One window centred on the far wall, one door on the near wall.
    result["layout"]["windows"] = [
        {"id": "window-1", "type": "window", "wallId": room["id"], "segmentIndex": 2, "t": 0.5,
         "width": 1.2, "height": 1.2, "sill": 0.9, "color": "#22d3ee"},
    ]
    result["layout"]["doors"] = [
        {"id": "door-1", "type": "door", "wallId": room["id"], "segmentIndex": 0, "t": 0.25,
         "width": 0.9, "height": 2.1},
    ]
    return ok(result, "Room layout generated successfully")


@router.post("/room-scan", summary="Turn a room photo into a model")
async def room_scan(
    req: RoomScanRequest,
    current_user: User = Depends(require_subscription("pro")),
):
    """
    Needs the generative service for the actual reconstruction. Without one,
    the answer is the expected (or a default) box with nothing detected.
    """
    remote = await ask_generator("room-scan", req.dump())
    if remote is not None:
        return ok(remote, "Room scan processed successfully")

    dimensions = {**DEFAULT_SCAN_DIMENSIONS, **(req.expected_dimensions or {})}
    return ok(
        {
            "model3D": None,
            "layout": {"rooms": [room_outline(dimensions["width"], dimensions["depth"])]},
            "detectedFurniture": [],
            "dimensions": dimensions,
            "roomType": req.room_type,
            "confidence": 0.0,
            "processingTime": 0.0,
        },
        "Room scan processed successfully",
    )


@router.post("/design-generator", summary="Propose a room layout")
async def design_generator(
    req: DesignGeneratorRequest,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_subscription("pro")),
):
    remote = await ask_generator("design-generator", req.dump())
    if remote is not None:
        return ok(remote, "Design suggestions generated successfully")

    result = await layout_standin(
        db, req.room_type, req.room_size.width, req.room_size.length,
        style=req.style, mood=req.mood, budget=req.budget,
    )
    return ok(result, "Design suggestions generated successfully")


@router.get("/usage-stats", summary="AI tool allowance for the caller's plan")
async def usage_stats(current_user: User = Depends(get_current_user)):
    limits = TOOL_LIMITS[current_user.subscription_plan]
    return ok({"usageStats": {tool: {"limit": limit, "remaining": limit} for tool, limit in limits.items()}})
