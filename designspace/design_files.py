# design_files.py
"""Saved editor scenes, private to the user who saved them."""

import logging
import uuid
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, status
from pydantic import Field, field_validator
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from designspace.auth import get_current_user
from designspace.db import commit_or_raise, get_db
from designspace.errors import NotFound
from designspace.models import DesignFile, User
from designspace.schemas import CamelModel
from designspace.serializers import design_file_out, ok

# --- Module-level Configuration ---
logger = logging.getLogger(__name__)
router = APIRouter(prefix="/design-files", tags=["Design Files"])


# ===================================================================
# Pydantic Schemas for API Contracts
# ===================================================================

class DesignFileCreate(CamelModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=300)
    scene_data: Dict[str, Any]

    @field_validator("name")
    @classmethod
    def strip_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Name is required and must be under 100 chars")
        return value

    @field_validator("scene_data")
    @classmethod
    def scene_not_empty(cls, value: Dict[str, Any]) -> Dict[str, Any]:
        if not value:
            raise ValueError("sceneData is required")
        return value


class DesignFileUpdate(CamelModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=300)
    scene_data: Optional[Dict[str, Any]] = None

    @field_validator("name")
    @classmethod
    def strip_name(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and not value.strip():
            raise ValueError("Name must be under 100 chars")
        return value.strip() if value is not None else value


async def get_own_file(db: AsyncSession, file_id: uuid.UUID, user: User) -> DesignFile:
    """Another user's file is reported exactly like a missing one."""
    design_file = await db.get(DesignFile, file_id)
    if design_file is None or design_file.user_id != user.id:
        raise NotFound("File not found")
    return design_file


# ===================================================================
# API Endpoints
# ===================================================================

@router.get("/", summary="List the caller's saved scenes")
async def list_design_files(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    result = await db.execute(
        select(DesignFile).where(DesignFile.user_id == current_user.id).order_by(DesignFile.updated_at.desc())
    )
    return ok({"files": [design_file_out(f) for f in result.scalars().all()]})


@router.get("/{file_id}", summary="Get a saved scene")
async def get_design_file(
    file_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return ok({"file": design_file_out(await get_own_file(db, file_id, current_user))})


@router.post("/", status_code=status.HTTP_201_CREATED, summary="Save a scene")
async def create_design_file(
    payload: DesignFileCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    design_file = DesignFile(
        user_id=current_user.id,
        name=payload.name,
        description=payload.description,
        scene_data=payload.scene_data,
    )
    db.add(design_file)
    await commit_or_raise(db, "Server error while saving file")
    logger.info(f"Design file {design_file.id} saved for user {current_user.id}")
    return ok({"file": design_file_out(design_file)}, "Saved successfully")


@router.put("/{file_id}", summary="Update a saved scene")
async def update_design_file(
    file_id: uuid.UUID,
    payload: DesignFileUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    design_file = await get_own_file(db, file_id, current_user)
    for key, value in payload.model_dump(exclude_unset=True, exclude_none=True).items():
        setattr(design_file, key, value)
    await commit_or_raise(db, "Server error while updating file")
    await db.refresh(design_file)
    return ok({"file": design_file_out(design_file)}, "Updated successfully")


@router.delete("/{file_id}", summary="Delete a saved scene")
async def delete_design_file(
    file_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    design_file = await get_own_file(db, file_id, current_user)
    await db.delete(design_file)
    await commit_or_raise(db, "Server error while deleting file")
    return ok(message="Deleted successfully")
