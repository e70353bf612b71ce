"""Shared fixtures: a fresh in-memory database per test and an ASGI client bound to it."""

import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ["STRIPE_SECRET_KEY"] = ""
os.environ["AI_API_URL"] = ""

from typing import Any, Dict  # noqa: E402

import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from designspace import graph  # noqa: E402
from designspace.auth import get_password_hash, token_for  # noqa: E402
from designspace.db import Base, get_db  # noqa: E402
from designspace.models import Furniture, Project, Template, User  # noqa: E402
from designspace.server import app  # noqa: E402


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(engine):
    return sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def client(session_maker):
    async def override_get_db():
        async with session_maker() as session:
            try:
                yield session
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()


# ===================================================================
# Factories
# ===================================================================

async def add(session_maker, *objects):
    """Persists `objects` in a session of their own and returns the first."""
    async with session_maker() as session:
        session.add_all(objects)
        await session.commit()
    return objects[0]


async def make_user(session_maker, email: str, plan: str = "free", password: str = "secret123") -> User:
    return await add(session_maker, User(
        email=email,
        hashed_password=get_password_hash(password),
        first_name=email.split("@")[0].title(),
        subscription_plan=plan,
        subscription_status="active",
    ))


async def make_project(session_maker, owner: User, **fields) -> Project:
    fields.setdefault("name", "Flat")
    return await add(session_maker, Project(owner_id=owner.id, collaborators=[], **fields))


async def make_furniture(session_maker, **fields) -> Furniture:
    fields.setdefault("name", "Chair")
    fields.setdefault("category", "Seating")
    fields.setdefault("type", "chair")
    fields.setdefault("retail_price", 100.0)
    return await add(session_maker, Furniture(**fields))


async def make_template(session_maker, **fields) -> Template:
    fields.setdefault("name", "Cosy Living Room")
    fields.setdefault("description", "A warm starter layout")
    fields.setdefault("category", "living")
    fields.setdefault("style", "modern")
    return await add(session_maker, Template(**fields))


async def add_role(session_maker, project: Project, user: User, role: str) -> None:
    async with session_maker() as session:
        graph.add_collaborator(await session.get(Project, project.id), user.id, role)
        await session.commit()


def auth_headers(user: User) -> Dict[str, str]:
    return {"Authorization": f"Bearer {token_for(user)}"}


def square_room(size: float = 4.0, wall_id: str = "room-1") -> Dict[str, Any]:
    return {
        "id": wall_id,
        "type": "room",
        "points": [{"x": 0, "y": 0}, {"x": size, "y": 0}, {"x": size, "y": size}, {"x": 0, "y": size}],
    }


# ===================================================================
# Users
# ===================================================================

@pytest.fixture
async def owner(session_maker):
    return await make_user(session_maker, "owner@example.com")


@pytest.fixture
async def other(session_maker):
    return await make_user(session_maker, "other@example.com")


@pytest.fixture
async def pro_user(session_maker):
    return await make_user(session_maker, "pro@example.com", plan="pro")
