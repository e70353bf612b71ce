# auth.py
import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import APIRouter, Depends, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from passlib.context import CryptContext
from pydantic import BaseModel, EmailStr, Field
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from designspace.db import get_db
from designspace.errors import Conflict, Internal, Unauthenticated
from designspace.models import User
from designspace.settings import settings

logger = logging.getLogger(__name__)

# ===================================================================
# Pydantic Schemas (Data Validation)
# ===================================================================

class UserCreate(BaseModel):
    """Schema for user registration request."""
    email: EmailStr
    password: str = Field(..., min_length=6, max_length=128)
    firstName: Optional[str] = Field(None, max_length=50)
    lastName: Optional[str] = Field(None, max_length=50)

class LoginRequest(BaseModel):
    """Schema for the login request."""
    email: EmailStr
    password: str


# ===================================================================
# Configuration
# ===================================================================

router = APIRouter(prefix="/auth", tags=["Auth"])

pwd_context = CryptContext(schemes=["scrypt", "bcrypt"], deprecated="auto")
# auto_error=False: a missing header resolves to "no identity" and the
# dependencies below decide whether that is fatal.
oauth2_scheme = OAuth2PasswordBearer(tokenUrl=f"{settings.API_PREFIX}/auth/login", auto_error=False)


# ===================================================================
# Utility Functions
# ===================================================================

def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verifies a plain password against a hashed one."""
    return pwd_context.verify(plain_password, hashed_password)

def get_password_hash(password: str) -> str:
    """Hashes a plain password."""
    return pwd_context.hash(password)

def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Creates a JWT access token."""
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=settings.JWT_EXPIRY_MINUTES))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)

def token_for(user: User) -> str:
    return create_access_token({"sub": str(user.id)})

def decode_token(token: str) -> Optional[dict]:
    """Decodes a JWT; malformed, tampered and expired tokens all yield None."""
    try:
        return jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except JWTError as e:
        logger.info(f"Rejected bearer token: {e}")
        return None

async def get_user_by_email(db: AsyncSession, email: str) -> Optional[User]:
    """Fetches a user from the database by email."""
    result = await db.execute(select(User).where(User.email == email.lower()))
    return result.scalars().first()

def user_public(user: User) -> dict:
    """Safe outward view of a user, subscription included."""
    return {
        "id": user.id,
        "email": user.email,
        "firstName": user.first_name,
        "lastName": user.last_name,
        "role": user.role,
        "isActive": user.is_active,
        "subscription": {
            "plan": user.subscription_plan,
            "status": user.subscription_status,
            "currentPeriodEnd": user.current_period_end,
        },
        "createdAt": user.created_at,
    }


# ===================================================================
# Identity resolution
# ===================================================================

async def resolve(db: AsyncSession, credential: Optional[str]) -> Optional[User]:
    """
    Resolves a bearer credential to an active user.

    Fails softly: a missing, malformed or expired credential, or one that
    names a deleted or deactivated account, yields None.
    """
    if not credential:
        return None
    payload = decode_token(credential)
    if payload is None:
        return None
    try:
        user_id = uuid.UUID(str(payload.get("sub")))
    except ValueError:
        return None

    user = await db.get(User, user_id)
    if user is None or not user.is_active:
        return None
    return user


async def get_optional_user(
    token: Optional[str] = Depends(oauth2_scheme), db: AsyncSession = Depends(get_db)
) -> Optional[User]:
    """Dependency for endpoints that work with or without an identity."""
    return await resolve(db, token)


async def get_current_user(
    token: Optional[str] = Depends(oauth2_scheme), db: AsyncSession = Depends(get_db)
) -> User:
    """Dependency for endpoints that require an identity."""
    if not token:
        raise Unauthenticated("Access token required")
    user = await resolve(db, token)
    if user is None:
        raise Unauthenticated("Could not validate credentials")
    return user


# ===================================================================
# API Endpoints
# ===================================================================

@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register_user(user_in: UserCreate, db: AsyncSession = Depends(get_db)):
    """Creates an account on the free plan and returns a token for it."""
    if await get_user_by_email(db, user_in.email):
        raise Conflict("An account with this email already exists.")

    new_user = User(
        email=user_in.email.lower(),
        hashed_password=get_password_hash(user_in.password),
        first_name=user_in.firstName,
        last_name=user_in.lastName,
        subscription_plan="free",
        subscription_status="active",
        is_active=True,
    )
    try:
        db.add(new_user)
        await db.commit()
    except Exception:
        await db.rollback()
        logger.exception("Database error while registering a user.")
        raise Internal("Could not create the account.")

    logger.info(f"Registered user {new_user.id}")
    return {
        "success": True,
        "message": "User registered successfully",
        "data": {"token": token_for(new_user), "user": user_public(new_user)},
    }


@router.post("/login")
async def login(payload: LoginRequest, db: AsyncSession = Depends(get_db)):
    """Exchanges email and password for a bearer token."""
    user = await get_user_by_email(db, payload.email)
    if not user or not verify_password(payload.password, user.hashed_password):
        raise Unauthenticated("Invalid email or password")
    if not user.is_active:
        raise Unauthenticated("Account is deactivated")

    return {
        "success": True,
        "message": "Login successful",
        "data": {"token": token_for(user), "tokenType": "bearer", "user": user_public(user)},
    }


@router.get("/me")
async def read_users_me(current_user: User = Depends(get_current_user)):
    """Profile of the currently authenticated user."""
    return {"success": True, "data": {"user": user_public(current_user)}}


@router.post("/deactivate")
async def deactivate_account(
    current_user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)
):
    """Soft-deactivates the caller; their tokens stop resolving afterwards."""
    current_user.is_active = False
    try:
        await db.commit()
    except Exception:
        await db.rollback()
        logger.exception(f"Failed to deactivate user {current_user.id}")
        raise Internal("Failed to deactivate account.")
    return {"success": True, "message": "Account deactivated"}
