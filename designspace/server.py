# server.py
import logging
from datetime import datetime, timezone

from fastapi import APIRouter, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text

from designspace import ai_tools, auth, design_files, designs, furniture, projects, subscriptions, templates
from designspace.db import Base, engine
from designspace.errors import install_error_handlers
from designspace.settings import settings

# --- Logging Configuration ---
logging.basicConfig(
    level=logging.INFO,
    format="[%(asctime)s] [%(levelname)s] %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
log = logging.getLogger(__name__)

if not settings.STRIPE_SECRET_KEY:
    log.warning("STRIPE_SECRET_KEY env var not set. Subscriptions will use mock billing.")
if not settings.AI_API_URL:
    log.warning("AI_API_URL env var not set. AI tools will answer with local stand-ins.")

# --- App Initialization ---
app = FastAPI(
    title=settings.PROJECT_NAME,
    description="Projects, designs, templates and the furniture catalog for the room designer.",
    version="1.0.0",
)

# --- CORS Middleware ---
origins = [o.strip() for o in settings.CORS_ORIGINS.split(",") if o.strip()]
if settings.FRONTEND_URL and settings.FRONTEND_URL not in origins:
    origins.append(settings.FRONTEND_URL)
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

install_error_handlers(app)


# --- Database Startup Event ---
@app.on_event("startup")
async def on_startup():
    """Create database tables on startup."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    log.info("Database tables verified/created.")


# --- Health ---
health_router = APIRouter(tags=["Health"])


@health_router.get("/health")
async def health():
    """Liveness plus a database round trip."""
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        database = "connected"
    except Exception as e:
        log.error(f"Health check could not reach the database: {e}")
        database = "disconnected"
    return {
        "status": "OK",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "environment": settings.ENVIRONMENT,
        "database": database,
    }


# --- Routers ---
for module in (auth, projects, designs, design_files, templates, furniture, subscriptions, ai_tools):
    app.include_router(module.router, prefix=settings.API_PREFIX)
app.include_router(health_router, prefix=settings.API_PREFIX)
