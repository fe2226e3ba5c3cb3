"""Main FastAPI application."""

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text
from sqlalchemy.orm import Session

from weekly_picks.config import load_settings
from weekly_picks.database.connection import Base, get_db
from weekly_picks.imports.api import router as imports_router
from weekly_picks.instrumentation.metrics import setup_metrics
from weekly_picks.middleware.error_handler import (
    ErrorHandlingMiddleware,
    RequestValidationMiddleware,
)

# Load settings
settings = load_settings()

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.get("LOG_LEVEL", "INFO"), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    logger.info("Starting weekly picks import service...")

    if settings.get("AUTO_CREATE_SCHEMA"):
        try:
            from weekly_picks.database.connection import init_database
            engine, _ = init_database()
            Base.metadata.create_all(bind=engine)
            logger.info("Database tables created/verified")
        except Exception as e:
            logger.warning(f"Database initialization failed: {e}")

    yield

    logger.info("Shutting down application...")


# Create FastAPI app
app = FastAPI(
    title="Weekly Picks - Report Import & Audit",
    description="""
    Admin API for importing weekly stock-pick reports.

    - **POST /admin/imports**: validate and store one report, always audited
    - **GET /admin/imports**: paginated audit log of import attempts
    - **GET /admin/imports/{attempt_id}**: single attempt with its raw payload
    """,
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# Add middleware in correct order (last added = first executed)
app.add_middleware(RequestValidationMiddleware)
app.add_middleware(ErrorHandlingMiddleware)

# CORS middleware
allowed_origins = settings.get("ALLOWED_ORIGINS", "").split(",") if settings.get("ALLOWED_ORIGINS") else ["*"]
app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
    expose_headers=["X-Request-ID"],
)

setup_metrics(app)

app.include_router(imports_router)


@app.get("/health", tags=["System"])
async def health_check(db: Session = Depends(get_db)):
    """Liveness plus a database round trip."""
    try:
        db.execute(text("SELECT 1"))
        database = "connected"
    except Exception as e:
        logger.warning(f"Health check database probe failed: {e}")
        database = "unavailable"

    return {
        "status": "healthy" if database == "connected" else "degraded",
        "database": database,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
