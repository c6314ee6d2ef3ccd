"""FastAPI application entry point."""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api.v1 import workflows
from app.core.config import settings
from app.core.logging import get_logger, setup_logging
from app.db.session import init_models


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown lifecycle hooks."""
    setup_logging("DEBUG" if settings.APP_ENV == "development" else settings.LOG_LEVEL)
    logger = get_logger("startup")
    logger.info("Application starting", env=settings.APP_ENV)
    await init_models()
    yield
    logger.info("Application shutting down")


app = FastAPI(
    title="Workflow Execution API",
    description="Runs configured post-extraction workflows: API calls, renames, emails and uploads",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Restrict in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

API_PREFIX = "/api/v1"
app.include_router(workflows.router, prefix=API_PREFIX)


@app.get("/health", tags=["Health"])
async def health_check() -> dict[str, str]:
    """Public health-check endpoint."""
    return {"status": "ok", "env": settings.APP_ENV}
