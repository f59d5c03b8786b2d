"""
FastAPI application factory for the smart routines engine.

Creates the in-memory repository (optionally seeded from a JSON
dataset), wires the evaluator, visibility resolver, cycle detector and
authoring service into the routes, and mounts them under /api.

Run with:
    uvicorn smart_routines.api.app:app --reload
"""

import logging
import os

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from smart_routines.api.routes import configure_routes, router
from smart_routines.core.repository import InMemoryRepository
from smart_routines.core.reset_period import DEFAULT_RESET_TIME
from smart_routines.core.utils import parse_time_of_day

# Load environment variables from .env
load_dotenv()

# Logging
logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


def _load_repository(data_path: str | None) -> InMemoryRepository:
    if not data_path:
        return InMemoryRepository()
    try:
        repository = InMemoryRepository.from_json_file(data_path)
        logger.info("Loaded routine dataset from %s", data_path)
        return repository
    except (OSError, ValueError) as e:
        logger.warning(
            "Failed to load routine dataset from %s: %s. Starting with an empty repository.",
            data_path,
            e,
        )
        return InMemoryRepository()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""

    application = FastAPI(
        title="Smart Routines",
        description="Condition evaluation engine for smart tasks and routines",
        version="0.1.0",
    )

    # CORS: all origins unless CORS_ALLOWED_ORIGINS is set
    allowed_origins = os.getenv("CORS_ALLOWED_ORIGINS", "*").split(",")
    application.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    reset_time = os.getenv("RESET_TIME", DEFAULT_RESET_TIME)
    if parse_time_of_day(reset_time) is None:
        logger.warning("Invalid RESET_TIME %r, falling back to %s", reset_time, DEFAULT_RESET_TIME)
        reset_time = DEFAULT_RESET_TIME

    repository = _load_repository(os.getenv("ROUTINE_DATA_PATH"))

    # Configure routes with dependencies
    configure_routes(repository, reset_time=reset_time)
    application.include_router(router, prefix="/api")

    @application.on_event("startup")
    async def on_startup():
        logger.info("Smart routines backend starting up")
        logger.info("Reset time: %s", reset_time)

    return application


# Create the app instance (used by uvicorn)
app = create_app()
