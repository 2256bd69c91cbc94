"""FastAPI application entrypoint."""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI

from xpira.api.dialogue import router as dialogue_router
from xpira.api.health import router as health_router
from xpira.config import settings
from xpira.core.logging import get_logger, setup_logging
from xpira.engine import DialogueEngine
from xpira.services.session_manager import SessionManager

setup_logging(settings.LOG_LEVEL)
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler for startup and shutdown events."""
    # Content is loaded once; a malformed file aborts startup
    logger.info("Loading dialogue content from %s", settings.CONTENT_PATH)
    engine = DialogueEngine.from_settings()
    app.state.engine = engine
    app.state.event_bus = engine.event_bus

    session_manager = SessionManager(engine)
    app.state.session_manager = session_manager
    logger.info("SessionManager initialized.")

    yield

    logger.info("Shutting down...")
    session_manager.close_all()


app = FastAPI(title="XPira Dialogue Engine", lifespan=lifespan)

app.include_router(health_router)
app.include_router(dialogue_router)
