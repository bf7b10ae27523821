"""
FastAPI application entry point.
"""
from contextlib import asynccontextmanager
import logging
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from chatguard.api import health, auth, chat, usage, templates
from chatguard.core.config import get_settings
from chatguard.core.database import init_db
from chatguard.core.logging_config import setup_logging

app_settings = get_settings()

setup_logging(app_settings.log_level)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables on startup."""
    try:
        init_db()
        logger.info("Database tables ready")
    except Exception as e:
        # /health reports the outage; requests needing the database fail individually
        logger.error(f"Failed to initialize database: {e}")
    yield


app = FastAPI(
    title="ChatGuard API",
    description="Cost-governed chat API with retrieval-augmented context",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=app_settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(health.router, tags=["health"])
app.include_router(auth.router, prefix="/api/auth", tags=["auth"])
app.include_router(chat.router, prefix="/api/chat", tags=["chat"])
app.include_router(usage.router, prefix="/api/usage", tags=["usage"])
app.include_router(templates.router, prefix="/api/templates", tags=["templates"])
