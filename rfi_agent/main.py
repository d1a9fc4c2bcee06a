# =============================================================================
# FastAPI Application Entry Point
# =============================================================================
#
# Run locally:
#   uvicorn rfi_agent.main:app --reload
#   celery -A rfi_agent.workers.celery_app worker --loglevel=info
#   celery -A rfi_agent.workers.celery_app beat --loglevel=info
#
# The API answers single questions in-request and hands batch jobs to the
# Celery workers; both sides share the job store database.
# =============================================================================

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from rfi_agent.api import ask, batch, health, qa_pairs
from rfi_agent.config import settings
from rfi_agent.db.engine import init_db

logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    init_db()
    logger.info("%s v%s started", settings.app_name, settings.app_version)
    yield


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    lifespan=lifespan,
)

app.include_router(health.router)
app.include_router(ask.router)
app.include_router(batch.router)
app.include_router(qa_pairs.router)
