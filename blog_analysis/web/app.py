"""FastAPI application for running bulk analyses over HTTP."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from blog_analysis.web.deps import close_store, get_store
from blog_analysis.web.routers.analysis import router as analysis_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown: open and close the target store."""
    logger.info("Starting blog analysis API...")
    get_store()
    yield
    close_store()
    logger.info("Blog analysis API shut down.")


app = FastAPI(
    title="Bulk Blog Analysis",
    description="Batch blog analysis for companies with live progress streaming",
    lifespan=lifespan,
)

app.include_router(analysis_router, prefix="/api")
