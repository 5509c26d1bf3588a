"""Indexer service FastAPI application."""

from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

import uvicorn
from fastapi import FastAPI, HTTPException, Depends, Request
from pydantic import BaseModel

from feedindex import __version__
from feedindex.core.db import create_engine, create_session_factory
from feedindex.core.logging import setup_logging, get_logger
from feedindex.core.search import create_search_client
from feedindex.core.settings import get_settings
from feedindex.indexer.errors import FeedIndexingError
from feedindex.indexer.job import FeedIndexingJob
from feedindex.indexer.notifier import create_notifier
from feedindex.indexer.pipeline import build_pipeline
from feedindex.indexer.scheduler import IntervalScheduler

settings = get_settings()

# Setup logging
setup_logging("indexer")
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build connection handles once and start the interval scheduler."""
    engine = create_engine(settings)
    search_client = create_search_client(settings)
    notifier = create_notifier(settings)
    
    pipeline = build_pipeline(create_session_factory(engine), search_client, settings)
    app.state.job = FeedIndexingJob(pipeline, notifier)
    app.state.scheduler = None
    
    if settings.scheduler_enabled:
        app.state.scheduler = IntervalScheduler(
            app.state.job,
            interval_seconds=settings.index_interval_hours * 3600
        )
        app.state.scheduler.start()
    
    logger.info(
        "Starting indexer service",
        extra={
            "service": "indexer",
            "version": __version__,
            "scheduler_enabled": settings.scheduler_enabled,
            "manual_run_enabled": settings.allow_manual_run
        }
    )
    
    try:
        yield
    finally:
        if app.state.scheduler is not None:
            await app.state.scheduler.stop()
        await app.state.job.drain()
        await notifier.aclose()
        await search_client.close()
        await engine.dispose()


app = FastAPI(title="FeedIndex Indexer", version=__version__, lifespan=lifespan)


class RunIndexResponse(BaseModel):
    """Response model for an indexing run."""
    status: str
    message: str
    summary: Dict[str, Any]


class StatusResponse(BaseModel):
    """Response model for the last run status."""
    running: bool
    last_finished_at: Optional[str] = None
    last_summary: Optional[Dict[str, Any]] = None
    last_error: Optional[str] = None


def get_job(request: Request) -> FeedIndexingJob:
    job = getattr(request.app.state, "job", None)
    if job is None:
        raise HTTPException(status_code=503, detail="Indexer is not initialized")
    return job


def check_manual_run_enabled():
    """Check if manual runs are enabled via settings."""
    if not get_settings().allow_manual_run:
        raise HTTPException(
            status_code=403,
            detail="Manual indexing runs are disabled. Set ALLOW_MANUAL_RUN=true to enable."
        )
    return True


@app.get("/healthz")
async def health_check():
    """Health check endpoint."""
    return {"ok": True, "service": "indexer"}


@app.get("/")
async def root():
    """Root endpoint with service information."""
    manual_run_enabled = get_settings().allow_manual_run
    
    return {
        "service": "indexer",
        "version": __version__,
        "index": settings.feed_index_name,
        "manual_run_enabled": manual_run_enabled,
        "endpoints": {
            "health": "/healthz",
            "status": "/status",
            "run_indexing": "/run (POST)" if manual_run_enabled else "/run (disabled)"
        }
    }


@app.get("/status", response_model=StatusResponse)
async def run_status(job: FeedIndexingJob = Depends(get_job)):
    """Last run outcome and whether a run is in progress."""
    return StatusResponse(
        running=job.is_running,
        last_finished_at=job.last_finished_at.isoformat() if job.last_finished_at else None,
        last_summary=job.last_summary.to_dict() if job.last_summary else None,
        last_error=job.last_error
    )


@app.post("/run", response_model=RunIndexResponse)
async def run_indexing(
    _: bool = Depends(check_manual_run_enabled),
    job: FeedIndexingJob = Depends(get_job)
):
    """
    Trigger a full feed index rebuild manually.
    
    Protected by the ALLOW_MANUAL_RUN setting.
    """
    if job.is_running:
        raise HTTPException(status_code=409, detail="An indexing run is already in progress")
    
    logger.info("Starting manual feed indexing", extra={"endpoint": "/run"})
    
    try:
        summary = await job.run()
    except FeedIndexingError as e:
        raise HTTPException(status_code=500, detail=f"Feed indexing failed: {e}")
    
    if summary is None:
        raise HTTPException(status_code=409, detail="An indexing run is already in progress")
    
    status = "partial_success" if summary.errors else "success"
    message = (
        f"Indexing completed in {summary.elapsed_seconds}s: "
        f"{summary.users} users, {summary.items} items indexed"
    )
    if summary.errors:
        message += f", {len(summary.errors)} users failed"
    
    return RunIndexResponse(status=status, message=message, summary=summary.to_dict())


if __name__ == "__main__":
    logger.info("Starting indexer service via uvicorn")
    uvicorn.run(
        "feedindex.indexer.app:app",
        host=settings.service_host,
        port=settings.service_port or 8010,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )
