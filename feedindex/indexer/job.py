"""Scheduled job wrapper around the indexing pipeline."""

import asyncio
import time
from datetime import datetime, timezone
from typing import Optional, Set

from feedindex.core.logging import get_logger
from feedindex.indexer.notifier import Notifier, NullNotifier
from feedindex.indexer.pipeline import FeedIndexingPipeline, RunSummary

logger = get_logger(__name__)

JOB_NAME = "index feed"
COMPLETED_EVENT = "feed-indexing-completed"


class FeedIndexingJob:
    """Runs the pipeline at most once at a time and reports completion.
    
    A trigger arriving while a run is in progress is skipped, not queued.
    """
    
    def __init__(self, pipeline: FeedIndexingPipeline, notifier: Optional[Notifier] = None):
        self.pipeline = pipeline
        self.notifier = notifier or NullNotifier()
        self._lock = asyncio.Lock()
        self._notifications: Set[asyncio.Task] = set()
        self.last_summary: Optional[RunSummary] = None
        self.last_error: Optional[str] = None
        self.last_finished_at: Optional[datetime] = None
    
    @property
    def is_running(self) -> bool:
        return self._lock.locked()
    
    async def run(self) -> Optional[RunSummary]:
        """
        Run the pipeline once.
        
        Returns:
            The run summary, or None when skipped because a run is in progress
        """
        if self._lock.locked():
            logger.warning(f"Job {JOB_NAME} already running, skipping trigger", extra={"job": JOB_NAME})
            return None
        
        async with self._lock:
            logger.info(f"Job started: {JOB_NAME}", extra={"job": JOB_NAME})
            start_time = time.time()
            
            try:
                summary = await self.pipeline.run()
            except Exception as e:
                self.last_summary = None
                self.last_error = str(e)
                self.last_finished_at = datetime.now(timezone.utc)
                logger.error(f"Job failed: {JOB_NAME}: {e}", extra={"job": JOB_NAME, "error": str(e)})
                raise
            
            self.last_summary = summary
            self.last_error = None
            self.last_finished_at = datetime.now(timezone.utc)
            logger.info(
                f"Job completed: {JOB_NAME}",
                extra={"job": JOB_NAME, "duration_ms": round((time.time() - start_time) * 1000)}
            )
        
        self._schedule_notification(COMPLETED_EVENT, summary.to_dict())
        return summary

    def _schedule_notification(self, event: str, payload: dict) -> None:
        """Send ``event`` in the background; the run does not wait for the notifier."""
        task = asyncio.create_task(self.notifier.notify(event, payload))
        self._notifications.add(task)
        task.add_done_callback(self._notifications.discard)

    async def drain(self) -> None:
        """Wait for notifications still in flight."""
        if self._notifications:
            await asyncio.gather(*self._notifications, return_exceptions=True)
