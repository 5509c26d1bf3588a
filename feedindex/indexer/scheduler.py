"""Fixed-interval trigger for the indexing job."""

import asyncio
from typing import Optional

from feedindex.core.logging import get_logger

logger = get_logger(__name__)


class IntervalScheduler:
    """Invokes ``job.run()`` now and then every ``interval_seconds``.
    
    A failed run is logged and the loop keeps going.
    """
    
    def __init__(self, job, interval_seconds: float, run_immediately: bool = True):
        self.job = job
        self.interval_seconds = interval_seconds
        self.run_immediately = run_immediately
        self._task: Optional[asyncio.Task] = None
    
    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()
    
    def start(self) -> None:
        if self.running:
            return
        logger.info(f"Scheduling feed indexing every {self.interval_seconds}s")
        self._task = asyncio.create_task(self._loop())
    
    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Feed indexing scheduler stopped")
    
    async def _loop(self) -> None:
        if not self.run_immediately:
            await asyncio.sleep(self.interval_seconds)
        
        while True:
            try:
                await self.job.run()
            except Exception as e:
                logger.warning(f"Scheduled run failed, next run in {self.interval_seconds}s: {e}")
            await asyncio.sleep(self.interval_seconds)
