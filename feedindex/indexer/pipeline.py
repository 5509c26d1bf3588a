"""Feed indexing pipeline orchestrator.

Coordinates a full rebuild of the feed index:
1. Ensure the destination index and its mapping exist
2. Load every user eligible for a feed
3. Fan out over users with bounded concurrency: aggregate, then bulk write
4. Return run statistics
"""

import asyncio
import time
from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.ext.asyncio import async_sessionmaker

from feedindex.core.db import create_engine, create_session_factory
from feedindex.core.logging import get_logger
from feedindex.core.repositories import find_eligible_users
from feedindex.core.search import create_search_client
from feedindex.core.settings import Settings, get_settings
from feedindex.indexer.aggregator import FeedAggregator
from feedindex.indexer.bulk import BulkIndexer
from feedindex.indexer.errors import FeedIndexingError, UserIndexingError, UserTimeoutError
from feedindex.indexer.index_manager import IndexManager
from feedindex.indexer.mapping import DEFAULT_INDEX_NAME, FEED_MAPPING

logger = get_logger(__name__)

DEFAULT_CONCURRENCY = 8
PROGRESS_LOG_EVERY = 50


class RunState(str, Enum):
    NOT_STARTED = "not_started"
    ENSURING_INDEX = "ensuring_index"
    FANNING_OUT = "fanning_out"
    COMPLETED = "completed"
    FAILED = "failed"


class FailurePolicy(str, Enum):
    """What a single user's failure does to the rest of the run."""
    ABORT = "abort"
    ISOLATE = "isolate"


@dataclass
class UserFailure:
    """A user whose feed could not be indexed in isolate mode."""
    user_id: Any
    email: Optional[str]
    kind: str
    error: str
    
    @classmethod
    def from_error(cls, error: UserIndexingError) -> "UserFailure":
        return cls(
            user_id=error.user_id,
            email=error.email,
            kind=type(error).__name__,
            error=str(error)
        )


@dataclass
class RunSummary:
    """Statistics of a completed run."""
    users: int
    items: int
    elapsed_seconds: float
    errors: List[UserFailure] = field(default_factory=list)
    
    def to_dict(self) -> Dict[str, Any]:
        result = {
            "users": self.users,
            "items": self.items,
            "elapsedSeconds": self.elapsed_seconds,
        }
        if self.errors:
            result["errors"] = [asdict(failure) for failure in self.errors]
        return result


class FeedIndexingPipeline:
    """Rebuilds the feed index for all eligible users."""
    
    def __init__(
        self,
        session_factory: async_sessionmaker,
        index_manager: IndexManager,
        aggregator: FeedAggregator,
        bulk_indexer: BulkIndexer,
        index_name: str = DEFAULT_INDEX_NAME,
        mapping: Optional[Dict[str, Any]] = None,
        concurrency: int = DEFAULT_CONCURRENCY,
        failure_policy: FailurePolicy = FailurePolicy.ABORT,
        user_timeout: Optional[float] = None
    ):
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        
        self.session_factory = session_factory
        self.index_manager = index_manager
        self.aggregator = aggregator
        self.bulk_indexer = bulk_indexer
        self.index_name = index_name
        self.mapping = mapping or FEED_MAPPING
        self.concurrency = concurrency
        self.failure_policy = FailurePolicy(failure_policy)
        self.user_timeout = user_timeout
        self.state = RunState.NOT_STARTED
    
    async def run(self) -> RunSummary:
        """
        Run one full indexing pass.
        
        Returns:
            RunSummary with the number of eligible users, indexed items and
            elapsed time (plus per-user failures in isolate mode)
            
        Raises:
            IndexProvisioningError: if the index cannot be provisioned
            UserIndexingError: on the first per-user failure in abort mode
        """
        start_time = time.time()
        self.state = RunState.NOT_STARTED
        
        try:
            self.state = RunState.ENSURING_INDEX
            await self.index_manager.ensure(self.index_name, self.mapping)
            
            users = await self._load_users()
            logger.info(f"Indexing feeds of {len(users)} users into {self.index_name}")
            
            self.state = RunState.FANNING_OUT
            items, failures = await self._fan_out(users)
        except (Exception, asyncio.CancelledError) as e:
            self.state = RunState.FAILED
            runtime = time.time() - start_time
            logger.error(f"Feed indexing failed after {runtime:.2f}s: {e}")
            raise
        
        summary = RunSummary(
            users=len(users),
            items=items,
            elapsed_seconds=round(time.time() - start_time, 3),
            errors=failures
        )
        self.state = RunState.COMPLETED
        
        logger.info(
            f"Feed indexing completed in {summary.elapsed_seconds}s: "
            f"{summary.users} users, {summary.items} items indexed"
            + (f", {len(failures)} users failed" if failures else "")
        )
        return summary
    
    async def _load_users(self) -> List:
        try:
            async with self.session_factory() as session:
                return await find_eligible_users(session)
        except Exception as e:
            raise FeedIndexingError(f"Failed to load eligible users: {e}") from e
    
    async def _fan_out(self, users: List) -> Tuple[int, List[UserFailure]]:
        """Drain the users through a fixed pool of workers."""
        queue: asyncio.Queue = asyncio.Queue()
        for user in users:
            queue.put_nowait(user)
        
        totals = {"items": 0, "completed": 0}
        failures: List[UserFailure] = []
        
        async def worker() -> None:
            while True:
                try:
                    user = queue.get_nowait()
                except asyncio.QueueEmpty:
                    return
                
                try:
                    indexed = await self._index_user(user)
                    totals["items"] += indexed
                except UserIndexingError as e:
                    if self.failure_policy is FailurePolicy.ABORT:
                        raise
                    logger.warning(f"Skipping user after failure: {e}")
                    failures.append(UserFailure.from_error(e))
                
                totals["completed"] += 1
                if totals["completed"] % PROGRESS_LOG_EVERY == 0:
                    logger.info(f"Processed {totals['completed']}/{len(users)} users")
        
        workers = [asyncio.create_task(worker()) for _ in range(min(self.concurrency, len(users)))]
        try:
            await asyncio.gather(*workers)
        except BaseException:
            for task in workers:
                task.cancel()
            await asyncio.gather(*workers, return_exceptions=True)
            raise
        
        return totals["items"], failures
    
    async def _index_user(self, user) -> int:
        if self.user_timeout is None:
            return await self._aggregate_and_write(user)
        
        try:
            return await asyncio.wait_for(self._aggregate_and_write(user), timeout=self.user_timeout)
        except asyncio.TimeoutError as e:
            raise UserTimeoutError(user.id, user.email, f"timed out after {self.user_timeout}s") from e
    
    async def _aggregate_and_write(self, user) -> int:
        logger.debug(f"Retrieving feed for user {user.email}")
        items = await self.aggregator.fetch(user)
        
        if not items:
            logger.debug(f"Feed of {user.email} is empty, nothing to index")
            return 0
        
        logger.debug(f"Received {len(items)} feed items for {user.email}")
        return await self.bulk_indexer.write(user, items)


def build_pipeline(
    session_factory: async_sessionmaker,
    search_client,
    settings: Optional[Settings] = None
) -> FeedIndexingPipeline:
    """Wire the pipeline components from explicit handles."""
    settings = settings or get_settings()
    
    return FeedIndexingPipeline(
        session_factory=session_factory,
        index_manager=IndexManager(search_client),
        aggregator=FeedAggregator(session_factory),
        bulk_indexer=BulkIndexer(
            search_client,
            settings.feed_index_name,
            max_attempts=settings.bulk_max_attempts
        ),
        index_name=settings.feed_index_name,
        concurrency=settings.index_concurrency,
        failure_policy=FailurePolicy(settings.failure_policy),
        user_timeout=settings.user_timeout_seconds
    )


async def run_feed_indexing(settings: Optional[Settings] = None) -> RunSummary:
    """Run one indexing pass with handles built from settings."""
    settings = settings or get_settings()
    engine = create_engine(settings)
    search_client = create_search_client(settings)
    
    try:
        pipeline = build_pipeline(create_session_factory(engine), search_client, settings)
        return await pipeline.run()
    finally:
        await search_client.close()
        await engine.dispose()


def run_cli(policy: Optional[str] = None) -> RunSummary:
    """Synchronous CLI wrapper for the indexing pipeline."""
    settings = get_settings()
    if policy:
        settings = settings.model_copy(update={"failure_policy": policy})
    return asyncio.run(run_feed_indexing(settings))


def main():
    """CLI entry point."""
    import argparse
    import logging
    
    from feedindex.core.logging import setup_logging
    
    parser = argparse.ArgumentParser(description='Feed Index Rebuild')
    parser.add_argument(
        '--policy',
        choices=[policy.value for policy in FailurePolicy],
        default=None,
        help='Per-user failure policy (default: FAILURE_POLICY setting)'
    )
    parser.add_argument(
        '--verbose',
        action='store_true',
        help='Enable verbose logging'
    )
    
    args = parser.parse_args()
    
    setup_logging("indexer")
    if args.verbose:
        logging.getLogger('feedindex').setLevel(logging.DEBUG)
    
    try:
        summary = run_cli(policy=args.policy)
    except FeedIndexingError as e:
        print(f"\nFeed indexing failed: {e}")
        return 1
    
    print("\n=== Feed Indexing Results ===")
    print(f"Runtime: {summary.elapsed_seconds}s")
    print(f"Users: {summary.users}")
    print(f"Items Indexed: {summary.items}")
    
    if summary.errors:
        print(f"\nFailed users ({len(summary.errors)}):")
        for failure in summary.errors[:10]:
            print(f"  - {failure.error}")
        if len(summary.errors) > 10:
            print(f"  ... and {len(summary.errors) - 10} more")
    
    return 0 if not summary.errors else 1


if __name__ == "__main__":
    raise SystemExit(main())
