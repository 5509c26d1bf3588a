"""Per-user feed aggregation from followed collections."""

from typing import Any, Dict, List

from sqlalchemy.ext.asyncio import async_sessionmaker

from feedindex.core.logging import get_logger
from feedindex.core.repositories import aggregate_collection_items, FEED_ITEM_LIMIT
from feedindex.indexer.errors import AggregationError

logger = get_logger(__name__)


class FeedAggregator:
    """Builds the ordered, capped list of feed items for one user."""
    
    def __init__(self, session_factory: async_sessionmaker, limit: int = FEED_ITEM_LIMIT):
        self.session_factory = session_factory
        self.limit = limit
    
    async def fetch(self, user) -> List[Dict[str, Any]]:
        """
        Get the feed items of ``user``, most recently added first.
        
        Every returned item is a fresh dictionary holding the raw item
        fields, the ``collection`` it came from and the ``feedOwner`` email.
        Users that follow nothing get an empty list without a query.
        
        Raises:
            AggregationError: if the collection query fails
        """
        collection_ids = user.followed_collection_ids()
        logger.debug(f"User {user.email} follows {len(collection_ids)} collections")
        
        if not collection_ids:
            return []
        
        try:
            async with self.session_factory() as session:
                records = await aggregate_collection_items(session, collection_ids, limit=self.limit)
        except Exception as e:
            logger.error(f"Failed to retrieve feed for {user.email}: {e}")
            raise AggregationError(user.id, user.email, f"collection query failed: {e}") from e
        
        return [
            {**record["item"], "collection": record["collection"], "feedOwner": user.email}
            for record in records
        ]
