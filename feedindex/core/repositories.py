"""Repository layer for the read side of the feed datastore.

Provides the two queries the indexing pipeline depends on: the list of
users eligible for a feed, and the flattened, newest-first item listing of a
set of collections.
"""

from typing import Any, Dict, List, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from feedindex.core.models import User, Collection, CollectionItem
from feedindex.core.logging import get_logger

logger = get_logger(__name__)

FEED_ITEM_LIMIT = 512


async def find_eligible_users(session: AsyncSession) -> List[User]:
    """
    Get users that have both an email and a follow list, newest id first.
    
    Args:
        session: Database session
        
    Returns:
        List of User objects
    """
    stmt = (
        select(User)
        .where(
            User.email.is_not(None),
            User.follow_collections.is_not(None),
        )
        .order_by(User.id.desc())
    )
    result = await session.execute(stmt)
    users = list(result.scalars().all())
    
    logger.debug(f"Found {len(users)} eligible users")
    return users


async def aggregate_collection_items(
    session: AsyncSession,
    collection_ids: Sequence[int],
    limit: int = FEED_ITEM_LIMIT
) -> List[Dict[str, Any]]:
    """
    Flatten the items of the given collections into one newest-first listing.
    
    Each collection item becomes one record pairing the raw item with the
    metadata of the collection it came from. Items sharing an ``added``
    timestamp are ordered by collection id, then by their position inside
    the collection.
    
    Args:
        session: Database session
        collection_ids: Ids of the collections to read
        limit: Maximum number of records returned
        
    Returns:
        List of ``{"item": {...}, "collection": {...}}`` dictionaries
    """
    if not collection_ids:
        return []
    
    stmt = (
        select(CollectionItem, Collection)
        .join(Collection, CollectionItem.collection_id == Collection.id)
        .where(Collection.id.in_(list(collection_ids)))
        .order_by(
            CollectionItem.added.desc(),
            CollectionItem.collection_id.asc(),
            CollectionItem.position.asc(),
        )
        .limit(limit)
    )
    result = await session.execute(stmt)
    
    return [
        {"item": item.to_record(), "collection": collection.to_metadata()}
        for item, collection in result.all()
    ]
