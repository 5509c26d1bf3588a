"""Bulk writes of feed items into the search index."""

from typing import Any, Dict, List

from opensearchpy.exceptions import ConnectionError as SearchConnectionError, ConnectionTimeout
from tenacity import AsyncRetrying, stop_after_attempt, wait_exponential, retry_if_exception_type

from feedindex.core.logging import get_logger
from feedindex.indexer.errors import BulkWriteError

logger = get_logger(__name__)

TRANSIENT_ERRORS = (SearchConnectionError, ConnectionTimeout)


def feed_document_id(user_id, item_id) -> str:
    """Composite document id; the same (user, item) pair always maps to the same document."""
    return f"feed-{user_id}-{item_id}"


class BulkIndexer:
    """Writes one user's feed items into the index as a single bulk request."""
    
    def __init__(self, client, index_name: str, max_attempts: int = 3):
        self.client = client
        self.index_name = index_name
        self.max_attempts = max_attempts
    
    def build_actions(self, user, items: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """Interleaved index headers and document bodies for ``items``."""
        actions = []
        for item in items:
            doc_id = feed_document_id(user.id, item["_id"])
            body = {key: value for key, value in item.items() if key != "_id"}
            actions.append({"index": {"_index": self.index_name, "_id": doc_id}})
            actions.append(body)
        return actions
    
    async def write(self, user, items: List[Dict[str, Any]]) -> int:
        """
        Index ``items`` for ``user``.
        
        Returns:
            Number of documents written
            
        Raises:
            BulkWriteError: if the request fails or any document is rejected
        """
        if not items:
            return 0
        
        logger.debug(f"Creating bulk operation for {self.index_name} index ({len(items)} items)")
        actions = self.build_actions(user, items)
        
        try:
            response = await self._submit(actions)
        except Exception as e:
            logger.error(f"Failed to bulk insert for {user.email}: {e}")
            raise BulkWriteError(user.id, user.email, f"bulk request failed: {e}") from e
        
        if response.get("errors"):
            failed = [
                entry for entry in response.get("items", [])
                if entry.get("index", {}).get("error")
            ]
            logger.error(f"Bulk insert for {user.email} rejected {len(failed)} documents")
            raise BulkWriteError(
                user.id, user.email,
                f"{len(failed)} of {len(items)} documents rejected",
                failed_items=len(failed)
            )
        
        logger.debug(f"Feed index successfully updated for {user.email}")
        return len(items)
    
    async def _submit(self, actions: List[Dict[str, Any]]) -> Dict[str, Any]:
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(multiplier=0.5, min=0.5, max=4.0),
            retry=retry_if_exception_type(TRANSIENT_ERRORS),
            reraise=True
        ):
            with attempt:
                if attempt.retry_state.attempt_number > 1:
                    logger.warning(f"Retrying bulk request (attempt {attempt.retry_state.attempt_number})")
                return await self.client.bulk(body=actions)
