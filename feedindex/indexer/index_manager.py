"""Create-if-missing management of the feed index."""

from typing import Any, Dict

from feedindex.core.logging import get_logger
from feedindex.indexer.errors import IndexProvisioningError

logger = get_logger(__name__)


class IndexManager:
    """Makes sure an index and its mapping exist before documents are written.
    
    Mappings are treated as immutable: an existing index is left untouched.
    """
    
    def __init__(self, client):
        self.client = client
    
    async def ensure(self, index_name: str, mapping: Dict[str, Any]) -> bool:
        """
        Ensure ``index_name`` exists, creating it with ``mapping`` if missing.
        
        Args:
            index_name: Name of the destination index
            mapping: Document mapping applied on creation
            
        Returns:
            True if the index was created, False if it already existed
            
        Raises:
            IndexProvisioningError: if the check, the creation or the mapping fails
        """
        try:
            exists = await self.client.indices.exists(index=index_name)
        except Exception as e:
            logger.error(f"Failed to check index {index_name}: {e}")
            raise IndexProvisioningError(index_name, f"existence check failed: {e}") from e
        
        if exists:
            logger.info(f"Index already exists: {index_name}")
            return False
        
        logger.info(f"Index is missing and will be created: {index_name}")
        await self._create(index_name, mapping)
        return True
    
    async def _create(self, index_name: str, mapping: Dict[str, Any]) -> None:
        try:
            await self.client.indices.create(index=index_name)
        except Exception as e:
            logger.error(f"Failed to create index {index_name}: {e}")
            raise IndexProvisioningError(index_name, f"creation failed: {e}") from e
        
        logger.info(f"Initializing mappings for index {index_name}")
        try:
            await self.client.indices.put_mapping(index=index_name, body=mapping)
        except Exception as e:
            logger.error(f"Failed to initialize mappings for index {index_name}: {e}")
            raise IndexProvisioningError(index_name, f"mapping failed: {e}") from e
        
        logger.info(f"Index created successfully: {index_name}")
