"""Errors raised by the feed indexing pipeline."""

from typing import Optional


class FeedIndexingError(Exception):
    """Base class for indexing run failures."""


class IndexProvisioningError(FeedIndexingError):
    """The destination index could not be checked, created or mapped."""
    
    def __init__(self, index_name: str, message: str):
        super().__init__(f"Index '{index_name}': {message}")
        self.index_name = index_name


class UserIndexingError(FeedIndexingError):
    """Indexing failed for a single user."""
    
    def __init__(self, user_id, email: Optional[str], message: str):
        super().__init__(f"User {user_id} ({email}): {message}")
        self.user_id = user_id
        self.email = email


class AggregationError(UserIndexingError):
    """The user's followed collections could not be read."""


class BulkWriteError(UserIndexingError):
    """The user's batch write was rejected or failed in transport."""
    
    def __init__(self, user_id, email: Optional[str], message: str, failed_items: int = 0):
        super().__init__(user_id, email, message)
        self.failed_items = failed_items


class UserTimeoutError(UserIndexingError):
    """The user's aggregation and write did not finish in time."""
