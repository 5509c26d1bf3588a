"""Search engine client construction."""

from typing import Optional

from opensearchpy import AsyncOpenSearch

from .settings import Settings, get_settings


def create_search_client(settings: Optional[Settings] = None) -> AsyncOpenSearch:
    """Create the async OpenSearch client for the configured cluster."""
    settings = settings or get_settings()
    
    http_auth = None
    if settings.opensearch_user:
        http_auth = (settings.opensearch_user, settings.opensearch_password)
    
    return AsyncOpenSearch(
        hosts=[settings.opensearch_url],
        http_auth=http_auth,
        timeout=settings.opensearch_timeout,
        max_retries=0,  # retries are handled by the bulk indexer
    )
