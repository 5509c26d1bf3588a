"""Feed indexing package.

Modules:
- Index provisioning (index_manager.py, mapping.py)
- Per-user feed aggregation (aggregator.py)
- Bulk document writes (bulk.py)
- Run orchestration (pipeline.py)
- Job, scheduler and notifier around a run (job.py, scheduler.py, notifier.py)
- Service application (app.py)
"""

from .errors import (
    FeedIndexingError,
    IndexProvisioningError,
    UserIndexingError,
    AggregationError,
    BulkWriteError,
    UserTimeoutError
)
from .index_manager import IndexManager
from .aggregator import FeedAggregator
from .bulk import BulkIndexer, feed_document_id
from .pipeline import (
    FeedIndexingPipeline,
    FailurePolicy,
    RunState,
    RunSummary,
    UserFailure,
    build_pipeline,
    run_feed_indexing
)

__all__ = [
    # Errors
    'FeedIndexingError',
    'IndexProvisioningError',
    'UserIndexingError',
    'AggregationError',
    'BulkWriteError',
    'UserTimeoutError',
    
    # Components
    'IndexManager',
    'FeedAggregator',
    'BulkIndexer',
    'feed_document_id',
    
    # Orchestration
    'FeedIndexingPipeline',
    'FailurePolicy',
    'RunState',
    'RunSummary',
    'UserFailure',
    'build_pipeline',
    'run_feed_indexing',
]
