"""Change-feed traversal module"""

from .checkpoint import Checkpoint
from .checkpoint_store import CheckpointStore
from .dedup import DeleteDedupCache
from .exceptions import (
    CandidateRegressionError,
    InvalidArgumentError,
    InvalidCursorError,
    QueryExecutionError,
    TraversalError
)
from .manager import Deadline, TraversalManager
from .models import DeleteEvent, TraversalBatch

__all__ = [
    'CandidateRegressionError',
    'Checkpoint',
    'CheckpointStore',
    'Deadline',
    'DeleteDedupCache',
    'DeleteEvent',
    'InvalidArgumentError',
    'InvalidCursorError',
    'QueryExecutionError',
    'TraversalBatch',
    'TraversalError',
    'TraversalManager'
]
