"""
Traversal Models Module
Values returned by a traversal call
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from .checkpoint import Checkpoint


@dataclass(frozen=True)
class DeleteEvent:
    """A delete recorded in the audit source"""
    data_id: int
    audit_date: datetime
    event_id: Optional[int] = None


@dataclass
class TraversalBatch:
    """
    One batch of changes and the checkpoint that follows it.

    An empty batch means no documents yet but more candidates remain, so
    the host should persist the checkpoint and call again immediately.
    """
    checkpoint: Checkpoint
    inserts: List[Dict[str, Any]] = field(default_factory=list)
    deletes: List[DeleteEvent] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.inserts and not self.deletes

    def __len__(self) -> int:
        return len(self.inserts) + len(self.deletes)
