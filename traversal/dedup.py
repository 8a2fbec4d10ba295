"""
Delete Dedup Cache Module
Suppresses delete events already delivered in the last checkpointed batch
"""

import logging
from typing import FrozenSet, Iterable, List

logger = logging.getLogger(__name__)


class DeleteDedupCache:
    """
    Immutable snapshot of delivered delete ids.

    Readers take the current frozenset reference without locking; a
    publish replaces the reference and never edits a published set.
    """

    def __init__(self, ids: Iterable[int] = ()):
        self._snapshot: FrozenSet[int] = frozenset(ids)

    def snapshot(self) -> FrozenSet[int]:
        return self._snapshot

    def publish(self, ids: Iterable[int]) -> FrozenSet[int]:
        """Replace the cached ids wholesale"""
        snapshot = frozenset(ids)
        self._snapshot = snapshot
        logger.debug(f"DELETE CACHE: published {len(snapshot)} ids")
        return snapshot

    def filter(self, events: Iterable) -> List:
        """Drop events whose data_id was delivered in the cached batch"""
        snapshot = self.snapshot()
        return [event for event in events if event.data_id not in snapshot]
