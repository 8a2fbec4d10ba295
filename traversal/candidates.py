"""
Candidate Selection Module
Fetches the bounded, ordered sets of changed and deleted nodes after a checkpoint
"""

import logging
from abc import ABC, abstractmethod
from datetime import timedelta
from typing import List, Optional

from .checkpoint import Checkpoint
from .dedup import DeleteDedupCache
from .exceptions import CandidateRegressionError
from .models import DeleteEvent
from .queries import TraversalQueries

logger = logging.getLogger(__name__)


class DeleteSource(ABC):
    """Strategy for reading delete events from the audit table"""

    indexed = False

    def __init__(self, client, queries: TraversalQueries, dedup_cache: DeleteDedupCache):
        self.client = client
        self.queries = queries
        self.dedup_cache = dedup_cache

    def _fetch(self, checkpoint: Checkpoint, batch_size: int) -> List[DeleteEvent]:
        where, view, columns = self.queries.deletes(checkpoint, batch_size, self.indexed)
        records = self.client.execute(where, view, columns)
        events = [DeleteEvent(records.to_integer(i, "DataID"),
                              records.to_date(i, "AuditDate"),
                              records.to_integer(i, "EventID"))
                  for i in range(records.size())]
        if events:
            checkpoint.note_delete_window(events[-1].audit_date, events[-1].event_id)
        return events

    @abstractmethod
    def get_deletes(self, checkpoint: Checkpoint, batch_size: int) -> Optional[List[DeleteEvent]]:
        pass


class IndexedDeleteSource(DeleteSource):
    """Audit source that continues directly after an event id"""

    indexed = True

    def get_deletes(self, checkpoint, batch_size):
        events = self._fetch(checkpoint, batch_size)
        fresh = self.dedup_cache.filter(events)
        if not fresh:
            return None
        return fresh


class TimestampDeleteSource(DeleteSource):
    """
    Audit source ordered by timestamp first. The query continues strictly
    after (AuditDate, EventID) once the cursor has an event id; before
    that, rows sharing the checkpoint second are returned again and must
    be removed by the dedup cache when the batch is assembled.
    """

    def get_deletes(self, checkpoint, batch_size):
        return self._fetch(checkpoint, batch_size)


class CandidateSelector:
    """Runs the candidate and delete queries as the sysadmin identity"""

    def __init__(self, client, queries: TraversalQueries, time_warp_fuzz_days: int = 0,
                 delete_source: Optional[DeleteSource] = None):
        """
        Initialize candidate selector

        Args:
            client: Sysadmin relational client. A restricted identity could
                see no rows in a full batch and stall the traversal.
            queries: Query builder
            time_warp_fuzz_days: Negative disables the time warp check;
                zero checks regressions only; positive also bounds how
                far ahead of the checkpoint the first candidate may be
            delete_source: Delete strategy, or None when deletes are not tracked
        """
        self.client = client
        self.queries = queries
        self.time_warp_fuzz_days = time_warp_fuzz_days
        self.delete_source = delete_source

    def get_candidates(self, checkpoint: Checkpoint, batch_size: int):
        """
        Get up to batch_size (DataID, ModifyDate) rows after the checkpoint

        Raises:
            CandidateRegressionError: if the candidates precede the checkpoint
        """
        where, view, columns = self.queries.candidates(checkpoint, batch_size)
        candidates = self.client.execute(where, view, columns)
        count = candidates.size()
        logger.debug(f"CANDIDATES: {count} rows at batch size {batch_size}")
        if count > 0:
            if self.time_warp_fuzz_days >= 0:
                self.check_time_warp(candidates, checkpoint)
            checkpoint.note_insert_window(candidates.to_date(count - 1, "ModifyDate"),
                                          candidates.to_integer(count - 1, "DataID"))
        return candidates

    def check_time_warp(self, candidates, checkpoint: Checkpoint):
        """Compare the first candidate with the checkpoint's insert position"""
        if checkpoint.insert_date is None:
            return
        first_date = candidates.to_date(0, "ModifyDate").replace(microsecond=0, tzinfo=None)
        first_id = candidates.to_integer(0, "DataID")
        if first_date < checkpoint.insert_date:
            raise CandidateRegressionError(
                f"Time warp: candidate {first_id} modified {first_date} "
                f"is older than checkpoint {checkpoint}")
        if first_date == checkpoint.insert_date and first_id <= checkpoint.insert_id:
            raise CandidateRegressionError(
                f"Time warp: candidate {first_id} at {first_date} "
                f"does not follow checkpoint {checkpoint}")
        if self.time_warp_fuzz_days > 0:
            limit = checkpoint.insert_date + timedelta(days=self.time_warp_fuzz_days)
            if first_date > limit:
                raise CandidateRegressionError(
                    f"Time warp: candidate {first_id} modified {first_date} is more than "
                    f"{self.time_warp_fuzz_days} days after checkpoint {checkpoint}")

    def get_deletes(self, checkpoint: Checkpoint, batch_size: int) -> Optional[List[DeleteEvent]]:
        """Get delete events after the checkpoint, or None when deletes are not tracked"""
        if self.delete_source is None:
            return None
        return self.delete_source.get_deletes(checkpoint, batch_size)
