"""
Traversal Manager Module
Time-boxed scan loop producing ordered batches of changes from a checkpoint
"""

import logging
import threading
import time
from datetime import datetime
from typing import List, Optional, Tuple

from config.settings import TraversalConfig
from .candidates import (
    CandidateSelector,
    DeleteSource,
    IndexedDeleteSource,
    TimestampDeleteSource
)
from .checkpoint import Checkpoint
from .dedup import DeleteDedupCache
from .dialects import SqlDialect, detect_dialect, get_dialect
from .exceptions import InvalidArgumentError, QueryExecutionError
from .fields import build_fields, select_list, to_properties
from .genealogist import Genealogist
from .matcher import MatchFilter
from .models import DeleteEvent, TraversalBatch
from .queries import TraversalQueries

logger = logging.getLogger(__name__)

MAX_BATCH_SIZE = 1000
GROWTH_FACTOR = 10


class Deadline:
    """Per-call time limit"""

    def __init__(self, seconds: float, clock=time.monotonic):
        self.clock = clock
        self.expires_at = clock() + seconds

    def expired(self) -> bool:
        return self.clock() >= self.expires_at


class TraversalManager:
    """Incrementally traverses changed and deleted nodes in (ModifyDate, DataID) order"""

    def __init__(self, config: TraversalConfig, sysadmin_client, traversal_client=None,
                 dedup_cache: Optional[DeleteDedupCache] = None,
                 dialect: Optional[SqlDialect] = None):
        """
        Initialize traversal manager

        Args:
            config: Traversal configuration
            sysadmin_client: Client for the administrative identity
            traversal_client: Client for the end-user identity; defaults
                to the sysadmin client
            dedup_cache: Shared delete dedup cache
            dialect: Overrides the configured or detected dialect
        """
        self.config = config
        self.sysadmin_client = sysadmin_client
        self.traversal_client = traversal_client or sysadmin_client
        if dialect is None:
            if config.servtype:
                dialect = get_dialect(config.servtype)
            else:
                dialect = detect_dialect(sysadmin_client)
        self.dialect = dialect
        self.fields = build_fields(config.select_expressions)

        excluded_roots = list(config.excluded_location_nodes) + self._get_excluded_volumes()
        self.queries = TraversalQueries(
            dialect,
            select_list(self.fields),
            included_roots=config.included_location_nodes,
            excluded_roots=excluded_roots,
            excluded_node_types=config.excluded_node_types,
            sql_where_condition=config.sql_where_condition
        )

        self.dedup_cache = dedup_cache or DeleteDedupCache()
        self.delete_source: Optional[DeleteSource] = None
        if config.track_deletes:
            source_class = IndexedDeleteSource if config.deletes_indexed else TimestampDeleteSource
            self.delete_source = source_class(sysadmin_client, self.queries, self.dedup_cache)
        self.selector = CandidateSelector(sysadmin_client, self.queries,
                                          config.time_warp_fuzz_days, self.delete_source)

        self.genealogist: Optional[Genealogist] = None
        if not config.use_dtree_ancestors and self.queries.has_hierarchy_filter:
            self.genealogist = Genealogist(
                sysadmin_client, self.queries,
                included_roots=config.included_location_nodes,
                excluded_roots=excluded_roots,
                min_cache_size=config.genealogist_min_cache_size,
                max_cache_size=config.genealogist_max_cache_size
            )
        self.matcher = MatchFilter(self.queries, sysadmin_client, self.traversal_client,
                                   self.genealogist, threading.Lock())

        self.batch_size = config.default_batch_size

    def _get_excluded_volumes(self) -> List[int]:
        if not self.config.excluded_volume_types:
            return []
        where, view, columns = TraversalQueries.excluded_volumes(self.config.excluded_volume_types)
        volumes = self.sysadmin_client.execute(where, view, columns)
        ids = [volumes.to_integer(i, "DataID") for i in range(volumes.size())]
        logger.info(f"EXCLUDED VOLUMES: {ids}")
        return ids

    def set_batch_hint(self, hint: int):
        """
        Set the batch size

        Args:
            hint: Requested size; 0 restores the default and values above
                the ceiling are clamped

        Raises:
            InvalidArgumentError: if the hint is negative
        """
        if hint < 0:
            raise InvalidArgumentError(f"Batch hint must not be negative: {hint}")
        elif hint == 0:
            self.batch_size = self.config.default_batch_size
        else:
            self.batch_size = min(hint, MAX_BATCH_SIZE)

    def start_traversal(self, deadline=None) -> Optional[TraversalBatch]:
        """Start a traversal from the configured start date, or the beginning"""
        last_event = self._get_last_delete_event() if self.config.track_deletes else None
        checkpoint = Checkpoint.forge_initial(self.config.start_date, last_event,
                                              self.config.track_deletes)
        logger.info(f"START @{id(self):x} (initial checkpoint: {checkpoint})")
        return self._list_nodes(checkpoint, deadline)

    def resume_traversal(self, checkpoint_text: Optional[str], deadline=None) -> Optional[TraversalBatch]:
        """
        Get the batch following a checkpoint

        Args:
            checkpoint_text: Checkpoint returned with an earlier batch
            deadline: Object with an expired() method bounding the scan;
                defaults to the configured traversal time limit

        Returns:
            A populated batch, an empty batch meaning "call again now",
            or None meaning nothing new is available yet
        """
        logger.info(f"RESUME: {checkpoint_text} @{id(self):x}")
        checkpoint = Checkpoint.parse(checkpoint_text)
        if self.config.track_deletes and checkpoint.delete_date is None:
            date, event_id = self._get_last_delete_event() or (datetime.now(), None)
            checkpoint.set_delete_checkpoint(date, event_id)
        return self._list_nodes(checkpoint, deadline)

    def checkpoint(self, batch: TraversalBatch) -> str:
        """
        Acknowledge a delivered batch and get its checkpoint text.
        Replaces the dedup cache with the batch's delete ids.
        """
        if batch.deletes:
            self.dedup_cache.publish(event.data_id for event in batch.deletes)
        text = str(batch.checkpoint)
        logger.info(f"CHECKPOINT: {text} @{id(self):x}")
        return text

    def _get_last_delete_event(self) -> Optional[Tuple[datetime, Optional[int]]]:
        where, view, columns = self.queries.last_delete_event()
        try:
            records = self.sysadmin_client.execute(where, view, columns)
        except QueryExecutionError as e:
            logger.warning(f"Unable to establish initial delete checkpoint, "
                           f"deletes before now will not be reported: {e}")
            return None
        if records.size() == 0:
            return None
        return records.to_date(0, "AuditDate"), records.to_integer(0, "EventID")

    def _get_deletes(self, checkpoint: Checkpoint, batch_size: int) -> List[DeleteEvent]:
        deletes = self.selector.get_deletes(checkpoint, batch_size)
        if not deletes:
            return []
        if not self.delete_source.indexed:
            deletes = self.dedup_cache.filter(deletes)
        return deletes

    def _list_nodes(self, checkpoint: Checkpoint, deadline=None) -> Optional[TraversalBatch]:
        if deadline is None:
            deadline = Deadline(self.config.traversal_time_limit)
        batch_size = self.batch_size

        while True:
            candidates = self.selector.get_candidates(checkpoint, batch_size)
            deletes = self._get_deletes(checkpoint, batch_size)

            if candidates.size() == 0 and not deletes:
                # Deletes dropped as already delivered still move the cursor.
                checkpoint.advance_to_end()
                if checkpoint.has_changed():
                    # Caught up to an advanced window; the host calls again.
                    break
                logger.debug("No new documents")
                return None

            inserts = []
            if candidates.size() > 0:
                high_water, high_id = max(
                    (candidates.to_date(i, "ModifyDate"), candidates.to_integer(i, "DataID"))
                    for i in range(candidates.size()))
                checkpoint.set_insert_checkpoint(high_water, high_id)
                ids = [candidates.to_integer(i, "DataID") for i in range(candidates.size())]
                results = self.matcher.get_results(ids, checkpoint.insert_date)
                if results is not None:
                    inserts = [to_properties(self.fields, results, i) for i in range(results.size())]

            if deletes:
                checkpoint.set_delete_checkpoint(deletes[-1].audit_date, deletes[-1].event_id)
            checkpoint.advance_to_end()

            if inserts or deletes:
                logger.info(f"BATCH: {len(inserts)} inserts, {len(deletes)} deletes, "
                            f"checkpoint {checkpoint}")
                return TraversalBatch(checkpoint, inserts, deletes)

            # Sparse region: widen the window and keep scanning.
            batch_size = min(MAX_BATCH_SIZE, batch_size * GROWTH_FACTOR)
            logger.debug(f"No matches; batch size now {batch_size}, checkpoint {checkpoint}")
            if deadline.expired():
                break

        logger.info(f"No documents yet, more candidates remain; checkpoint {checkpoint}")
        return TraversalBatch(checkpoint)
