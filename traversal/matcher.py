"""
Match Filter Module
Narrows a batch of candidates to the fully qualified result set
"""

import logging
import threading
from datetime import datetime
from typing import Optional, Sequence

from .genealogist import Genealogist
from .queries import TraversalQueries

logger = logging.getLogger(__name__)


class MatchFilter:
    """Applies inclusion, exclusion, hierarchy and custom filters to candidates"""

    def __init__(self, queries: TraversalQueries, sysadmin_client, traversal_client,
                 genealogist: Optional[Genealogist] = None,
                 lock: Optional[threading.Lock] = None):
        """
        Initialize match filter

        Args:
            queries: Query builder
            sysadmin_client: Client used to narrow candidates
            traversal_client: Client for the end-user identity, used to
                materialize the results
            genealogist: Resolves ancestors when DTreeAncestors is not used;
                None means the ancestors table answers hierarchy filters
            lock: Serializes access to the genealogist
        """
        self.queries = queries
        self.sysadmin_client = sysadmin_client
        self.traversal_client = traversal_client
        self.genealogist = genealogist
        self.lock = lock or threading.Lock()

    @property
    def uses_genealogist(self) -> bool:
        return self.genealogist is not None and self.queries.has_hierarchy_filter

    def get_results(self, candidate_ids: Sequence[int], high_water: datetime):
        """
        Get the matching rows among the candidates, ordered by (ModifyDate, DataID)

        Args:
            candidate_ids: DataIDs of the candidates
            high_water: ModifyDate of the last candidate

        Returns:
            RecordArray of results, or None if nothing matches
        """
        if not candidate_ids:
            return None
        if self.uses_genealogist:
            results = self._get_results_genealogist(candidate_ids, high_water)
        else:
            where, view, columns = self.queries.results(candidate_ids, high_water)
            results = self.traversal_client.execute(where, view, columns)

        if results is None or results.size() == 0:
            return None
        logger.debug(f"RESULTSET: {results.size()} rows")
        return results

    def _get_results_genealogist(self, candidate_ids, high_water):
        where, view, columns = self.queries.narrowed_candidates(candidate_ids, high_water)
        narrowed = self.sysadmin_client.execute(where, view, columns)
        if narrowed.size() == 0:
            return None

        rows = [{"DataID": narrowed.to_integer(i, "DataID"),
                 "ParentID": narrowed.to_integer(i, "ParentID")}
                for i in range(narrowed.size())]
        with self.lock:
            matches = self.genealogist.matching_descendants(rows)
        if matches is None:
            return None

        where, view, columns = self.queries.confirmed_results(matches, high_water)
        return self.traversal_client.execute(where, view, columns)
