"""
Genealogist Module
Resolves which candidates descend from the included or excluded roots by
walking DTree parent links, without requiring the DTreeAncestors table
"""

import logging
from collections import OrderedDict
from typing import Any, Dict, Iterable, List, Optional, Set

from .queries import TraversalQueries

logger = logging.getLogger(__name__)

# ParentID of a volume root
NO_PARENT = -1

# Ancestry of a resolved node
EXCLUDED = "excluded"       # an excluded root at or above the node
INCLUDED = "included"       # an included root at or above, no excluded root
UNROOTED = "unrooted"       # no configured root at or above


class NodeCache:
    """
    Bounded LRU set of node ids.

    Capacity starts at min_size and doubles when full, up to max_size;
    beyond that the least recently used id is evicted. Not thread-safe.
    """

    def __init__(self, min_size: int, max_size: int):
        if min_size <= 0 or max_size < min_size:
            raise ValueError(f"Invalid cache bounds: min={min_size}, max={max_size}")
        self.min_size = min_size
        self.max_size = max_size
        self.capacity = min_size
        self._entries: "OrderedDict[int, None]" = OrderedDict()
        self.hits = 0
        self.misses = 0

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, node_id: int) -> bool:
        if node_id in self._entries:
            self._entries.move_to_end(node_id)
            self.hits += 1
            return True
        self.misses += 1
        return False

    def add(self, node_id: int):
        if node_id in self._entries:
            self._entries.move_to_end(node_id)
            return
        if len(self._entries) >= self.capacity:
            if self.capacity < self.max_size:
                self.capacity = min(self.capacity * 2, self.max_size)
            else:
                self._entries.popitem(last=False)
        self._entries[node_id] = None

    def add_all(self, node_ids: Iterable[int]):
        for node_id in node_ids:
            self.add(node_id)


class Genealogist:
    """
    Matches candidates against the included and excluded roots.

    A node matches when it is equal to or below an included root (or no
    included roots are configured) and is not equal to or below any
    excluded root, the same rule the DTreeAncestors queries apply. The walk
    stops early only at an excluded root or a cached node. Every node on a
    resolved chain is cached with its own ancestry.
    """

    def __init__(self, client, queries: TraversalQueries,
                 included_roots: Iterable[int] = (),
                 excluded_roots: Iterable[int] = (),
                 min_cache_size: int = 1000, max_cache_size: int = 32000):
        """
        Initialize genealogist

        Args:
            client: Sysadmin relational client used for parent lookups
            queries: Query builder
            included_roots: Included location node ids
            excluded_roots: Excluded location and volume node ids
            min_cache_size: Initial capacity of each ancestry cache
            max_cache_size: Maximum capacity of each ancestry cache
        """
        self.client = client
        self.queries = queries
        self.included_roots: Set[int] = set(included_roots)
        self.excluded_roots: Set[int] = set(excluded_roots)
        self.included_cache = NodeCache(min_cache_size, max_cache_size)
        self.excluded_cache = NodeCache(min_cache_size, max_cache_size)
        self.unrooted_cache = NodeCache(min_cache_size, max_cache_size)
        self._caches = {
            EXCLUDED: self.excluded_cache,
            INCLUDED: self.included_cache,
            UNROOTED: self.unrooted_cache,
        }
        self.query_count = 0

    def _known_ancestry(self, node_id: int) -> Optional[str]:
        if node_id in self.excluded_roots or node_id in self.excluded_cache:
            return EXCLUDED
        if node_id in self.included_cache:
            return INCLUDED
        if node_id in self.unrooted_cache:
            return UNROOTED
        return None

    def _top_ancestry(self, node_id: int) -> str:
        """Ancestry of the topmost node reached by a walk"""
        return INCLUDED if node_id in self.included_roots else UNROOTED

    def _fetch_parents(self, node_ids: Iterable[int]) -> Dict[int, int]:
        where, view, columns = self.queries.parents(sorted(node_ids))
        self.query_count += 1
        records = self.client.execute(where, view, columns)
        return {records.to_integer(i, "DataID"): records.to_integer(i, "ParentID")
                for i in range(records.size())}

    def _resolve(self, chain: List[int], ancestry: str, remember: bool = True) -> bool:
        """
        Carry the ancestry of the chain's last node down to its first

        Args:
            chain: Node ids from a candidate upwards
            ancestry: Ancestry of chain[-1]
            remember: Cache every node on the chain
        """
        for i in range(len(chain) - 1, -1, -1):
            node_id = chain[i]
            if i < len(chain) - 1 and ancestry == UNROOTED and node_id in self.included_roots:
                ancestry = INCLUDED
            if remember:
                self._caches[ancestry].add(node_id)
        if ancestry == EXCLUDED:
            return False
        if ancestry == INCLUDED:
            return True
        return not self.included_roots

    def matching_descendants(self, rows: Iterable[Dict[str, Any]]) -> Optional[List[int]]:
        """
        Find the candidates under an included root and not under an excluded root

        Args:
            rows: Candidate rows with a DataID and optionally a ParentID

        Returns:
            Matching DataIDs in input order, or None if none match
        """
        candidates: List[int] = []
        parents: Dict[int, int] = {}
        for row in rows:
            node_id = int(row["DataID"])
            candidates.append(node_id)
            if row.get("ParentID") is not None:
                parents[node_id] = int(row["ParentID"])

        verdicts: Dict[int, bool] = {}
        # Walk every unresolved candidate up one level per query.
        chains = {node_id: [node_id] for node_id in candidates}
        while chains:
            pending = {}
            for node_id, chain in chains.items():
                current = chain[-1]
                ancestry = self._known_ancestry(current)
                if ancestry is None:
                    if current not in parents:
                        pending[node_id] = chain
                        continue
                    parent = parents[current]
                    if parent != NO_PARENT and parent not in chain:
                        chain.append(parent)
                        pending[node_id] = chain
                        continue
                    ancestry = self._top_ancestry(current)
                verdicts[node_id] = self._resolve(chain, ancestry)

            unknown = {chain[-1] for chain in pending.values()
                       if chain[-1] not in parents and self._known_ancestry(chain[-1]) is None}
            if unknown:
                parents.update(self._fetch_parents(unknown))
                for node_id, chain in list(pending.items()):
                    if chain[-1] in unknown and chain[-1] not in parents:
                        # Node vanished since the candidate query.
                        verdicts[node_id] = self._resolve(
                            chain, self._top_ancestry(chain[-1]), remember=False)
                        del pending[node_id]
            chains = pending

        matches = [node_id for node_id in candidates if verdicts.get(node_id)]
        logger.debug(f"GENEALOGIST: {len(matches)} of {len(candidates)} candidates matched "
                     f"({self.query_count} parent queries so far)")
        return matches or None
