"""
Traversal Queries Module
Builds the dialect-specific query fragments used during a traversal
"""

import logging
from datetime import datetime
from typing import Iterable, List, Optional, Sequence, Tuple

from .checkpoint import Checkpoint
from .dialects import SqlDialect

logger = logging.getLogger(__name__)

ORDER_BY = "ModifyDate, DataID"
DELETE_ORDER_BY = "AuditDate, EventID"

CANDIDATES_VIEW = "DTree"
RESULTS_VIEW = "WebNodes"
ANCESTORS_VIEW = "DTreeAncestors"
AUDIT_VIEW = "DAuditNew"

# DAuditNew.AuditID of a delete event
AUDIT_DELETE = 2

Query = Tuple[str, str, List[str]]


def id_list(ids: Iterable[int]) -> str:
    """Render ids as a comma-separated list, forcing each to an int"""
    return ",".join(str(int(i)) for i in ids)


class TraversalQueries:
    """Dialect query builder for candidate, match, ancestor and delete queries"""

    def __init__(self, dialect: SqlDialect, select_list: Sequence[str],
                 included_roots: Sequence[int] = (),
                 excluded_roots: Sequence[int] = (),
                 excluded_node_types: Sequence[int] = (),
                 sql_where_condition: Optional[str] = None):
        """
        Initialize the query builder

        Args:
            dialect: Backend dialect strategy
            select_list: Projection used for the result query
            included_roots: Included location node ids
            excluded_roots: Excluded location and volume node ids
            excluded_node_types: Excluded SubType values
            sql_where_condition: Additional raw SQL predicate
        """
        self.dialect = dialect
        self.select_list = list(select_list)
        self.included_roots = list(included_roots)
        self.excluded_roots = list(excluded_roots)
        self.excluded_node_types = list(excluded_node_types)
        self.sql_where_condition = sql_where_condition
        logger.debug(f"INCLUDED: {self.included_condition()}")
        logger.debug(f"EXCLUDED: {self.excluded_condition()}")

    @property
    def has_hierarchy_filter(self) -> bool:
        return bool(self.included_roots or self.excluded_roots)

    def after(self, column: str, id_column: str, date: datetime, ident: int) -> str:
        """Strictly-after predicate for a (date, id) ordering"""
        literal = self.dialect.timestamp_literal(date)
        return (f"({column} > {literal} or "
                f"({column} = {literal} and {id_column} > {int(ident)}))")

    def candidates(self, checkpoint: Checkpoint, batch_size: int) -> Query:
        where = None
        if checkpoint.insert_date is not None:
            where = self.after("ModifyDate", "DataID", checkpoint.insert_date, checkpoint.insert_id)
        return self.dialect.limit(["DataID", "ModifyDate"], CANDIDATES_VIEW, where,
                                  ORDER_BY, batch_size)

    def descendants_condition(self, roots: Sequence[int]) -> str:
        """Nodes equal to or below any of the roots, via DTreeAncestors"""
        roots = id_list(roots)
        return (f"(DataID in ({roots}) or DataID in "
                f"(select DataID from {ANCESTORS_VIEW} where AncestorID in ({roots})))")

    def included_condition(self) -> Optional[str]:
        if not self.included_roots:
            return None
        return self.descendants_condition(self.included_roots)

    def node_type_condition(self) -> Optional[str]:
        if not self.excluded_node_types:
            return None
        return f"SubType not in ({id_list(self.excluded_node_types)})"

    def excluded_condition(self) -> Optional[str]:
        conditions = []
        if self.node_type_condition():
            conditions.append(self.node_type_condition())
        if self.excluded_roots:
            conditions.append(f"not {self.descendants_condition(self.excluded_roots)}")
        return " and ".join(conditions) if conditions else None

    def match_condition(self, ids: Sequence[int], high_water: datetime,
                        hierarchy: bool = True) -> str:
        """
        AND together the filters applied to a batch of candidates

        Args:
            ids: Candidate DataIDs
            high_water: Newest ModifyDate among the candidates; rows
                modified later belong to a future batch
            hierarchy: Include the ancestor-based inclusion/exclusion
        """
        conditions = [
            f"DataID in ({id_list(ids)})",
            f"ModifyDate <= {self.dialect.timestamp_literal(high_water)}",
        ]
        if hierarchy:
            conditions.extend(c for c in (self.included_condition(), self.excluded_condition()) if c)
        elif self.node_type_condition():
            conditions.append(self.node_type_condition())
        if self.sql_where_condition:
            conditions.append(f"({self.sql_where_condition})")
        return " and ".join(conditions)

    def results(self, ids: Sequence[int], high_water: datetime, hierarchy: bool = True) -> Query:
        where = f"{self.match_condition(ids, high_water, hierarchy)} order by {ORDER_BY}"
        return where, RESULTS_VIEW, list(self.select_list)

    def confirmed_results(self, ids: Sequence[int], high_water: datetime) -> Query:
        """Full projection for ids already confirmed by the genealogist"""
        where = (f"DataID in ({id_list(ids)}) and "
                 f"ModifyDate <= {self.dialect.timestamp_literal(high_water)} order by {ORDER_BY}")
        return where, RESULTS_VIEW, list(self.select_list)

    def narrowed_candidates(self, ids: Sequence[int], high_water: datetime) -> Query:
        """(DataID, ParentID) pairs passing the non-hierarchical filters"""
        return (self.match_condition(ids, high_water, hierarchy=False),
                CANDIDATES_VIEW, ["DataID", "ParentID"])

    def deletes(self, checkpoint: Checkpoint, batch_size: int, indexed: bool) -> Query:
        """
        Delete events after the checkpoint

        Args:
            checkpoint: Cursor whose delete fields bound the query
            batch_size: Maximum rows
            indexed: EventID alone orders the audit table, so the query
                can continue directly after the event id
        """
        conditions = [f"AuditID = {AUDIT_DELETE}"]
        if checkpoint.delete_event_id is not None:
            if indexed:
                conditions.append(f"EventID > {int(checkpoint.delete_event_id)}")
            else:
                conditions.append(self.after("AuditDate", "EventID", checkpoint.delete_date,
                                             checkpoint.delete_event_id))
        elif checkpoint.delete_date is not None:
            conditions.append(f"AuditDate >= {self.dialect.timestamp_literal(checkpoint.delete_date)}")
        return self.dialect.limit(["DataID", "AuditDate", "EventID"], AUDIT_VIEW,
                                  " and ".join(conditions), DELETE_ORDER_BY, batch_size)

    def last_delete_event(self) -> Query:
        return self.dialect.limit(["AuditDate", "EventID"], AUDIT_VIEW,
                                  f"AuditID = {AUDIT_DELETE}",
                                  "AuditDate desc, EventID desc", 1)

    def parents(self, ids: Iterable[int]) -> Query:
        return f"DataID in ({id_list(ids)})", CANDIDATES_VIEW, ["DataID", "ParentID"]

    @staticmethod
    def excluded_volumes(volume_types: Sequence[int]) -> Query:
        return f"SubType in ({id_list(volume_types)})", CANDIDATES_VIEW, ["DataID", "PermID"]
