from datetime import datetime

import pytest

from traversal.checkpoint import Checkpoint
from traversal.dialects import OracleDialect, SqlServerDialect
from traversal.queries import TraversalQueries, id_list

HIGH_WATER = datetime(2024, 1, 1, 12, 0, 0)


def build(dialect=None, **kwargs):
    return TraversalQueries(dialect or SqlServerDialect(), ["DataID", "ModifyDate", "Name"], **kwargs)


def test_id_list_forces_integers():
    assert id_list([1, "2", 3]) == "1,2,3"
    with pytest.raises(ValueError):
        id_list(["1); drop table DTree; --"])


def test_candidates_from_beginning():
    where, view, columns = build().candidates(Checkpoint(), 100)
    assert where == "1=1 order by ModifyDate, DataID"
    assert view == "DTree"
    assert columns == ["top 100 DataID", "ModifyDate"]


def test_candidates_after_checkpoint_sql_server():
    checkpoint = Checkpoint.parse("2024-01-01 10:00:00,7")
    where, _, _ = build().candidates(checkpoint, 10)
    assert where == ("(ModifyDate > '2024-01-01 10:00:00' or "
                     "(ModifyDate = '2024-01-01 10:00:00' and DataID > 7)) "
                     "order by ModifyDate, DataID")


def test_candidates_after_checkpoint_oracle():
    checkpoint = Checkpoint.parse("2024-01-01 10:00:00,7")
    where, view, columns = build(OracleDialect()).candidates(checkpoint, 10)
    assert where == "rownum <= 10"
    assert columns == ["*"]
    assert view == ("(select DataID, ModifyDate from DTree where "
                    "(ModifyDate > TIMESTAMP'2024-01-01 10:00:00' or "
                    "(ModifyDate = TIMESTAMP'2024-01-01 10:00:00' and DataID > 7)) "
                    "order by ModifyDate, DataID)")


def test_candidate_predicate_is_the_same_across_dialects():
    checkpoint = Checkpoint.parse("2024-01-01 10:00:00,7")
    mssql = build().after("ModifyDate", "DataID", checkpoint.insert_date, 7)
    oracle = build(OracleDialect()).after("ModifyDate", "DataID", checkpoint.insert_date, 7)
    assert oracle.replace("TIMESTAMP'", "'") == mssql


def test_no_filters_configured():
    queries = build()
    assert queries.included_condition() is None
    assert queries.excluded_condition() is None
    assert not queries.has_hierarchy_filter


def test_included_condition():
    assert build(included_roots=[2000, 3000]).included_condition() == (
        "(DataID in (2000,3000) or DataID in "
        "(select DataID from DTreeAncestors where AncestorID in (2000,3000)))")


def test_excluded_condition():
    queries = build(excluded_roots=[10], excluded_node_types=[148, 162])
    assert queries.excluded_condition() == (
        "SubType not in (148,162) and not (DataID in (10) or DataID in "
        "(select DataID from DTreeAncestors where AncestorID in (10)))")
    assert queries.has_hierarchy_filter


def test_match_condition_ands_all_filters():
    queries = build(included_roots=[2000], excluded_roots=[10], excluded_node_types=[148],
                    sql_where_condition="OwnerID = -2000")
    condition = queries.match_condition([1, 2, 3], HIGH_WATER)
    assert condition.startswith("DataID in (1,2,3) and ModifyDate <= '2024-01-01 12:00:00'")
    assert queries.included_condition() in condition
    assert queries.excluded_condition() in condition
    assert condition.endswith("(OwnerID = -2000)")


def test_match_condition_without_hierarchy_keeps_subtypes():
    queries = build(included_roots=[2000], excluded_roots=[10], excluded_node_types=[148])
    condition = queries.match_condition([1], HIGH_WATER, hierarchy=False)
    assert "DTreeAncestors" not in condition
    assert "SubType not in (148)" in condition


def test_results_query_is_ordered_projection():
    where, view, columns = build().results([5, 6], HIGH_WATER)
    assert view == "WebNodes"
    assert columns == ["DataID", "ModifyDate", "Name"]
    assert where.endswith("order by ModifyDate, DataID")


def test_deletes_indexed_continue_after_event_id():
    checkpoint = Checkpoint.parse("2024-01-01 10:00:00,1;2024-01-01 09:00:00,55")
    where, view, columns = build().deletes(checkpoint, 50, indexed=True)
    assert where == "AuditID = 2 and EventID > 55 order by AuditDate, EventID"
    assert view == "DAuditNew"
    assert columns == ["top 50 DataID", "AuditDate", "EventID"]


def test_deletes_indexed_without_event_id_use_timestamp():
    checkpoint = Checkpoint.parse(";2024-01-01 09:00:00,")
    where, _, _ = build().deletes(checkpoint, 50, indexed=True)
    assert "AuditDate >= '2024-01-01 09:00:00'" in where


def test_deletes_non_indexed_continue_after_date_and_event():
    checkpoint = Checkpoint.parse("2024-01-01 10:00:00,1;2024-01-01 09:00:00,55")
    where, _, _ = build().deletes(checkpoint, 50, indexed=False)
    assert where == ("AuditID = 2 and (AuditDate > '2024-01-01 09:00:00' or "
                     "(AuditDate = '2024-01-01 09:00:00' and EventID > 55)) "
                     "order by AuditDate, EventID")


def test_deletes_non_indexed_without_event_id_use_timestamp():
    checkpoint = Checkpoint.parse(";2024-01-01 09:00:00,")
    where, _, _ = build().deletes(checkpoint, 50, indexed=False)
    assert where == "AuditID = 2 and AuditDate >= '2024-01-01 09:00:00' order by AuditDate, EventID"


def test_last_delete_event_oracle():
    where, view, columns = build(OracleDialect()).last_delete_event()
    assert where == "rownum <= 1"
    assert view == ("(select AuditDate, EventID from DAuditNew where AuditID = 2 "
                    "order by AuditDate desc, EventID desc)")


def test_parents_and_excluded_volumes():
    assert build().parents([3, 1, 2]) == ("DataID in (3,1,2)", "DTree", ["DataID", "ParentID"])
    assert TraversalQueries.excluded_volumes([148]) == ("SubType in (148)", "DTree", ["DataID", "PermID"])
