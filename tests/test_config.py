from datetime import datetime

import pytest

from config.settings import Config, RDBMSConfig, SystemConfig, TraversalConfig

ENV_VARS = [
    "DATABASE_URL", "TRAVERSAL_DATABASE_URL", "TRAVERSAL_SERVTYPE", "INCLUDED_LOCATION_NODES",
    "EXCLUDED_LOCATION_NODES", "EXCLUDED_NODE_TYPES", "EXCLUDED_VOLUME_TYPES", "SQL_WHERE_CONDITION",
    "START_DATE", "TRACK_DELETES", "DELETES_INDEXED", "USE_DTREE_ANCESTORS",
    "GENEALOGIST_MIN_CACHE_SIZE", "GENEALOGIST_MAX_CACHE_SIZE", "TIME_WARP_FUZZ_DAYS",
    "DEFAULT_BATCH_SIZE", "TRAVERSAL_TIME_LIMIT", "SELECT_EXPRESSIONS", "CHECKPOINT_PATH",
    "LOG_LEVEL", "POLL_INTERVAL",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def test_traversal_defaults():
    config = TraversalConfig.from_env()
    assert config.servtype is None
    assert config.included_location_nodes == []
    assert config.track_deletes is True
    assert config.deletes_indexed is True
    assert config.use_dtree_ancestors is True
    assert config.time_warp_fuzz_days == 0
    assert config.default_batch_size == 100
    assert config.select_expressions == {}


def test_traversal_from_env(monkeypatch):
    monkeypatch.setenv("TRAVERSAL_SERVTYPE", "Oracle")
    monkeypatch.setenv("INCLUDED_LOCATION_NODES", "2000, 2001")
    monkeypatch.setenv("EXCLUDED_NODE_TYPES", "148,162,")
    monkeypatch.setenv("START_DATE", "2023-06-01")
    monkeypatch.setenv("TRACK_DELETES", "false")
    monkeypatch.setenv("USE_DTREE_ANCESTORS", "no")
    monkeypatch.setenv("TIME_WARP_FUZZ_DAYS", "-1")
    monkeypatch.setenv("SELECT_EXPRESSIONS", '{"Shouted": "upper(Name)"}')

    config = TraversalConfig.from_env()
    assert config.servtype == "Oracle"
    assert config.included_location_nodes == [2000, 2001]
    assert config.excluded_node_types == [148, 162]
    assert config.start_date == datetime(2023, 6, 1)
    assert config.track_deletes is False
    assert config.use_dtree_ancestors is False
    assert config.time_warp_fuzz_days == -1
    assert config.select_expressions == {"Shouted": "upper(Name)"}


def test_rdbms_and_system_from_env(monkeypatch):
    monkeypatch.setenv("DATABASE_URL", "sqlite:///admin.db")
    monkeypatch.setenv("POLL_INTERVAL", "5")

    assert RDBMSConfig.from_env().connection_string == "sqlite:///admin.db"
    assert RDBMSConfig.from_env().traversal_connection_string is None
    assert SystemConfig.from_env().poll_interval == 5.0


def test_validate_ok(monkeypatch):
    monkeypatch.setenv("DATABASE_URL", "sqlite:///admin.db")
    assert Config.load().validate()


def test_validate_lists_every_problem(monkeypatch):
    monkeypatch.setenv("DEFAULT_BATCH_SIZE", "0")
    monkeypatch.setenv("GENEALOGIST_MIN_CACHE_SIZE", "500")
    monkeypatch.setenv("GENEALOGIST_MAX_CACHE_SIZE", "100")

    with pytest.raises(ValueError) as excinfo:
        Config.load().validate()
    message = str(excinfo.value)
    assert "DATABASE_URL is required" in message
    assert "DEFAULT_BATCH_SIZE" in message
    assert "GENEALOGIST_MAX_CACHE_SIZE" in message
