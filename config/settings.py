"""
Centralized configuration management for the change-feed traversal engine.
All configuration settings are managed here.
"""

import json
import os
from datetime import datetime
from typing import Dict, List, Optional
from dotenv import load_dotenv
from dataclasses import dataclass, field

load_dotenv()


def _parse_id_list(value: Optional[str]) -> List[int]:
    """Parse a comma-separated list of integers ("2000, 2001") into ints"""
    if not value or not value.strip():
        return []
    return [int(item) for item in value.split(",") if item.strip()]


def _parse_bool(value: Optional[str], default: bool) -> bool:
    if value is None or value == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _parse_date(value: Optional[str]) -> Optional[datetime]:
    if not value or not value.strip():
        return None
    value = value.strip()
    if len(value) == 10:
        return datetime.strptime(value, "%Y-%m-%d")
    return datetime.strptime(value, "%Y-%m-%d %H:%M:%S")


@dataclass
class RDBMSConfig:
    """RDBMS database configuration"""
    connection_string: Optional[str]
    traversal_connection_string: Optional[str] = None
    echo: bool = False
    pool_size: int = 5
    max_overflow: int = 10

    @classmethod
    def from_env(cls) -> 'RDBMSConfig':
        """Load RDBMS config from environment variables"""
        return cls(
            connection_string=os.getenv("DATABASE_URL"),
            traversal_connection_string=os.getenv("TRAVERSAL_DATABASE_URL") or None,
            echo=os.getenv("DB_ECHO", "False").lower() == "true",
            pool_size=int(os.getenv("DB_POOL_SIZE", "5")),
            max_overflow=int(os.getenv("DB_MAX_OVERFLOW", "10"))
        )


@dataclass
class TraversalConfig:
    """Traversal engine configuration"""
    servtype: Optional[str] = None
    included_location_nodes: List[int] = field(default_factory=list)
    excluded_location_nodes: List[int] = field(default_factory=list)
    excluded_node_types: List[int] = field(default_factory=list)
    excluded_volume_types: List[int] = field(default_factory=list)
    sql_where_condition: Optional[str] = None
    start_date: Optional[datetime] = None
    track_deletes: bool = True
    deletes_indexed: bool = True
    use_dtree_ancestors: bool = True
    genealogist_min_cache_size: int = 1000
    genealogist_max_cache_size: int = 32000
    time_warp_fuzz_days: int = 0
    default_batch_size: int = 100
    traversal_time_limit: float = 30.0
    select_expressions: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_env(cls) -> 'TraversalConfig':
        """Load traversal config from environment variables"""
        return cls(
            servtype=os.getenv("TRAVERSAL_SERVTYPE") or None,
            included_location_nodes=_parse_id_list(os.getenv("INCLUDED_LOCATION_NODES")),
            excluded_location_nodes=_parse_id_list(os.getenv("EXCLUDED_LOCATION_NODES")),
            excluded_node_types=_parse_id_list(os.getenv("EXCLUDED_NODE_TYPES")),
            excluded_volume_types=_parse_id_list(os.getenv("EXCLUDED_VOLUME_TYPES")),
            sql_where_condition=os.getenv("SQL_WHERE_CONDITION") or None,
            start_date=_parse_date(os.getenv("START_DATE")),
            track_deletes=_parse_bool(os.getenv("TRACK_DELETES"), True),
            deletes_indexed=_parse_bool(os.getenv("DELETES_INDEXED"), True),
            use_dtree_ancestors=_parse_bool(os.getenv("USE_DTREE_ANCESTORS"), True),
            genealogist_min_cache_size=int(os.getenv("GENEALOGIST_MIN_CACHE_SIZE", "1000")),
            genealogist_max_cache_size=int(os.getenv("GENEALOGIST_MAX_CACHE_SIZE", "32000")),
            time_warp_fuzz_days=int(os.getenv("TIME_WARP_FUZZ_DAYS", "0")),
            default_batch_size=int(os.getenv("DEFAULT_BATCH_SIZE", "100")),
            traversal_time_limit=float(os.getenv("TRAVERSAL_TIME_LIMIT", "30")),
            select_expressions=json.loads(os.getenv("SELECT_EXPRESSIONS", "{}"))
        )


@dataclass
class SystemConfig:
    """Overall system configuration"""
    checkpoint_path: str = "traversal_checkpoint.json"
    log_level: str = "INFO"
    poll_interval: float = 60.0

    @classmethod
    def from_env(cls) -> 'SystemConfig':
        """Load system config from environment variables"""
        return cls(
            checkpoint_path=os.getenv("CHECKPOINT_PATH", "traversal_checkpoint.json"),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            poll_interval=float(os.getenv("POLL_INTERVAL", "60"))
        )


class Config:
    """Main configuration class that aggregates all configs"""

    def __init__(self):
        self.rdbms = RDBMSConfig.from_env()
        self.traversal = TraversalConfig.from_env()
        self.system = SystemConfig.from_env()

    @classmethod
    def load(cls) -> 'Config':
        """Load configuration from environment"""
        return cls()

    def validate(self) -> bool:
        """Validate that all required configurations are present"""
        errors = []

        if not self.rdbms.connection_string:
            errors.append("DATABASE_URL is required")
        traversal = self.traversal
        if traversal.default_batch_size <= 0:
            errors.append("DEFAULT_BATCH_SIZE must be positive")
        if traversal.genealogist_min_cache_size <= 0:
            errors.append("GENEALOGIST_MIN_CACHE_SIZE must be positive")
        if traversal.genealogist_max_cache_size < traversal.genealogist_min_cache_size:
            errors.append("GENEALOGIST_MAX_CACHE_SIZE must not be less than GENEALOGIST_MIN_CACHE_SIZE")
        if traversal.traversal_time_limit <= 0:
            errors.append("TRAVERSAL_TIME_LIMIT must be positive")

        if errors:
            raise ValueError(f"Configuration validation failed:\n" + "\n".join(f"  - {e}" for e in errors))

        return True


# Global config instance
_config: Optional[Config] = None


def get_config() -> Config:
    """Get or create global config instance"""
    global _config
    if _config is None:
        _config = Config.load()
    return _config


def reload_config() -> Config:
    """Reload configuration from environment"""
    global _config
    _config = Config.load()
    return _config
