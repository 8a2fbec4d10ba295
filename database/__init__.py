"""Database connectors module"""

from .rdbms_connector import (
    RDBMSConnector,
    RecordArray,
    get_rdbms_connector,
    get_traversal_connector,
    reset_connectors
)

__all__ = [
    'RDBMSConnector',
    'RecordArray',
    'get_rdbms_connector',
    'get_traversal_connector',
    'reset_connectors'
]
