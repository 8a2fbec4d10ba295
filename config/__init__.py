"""Configuration module for the change-feed traversal engine"""

from .settings import (
    Config,
    RDBMSConfig,
    TraversalConfig,
    SystemConfig,
    get_config,
    reload_config
)

__all__ = [
    'Config',
    'RDBMSConfig',
    'TraversalConfig',
    'SystemConfig',
    'get_config',
    'reload_config'
]
