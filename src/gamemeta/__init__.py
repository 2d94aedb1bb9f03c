"""
mcmeta-util Game Metadata Source

Provides:
- GameMeta — downloads and caches mcmeta version summaries
- SummaryData — cached accessors for one extracted version
- GameMetaConfig — YAML + environment configuration
- Schema validators for the summary payloads
"""

from .config import GameMetaConfig, load_config, default_config
from .schemas import (
    SchemaValidationError,
    validate_version, validate_version_array, validate_blocks,
)
from .summary import SummaryData
from .client import GameMeta, DownloadError

__all__ = [
    'GameMetaConfig', 'load_config', 'default_config',
    'SchemaValidationError',
    'validate_version', 'validate_version_array', 'validate_blocks',
    'SummaryData',
    'GameMeta', 'DownloadError',
]
