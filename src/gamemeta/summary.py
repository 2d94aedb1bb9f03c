"""Accessors for one extracted version summary."""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Callable, Dict

from cache import DEFAULT_CONTROLLER, CacheController, memoize

from .schemas import validate_blocks, validate_version

logger = logging.getLogger(__name__)


class SummaryData:
    """
    Summary files of a single game version on disk.

    Each instance owns its caches, bound to the controller passed in, so
    GameMeta.clear_cache() also drops payloads already read here.
    """

    VERSION_FILE = "version.json"
    BLOCKS_FILE = "blocks/data.min.json"

    def __init__(self, version: str, path: str | Path, controller: CacheController = None):
        self._version = version
        self._path = Path(path)
        controller = controller or DEFAULT_CONTROLLER

        self.get_version = memoize(self._load_version, controller, is_async=True)
        self.get_blocks = memoize(self._load_blocks, controller, is_async=True)

    @property
    def version(self) -> str:
        return self._version

    @property
    def path(self) -> Path:
        return self._path

    def __repr__(self) -> str:
        return f"SummaryData(version={self._version!r}, path={str(self._path)!r})"

    async def _load_json(self, local_path: str, validate: Callable[[Any], Any]) -> Any:
        file_path = self._path / local_path
        logger.debug(f"Reading {file_path}")
        text = await asyncio.to_thread(file_path.read_text, encoding="utf-8")
        return validate(json.loads(text))

    async def _load_version(self) -> Dict[str, Any]:
        return await self._load_json(self.VERSION_FILE, validate_version)

    async def _load_blocks(self) -> Dict[str, list]:
        return await self._load_json(self.BLOCKS_FILE, validate_blocks)
