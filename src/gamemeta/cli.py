#!/usr/bin/env python3
"""
Game Metadata CLI

Usage:
    python -m gamemeta clear
    python -m gamemeta versions
    python -m gamemeta summary <version>

Set MCMETA_CONFIG to load a YAML config file instead of the built-in defaults.
"""

import asyncio
import logging
import os
import sys
from typing import List, Optional

import yaml

from .client import DownloadError, GameMeta
from .config import default_config, load_config

logger = logging.getLogger(__name__)

USAGE = "usage: python -m gamemeta {clear | versions | summary <version>}"


async def _run(meta: GameMeta, command: str, args: List[str]) -> int:
    if command == "clear":
        await meta.clear_cache()
        print(f"Removed {meta.temp_dir}")
        return 0

    if command == "versions":
        versions = await meta.load_versions()
        for entry in versions:
            print(f"{entry['id']}\t{entry['type']}\t{entry['release_time']}")
        return 0

    if command == "summary" and len(args) == 1:
        summary = await meta.load_version_summary(args[0])
        version = await summary.get_version()
        blocks = await summary.get_blocks()
        print(f"{version['name']} ({version['type']}, data version {version['data_version']})")
        print(f"Path: {summary.path}")
        print(f"Blocks: {len(blocks)}")
        return 0

    print(USAGE, file=sys.stderr)
    return 2


def main(argv: Optional[List[str]] = None) -> int:
    """Entry point. Returns a process exit code."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
    )
    argv = sys.argv[1:] if argv is None else argv
    if not argv:
        print(USAGE, file=sys.stderr)
        return 2

    try:
        config_path = os.environ.get("MCMETA_CONFIG")
        config = load_config(config_path) if config_path else default_config()
        meta = GameMeta(config)
        return asyncio.run(_run(meta, argv[0], argv[1:]))
    except (DownloadError, OSError, ValueError, yaml.YAMLError) as e:
        logger.error(f"{argv[0]} failed: {e}")
        return 1
