#!/usr/bin/env python3
"""
Game Metadata Source — mcmeta summaries on disk
Downloads and caches the summary data published by misode/mcmeta.

Implements:
- clear_cache() -> removes on-disk artifacts, invalidates in-memory caches
- load_versions() -> list of version dicts (cached, refreshed after max age)
- load_version_summary(version) -> SummaryData (cached per version)

Layout under temp_dir:
    versions.json
    version/<id>/version.json
    version/<id>/**/*.min.json
"""

import asyncio
import gzip
import json
import logging
import re
import shutil
import tarfile
import time
from pathlib import Path
from typing import Any, BinaryIO, Dict, List

import requests

from cache import DEFAULT_CONTROLLER, CacheController, memoize

from .config import GameMetaConfig, default_config
from .schemas import validate_version_array
from .summary import SummaryData

logger = logging.getLogger(__name__)

VERSION_PATTERN = re.compile(r"[a-zA-Z0-9][a-zA-Z0-9_+.-]+")  # used with fullmatch


class DownloadError(RuntimeError):
    """Remote data could not be fetched or unpacked."""


def strip_first_component(name: str) -> str:
    """'mcmeta-1.19.2-summary/blocks/data.min.json' -> 'blocks/data.min.json'"""
    parts = name.split("/", 1)
    return parts[1] if len(parts) == 2 else ""


def is_summary_file(local_path: str) -> bool:
    """Only version.json and minified data files are kept."""
    if local_path == "version.json":
        return True
    return local_path.endswith(".min.json") and local_path != "versions/data.min.json"


def extract_summary(fileobj: BinaryIO, data_dir: Path) -> int:
    """
    Stream a gzipped summary tarball into data_dir.

    The archive's top-level directory is stripped and anything that is not a
    summary file is skipped.

    Returns:
        Number of files written.
    """
    root = data_dir.resolve()
    written = 0

    with tarfile.open(fileobj=fileobj, mode="r|gz") as archive:
        for member in archive:
            if not member.isfile():
                continue
            local_path = strip_first_component(member.name)
            if not is_summary_file(local_path):
                continue

            target = (data_dir / local_path).resolve()
            if not target.is_relative_to(root):
                raise DownloadError(f"Refusing to extract outside target dir: {member.name}")

            target.parent.mkdir(parents=True, exist_ok=True)
            source = archive.extractfile(member)
            with source, target.open("wb") as out:
                shutil.copyfileobj(source, out)
            written += 1

    return written


class GameMeta:
    """
    Cached access to mcmeta summary data.

    load_versions and load_version_summary are memoized against the given
    controller. clear_cache() deletes the files and invalidates the
    controller, so every cache bound to it (including SummaryData
    accessors) recomputes on next use.
    """

    VERSIONS_FILE = "versions.json"
    VERSION_DIR = "version"

    def __init__(self, config: GameMetaConfig = None, controller: CacheController = None):
        self.config = config or default_config()
        self.controller = controller or DEFAULT_CONTROLLER

        self.load_versions = memoize(self._load_versions, self.controller, is_async=True)
        self.load_version_summary = memoize(
            self._load_version_summary, self.controller, keyed=True, is_async=True,
        )

        logger.info(f"GameMeta initialized (temp_dir={self.config.temp_dir})")

    @property
    def temp_dir(self) -> Path:
        return self.config.temp_dir

    async def clear_cache(self) -> None:
        """Delete downloaded data and invalidate all in-memory caches."""
        await asyncio.to_thread(self._remove_temp_dir)
        self.controller.invalidate()
        logger.info(f"Cleared game metadata cache at {self.temp_dir}")

    def _remove_temp_dir(self) -> None:
        if self.temp_dir.exists():
            shutil.rmtree(self.temp_dir)

    def _get(self, url: str, what: str, **kwargs) -> requests.Response:
        try:
            response = requests.get(url, timeout=self.config.request_timeout_sec, **kwargs)
        except requests.RequestException as e:
            logger.error(f"Unable to load {what}: {e}")
            raise DownloadError(f"Unable to load {what} ({e})") from e

        if not 200 <= response.status_code < 400:
            response.close()
            logger.error(f"Unable to load {what}: HTTP {response.status_code} from {url}")
            raise DownloadError(f"Unable to load {what} ({response.status_code} {response.reason})")

        return response

    # ------------------------------------------------------------------
    # Versions
    # ------------------------------------------------------------------

    async def _load_versions(self) -> List[Dict[str, Any]]:
        return await asyncio.to_thread(self._read_versions)

    def _versions_are_fresh(self, versions_file: Path) -> bool:
        try:
            mtime = versions_file.stat().st_mtime
        except FileNotFoundError:
            return False
        return time.time() - mtime < self.config.max_versions_age_sec

    def _read_versions(self) -> List[Dict[str, Any]]:
        self.temp_dir.mkdir(parents=True, exist_ok=True)
        versions_file = self.temp_dir / self.VERSIONS_FILE

        if self._versions_are_fresh(versions_file):
            logger.debug(f"Using local version list {versions_file}")
        else:
            self._download_versions(versions_file)

        return validate_version_array(json.loads(versions_file.read_text(encoding="utf-8")))

    def _download_versions(self, versions_file: Path) -> None:
        logger.info(f"Downloading version list from {self.config.versions_url}")
        with self._get(self.config.versions_url, "version data") as response:
            try:
                data = gzip.decompress(response.content)
            except (OSError, EOFError) as e:
                raise DownloadError(f"Unable to load version data (bad archive: {e})") from e

        partial = versions_file.with_suffix(".json.part")
        partial.write_bytes(data)
        partial.replace(versions_file)

    # ------------------------------------------------------------------
    # Version summaries
    # ------------------------------------------------------------------

    async def _load_version_summary(self, version: str) -> SummaryData:
        if not isinstance(version, str) or not VERSION_PATTERN.fullmatch(version):
            raise ValueError(f"Invalid version id: {version!r}")
        data_dir = await asyncio.to_thread(self._ensure_summary, version)
        return SummaryData(version, data_dir, self.controller)

    def _ensure_summary(self, version: str) -> Path:
        data_dir = self.temp_dir / self.VERSION_DIR / version
        if data_dir.is_dir():
            logger.debug(f"Using local summary for {version} at {data_dir}")
            return data_dir

        url = self.config.summary_url(version)
        logger.info(f"Downloading summary for {version} from {url}")
        data_dir.mkdir(parents=True, exist_ok=True)
        try:
            with self._get(url, "version summary", stream=True) as response:
                try:
                    written = extract_summary(response.raw, data_dir)
                except (tarfile.TarError, OSError, EOFError) as e:
                    raise DownloadError(f"Unable to load version summary (bad archive: {e})") from e
        except Exception:
            shutil.rmtree(data_dir, ignore_errors=True)
            raise

        logger.info(f"Extracted {written} summary files for {version}")
        return data_dir
