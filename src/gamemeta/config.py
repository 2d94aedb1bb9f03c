"""Configuration loader for the game metadata source."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict

import yaml

DEFAULT_TEMP_DIR = "~/.cache/mcmeta-util"
DEFAULT_VERSIONS_URL = "https://raw.githubusercontent.com/misode/mcmeta/summary/versions/data.json.gz"
DEFAULT_SUMMARY_URL_TEMPLATE = "https://codeload.github.com/misode/mcmeta/tar.gz/refs/tags/{version}-summary"


@dataclass(frozen=True)
class GameMetaConfig:
    temp_dir: Path
    versions_url: str
    summary_url_template: str
    max_versions_age_sec: int
    request_timeout_sec: int

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GameMetaConfig":
        return cls(
            temp_dir=Path(os.path.expanduser(data.get("temp_dir", DEFAULT_TEMP_DIR))),
            versions_url=data.get("versions_url", DEFAULT_VERSIONS_URL),
            summary_url_template=data.get("summary_url_template", DEFAULT_SUMMARY_URL_TEMPLATE),
            max_versions_age_sec=int(data.get("max_versions_age_sec", 2 * 60 * 60)),
            request_timeout_sec=int(data.get("request_timeout_sec", 30)),
        )

    def summary_url(self, version: str) -> str:
        return self.summary_url_template.format(version=version)


ENV_MAP = {
    "temp_dir": "MCMETA_TEMP_DIR",
    "versions_url": "MCMETA_VERSIONS_URL",
    "summary_url_template": "MCMETA_SUMMARY_URL_TEMPLATE",
    "max_versions_age_sec": "MCMETA_MAX_VERSIONS_AGE_SEC",
    "request_timeout_sec": "MCMETA_REQUEST_TIMEOUT_SEC",
}

INT_KEYS = {"max_versions_age_sec", "request_timeout_sec"}


def load_yaml(path: Path) -> Dict[str, Any]:
    with path.open("r", encoding="utf-8") as handle:
        return yaml.safe_load(handle) or {}


def merge_env_overrides(config_data: Dict[str, Any]) -> Dict[str, Any]:
    merged = json.loads(json.dumps(config_data))  # deep copy via json

    for key, env_name in ENV_MAP.items():
        if env_name not in os.environ:
            continue
        value: Any = os.environ[env_name]
        if key in INT_KEYS:
            value = int(value)
        merged[key] = value

    return merged


def load_config(config_path: str | Path = "config/gamemeta.defaults.yml") -> GameMetaConfig:
    path = Path(config_path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    data = load_yaml(path)
    data = merge_env_overrides(data)
    return GameMetaConfig.from_dict(data)


def default_config() -> GameMetaConfig:
    """Built-in defaults with environment overrides, no file required."""
    return GameMetaConfig.from_dict(merge_env_overrides({}))
