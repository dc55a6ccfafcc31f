"""Site configuration for Quire.

This module loads ``_config.yml`` and the YAML files under ``_data/``.
Configuration is a plain dictionary: user values are merged over
``DEFAULT_CONFIG`` (nested mappings one level deep) and command-line
overrides are applied last.

Key functions:
- load_config: Loads site configuration from _config.yml.
- load_data: Loads site data from YAML files in the _data directory.
- resolve_destination: Absolute output directory for a configuration.
"""

from __future__ import annotations

import copy
from pathlib import Path
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml

from .errors import ConfigError

CONFIG_FILENAME = "_config.yml"

DEFAULT_CONFIG: dict[str, Any] = {
    "title": "",
    "description": "",
    "author": "",
    "url": "",
    "baseurl": "",
    "destination": "_site",
    "permalink": "date",
    "theme": None,
    "exclude": [
        "Gemfile",
        "Gemfile.lock",
        "node_modules",
        "vendor",
        "package.json",
        "package-lock.json",
        "README.md",
    ],
    "include": [],
    "show_drafts": False,
    "future": False,
    "excerpt_separator": "\n\n",
    "render_templates": True,
    "timezone": None,
    "port": 4000,
    "ws_port": None,
    "sass": {"style": "expanded", "sass_dir": "_sass", "executable": None},
    "optimize_images": True,
    "minify_js": True,
    "feed": {"path": "feed.xml", "limit": 20},
    "markdown": {"plugins": ["strikethrough", "footnotes", "table", "url"]},
    "strict_links": False,
}


def _merge(base: dict[str, Any], update: dict[str, Any]) -> dict[str, Any]:
    for key, value in update.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            merged = dict(base[key])
            merged.update(value)
            base[key] = merged
        else:
            base[key] = value
    return base


def _read_yaml(path: Path) -> Any:
    try:
        with open(path, encoding="utf-8") as f:
            return yaml.safe_load(f)
    except yaml.YAMLError as exc:
        raise ConfigError(path, f"Invalid YAML: {exc}") from exc


def load_config(
    source_dir: Path, overrides: dict[str, Any] | None = None
) -> dict[str, Any]:
    """Load site configuration from _config.yml.

    Args:
        source_dir: Root directory of the site sources.
        overrides: Values that take precedence over the file (CLI flags).

    Returns:
        Dictionary containing configuration values, with defaults applied.

    Raises:
        ConfigError: If the file is not valid YAML or not a mapping, or
            names a timezone that does not exist.
    """
    config = copy.deepcopy(DEFAULT_CONFIG)
    config_path = source_dir / CONFIG_FILENAME
    if config_path.exists():
        loaded = _read_yaml(config_path)
        if loaded is None:
            loaded = {}
        if not isinstance(loaded, dict):
            raise ConfigError(config_path, "Configuration must be a mapping")
        _merge(config, loaded)
    if overrides:
        _merge(config, {k: v for k, v in overrides.items() if v is not None})
    config["baseurl"] = normalize_baseurl(config.get("baseurl") or "")
    config["url"] = str(config.get("url") or "").rstrip("/")
    tz_name = config.get("timezone")
    if tz_name:
        try:
            ZoneInfo(str(tz_name))
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ConfigError(config_path, f"Unknown timezone: {tz_name}") from exc
    return config


def resolve_destination(source_dir: Path, config: dict[str, Any]) -> Path:
    """Return the configured destination as an absolute path."""
    destination = Path(str(config.get("destination") or "_site")).expanduser()
    if not destination.is_absolute():
        destination = source_dir / destination
    return destination


def normalize_baseurl(baseurl: str) -> str:
    """Return ``baseurl`` with a single leading slash and no trailing one.

    Examples:
        >>> normalize_baseurl("blog/")
        '/blog'

        >>> normalize_baseurl("/")
        ''
    """
    stripped = str(baseurl).strip().strip("/")
    return f"/{stripped}" if stripped else ""


def load_data(source_dir: Path) -> dict[str, Any]:
    """Load site data from YAML files in the _data directory.

    Each file becomes ``data[<stem>]``.

    Args:
        source_dir: Root directory of the site sources.

    Returns:
        Dictionary keyed by data file stem.
    """
    data_dir = source_dir / "_data"
    data: dict[str, Any] = {}
    if not data_dir.exists():
        return data
    paths = sorted([*data_dir.glob("*.yml"), *data_dir.glob("*.yaml")])
    for path in paths:
        data[path.stem] = _read_yaml(path)
    return data
