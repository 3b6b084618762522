"""Loading and saving the YAML configuration file."""

from __future__ import annotations

import logging
import os
import shutil
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

from .errors import ConfigIOError, MultipleErrors
from .models import Configuration, FeedConfiguration

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


def _optional_str(data: Dict[str, Any], key: str) -> Optional[str]:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValueError(f"'{key}' must be a string, not {type(value).__name__}")
    return value


def _feed_from_dict(data: Any) -> FeedConfiguration:
    if not isinstance(data, dict):
        raise ValueError("every entry in 'feeds' must be a mapping")

    url = data.get("url")
    if not isinstance(url, str) or not url:
        raise ValueError("every feed must have a 'url' string")

    entries = data.get("processed_entries") or []
    if not isinstance(entries, list) or not all(isinstance(e, str) for e in entries):
        raise ValueError(f"'processed_entries' of feed {url} must be a list of strings")

    return FeedConfiguration(
        url=url,
        tags=_optional_str(data, "tags") or "",
        processed_entries=list(entries),
        last_modified=_optional_str(data, "last_modified"),
        last_e_tag=_optional_str(data, "last_e_tag"),
    )


def config_from_dict(data: Optional[Dict[str, Any]]) -> Configuration:
    """Build a Configuration from the parsed YAML document."""
    if data is None:
        return Configuration()
    if not isinstance(data, dict):
        raise ValueError("the configuration must be a mapping")

    feeds = data.get("feeds") or []
    if not isinstance(feeds, list):
        raise ValueError("'feeds' must be a list")

    return Configuration(
        consumer_key=_optional_str(data, "consumer_key"),
        access_token=_optional_str(data, "access_token"),
        feeds=[_feed_from_dict(item) for item in feeds],
    )


def _feed_to_dict(feed: FeedConfiguration) -> Dict[str, Any]:
    data: Dict[str, Any] = {"url": feed.url}
    if feed.tags:
        data["tags"] = feed.tags
    if feed.processed_entries:
        data["processed_entries"] = list(feed.processed_entries)
    if feed.last_modified is not None:
        data["last_modified"] = feed.last_modified
    if feed.last_e_tag is not None:
        data["last_e_tag"] = feed.last_e_tag
    return data


def config_to_dict(config: Configuration) -> Dict[str, Any]:
    """Return the serialisable form of ``config``, omitting empty fields."""
    data: Dict[str, Any] = {}
    if config.consumer_key is not None:
        data["consumer_key"] = config.consumer_key
    if config.access_token is not None:
        data["access_token"] = config.access_token
    if config.feeds:
        data["feeds"] = [_feed_to_dict(feed) for feed in config.feeds]
    return data


def load_config(path: PathLike) -> Configuration:
    """Read the configuration file at ``path``."""
    logger.debug("Loading configuration from %s", path)
    try:
        with open(path, encoding="utf-8") as handle:
            raw = handle.read()
    except OSError as exc:
        raise ConfigIOError(f"failed to open file {path}") from exc

    try:
        config = config_from_dict(yaml.safe_load(raw))
    except (yaml.YAMLError, ValueError) as exc:
        raise ConfigIOError(f"failed to load configuration from {path}") from exc

    logger.debug("Loaded %d feeds from %s", len(config.feeds), path)
    return config


def dump_config(config: Configuration) -> str:
    return yaml.safe_dump(
        config_to_dict(config),
        default_flow_style=False,
        sort_keys=False,
        allow_unicode=True,
    )


def _rename(source: str, target: str) -> None:
    try:
        os.rename(source, target)
    except OSError as exc:
        raise ConfigIOError(f"failed to rename {source} to {target}") from exc


def save_config(config: Configuration, path: PathLike) -> None:
    """Write ``config`` to ``path`` without ever leaving a half-written file.

    The new content goes to ``<path>.new`` (a copy of the original, so file
    permissions survive), the original is moved to ``<path>.old``, the new file
    takes its place and the old one is removed. If the final rename fails the
    original file is moved back.
    """
    config_path = os.fspath(path)
    new_path = config_path + ".new"
    old_path = config_path + ".old"
    original_exists = Path(config_path).exists()

    if original_exists:
        try:
            shutil.copy(config_path, new_path)
        except OSError as exc:
            raise ConfigIOError(f"failed to copy {config_path} to {new_path}") from exc

    try:
        with open(new_path, "w", encoding="utf-8") as handle:
            handle.write(dump_config(config))
    except OSError as exc:
        raise ConfigIOError(f"failed to save configuration to {new_path}") from exc

    if original_exists:
        _rename(config_path, old_path)

    try:
        _rename(new_path, config_path)
    except ConfigIOError as rename_error:
        if not original_exists:
            raise
        try:
            _rename(old_path, config_path)
        except ConfigIOError as rollback_error:
            raise ConfigIOError("failed to save configuration") from MultipleErrors(
                [rename_error, rollback_error]
            )
        raise

    if original_exists:
        try:
            os.remove(old_path)
        except OSError as exc:
            raise ConfigIOError(f"failed to remove file {old_path}") from exc

    logger.debug("Saved configuration with %d feeds to %s", len(config.feeds), config_path)


def create_empty_config(path: PathLike) -> bool:
    """Create an empty configuration file if none exists; return whether one was created."""
    if Path(path).exists():
        return False
    save_config(Configuration(), path)
    return True
