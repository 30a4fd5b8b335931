"""Configuration loading for tracked sources."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional
from xml.etree import ElementTree as ET

from .errors import ConfigError
from .fetcher import DEFAULT_TIMEOUT
from .models import Source, SourceKind

logger = logging.getLogger(__name__)

APP_DIR = "br"


def _xdg_dir(variable: str, fallback: str) -> Path:
    value = os.environ.get(variable)
    if value:
        return Path(value)
    return Path.home() / fallback


def default_config_path() -> str:
    return str(_xdg_dir("XDG_CONFIG_HOME", ".config") / APP_DIR / "config.xml")


def default_state_path() -> str:
    return str(_xdg_dir("XDG_DATA_HOME", ".local/share") / APP_DIR / "state.json")


@dataclass
class LoggingConfig:
    level: str = "INFO"
    file: Optional[str] = None


@dataclass
class DatabaseConfig:
    enabled: bool = False
    connection_string: Optional[str] = None


@dataclass
class AppConfig:
    sources: List[Source] = field(default_factory=list)
    state_file: str = field(default_factory=default_state_path)
    timeout: float = DEFAULT_TIMEOUT
    concurrency: int = 8
    max_seen_ids: Optional[int] = None
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)

    @property
    def feeds(self) -> List[Source]:
        return [source for source in self.sources if source.kind is SourceKind.FEED]

    @property
    def manual(self) -> List[Source]:
        return [source for source in self.sources if source.kind is SourceKind.MANUAL]


def parse_feeds_config(path: str) -> List[Source]:
    """Parse an OPML subscription list and return feed sources."""
    logger.info("Loading feed subscriptions from %s", path)
    try:
        tree = ET.parse(path)
    except (OSError, ET.ParseError) as exc:
        raise ConfigError(f"Cannot read OPML file {path}: {exc}") from exc
    body = tree.getroot().find("body")
    feeds: List[Source] = []

    def walk(outline: ET.Element) -> None:
        title = outline.attrib.get("title") or outline.attrib.get("text")
        feed_url = outline.attrib.get("xmlUrl")

        if outline.attrib.get("type") == "rss" and feed_url:
            feeds.append(Source(title or feed_url, SourceKind.FEED, feed_url))
            logger.debug("Registered feed '%s' (%s)", feeds[-1].name, feed_url)
            return

        for child in outline.findall("outline"):
            walk(child)

    if body is None:
        raise ConfigError(f"{path} is missing the <body> section.")

    for outline in body.findall("outline"):
        walk(outline)

    logger.info("Loaded %d feeds from %s", len(feeds), path)
    return feeds


def _resolve_path(base_path: Path, target_path: str) -> str:
    """Resolve a path relative to the base config file if it's not absolute."""
    target = Path(target_path).expanduser()
    if target.is_absolute():
        return str(target)
    return str((base_path.parent / target).resolve())


def _parse_sources(root: ET.Element, section: str, kind: SourceKind) -> List[Source]:
    node = root.find(section)
    if node is None:
        return []

    sources: List[Source] = []
    for element in node:
        name = (element.attrib.get("name") or "").strip()
        url = (element.attrib.get("url") or "").strip()
        if not name or not url:
            raise ConfigError(
                f"<{section}> entry <{element.tag}> needs both 'name' and 'url'"
            )
        sources.append(Source(name, kind, url))
    return sources


def _number(root: ET.Element, tag: str, cast, default):
    text = root.findtext(tag)
    if text is None or not text.strip():
        return default
    try:
        value = cast(text.strip())
    except ValueError as exc:
        raise ConfigError(f"<{tag}> must be a number, got {text.strip()!r}") from exc
    if value <= 0:
        raise ConfigError(f"<{tag}> must be positive")
    return value


def parse_app_config(path: str) -> AppConfig:
    """Parse the main application configuration XML."""
    config_path = Path(path).expanduser().resolve()
    if not config_path.exists():
        raise ConfigError(f"Config file not found: {path}")

    logger.info("Loading application configuration from %s", config_path)
    try:
        root = ET.parse(config_path).getroot()
    except ET.ParseError as exc:
        raise ConfigError(f"Config file is not valid XML: {exc}") from exc

    sources = _parse_sources(root, "feeds", SourceKind.FEED)
    opml_file = root.findtext("opml")
    if opml_file and opml_file.strip():
        sources.extend(parse_feeds_config(_resolve_path(config_path, opml_file.strip())))
    sources.extend(_parse_sources(root, "manual", SourceKind.MANUAL))

    state_file = root.findtext("state")
    state_file = (
        _resolve_path(config_path, state_file.strip())
        if state_file and state_file.strip()
        else default_state_path()
    )

    # Logging
    log_node = root.find("logging")
    logging_config = LoggingConfig()
    if log_node is not None:
        logging_config.level = log_node.findtext("level", "INFO").strip()
        log_file = log_node.findtext("file")
        if log_file and log_file.strip():
            logging_config.file = _resolve_path(config_path, log_file.strip())

    # Database
    db_node = root.find("database")
    db_config = DatabaseConfig()
    if db_node is not None:
        db_config.enabled = db_node.findtext("enabled", "false").strip().lower() == "true"
        connection_string = db_node.findtext("connection-string")
        if connection_string and connection_string.strip():
            db_config.connection_string = connection_string.strip()

    config = AppConfig(
        sources=sources,
        state_file=state_file,
        timeout=_number(root, "timeout", float, DEFAULT_TIMEOUT),
        concurrency=_number(root, "concurrency", int, 8),
        max_seen_ids=_number(root, "max-seen-ids", int, None),
        logging=logging_config,
        database=db_config,
    )
    logger.info(
        "Configured %d feeds and %d manual sources",
        len(config.feeds),
        len(config.manual),
    )
    return config
