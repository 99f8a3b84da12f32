"""
Source Registry Module
======================

Manages source configurations loaded from YAML files. A source is one
manufacturer site: which adapter reads it, how politely to crawl it and
which listing entries to ignore during discovery.
"""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from lure_catalog.core.errors import ConfigError

logger = logging.getLogger(__name__)

_ITEM_NAME_RE = re.compile(r"^(\s*)-\s+name:\s*[\"']?([^\"'#\s]+)")


@dataclass
class PolitenessConfig:
    """Request pacing for a source."""

    min_delay_ms: int = 2000
    max_concurrency: int = 1

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> PolitenessConfig:
        """Create from dictionary, using defaults for missing values."""
        if data is None:
            return cls()
        return cls(
            min_delay_ms=int(data.get("min_delay_ms", 2000)),
            max_concurrency=max(1, int(data.get("max_concurrency", 1))),
        )

    @property
    def min_delay(self) -> float:
        """Minimum delay in seconds."""
        return self.min_delay_ms / 1000


@dataclass
class SourceConfig:
    """Configuration for a single manufacturer source."""

    name: str
    domain: str
    adapter: str
    display_name: str = ""
    enabled: bool = True
    description: str = ""
    politeness: PolitenessConfig = field(default_factory=PolitenessConfig)
    listing_urls: list[str] = field(default_factory=list)
    excluded_name_keywords: list[str] = field(default_factory=list)
    excluded_url_slugs: list[str] = field(default_factory=list)
    requires_headed_browser: bool = False
    custom_config: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(
        cls, data: dict[str, Any], default_politeness: PolitenessConfig | None = None
    ) -> SourceConfig:
        """Create from dictionary."""
        politeness_data = data.get("politeness")
        if politeness_data:
            politeness = PolitenessConfig.from_dict(politeness_data)
        elif default_politeness:
            politeness = default_politeness
        else:
            politeness = PolitenessConfig()

        return cls(
            name=data["name"],
            domain=data["domain"],
            adapter=data.get("adapter", data["name"]),
            display_name=data.get("display_name") or data["name"].upper(),
            enabled=data.get("enabled", True),
            description=data.get("description", ""),
            politeness=politeness,
            listing_urls=data.get("listing_urls") or [],
            excluded_name_keywords=data.get("excluded_name_keywords") or [],
            excluded_url_slugs=data.get("excluded_url_slugs") or [],
            requires_headed_browser=bool(data.get("requires_headed_browser", False)),
            custom_config=data.get("custom_config") or {},
        )

    def adapter_config(self) -> dict[str, Any]:
        """Adapter settings: custom_config plus the manufacturer identity."""
        config = dict(self.custom_config)
        config.setdefault("manufacturer", self.display_name)
        config.setdefault("manufacturer_slug", self.name)
        config.setdefault("headed", self.requires_headed_browser)
        if self.listing_urls:
            config.setdefault("listing_urls", list(self.listing_urls))
        return config

    def is_excluded(self, url: str, name: str = "") -> bool:
        """
        Check discovery exclusions.

        Rules:
        1. A name containing any excluded keyword (case-insensitive) is excluded
        2. A URL containing ``/products/{slug}`` for an excluded slug is excluded
        """
        lowered = name.lower()
        for keyword in self.excluded_name_keywords:
            if keyword.lower() in lowered:
                return True
        for slug in self.excluded_url_slugs:
            if f"/products/{slug}" in url:
                return True
        return False


@dataclass
class GlobalConfig:
    """Global configuration settings."""

    default_politeness: PolitenessConfig = field(default_factory=PolitenessConfig)
    user_agent: str = ""
    accept_language: str = "ja,en-US;q=0.7,en;q=0.3"
    request_timeout: int = 30
    max_retries: int = 3
    max_concurrency: int = 4
    image_width: int = 500
    note_max_length: int = 500

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> GlobalConfig:
        """Create from dictionary."""
        if data is None:
            return cls()
        return cls(
            default_politeness=PolitenessConfig.from_dict(data.get("default_politeness")),
            user_agent=data.get("user_agent", ""),
            accept_language=data.get("accept_language", "ja,en-US;q=0.7,en;q=0.3"),
            request_timeout=int(data.get("request_timeout", 30)),
            max_retries=int(data.get("max_retries", 3)),
            max_concurrency=max(1, int(data.get("max_concurrency", 4))),
            image_width=int(data.get("image_width", 500)),
            note_max_length=int(data.get("note_max_length", 500)),
        )


class SourceRegistry:
    """
    Registry for managing source configurations.

    Loads source definitions from a YAML file and provides methods
    to query and manage them.
    """

    def __init__(self) -> None:
        self._sources: dict[str, SourceConfig] = {}
        self._global_config: GlobalConfig = GlobalConfig()
        self._config_path: Path | None = None

    @property
    def global_config(self) -> GlobalConfig:
        """Get global configuration."""
        return self._global_config

    @property
    def config_path(self) -> Path | None:
        return self._config_path

    def load_config(self, config_path: Path | str) -> None:
        """
        Load configuration from a YAML file.

        Args:
            config_path: Path to the sources.yaml file
        """
        config_path = Path(config_path).expanduser().resolve()
        if not config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        with open(config_path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}

        self._config_path = config_path
        self._global_config = GlobalConfig.from_dict(data.get("global"))

        self._sources.clear()
        for source_data in data.get("sources", []):
            source = SourceConfig.from_dict(source_data, self._global_config.default_politeness)
            self._sources[source.name] = source

    def add_source(self, source: SourceConfig) -> None:
        """Register a source, replacing any source with the same name."""
        self._sources[source.name] = source

    def get_source(self, name: str) -> SourceConfig | None:
        """
        Get a source configuration by name.

        Args:
            name: Source name (the manufacturer slug)

        Returns:
            SourceConfig if found, None otherwise
        """
        return self._sources.get(name)

    def list_sources(self) -> list[SourceConfig]:
        """Get all registered sources."""
        return list(self._sources.values())

    def list_enabled_sources(self) -> list[SourceConfig]:
        """Get all enabled sources."""
        return [s for s in self._sources.values() if s.enabled]

    def enable_source(self, name: str) -> bool:
        """
        Enable a source.

        Returns:
            True if source was found and enabled, False otherwise
        """
        source = self._sources.get(name)
        if source is None:
            return False
        source.enabled = True
        return True

    def disable_source(self, name: str) -> bool:
        """
        Disable a source.

        Returns:
            True if source was found and disabled, False otherwise
        """
        source = self._sources.get(name)
        if source is None:
            return False
        source.enabled = False
        return True

    def save_enabled(self, name: str) -> None:
        """
        Write a source's current ``enabled`` flag back to the loaded file.

        Only the ``enabled`` line of that source's block is touched, so the
        rest of the file (comments included) stays as it was.

        Raises:
            ConfigError: If the registry was not loaded from a file, or the
                file has no ``- name:`` block for the source
        """
        source = self._sources.get(name)
        if source is None or self._config_path is None:
            raise ConfigError(f"Source '{name}' has no config file to update")

        text = self._config_path.read_text(encoding="utf-8")
        updated = set_enabled_in_yaml(text, name, source.enabled)

        written = {s.get("name"): s for s in (yaml.safe_load(updated) or {}).get("sources", [])}
        if written.get(name, {}).get("enabled", True) is not source.enabled:
            raise ConfigError(f"Could not update 'enabled' for '{name}' in {self._config_path}")

        self._config_path.write_text(updated, encoding="utf-8")
        logger.info("Saved enabled=%s for source %s to %s", source.enabled, name, self._config_path)

    def get_source_by_domain(self, domain: str) -> SourceConfig | None:
        """
        Find a source by its domain.

        ``www.`` prefixes are ignored on both sides.
        """
        wanted = domain.lower().removeprefix("www.")
        for source in self._sources.values():
            if source.domain.lower().removeprefix("www.") == wanted:
                return source
        return None


def set_enabled_in_yaml(text: str, name: str, enabled: bool) -> str:
    """
    Set ``enabled`` inside the ``- name: <name>`` block of a sources file.

    Replaces an existing ``enabled:`` key of that block, or inserts one
    right after the ``name`` line.

    Raises:
        ConfigError: If no block starts with ``- name: <name>``
    """
    lines = text.splitlines(keepends=True)
    start = indent = None
    for i, line in enumerate(lines):
        match = _ITEM_NAME_RE.match(line)
        if match and match.group(2) == name:
            start, indent = i, len(match.group(1)) + 2
            break
    if start is None or indent is None:
        raise ConfigError(f"Source '{name}' not found in config file")

    end = len(lines)
    for j in range(start + 1, len(lines)):
        stripped = lines[j].strip()
        if not stripped or stripped.startswith("#"):
            continue
        if len(lines[j]) - len(lines[j].lstrip()) < indent:
            end = j
            break

    new_line = f"{' ' * indent}enabled: {'true' if enabled else 'false'}\n"
    key_re = re.compile(rf"^ {{{indent}}}enabled:")
    for j in range(start + 1, end):
        if key_re.match(lines[j]):
            lines[j] = new_line
            return "".join(lines)

    if not lines[start].endswith("\n"):
        lines[start] += "\n"
    lines.insert(start + 1, new_line)
    return "".join(lines)


# Global registry instance
_default_registry: SourceRegistry | None = None


def get_default_registry() -> SourceRegistry:
    """
    Get the default source registry instance.

    Loads configuration from the path specified in SOURCES_CONFIG_PATH
    environment variable, or falls back to config/sources.yaml.
    """
    global _default_registry

    if _default_registry is None:
        _default_registry = SourceRegistry()

        config_path = os.environ.get("SOURCES_CONFIG_PATH")
        if config_path:
            _default_registry.load_config(config_path)
        else:
            module_dir = Path(__file__).parent
            project_root = module_dir.parent.parent
            path = project_root / "config" / "sources.yaml"
            if path.exists():
                _default_registry.load_config(path)

    return _default_registry


def reset_default_registry() -> None:
    """Reset the default registry (useful for testing)."""
    global _default_registry
    _default_registry = None
