"""Tests for the source registry module."""

import tempfile
from pathlib import Path

import pytest
import yaml

from lure_catalog.core.errors import ConfigError
from lure_catalog.ingestion.adapters import ADAPTER_REGISTRY
from lure_catalog.ingestion.registry import (
    GlobalConfig,
    PolitenessConfig,
    SourceConfig,
    SourceRegistry,
    get_default_registry,
    reset_default_registry,
    set_enabled_in_yaml,
)

PROJECT_SOURCES = Path(__file__).parent.parent / "config" / "sources.yaml"

SOURCES_WITH_COMMENTS = """\
global:
  max_concurrency: 2
sources:
  # Megabass official site
  - name: megabass
    domain: www.megabass.co.jp
    adapter: megabass

  - name: "boreas"
    domain: flashpointonlineshop.com
    adapter: boreas
    enabled: false
    politeness:
      min_delay_ms: 3000
"""


class TestPolitenessConfig:
    """Tests for PolitenessConfig."""

    def test_default_values(self) -> None:
        config = PolitenessConfig()
        assert config.min_delay_ms == 2000
        assert config.max_concurrency == 1
        assert config.min_delay == 2.0

    def test_from_dict(self) -> None:
        config = PolitenessConfig.from_dict({"min_delay_ms": 500, "max_concurrency": 3})
        assert config.min_delay == 0.5
        assert config.max_concurrency == 3

    def test_concurrency_at_least_one(self) -> None:
        config = PolitenessConfig.from_dict({"max_concurrency": 0})
        assert config.max_concurrency == 1

    def test_from_dict_none(self) -> None:
        assert PolitenessConfig.from_dict(None) == PolitenessConfig()


class TestSourceConfig:
    """Tests for SourceConfig."""

    def test_from_dict_minimal(self) -> None:
        config = SourceConfig.from_dict({"name": "souls", "domain": "souls.jp"})
        assert config.name == "souls"
        assert config.adapter == "souls"
        assert config.display_name == "SOULS"
        assert config.enabled is True
        assert config.excluded_name_keywords == []

    def test_default_politeness_inherited(self) -> None:
        default = PolitenessConfig(min_delay_ms=1234)
        config = SourceConfig.from_dict({"name": "a", "domain": "a.jp"}, default)
        assert config.politeness.min_delay_ms == 1234

    def test_adapter_config(self) -> None:
        config = SourceConfig.from_dict(
            {
                "name": "thirtyfour",
                "display_name": "34",
                "domain": "34net.jp",
                "listing_urls": ["https://34net.jp/products/worm/"],
                "requires_headed_browser": True,
                "custom_config": {"extra": 1},
            }
        )
        adapter_config = config.adapter_config()
        assert adapter_config["manufacturer"] == "34"
        assert adapter_config["manufacturer_slug"] == "thirtyfour"
        assert adapter_config["headed"] is True
        assert adapter_config["listing_urls"] == ["https://34net.jp/products/worm/"]
        assert adapter_config["extra"] == 1

    def test_excluded_by_name_keyword_case_insensitive(self) -> None:
        config = SourceConfig(name="m", domain="m.jp", adapter="m", excluded_name_keywords=["HOOK"])
        assert config.is_excluded("https://m.jp/products/a", "Assist hook set")
        assert not config.is_excluded("https://m.jp/products/a", "Vision 110")

    def test_excluded_by_url_slug(self) -> None:
        config = SourceConfig(name="m", domain="m.jp", adapter="m", excluded_url_slugs=["buddha_hook"])
        assert config.is_excluded("https://m.jp/site/products/buddha_hook/", "鬼手仏針")
        assert not config.is_excluded("https://m.jp/site/products/vision_110/", "Vision 110")


class TestGlobalConfig:
    """Tests for GlobalConfig."""

    def test_defaults(self) -> None:
        config = GlobalConfig.from_dict(None)
        assert config.default_politeness.min_delay_ms == 2000
        assert config.image_width == 500
        assert config.note_max_length == 500

    def test_from_dict(self) -> None:
        config = GlobalConfig.from_dict({"max_concurrency": 8, "note_max_length": 200})
        assert config.max_concurrency == 8
        assert config.note_max_length == 200

    def test_default_politeness_applies_to_loaded_sources(self, tmp_path: Path) -> None:
        path = tmp_path / "sources.yaml"
        path.write_text(
            yaml.dump(
                {
                    "global": {"default_politeness": {"min_delay_ms": 1500}},
                    "sources": [
                        {"name": "souls", "domain": "souls.jp", "adapter": "souls"},
                        {
                            "name": "viva",
                            "domain": "vivanet.co.jp",
                            "adapter": "viva",
                            "politeness": {"min_delay_ms": 500},
                        },
                    ],
                }
            ),
            encoding="utf-8",
        )
        registry = SourceRegistry()
        registry.load_config(path)

        assert registry.get_source("souls").politeness.min_delay_ms == 1500
        assert registry.get_source("viva").politeness.min_delay_ms == 500


class TestSourceRegistry:
    """Tests for SourceRegistry."""

    @pytest.fixture
    def config_file(self) -> str:
        """Create a temporary config file."""
        config = {
            "global": {"user_agent": "TestAgent/1.0", "max_concurrency": 2},
            "sources": [
                {"name": "megabass", "domain": "www.megabass.co.jp", "adapter": "megabass"},
                {"name": "boreas", "domain": "flashpointonlineshop.com", "adapter": "boreas", "enabled": False},
            ],
        }
        with tempfile.NamedTemporaryFile(mode="w", suffix=".yaml", delete=False, encoding="utf-8") as f:
            yaml.dump(config, f)
            return f.name

    def test_load_config(self, config_file: str) -> None:
        registry = SourceRegistry()
        registry.load_config(config_file)

        assert registry.global_config.user_agent == "TestAgent/1.0"
        assert registry.global_config.max_concurrency == 2
        assert len(registry.list_sources()) == 2
        assert [s.name for s in registry.list_enabled_sources()] == ["megabass"]
        assert registry.config_path == Path(config_file).resolve()

    def test_missing_file(self) -> None:
        with pytest.raises(FileNotFoundError):
            SourceRegistry().load_config("/nonexistent/sources.yaml")

    def test_enable_disable(self, config_file: str) -> None:
        registry = SourceRegistry()
        registry.load_config(config_file)

        assert registry.enable_source("boreas")
        assert len(registry.list_enabled_sources()) == 2
        assert registry.disable_source("megabass")
        assert [s.name for s in registry.list_enabled_sources()] == ["boreas"]
        assert not registry.enable_source("unknown")
        assert not registry.disable_source("unknown")

    def test_save_enabled_writes_file(self, tmp_path: Path) -> None:
        path = tmp_path / "sources.yaml"
        path.write_text(SOURCES_WITH_COMMENTS, encoding="utf-8")
        registry = SourceRegistry()
        registry.load_config(path)

        registry.disable_source("megabass")
        registry.save_enabled("megabass")
        registry.enable_source("boreas")
        registry.save_enabled("boreas")

        text = path.read_text(encoding="utf-8")
        assert "# Megabass official site" in text
        reloaded = SourceRegistry()
        reloaded.load_config(path)
        assert [s.name for s in reloaded.list_enabled_sources()] == ["boreas"]

    def test_save_enabled_without_file(self) -> None:
        registry = SourceRegistry()
        registry._sources["souls"] = SourceConfig(name="souls", domain="souls.jp", adapter="souls")

        with pytest.raises(ConfigError):
            registry.save_enabled("souls")

    def test_get_source_by_domain_ignores_www(self, config_file: str) -> None:
        registry = SourceRegistry()
        registry.load_config(config_file)

        source = registry.get_source_by_domain("megabass.co.jp")
        assert source is not None
        assert source.name == "megabass"
        assert registry.get_source_by_domain("example.com") is None


class TestDefaultRegistry:
    """Tests for the process-wide default registry."""

    def test_env_path(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        path = tmp_path / "sources.yaml"
        path.write_text(
            yaml.dump({"sources": [{"name": "viva", "domain": "vivanet.co.jp"}]}),
            encoding="utf-8",
        )
        monkeypatch.setenv("SOURCES_CONFIG_PATH", str(path))
        reset_default_registry()
        try:
            registry = get_default_registry()
            assert registry.get_source("viva") is not None
            assert get_default_registry() is registry
        finally:
            reset_default_registry()

    def test_project_sources_use_registered_adapters(self) -> None:
        registry = SourceRegistry()
        registry.load_config(PROJECT_SOURCES)

        assert registry.list_sources()
        for source in registry.list_sources():
            assert source.adapter in ADAPTER_REGISTRY, source.name

    def test_project_megabass_exclusions(self) -> None:
        registry = SourceRegistry()
        registry.load_config(PROJECT_SOURCES)

        megabass = registry.get_source("megabass")
        assert megabass is not None
        assert megabass.is_excluded("https://www.megabass.co.jp/site/products/okashira_head/", "OKASHIRA HEAD")
        assert megabass.is_excluded("https://www.megabass.co.jp/site/products/x/", "SPARE TAIL SET")
        assert not megabass.is_excluded("https://www.megabass.co.jp/site/products/vision_110/", "VISION 110")


class TestSetEnabledInYaml:
    """Tests for rewriting a source's enabled flag in place."""

    def test_replaces_existing_key(self) -> None:
        text = set_enabled_in_yaml(SOURCES_WITH_COMMENTS, "boreas", True)

        assert "    enabled: true\n" in text
        assert "enabled: false" not in text
        assert "      min_delay_ms: 3000" in text

    def test_inserts_after_name(self) -> None:
        text = set_enabled_in_yaml(SOURCES_WITH_COMMENTS, "megabass", False)

        assert "  - name: megabass\n    enabled: false\n    domain: www.megabass.co.jp" in text
        data = yaml.safe_load(text)
        assert [s["enabled"] for s in data["sources"]] == [False, False]

    def test_unknown_source(self) -> None:
        with pytest.raises(ConfigError):
            set_enabled_in_yaml(SOURCES_WITH_COMMENTS, "viva", True)
