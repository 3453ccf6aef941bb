"""Tests for livepage.providers.registry — TOML config loading and provider lookup."""

from pathlib import Path

import pytest

from livepage.errors import ConfigurationError
from livepage.providers.registry import get_provider, load_providers, load_settings
from livepage.schemas.config import ProviderConfig

# Path to the real config files shipped with the package
_CONFIG_DIR = Path(__file__).parent.parent / "livepage" / "config"


class TestLoadProviders:
    def test_loads_real_config(self):
        registry = load_providers(_CONFIG_DIR / "providers.toml")
        assert len(registry) > 0

    def test_all_expected_providers_present(self):
        registry = load_providers()
        for key in ["openai", "fireworks-ai", "nebius", "sambanova", "hyperbolic"]:
            assert key in registry, f"Missing provider: {key}"

    def test_provider_config_types(self):
        for key, cfg in load_providers().items():
            assert isinstance(cfg, ProviderConfig)
            assert cfg.key == key
            assert cfg.base_url.startswith("https://")
            assert cfg.max_tokens > 0
            assert cfg.completion_cap <= cfg.max_tokens

    def test_sambanova_budget(self):
        cfg = load_providers()["sambanova"]
        assert cfg.max_tokens == 8000
        assert cfg.completion_cap == 8000

    def test_openai_env_overrides_declared(self):
        cfg = load_providers()["openai"]
        assert cfg.base_url_env == "OPENAI_BASE_URL"
        assert cfg.model_env == "OPENAI_MODEL"

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_providers(tmp_path / "nope.toml")

    def test_missing_section(self, tmp_path):
        path = tmp_path / "providers.toml"
        path.write_text("[other]\nx = 1\n")
        with pytest.raises(ValueError, match=r"No \[providers\] section"):
            load_providers(path)

    def test_custom_file(self, tmp_path):
        path = tmp_path / "providers.toml"
        path.write_text(
            '[providers.local]\n'
            'name = "Local"\n'
            'base_url = "http://localhost:11434/v1"\n'
            'model = "llama3"\n'
            'api_key_env = "LOCAL_KEY"\n'
            'max_tokens = 4096\n'
        )
        registry = load_providers(path)
        assert registry["local"].completion_cap == 16000
        assert registry["local"].resolved_model() == "llama3"


class TestLoadSettings:
    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("APP_PORT", raising=False)
        settings = load_settings()
        assert settings.default_provider == "openai"
        assert settings.generation.throttle_interval == 1.0
        assert settings.generation.growth_threshold == 200
        assert settings.generation.stop_on_close_tag is True
        assert settings.server.port == 3000
        assert settings.server.max_requests_per_ip == 4

    def test_app_port_override(self, monkeypatch):
        monkeypatch.setenv("APP_PORT", "8080")
        assert load_settings().server.port == 8080

    def test_non_numeric_app_port_ignored(self, monkeypatch):
        monkeypatch.setenv("APP_PORT", "eighty")
        assert load_settings().server.port == 3000

    def test_partial_file_uses_model_defaults(self, tmp_path, monkeypatch):
        monkeypatch.delenv("APP_PORT", raising=False)
        path = tmp_path / "defaults.toml"
        path.write_text('default_provider = "nebius"\n[generation]\nthrottle_interval = 0.25\n')
        settings = load_settings(path)
        assert settings.default_provider == "nebius"
        assert settings.generation.throttle_interval == 0.25
        assert settings.generation.idle_timeout == 60.0
        assert settings.server.port == 3000

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_settings(tmp_path / "nope.toml")


class TestGetProvider:
    def test_explicit_key(self):
        assert get_provider(load_providers(), "nebius").key == "nebius"

    def test_falls_back_to_default(self):
        assert get_provider(load_providers(), None, "hyperbolic").key == "hyperbolic"

    def test_unknown_key(self):
        with pytest.raises(ConfigurationError, match="Unknown provider 'nope'"):
            get_provider(load_providers(), "nope")
