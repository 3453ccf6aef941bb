"""Provider registry and TOML configuration loader.

Loads provider definitions from providers.toml and application defaults
from defaults.toml. Provides lookup of the provider a request targets.
"""

from __future__ import annotations

import os
import tomllib
from pathlib import Path

from livepage.errors import ConfigurationError
from livepage.schemas.config import (
    AppSettings,
    GenerationSettings,
    ProviderConfig,
    ServerSettings,
)

# Default config directory relative to the livepage package
_CONFIG_DIR = Path(__file__).parent.parent / "config"


def load_providers(config_path: Path | None = None) -> dict[str, ProviderConfig]:
    """Load the provider catalog from a TOML file.

    Args:
        config_path: Path to providers.toml. Defaults to livepage/config/providers.toml.

    Returns:
        Dictionary mapping provider keys to ProviderConfig instances.

    Raises:
        FileNotFoundError: If the config file does not exist.
        ValueError: If the TOML structure is invalid.
    """
    path = config_path or _CONFIG_DIR / "providers.toml"
    if not path.exists():
        raise FileNotFoundError(f"Provider catalog not found: {path}")

    with open(path, "rb") as f:
        raw = tomllib.load(f)

    section = raw.get("providers")
    if not section or not isinstance(section, dict):
        raise ValueError(f"No [providers] section found in {path}")

    return {
        key: ProviderConfig(key=key, **entry)
        for key, entry in section.items()
        if isinstance(entry, dict)
    }


def load_settings(config_path: Path | None = None) -> AppSettings:
    """Load application defaults from a TOML file.

    APP_PORT, when set, overrides the server port.

    Args:
        config_path: Path to defaults.toml. Defaults to livepage/config/defaults.toml.

    Raises:
        FileNotFoundError: If the config file does not exist.
    """
    path = config_path or _CONFIG_DIR / "defaults.toml"
    if not path.exists():
        raise FileNotFoundError(f"Settings file not found: {path}")

    with open(path, "rb") as f:
        raw = tomllib.load(f)

    server_section = dict(raw.get("server", {}))
    port = os.environ.get("APP_PORT")
    if port and port.isdigit():
        server_section["port"] = int(port)

    return AppSettings(
        default_provider=raw.get("default_provider", "openai"),
        generation=GenerationSettings(**raw.get("generation", {})),
        server=ServerSettings(**server_section),
    )


def get_provider(
    registry: dict[str, ProviderConfig], key: str | None, default: str = "openai"
) -> ProviderConfig:
    """Look up a provider by key, falling back to the default.

    Raises:
        ConfigurationError: If the key is not in the registry.
    """
    name = key or default
    if name not in registry:
        raise ConfigurationError(
            f"Unknown provider '{name}'. Available: {', '.join(sorted(registry))}"
        )
    return registry[name]
