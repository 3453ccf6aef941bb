"""API key loading for livepage.

Provider keys are looked up in this order:
  1. Environment variables already set in the shell
  2. ~/.livepage/keys.env (user-level keys)
  3. .env in the current directory (project-level)

A variable set to the empty string counts as unset, the same way
ProviderConfig.resolved_api_key treats it.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from dotenv import dotenv_values

from livepage.schemas.config import ProviderConfig

logger = logging.getLogger(__name__)

LIVEPAGE_HOME = Path.home() / ".livepage"
KEYS_FILE = LIVEPAGE_HOME / "keys.env"


def load_keys_env(files: list[Path] | None = None) -> None:
    """Copy keys from the key files into os.environ without overriding."""
    for env_file in files or [KEYS_FILE, Path.cwd() / ".env"]:
        if not env_file.is_file():
            continue
        for name, value in dotenv_values(env_file, encoding="utf-8").items():
            if value and not os.environ.get(name):
                os.environ[name] = value
                logger.debug("Loaded %s from %s", name, env_file)


def key_status(providers: dict[str, ProviderConfig]) -> dict[str, bool]:
    """Map provider key -> whether its API key is configured."""
    return {key: bool(cfg.resolved_api_key()) for key, cfg in providers.items()}
