"""Configuration service for managing todosync configuration.

This module provides the ConfigService class, the single source of truth for
configuration. It handles:

- Loading and saving config.json in the platform config directory
- Environment overrides for the hosted backend credentials
- Dotted-key reads and writes used by ``todosync config``
- Building the storage strategy for the configured store
"""

from __future__ import annotations

import json
import os
from functools import lru_cache
from json import JSONDecodeError
from pathlib import Path
from typing import Any

from platformdirs import user_config_dir, user_data_dir
from pydantic import ValidationError

from todosync.models.config_models import AppConfig
from todosync.models.storage_strategy import StorageStrategy, build_strategy
from todosync.utils.logger import get_logger

logger = get_logger("services.config")

ENV_SUPABASE_URL = "TODOSYNC_SUPABASE_URL"
ENV_SUPABASE_KEY = "TODOSYNC_SUPABASE_KEY"


class ConfigService:
    """Service for managing application configuration."""

    def __init__(self):
        """Initialize the config service."""
        self.config_dir = Path(user_config_dir("todosync"))
        self.config_path = self.config_dir / "config.json"
        self.data_dir = Path(user_data_dir("todosync"))

        self.config_dir.mkdir(parents=True, exist_ok=True)
        self.data_dir.mkdir(parents=True, exist_ok=True)

        self._config: AppConfig | None = None

    @property
    def config(self) -> AppConfig:
        """Get or load the current configuration."""
        if self._config is None:
            self._config = self.load_config()
        return self._config

    def load_config(self) -> AppConfig:
        """Load configuration from storage, creating defaults on first run."""
        if self._config is not None:
            return self._config

        try:
            with open(self.config_path, encoding="utf-8") as f:
                self._config = AppConfig.model_validate_json(f.read())
        except FileNotFoundError:
            # First run
            self._config = self.create_default_config()
            self.save_config()
        except (OSError, ValidationError, JSONDecodeError) as e:
            raise RuntimeError(f"Failed to load config: {e}") from e

        return self._config

    def save_config(self) -> None:
        """Save the current configuration to storage."""
        if self._config is None:
            raise RuntimeError("No configuration to save")

        try:
            self.config_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.config_path, "w", encoding="utf-8") as f:
                f.write(self._config.model_dump_json(indent=4))
            # The file may hold an API key
            self.config_path.chmod(0o600)
        except OSError as e:
            raise RuntimeError(f"Failed to save config: {e}") from e

    def reset_config(self) -> AppConfig:
        """Reset configuration to defaults."""
        self._config = self.create_default_config()
        self.save_config()
        return self._config

    def create_default_config(self) -> AppConfig:
        """Create a default configuration using the local vault."""
        config = AppConfig()
        config.store.db_path = str(self.data_dir / "todos.db")
        config.storage.local_dir = str(self.data_dir / "attachments")
        return config

    def effective_config(self) -> AppConfig:
        """Return the configuration with environment overrides applied.

        Overrides are never written back to config.json.
        """
        config = self.config.model_copy(deep=True)
        url = os.environ.get(ENV_SUPABASE_URL)
        key = os.environ.get(ENV_SUPABASE_KEY)
        if url:
            config.store.url = url.strip().rstrip("/")
        if key:
            config.store.api_key = key
        return config

    def get(self, key: str) -> Any:
        """Get a configuration value by dotted key (e.g. ``sync.debounce_seconds``)."""
        value: Any = self.config.model_dump()
        for part in key.split("."):
            if not isinstance(value, dict) or part not in value:
                return None
            value = value[part]
        return value

    def set(self, key: str, value: Any) -> None:
        """Set a configuration value by dotted key and save.

        Raises:
            KeyError: If the key does not exist
            ValueError: If the value does not validate
        """
        data = self.config.model_dump()
        parts = key.split(".")
        target = data
        for part in parts[:-1]:
            if not isinstance(target.get(part), dict):
                raise KeyError(key)
            target = target[part]
        if parts[-1] not in target:
            raise KeyError(key)
        target[parts[-1]] = value

        try:
            self._config = AppConfig.model_validate(data)
        except ValidationError as e:
            raise ValueError(f"Invalid value for {key}: {e.errors()[0]['msg']}") from e
        self.save_config()
        logger.info("Config %s updated", key)

    def build_storage_strategy(self) -> StorageStrategy:
        """Create the storage strategy for the effective configuration."""
        return build_strategy(self.effective_config())

    def dump(self, redact: bool = True) -> dict[str, Any]:
        """Return the effective configuration as a dict, hiding the API key."""
        data = json.loads(self.effective_config().model_dump_json())
        if redact and data["store"].get("api_key"):
            data["store"]["api_key"] = "****"
        return data


@lru_cache(maxsize=1)
def get_config_service() -> ConfigService:
    """Get a cached ConfigService instance."""
    config_service = ConfigService()
    config_service.load_config()
    return config_service
