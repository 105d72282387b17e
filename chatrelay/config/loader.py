"""YAML configuration loader for chatrelay."""
from pathlib import Path
from typing import Dict, List, Optional

import yaml
from pydantic import ValidationError

from chatrelay.config.presets import DEFAULT_PRESETS, list_presets
from chatrelay.config.schema import ApiPreset, ChatRelayConfig, ClientSettings, ModelConfig
from chatrelay.core.kv_store import KeyValueStore, MemoryKeyValueStore, RedisKeyValueStore
from chatrelay.core.secret_store import SecureStorage


class ConfigLoader:
    """Load and validate chatrelay configuration."""

    def __init__(self, config_path: Optional[str] = None):
        """
        Args:
            config_path: Path to YAML configuration file; defaults only when None
        """
        self.config_path = Path(config_path) if config_path else None
        self.config = ChatRelayConfig()

    def load(self) -> ChatRelayConfig:
        """Load and validate configuration from the YAML file."""
        if self.config_path is None:
            self.config = ChatRelayConfig()
            return self.config

        if not self.config_path.exists():
            raise FileNotFoundError(f"Config file not found: {self.config_path}")

        try:
            with open(self.config_path, "r", encoding="utf-8") as f:
                raw_config = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML syntax in {self.config_path}: {e}") from e

        if not isinstance(raw_config, dict):
            raise ValueError(f"Configuration root must be a mapping in {self.config_path}")

        try:
            self.config = ChatRelayConfig(**raw_config)
        except ValidationError as e:
            raise ValueError(f"Configuration validation failed in {self.config_path}: {e}") from e

        return self.config

    def get_client_settings(self) -> ClientSettings:
        return self.config.client

    def get_presets(self) -> List[ApiPreset]:
        """Built-in presets merged with configured ones (configured win by key)."""
        return list_presets(self.config.presets)

    def get_preset(self, name: str) -> Optional[ApiPreset]:
        presets: Dict[str, ApiPreset] = {**DEFAULT_PRESETS, **self.config.presets}
        if name in presets:
            return presets[name]
        for preset in presets.values():
            if preset.name == name:
                return preset
        return None

    def get_models(self) -> List[ModelConfig]:
        return list(self.config.models)

    def create_kv_store(self) -> KeyValueStore:
        """Build the key-value backend selected under ``secret_store``."""
        store_config = self.config.secret_store
        if store_config.backend == "redis":
            return RedisKeyValueStore(redis_url=store_config.redis_url)
        return MemoryKeyValueStore()

    def create_secure_storage(self) -> SecureStorage:
        """Secret storage over the configured backend and key prefix."""
        return SecureStorage(self.create_kv_store(), prefix=self.config.secret_store.key_prefix)
