"""Configured models and global generation settings.

An explicit, injectable replacement for ambient client-side state. When a
key-value store is given, every mutation is persisted as one JSON document.
"""
import json
import logging
import threading
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Union

from pydantic import ValidationError

from chatrelay.config.schema import ChatRelayConfig, ModelConfig, ModelSettings
from chatrelay.core.kv_store import KeyValueStore

logger = logging.getLogger(__name__)

MODEL_STORAGE_KEY = "chatrelay-models"
EXPORT_VERSION = "1.0"


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class ModelStore:
    """Holds the configured models and which one is active."""

    def __init__(
        self,
        kv_store: Optional[KeyValueStore] = None,
        storage_key: str = MODEL_STORAGE_KEY,
    ):
        """
        Args:
            kv_store: Optional persistence backend
            storage_key: Key the JSON document is stored under
        """
        self.kv_store = kv_store
        self.storage_key = storage_key
        self.models: List[ModelConfig] = []
        self.active_model_id: Optional[str] = None
        self.settings = ModelSettings()
        self._lock = threading.Lock()
        self._load()

    @classmethod
    def from_config(
        cls,
        config: ChatRelayConfig,
        kv_store: Optional[KeyValueStore] = None,
    ) -> "ModelStore":
        """Create a store seeded from configuration when nothing is persisted yet."""
        store = cls(kv_store=kv_store)
        if not store.models and config.models:
            store.import_config({
                "models": [m.model_dump() for m in config.models],
                "active_model_id": config.active_model_id,
                "settings": config.settings.model_dump(),
            })
        return store

    def _load(self) -> None:
        if self.kv_store is None:
            return
        raw = self.kv_store.get(self.storage_key)
        if not raw:
            return
        try:
            self._apply(json.loads(raw))
        except (ValueError, ValidationError) as e:
            logger.warning(f"Ignoring unreadable model store '{self.storage_key}': {e}")

    def _save(self) -> None:
        if self.kv_store is None:
            return
        self.kv_store.set(self.storage_key, json.dumps(self._snapshot(), ensure_ascii=False))

    def _snapshot(self) -> Dict[str, Any]:
        return {
            "models": [m.model_dump() for m in self.models],
            "active_model_id": self.active_model_id,
            "settings": self.settings.model_dump(),
        }

    def _apply(self, data: Mapping[str, Any]) -> None:
        models = [ModelConfig.model_validate(m) for m in data.get("models") or []]
        active = data.get("active_model_id") or data.get("activeModelId")
        if active not in {m.id for m in models}:
            active = models[0].id if models else None
        self.models = models
        self.active_model_id = active
        self.settings = ModelSettings.model_validate(data.get("settings") or {})

    def list_models(self) -> List[ModelConfig]:
        return list(self.models)

    def get(self, model_id: str) -> Optional[ModelConfig]:
        for model in self.models:
            if model.id == model_id:
                return model
        return None

    def add(self, model: Union[ModelConfig, Mapping[str, Any]]) -> ModelConfig:
        """Add a model; the first model added becomes active."""
        data = model.model_dump() if isinstance(model, ModelConfig) else dict(model)
        now = _now_iso()
        data["id"] = data.get("id") or f"model-{uuid.uuid4().hex[:12]}"
        data["created_at"] = now
        data["updated_at"] = now
        new_model = ModelConfig.model_validate(data)

        with self._lock:
            if self.get(new_model.id) is not None:
                raise ValueError(f"Model id already exists: {new_model.id}")
            self.models.append(new_model)
            if self.active_model_id is None:
                self.active_model_id = new_model.id
            self._save()
        return new_model

    def update(self, model_id: str, **updates: Any) -> Optional[ModelConfig]:
        """Apply field updates; returns the updated model or None if unknown."""
        with self._lock:
            for index, model in enumerate(self.models):
                if model.id != model_id:
                    continue
                data = model.model_dump()
                data.update({k: v for k, v in updates.items() if k not in ("id", "created_at")})
                data["updated_at"] = _now_iso()
                updated = ModelConfig.model_validate(data)
                self.models[index] = updated
                self._save()
                return updated
        return None

    def delete(self, model_id: str) -> bool:
        """Remove a model; deleting the active one activates the first remaining."""
        with self._lock:
            remaining = [m for m in self.models if m.id != model_id]
            if len(remaining) == len(self.models):
                return False
            self.models = remaining
            if self.active_model_id == model_id:
                self.active_model_id = remaining[0].id if remaining else None
            self._save()
            return True

    def set_active(self, model_id: Optional[str]) -> None:
        with self._lock:
            if model_id is not None and self.get(model_id) is None:
                raise KeyError(f"Unknown model id: {model_id}")
            self.active_model_id = model_id
            self._save()

    def get_active(self) -> Optional[ModelConfig]:
        if self.active_model_id is None:
            return None
        return self.get(self.active_model_id)

    def update_settings(self, **settings: Any) -> ModelSettings:
        with self._lock:
            merged = self.settings.model_dump()
            merged.update(settings)
            self.settings = ModelSettings.model_validate(merged)
            self._save()
            return self.settings

    def export_config(self) -> Dict[str, Any]:
        """Snapshot suitable for backup or transfer to another client."""
        exported = self._snapshot()
        exported["exported_at"] = _now_iso()
        exported["version"] = EXPORT_VERSION
        return exported

    def import_config(self, config: Mapping[str, Any]) -> bool:
        """Replace models and settings from an export; False if it has no model list."""
        if not isinstance(config.get("models"), list):
            return False
        with self._lock:
            self._apply(config)
            self._save()
        return True
