"""Pydantic schemas for chatrelay configuration validation."""
from datetime import datetime, timezone
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field, field_validator


def _utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class ClientSettings(BaseModel):
    """Transport defaults applied when a call does not override them."""

    timeout_ms: int = Field(default=30000, gt=0, le=600000, description="Single-shot request timeout in milliseconds")
    stream_timeout_ms: int = Field(default=60000, gt=0, le=600000, description="Streaming request timeout in milliseconds")
    retry_attempts: int = Field(default=0, ge=0, le=10, description="Retries after the first attempt")
    retry_base_s: float = Field(default=1.0, ge=0, description="Linear backoff step in seconds")
    retry_max_s: float = Field(default=60.0, gt=0, description="Maximum delay between attempts in seconds")
    retry_on_429: bool = Field(default=True, description="Treat HTTP 429 as retryable")
    proxy_url: Optional[str] = Field(default=None, description="Forwarding proxy, called as <proxy_url>?url=<target>")


class ApiPreset(BaseModel):
    """Known endpoint with its wire format and a default model."""

    name: str = Field(..., description="Display name")
    endpoint: str = Field(default="", description="Full endpoint URL (empty for templates)")
    format: Optional[Literal["openai", "anthropic", "google", "custom"]] = Field(
        default=None, description="Explicit wire format; detected from the URL when unset"
    )
    default_model: str = Field(default="", description="Model used when the caller names none")
    headers: Dict[str, str] = Field(default_factory=dict, description="Extra request headers")
    description: str = Field(default="", description="Short description")


class ParameterTemplate(BaseModel):
    """Named bundle of generation parameters a call can start from."""

    name: str = Field(..., description="Display name")
    temperature: float = Field(..., ge=0.0, le=2.0)
    top_p: float = Field(..., ge=0.0, le=1.0)
    presence_penalty: float = Field(default=0.0, ge=-2.0, le=2.0)
    frequency_penalty: float = Field(default=0.0, ge=-2.0, le=2.0)
    description: str = Field(default="")

    def to_options(self) -> Dict[str, float]:
        """Generation options in the shape validate_parameters accepts."""
        return self.model_dump(exclude={"name", "description"})


class ModelSettings(BaseModel):
    """Global generation settings shared by all configured models."""

    max_tokens: int = Field(default=4096, gt=0)
    temperature: float = Field(default=0.7, ge=0.0, le=2.0)
    top_p: float = Field(default=1.0, ge=0.0, le=1.0)
    top_k: int = Field(default=40, ge=1, le=100)
    context_window: int = Field(default=32768, gt=0)
    frequency_penalty: float = Field(default=0.0, ge=-2.0, le=2.0)
    presence_penalty: float = Field(default=0.0, ge=-2.0, le=2.0)


class ModelConfig(BaseModel):
    """A user-configured model endpoint."""

    id: str = Field(default="", description="Unique identifier; generated when empty")
    name: str = Field(..., description="Model id sent to the provider")
    api_endpoint: str = Field(..., description="Base URL of the provider")
    api_key: str = Field(default="", description="Provider API key")
    api_path: str = Field(default="/chat/completions", description="Path appended to api_endpoint")
    format: Optional[Literal["openai", "anthropic", "google", "custom"]] = Field(
        default=None, description="Explicit wire format override"
    )
    enabled: bool = Field(default=True)
    description: str = Field(default="")
    max_tokens: Optional[int] = Field(default=None, gt=0)
    context_window: Optional[int] = Field(default=None, gt=0)
    created_at: str = Field(default_factory=_utcnow_iso)
    updated_at: str = Field(default_factory=_utcnow_iso)

    @field_validator("api_path")
    @classmethod
    def validate_api_path(cls, v: str) -> str:
        """Ensure a non-empty path starts with a slash."""
        if v and not v.startswith("/"):
            return "/" + v
        return v

    @property
    def url(self) -> str:
        """Full endpoint URL (base + path)."""
        return self.api_endpoint.rstrip("/") + self.api_path if self.api_path else self.api_endpoint


class SecretStoreConfig(BaseModel):
    """Where encrypted secrets are persisted."""

    backend: Literal["memory", "redis"] = Field(default="memory")
    redis_url: Optional[str] = Field(
        default=None, validate_default=True, description="Redis URL for the redis backend"
    )
    key_prefix: str = Field(default="secure_", description="Prefix for every stored key")

    @field_validator("redis_url")
    @classmethod
    def validate_redis_url(cls, v: Optional[str], info) -> Optional[str]:
        """Ensure the redis backend has a URL."""
        if info.data.get("backend") == "redis" and not v:
            raise ValueError("redis_url is required when backend is 'redis'")
        return v


class ChatRelayConfig(BaseModel):
    """Root configuration model."""

    client: ClientSettings = Field(default_factory=ClientSettings)
    presets: Dict[str, ApiPreset] = Field(default_factory=dict, description="Additional endpoint presets")
    models: List[ModelConfig] = Field(default_factory=list, description="Configured models")
    active_model_id: Optional[str] = Field(default=None)
    settings: ModelSettings = Field(default_factory=ModelSettings)
    secret_store: SecretStoreConfig = Field(default_factory=SecretStoreConfig)
