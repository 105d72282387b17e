"""Built-in endpoint presets and generation parameter templates."""
from typing import Any, Dict, Iterable, List, Optional

from chatrelay.config.schema import ApiPreset, ParameterTemplate

DEFAULT_PRESETS: Dict[str, ApiPreset] = {
    "openai": ApiPreset(
        name="OpenAI",
        endpoint="https://api.openai.com/v1/chat/completions",
        format="openai",
        default_model="gpt-3.5-turbo",
        description="OpenAI chat completions",
    ),
    "anthropic": ApiPreset(
        name="Anthropic",
        endpoint="https://api.anthropic.com/v1/messages",
        format="anthropic",
        default_model="claude-3-sonnet-20240229",
        description="Anthropic messages API",
    ),
    "google": ApiPreset(
        name="Google Gemini",
        endpoint="https://generativelanguage.googleapis.com/v1/models/gemini-pro:generateContent",
        format="google",
        default_model="gemini-pro",
        description="Gemini generateContent",
    ),
    "oneapi": ApiPreset(
        name="OneAPI relay",
        endpoint="https://api.oneapi.com/v1/chat/completions",
        format="openai",
        default_model="gpt-3.5-turbo",
        description="OneAPI unified relay, OpenAI-compatible",
    ),
    "hunyuan": ApiPreset(
        name="Tencent Hunyuan",
        endpoint="https://hunyuan.cloud.tencent.com/v1/chat/completions",
        format="openai",
        default_model="hunyuan-lite",
    ),
    "moonshot": ApiPreset(
        name="Moonshot Kimi",
        endpoint="https://api.moonshot.cn/v1/chat/completions",
        format="openai",
        default_model="moonshot-v1-8k",
        description="Long-context models",
    ),
    "zhipu": ApiPreset(
        name="Zhipu GLM",
        endpoint="https://open.bigmodel.cn/api/paas/v4/chat/completions",
        format="openai",
        default_model="glm-4",
    ),
    "ollama": ApiPreset(
        name="Local Ollama",
        endpoint="http://localhost:11434/v1/chat/completions",
        format="openai",
        default_model="qwen:7b",
        description="Open models served locally",
    ),
    "custom": ApiPreset(
        name="Custom endpoint",
        format="custom",
        description="Any other endpoint",
    ),
}


def find_preset(endpoint: str, presets: Optional[Iterable[ApiPreset]] = None) -> Optional[ApiPreset]:
    """Return the preset whose endpoint equals the URL exactly, if any."""
    if not endpoint:
        return None
    candidates = DEFAULT_PRESETS.values() if presets is None else presets
    for preset in candidates:
        if preset.endpoint and preset.endpoint == endpoint:
            return preset
    return None


def list_presets(extra: Optional[Dict[str, ApiPreset]] = None) -> List[ApiPreset]:
    """Built-in presets followed by (or overridden by) configured ones."""
    merged = dict(DEFAULT_PRESETS)
    if extra:
        merged.update(extra)
    return list(merged.values())


PARAMETER_TEMPLATES: Dict[str, ParameterTemplate] = {
    "creative": ParameterTemplate(
        name="Creative",
        temperature=0.9,
        top_p=0.95,
        presence_penalty=0.5,
        frequency_penalty=0.5,
        description="More imaginative, varied replies",
    ),
    "balanced": ParameterTemplate(
        name="Balanced",
        temperature=0.7,
        top_p=0.9,
        description="Balance between creativity and accuracy",
    ),
    "precise": ParameterTemplate(
        name="Precise",
        temperature=0.3,
        top_p=0.5,
        description="More accurate, consistent replies",
    ),
    "deterministic": ParameterTemplate(
        name="Deterministic",
        temperature=0,
        top_p=1,
        description="Same answer every time",
    ),
}


def get_template(name: Any) -> Optional[ParameterTemplate]:
    """Look up a parameter template by key, ignoring case and whitespace."""
    if not isinstance(name, str):
        return None
    return PARAMETER_TEMPLATES.get(name.strip().lower())
