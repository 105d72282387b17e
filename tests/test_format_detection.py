"""Tests for wire format detection."""
import pytest

from chatrelay.adapters.llm.base import WireFormat
from chatrelay.adapters.llm.factory import coerce_format, detect_format, get_adapter, resolve_format
from chatrelay.config.schema import ApiPreset


@pytest.mark.parametrize(
    "url,expected",
    [
        ("https://api.anthropic.com/v1/messages", WireFormat.ANTHROPIC),
        ("https://api.openai.com/v1/chat/completions", WireFormat.OPENAI),
        ("https://generativelanguage.googleapis.com/v1/models/x:generateContent", WireFormat.GOOGLE),
        ("https://my-custom-proxy.example.com/api", WireFormat.CUSTOM),
        ("https://api.moonshot.cn/v1/chat/completions", WireFormat.OPENAI),
        ("https://relay.example.com/v1/messages", WireFormat.ANTHROPIC),
    ],
)
def test_detect_format(url, expected):
    assert detect_format(url) == expected


def test_rules_apply_in_order():
    # host rule beats the path rule
    assert detect_format("https://api.anthropic.com/v1/chat/completions") == WireFormat.ANTHROPIC
    assert detect_format("https://x.googleapis.com/v1/messages") == WireFormat.GOOGLE


@pytest.mark.parametrize("url", ["", None])
def test_empty_endpoint_is_custom(url):
    assert detect_format(url) == WireFormat.CUSTOM


def test_detection_is_deterministic():
    url = "https://api.openai.com/v1/chat/completions"
    assert {detect_format(url) for _ in range(5)} == {WireFormat.OPENAI}


def test_explicit_override_wins():
    assert resolve_format("https://my-proxy.example.com/api", "anthropic") == WireFormat.ANTHROPIC
    assert resolve_format("https://api.openai.com/v1/chat/completions", WireFormat.GOOGLE) == WireFormat.GOOGLE


def test_unknown_override_falls_back_to_detection():
    assert resolve_format("https://api.openai.com/v1/chat/completions", "cohere") == WireFormat.OPENAI
    assert resolve_format("https://api.openai.com/v1/chat/completions", None) == WireFormat.OPENAI


def test_preset_format_used_when_no_override():
    preset = ApiPreset(name="Relay", endpoint="https://relay.example.com/api", format="anthropic")
    assert resolve_format("https://relay.example.com/api", None, preset) == WireFormat.ANTHROPIC
    assert resolve_format("https://relay.example.com/api", "google", preset) == WireFormat.GOOGLE


def test_preset_without_format_falls_back_to_detection():
    preset = ApiPreset(name="Relay", endpoint="https://relay.example.com/v1/chat/completions")
    assert resolve_format(preset.endpoint, None, preset) == WireFormat.OPENAI


def test_coerce_format():
    assert coerce_format(" OpenAI ") == WireFormat.OPENAI
    assert coerce_format("nope") is None
    assert coerce_format(3) is None


def test_get_adapter_unknown_is_custom():
    assert get_adapter("nope").format == WireFormat.CUSTOM
