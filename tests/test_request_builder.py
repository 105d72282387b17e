"""Tests for per-format request building."""
import httpx
import pytest

from chatrelay.adapters.llm.anthropic import ANTHROPIC_VERSION
from chatrelay.adapters.llm.base import BuiltRequest, WireFormat
from chatrelay.adapters.llm.factory import build_request
from chatrelay.app.schemas import Message
from chatrelay.config.schema import ApiPreset
from chatrelay.core.params import validate_parameters

OPENAI_URL = "https://api.openai.com/v1/chat/completions"
ANTHROPIC_URL = "https://api.anthropic.com/v1/messages"
GOOGLE_URL = "https://generativelanguage.googleapis.com/v1/models/gemini-pro:generateContent"
CUSTOM_URL = "https://my-custom-proxy.example.com/api"

CONVERSATION = [
    {"role": "system", "content": "You are terse"},
    {"role": "user", "content": "Hi"},
    {"role": "assistant", "content": "Hello"},
    {"role": "user", "content": "Bye"},
]


class TestOpenAI:
    def test_non_streaming_body(self, user_hi):
        built = build_request(OPENAI_URL, "sk-test", user_hi, WireFormat.OPENAI,
                              {"model": "gpt-3.5-turbo", "temperature": 0.7})
        assert built.url == OPENAI_URL
        assert built.format == WireFormat.OPENAI
        assert built.body["model"] == "gpt-3.5-turbo"
        assert built.body["messages"] == [{"role": "user", "content": "Hi"}]
        assert built.body["temperature"] == 0.7
        assert built.body["stream"] is False

    def test_headers(self, user_hi):
        built = build_request(OPENAI_URL, "sk-test", user_hi, "openai", {})
        assert built.headers["Authorization"] == "Bearer sk-test"
        assert built.headers["Content-Type"] == "application/json"

    def test_defaults_applied(self, user_hi):
        body = build_request(OPENAI_URL, "k", user_hi, "openai", {}).body
        assert body["max_tokens"] == 1024
        assert body["top_p"] == 1
        assert body["frequency_penalty"] == 0
        assert body["presence_penalty"] == 0
        assert "seed" not in body

    def test_seed_and_system_prompt(self, user_hi):
        body = build_request(OPENAI_URL, "k", user_hi, "openai",
                             {"seed": 42, "systemPrompt": "Be nice"}).body
        assert body["seed"] == 42
        assert body["messages"][0] == {"role": "system", "content": "Be nice"}
        assert body["messages"][1] == {"role": "user", "content": "Hi"}

    def test_stream_flag(self, user_hi):
        assert build_request(OPENAI_URL, "k", user_hi, "openai", {}, stream=True).body["stream"] is True

    def test_accepts_message_models(self):
        messages = [Message(role="user", content="Hi")]
        body = build_request(OPENAI_URL, "k", messages, "openai", {}).body
        assert body["messages"] == [{"role": "user", "content": "Hi"}]


class TestAnthropic:
    def test_headers(self, user_hi):
        built = build_request(ANTHROPIC_URL, "ant-key", user_hi, "anthropic", {})
        assert built.headers["x-api-key"] == "ant-key"
        assert built.headers["anthropic-version"] == ANTHROPIC_VERSION
        assert "Authorization" not in built.headers

    def test_system_messages_stripped(self):
        body = build_request(ANTHROPIC_URL, "k", CONVERSATION, "anthropic", {"system_prompt": "Sys"}).body
        assert [m["role"] for m in body["messages"]] == ["user", "assistant", "user"]
        assert body["system"] == "Sys"

    def test_no_system_field_without_prompt(self, user_hi):
        body = build_request(ANTHROPIC_URL, "k", user_hi, "anthropic", {}).body
        assert "system" not in body
        assert "stream" not in body

    def test_unknown_roles_become_assistant(self):
        messages = [{"role": "user", "content": "a"}, {"role": "tool", "content": "b"}]
        body = build_request(ANTHROPIC_URL, "k", messages, "anthropic", {}).body
        assert body["messages"][1]["role"] == "assistant"

    def test_body_fields(self, user_hi):
        body = build_request(ANTHROPIC_URL, "k", user_hi, "anthropic",
                             {"max_tokens": 200, "seed": 3, "frequency_penalty": 1}).body
        assert body["max_tokens"] == 200
        assert body["temperature"] == 0.7
        assert body["top_p"] == 1
        assert body["model"] == "claude-3-sonnet-20240229"
        assert "seed" not in body
        assert "frequency_penalty" not in body

    def test_stream_flag(self, user_hi):
        assert build_request(ANTHROPIC_URL, "k", user_hi, "anthropic", {}, stream=True).body["stream"] is True


class TestGoogle:
    def test_key_in_query(self, user_hi):
        built = build_request(GOOGLE_URL, "g-key", user_hi, "google", {})
        url = httpx.URL(built.url)
        assert url.params["key"] == "g-key"
        assert url.path.endswith(":generateContent")
        assert "Authorization" not in built.headers

    def test_contents_and_roles(self):
        body = build_request(GOOGLE_URL, "k", CONVERSATION, "google", {"systemPrompt": "Sys"}).body
        assert body["contents"] == [
            {"role": "user", "parts": [{"text": "Hi"}]},
            {"role": "model", "parts": [{"text": "Hello"}]},
            {"role": "user", "parts": [{"text": "Bye"}]},
        ]
        assert body["systemInstruction"] == {"parts": [{"text": "Sys"}]}

    def test_generation_config(self, user_hi):
        config = build_request(GOOGLE_URL, "k", user_hi, "google",
                               {"temperature": 0.2, "maxTokens": 64, "topK": 3}).body["generationConfig"]
        assert config == {
            "temperature": 0.2,
            "maxOutputTokens": 64,
            "topP": 1,
            "topK": 3,
            "candidateCount": 1,
        }

    def test_streaming_url_rewrite(self, user_hi):
        built = build_request(GOOGLE_URL, "k", user_hi, "google", {}, stream=True)
        url = httpx.URL(built.url)
        assert url.path.endswith(":streamGenerateContent")
        assert url.params["alt"] == "sse"
        assert url.params["key"] == "k"


class TestCustom:
    def test_only_specified_parameters(self, user_hi):
        body = build_request(CUSTOM_URL, "k", user_hi, "custom", {"temperature": 0.1}).body
        assert body == {"messages": [{"role": "user", "content": "Hi"}], "temperature": 0.1}

    def test_all_parameters_and_model(self, user_hi):
        body = build_request(CUSTOM_URL, "k", user_hi, "custom", {
            "model": "local", "temperature": 1, "max_tokens": 5, "top_p": 0.5, "top_k": 2,
            "frequency_penalty": 0.1, "presence_penalty": 0.2, "seed": 9,
        }, stream=True).body
        assert body["model"] == "local"
        assert body["top_k"] == 2
        assert body["seed"] == 9
        assert body["stream"] is True

    def test_bearer_auth(self, user_hi):
        assert build_request(CUSTOM_URL, "k", user_hi, "custom", {}).headers["Authorization"] == "Bearer k"


class TestCommon:
    def test_custom_headers_cannot_override_auth(self, user_hi):
        built = build_request(OPENAI_URL, "real", user_hi, "openai", {
            "customHeaders": {"Authorization": "Bearer fake", "X-Trace": "1"},
        })
        assert built.headers["Authorization"] == "Bearer real"
        assert built.headers["X-Trace"] == "1"

    @pytest.mark.parametrize("name", ["authorization", "AUTHORIZATION"])
    def test_auth_header_replaced_regardless_of_case(self, user_hi, name):
        built = build_request(OPENAI_URL, "real", user_hi, "openai", {"customHeaders": {name: "Bearer other"}})
        sent = httpx.Headers(dict(built.headers))
        assert sent.get_list("authorization") == ["Bearer real"]

    def test_anthropic_key_header_replaced_regardless_of_case(self, user_hi):
        built = build_request(ANTHROPIC_URL, "real", user_hi, "anthropic", {
            "customHeaders": {"X-API-Key": "stolen", "Anthropic-Version": "1999-01-01"},
        })
        sent = httpx.Headers(dict(built.headers))
        assert sent.get_list("x-api-key") == ["real"]
        assert sent.get_list("anthropic-version") == [ANTHROPIC_VERSION]

    def test_custom_content_type_replaces_default(self, user_hi):
        built = build_request(CUSTOM_URL, "k", user_hi, "custom", {
            "customHeaders": {"content-type": "application/json; charset=utf-8"},
        })
        sent = httpx.Headers(dict(built.headers))
        assert sent.get_list("content-type") == ["application/json; charset=utf-8"]

    def test_malformed_options_do_not_raise(self, user_hi):
        built = build_request(OPENAI_URL, "k", user_hi, "openai", {"temperature": "hot", "seed": "x"})
        assert built.body["temperature"] == 0.7

    def test_validated_options_accepted(self, user_hi):
        built = build_request(OPENAI_URL, "k", user_hi, "openai", validate_parameters({"temperature": 9}))
        assert built.body["temperature"] == 2

    def test_built_request_is_read_only(self, user_hi):
        built = build_request(OPENAI_URL, "k", user_hi, "openai", {})
        with pytest.raises(TypeError):
            built.body["model"] = "other"
        with pytest.raises(AttributeError):
            built.url = "https://elsewhere"

    def test_built_request_copies_inputs(self):
        headers = {"A": "1"}
        built = BuiltRequest(url="https://x", headers=headers, body={})
        headers["A"] = "2"
        assert built.headers["A"] == "1"


class TestDefaultModel:
    def test_preset_default_model(self, user_hi):
        presets = [ApiPreset(name="Relay", endpoint=CUSTOM_URL, default_model="relay-large")]
        body = build_request(CUSTOM_URL, "k", user_hi, "custom", {}, presets=presets).body
        assert body["model"] == "relay-large"

    def test_builtin_preset_used_by_default(self, user_hi):
        body = build_request("https://api.moonshot.cn/v1/chat/completions", "k", user_hi, "openai", {}).body
        assert body["model"] == "moonshot-v1-8k"

    def test_format_default(self, user_hi):
        body = build_request("https://gateway.example.com/v1/chat/completions", "k", user_hi, "openai", {}).body
        assert body["model"] == "gpt-3.5-turbo"

    def test_custom_without_model_omits_it(self, user_hi):
        assert "model" not in build_request(CUSTOM_URL, "k", user_hi, "custom", {}).body

    def test_caller_model_wins(self, user_hi):
        body = build_request("https://api.moonshot.cn/v1/chat/completions", "k", user_hi, "openai",
                             {"model": "moonshot-v1-128k"}).body
        assert body["model"] == "moonshot-v1-128k"


class TestPresetHeaders:
    def test_preset_headers_applied(self, user_hi):
        presets = [ApiPreset(name="Relay", endpoint=CUSTOM_URL, headers={"X-Relay": "1"})]
        built = build_request(CUSTOM_URL, "k", user_hi, "custom", {}, presets=presets)
        assert built.headers["X-Relay"] == "1"

    def test_caller_headers_override_preset_headers(self, user_hi):
        presets = [ApiPreset(name="Relay", endpoint=CUSTOM_URL, headers={"X-Relay": "1", "X-Team": "a"})]
        built = build_request(CUSTOM_URL, "k", user_hi, "custom",
                              {"customHeaders": {"x-relay": "2", "X-Skip": None}}, presets=presets)
        sent = httpx.Headers(dict(built.headers))
        assert sent.get_list("x-relay") == ["2"]
        assert sent["x-team"] == "a"
        assert "x-skip" not in sent

    def test_preset_headers_cannot_override_auth(self, user_hi):
        presets = [ApiPreset(name="Relay", endpoint=CUSTOM_URL, headers={"Authorization": "Bearer shared"})]
        built = build_request(CUSTOM_URL, "mine", user_hi, "custom", {}, presets=presets)
        assert built.headers["Authorization"] == "Bearer mine"

    def test_non_matching_preset_ignored(self, user_hi):
        presets = [ApiPreset(name="Relay", endpoint=CUSTOM_URL + "/v2", headers={"X-Relay": "1"})]
        built = build_request(CUSTOM_URL, "k", user_hi, "custom", {}, presets=presets)
        assert "X-Relay" not in built.headers
