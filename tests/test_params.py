"""Tests for generation parameter validation."""
import math

import pytest

from chatrelay.core.params import (
    ValidatedOptions,
    normalize_option_keys,
    round_half_up,
    to_finite_number,
    validate_parameters,
)


class TestClamping:
    def test_temperature_above_max_is_clamped(self):
        assert validate_parameters({"temperature": 5}).temperature == 2

    def test_temperature_below_min_is_clamped(self):
        assert validate_parameters({"temperature": -1}).temperature == 0

    def test_in_range_values_pass_through(self):
        options = validate_parameters({"temperature": 0.3, "top_p": 0.9, "frequency_penalty": -1.5})
        assert options.temperature == 0.3
        assert options.top_p == 0.9
        assert options.frequency_penalty == -1.5

    def test_max_tokens_range(self):
        assert validate_parameters({"max_tokens": 0}).max_tokens == 1
        assert validate_parameters({"max_tokens": 10_000_000}).max_tokens == 128000

    def test_top_k_range(self):
        assert validate_parameters({"top_k": 0}).top_k == 1
        assert validate_parameters({"top_k": 500}).top_k == 100

    def test_penalties_range(self):
        options = validate_parameters({"frequency_penalty": 3, "presence_penalty": -3})
        assert options.frequency_penalty == 2
        assert options.presence_penalty == -2


class TestIntegerFields:
    def test_max_tokens_rounds_half_up(self):
        assert validate_parameters({"max_tokens": 10.5}).max_tokens == 11
        assert validate_parameters({"max_tokens": 10.4}).max_tokens == 10

    def test_top_k_is_integer(self):
        top_k = validate_parameters({"top_k": 7.6}).top_k
        assert top_k == 8
        assert isinstance(top_k, int)

    def test_round_half_up(self):
        assert round_half_up(2.5) == 3
        assert round_half_up(3.5) == 4
        assert round_half_up(0.49) == 0


class TestSeed:
    def test_negative_seed_is_omitted(self):
        options = validate_parameters({"seed": -5})
        assert options.seed is None
        assert "seed" not in options.to_dict()

    def test_seed_is_rounded_without_upper_bound(self):
        assert validate_parameters({"seed": 3.5}).seed == 4
        assert validate_parameters({"seed": 10**12}).seed == 10**12

    def test_zero_seed_is_kept(self):
        assert validate_parameters({"seed": 0}).seed == 0


class TestMalformedInput:
    @pytest.mark.parametrize("value", ["abc", None, True, False, [], {}, math.nan, math.inf, -math.inf])
    def test_non_numeric_values_are_omitted(self, value):
        assert validate_parameters({"temperature": value}).temperature is None

    def test_numeric_strings_are_accepted(self):
        assert validate_parameters({"temperature": " 1.5 "}).temperature == 1.5

    @pytest.mark.parametrize("raw", [None, "temperature=1", 42, ["temperature"]])
    def test_non_mapping_input_gives_empty_result(self, raw):
        assert validate_parameters(raw) == ValidatedOptions()

    def test_unknown_keys_are_ignored(self):
        assert validate_parameters({"colour": "blue"}).to_dict() == {}

    def test_huge_integers_are_clamped(self):
        options = validate_parameters({"max_tokens": 10**400, "temperature": 0.5, "top_k": -(10**400)})
        assert options.max_tokens == 128000
        assert options.top_k == 1
        assert options.temperature == 0.5

    def test_huge_seed_does_not_raise(self):
        assert validate_parameters({"seed": 10**400}).seed > 0
        assert validate_parameters({"seed": -(10**400)}).seed is None


class TestTextFields:
    def test_model_and_system_prompt_pass_through(self):
        options = validate_parameters({"model": "gpt-4o", "systemPrompt": "Be brief"})
        assert options.model == "gpt-4o"
        assert options.system_prompt == "Be brief"

    def test_empty_strings_are_omitted(self):
        options = validate_parameters({"model": "", "system_prompt": ""})
        assert options.model is None
        assert options.system_prompt is None


class TestOptionKeys:
    def test_camel_case_aliases(self):
        options = validate_parameters({"maxTokens": 50, "topP": 0.5, "topK": 5, "presencePenalty": 1})
        assert options.max_tokens == 50
        assert options.top_p == 0.5
        assert options.top_k == 5
        assert options.presence_penalty == 1

    def test_snake_case_wins_over_alias(self):
        assert normalize_option_keys({"maxTokens": 1, "max_tokens": 2}) == {"max_tokens": 2}

    def test_to_finite_number(self):
        assert to_finite_number(3) == 3.0
        assert to_finite_number("2e3") == 2000.0
        assert to_finite_number(True) is None
        assert to_finite_number("nan") is None


class TestTemplates:
    def test_template_fills_unset_fields(self):
        options = validate_parameters({"template": "creative"})
        assert options.temperature == 0.9
        assert options.top_p == 0.95
        assert options.presence_penalty == 0.5
        assert options.frequency_penalty == 0.5

    def test_caller_values_win(self):
        options = validate_parameters({"parameterTemplate": "Precise", "temperature": 1.1, "top_p": None})
        assert options.temperature == 1.1
        assert options.top_p == 0.5

    def test_deterministic_template(self):
        options = validate_parameters({"template": "deterministic"})
        assert options.temperature == 0
        assert options.top_p == 1

    @pytest.mark.parametrize("name", ["wild", "", None, 3])
    def test_unknown_template_is_ignored(self, name):
        assert validate_parameters({"template": name, "top_k": 5}).to_dict() == {"top_k": 5}
