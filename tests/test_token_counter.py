"""
Unit tests for usage extraction.

Tests defaulting of sparse payloads and rejection of malformed ones.
"""

import pytest

from image_playground.core.token_counter import (
    ImageTokenUsage,
    InvalidUsageData,
    extract_usage,
)


class TestImageTokenUsage:
    """Test ImageTokenUsage dataclass."""

    def test_total_input_tokens(self):
        usage = ImageTokenUsage(text_input_tokens=100, image_input_tokens=50, output_tokens=10)
        assert usage.total_input_tokens == 150
        assert usage.cached_input_tokens == 0


class TestExtractUsage:
    """Test extraction from provider payloads."""

    def test_full_payload(self):
        usage = extract_usage({
            "input_tokens_details": {"text_tokens": 12, "image_tokens": 34, "cached_tokens": 5},
            "output_tokens": 4160,
            "input_tokens": 46,
            "total_tokens": 4206,
        })
        assert usage == ImageTokenUsage(
            text_input_tokens=12,
            image_input_tokens=34,
            output_tokens=4160,
            cached_input_tokens=5
        )

    def test_missing_counts_default_to_zero(self):
        usage = extract_usage({"input_tokens_details": {"text_tokens": 9}, "output_tokens": 1})
        assert usage.image_input_tokens == 0
        assert usage.cached_input_tokens == 0

    def test_null_counts_default_to_zero(self):
        usage = extract_usage({
            "input_tokens_details": {"text_tokens": None, "image_tokens": None},
            "output_tokens": 3
        })
        assert usage.text_input_tokens == 0
        assert usage.output_tokens == 3

    def test_integral_floats_accepted(self):
        usage = extract_usage({"input_tokens_details": {"text_tokens": 10.0}, "output_tokens": 2.0})
        assert usage.text_input_tokens == 10
        assert usage.output_tokens == 2

    def test_sdk_model_payload(self):
        class Details:
            def model_dump(self):
                return {"text_tokens": 1, "image_tokens": 2}

        class Usage:
            def model_dump(self):
                return {"input_tokens_details": {"text_tokens": 1, "image_tokens": 2}, "output_tokens": 3}

        assert extract_usage(Usage()).image_input_tokens == 2
        assert extract_usage({"input_tokens_details": Details(), "output_tokens": 3}).text_input_tokens == 1

    @pytest.mark.parametrize("payload, reason", [
        (None, "usage data is missing"),
        ("not usage", "usage data is missing"),
        ({"output_tokens": 10}, "input_tokens_details is missing"),
        ({"input_tokens_details": [1, 2], "output_tokens": 10}, "must be an object"),
        ({"input_tokens_details": {}}, "output_tokens is missing"),
        ({"input_tokens_details": {}, "output_tokens": None}, "output_tokens is missing"),
    ])
    def test_structural_problems(self, payload, reason):
        result = extract_usage(payload)
        assert isinstance(result, InvalidUsageData)
        assert reason in result.reason

    @pytest.mark.parametrize("bad_value", ["10", True, -1, 1.5, float("nan"), float("inf"), [3]])
    def test_bad_token_values(self, bad_value):
        result = extract_usage({"input_tokens_details": {"image_tokens": bad_value}, "output_tokens": 1})
        assert isinstance(result, InvalidUsageData)
        assert "image_tokens" in result.reason

    def test_bad_output_tokens(self):
        result = extract_usage({"input_tokens_details": {}, "output_tokens": "many"})
        assert isinstance(result, InvalidUsageData)
        assert "output_tokens" in result.reason
