"""
Token counting and usage extraction.

Turns the provider's untrusted usage payload into typed token counts.
"""

import math
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Union


@dataclass(frozen=True)
class ImageTokenUsage:
    """Token usage reported for one image API call.

    Contains exact token counts as billed by the provider, no estimation.
    """
    text_input_tokens: int
    image_input_tokens: int
    output_tokens: int
    cached_input_tokens: int = 0

    @property
    def total_input_tokens(self) -> int:
        """Total input tokens (text + image)."""
        return self.text_input_tokens + self.image_input_tokens


@dataclass(frozen=True)
class InvalidUsageData:
    """Sentinel returned when a usage payload cannot be priced.

    This is a value, not an exception: callers branch on it and skip
    displaying a cost.
    """
    reason: str

    def __bool__(self) -> bool:
        return False


def _as_mapping(payload: Any) -> Optional[Mapping[str, Any]]:
    """Return a plain mapping view of a dict or an SDK model."""
    if payload is None:
        return None
    if isinstance(payload, Mapping):
        return payload
    model_dump = getattr(payload, "model_dump", None)
    if callable(model_dump):
        dumped = model_dump()
        if isinstance(dumped, Mapping):
            return dumped
    return None


def _token_count(value: Any) -> Optional[int]:
    """Coerce a token field to int, or None when the type is wrong."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if value >= 0 else None
    if isinstance(value, float):
        if not math.isfinite(value) or value < 0 or not value.is_integer():
            return None
        return int(value)
    return None


def extract_usage(payload: Any) -> Union[ImageTokenUsage, InvalidUsageData]:
    """Extract token counts from a provider usage payload.

    Missing optional counts default to 0. A count that is present but not
    a non-negative whole number rejects the whole payload.

    Args:
        payload: ``usage`` object from an images API response, either a
            dict or an SDK model

    Returns:
        ImageTokenUsage, or InvalidUsageData describing the problem
    """
    usage = _as_mapping(payload)
    if usage is None:
        return InvalidUsageData("usage data is missing")

    details = usage.get("input_tokens_details")
    if details is None:
        return InvalidUsageData("input_tokens_details is missing")
    details = _as_mapping(details)
    if details is None:
        return InvalidUsageData("input_tokens_details must be an object")

    if usage.get("output_tokens") is None:
        return InvalidUsageData("output_tokens is missing")

    raw_counts = {
        "text_tokens": details.get("text_tokens"),
        "image_tokens": details.get("image_tokens"),
        "cached_tokens": details.get("cached_tokens"),
        "output_tokens": usage.get("output_tokens"),
    }

    counts = {}
    for field_name, raw in raw_counts.items():
        if raw is None:
            counts[field_name] = 0
            continue
        count = _token_count(raw)
        if count is None:
            return InvalidUsageData(f"{field_name} must be a non-negative integer, got {raw!r}")
        counts[field_name] = count

    return ImageTokenUsage(
        text_input_tokens=counts["text_tokens"],
        image_input_tokens=counts["image_tokens"],
        output_tokens=counts["output_tokens"],
        cached_input_tokens=counts["cached_tokens"],
    )
