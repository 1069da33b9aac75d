"""
Request parameter normalization.

Validates and clamps user-supplied options before they are forwarded to
the image and video APIs.
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from .pricing import DEFAULT_MODEL

IMAGE_MODELS = ("gpt-image-1", "gpt-image-1-mini", "gpt-image-1.5")
VALID_OUTPUT_FORMATS = ("png", "jpeg", "webp")
COMPRESSIBLE_FORMATS = ("jpeg", "webp")

MIN_IMAGES, MAX_IMAGES = 1, 10
MIN_PARTIAL_IMAGES, MAX_PARTIAL_IMAGES = 1, 3
DEFAULT_PARTIAL_IMAGES = 2

VIDEO_SIZES = ("1280x720", "720x1280")
VIDEO_SECONDS = (4, 8, 12)
DEFAULT_VIDEO_SECONDS = 8
DEFAULT_VIDEO_SIZE = "1280x720"


class ParameterError(ValueError):
    """Raised when request parameters cannot be used."""


class Mode(Enum):
    """Playground operation modes."""
    GENERATE = "generate"
    EDIT = "edit"
    VIDEO = "video"


def parse_mode(value: Optional[str]) -> Mode:
    if not value:
        raise ParameterError("Missing required parameter: mode")
    try:
        return Mode(value.strip().lower())
    except ValueError:
        raise ParameterError(f"Invalid mode specified: {value}")


def require_prompt(prompt: Optional[str]) -> str:
    cleaned = (prompt or "").strip()
    if not cleaned:
        raise ParameterError("Prompt is required.")
    return cleaned


def resolve_model(value: Optional[str]) -> str:
    """Return the requested image model, defaulting to DEFAULT_MODEL."""
    return value or DEFAULT_MODEL


def normalize_output_format(value: Any) -> str:
    """Normalize an output format; unknown values fall back to png."""
    normalized = str(value or "png").lower()
    if normalized == "jpg":
        normalized = "jpeg"
    return normalized if normalized in VALID_OUTPUT_FORMATS else "png"


_LEADING_INT = re.compile(r"\s*([-+]?\d+)")


def _parse_int(value: Any, default: Optional[int]) -> Optional[int]:
    """Read the leading integer of ``value`` (``"13.9"`` and ``"3abc"`` give 13 and 3)."""
    if value is None or isinstance(value, bool):
        return default
    if isinstance(value, (int, float)):
        try:
            return int(value)
        except (OverflowError, ValueError):
            return default
    match = _LEADING_INT.match(str(value))
    return int(match.group(1)) if match else default


def clamp_image_count(value: Any) -> int:
    """Clamp the requested number of images to 1..10 (default 1)."""
    n = _parse_int(value, MIN_IMAGES) or MIN_IMAGES
    return max(MIN_IMAGES, min(n, MAX_IMAGES))


def clamp_partial_images(value: Any) -> int:
    """Clamp the number of streamed partial previews to 1..3 (default 2)."""
    count = _parse_int(value, DEFAULT_PARTIAL_IMAGES)
    return max(MIN_PARTIAL_IMAGES, min(count, MAX_PARTIAL_IMAGES))


def parse_output_compression(value: Any, output_format: str) -> Optional[int]:
    """Return a 0-100 compression level for jpeg/webp, otherwise None."""
    if output_format not in COMPRESSIBLE_FORMATS or value is None or value == "":
        return None
    compression = _parse_int(value, None)
    if compression is not None and 0 <= compression <= 100:
        return compression
    return None


def snap_video_seconds(value: Any) -> int:
    """Snap a requested clip length to the nearest allowed duration.

    Ties keep the default; unparseable input means the default.
    """
    seconds = _parse_int(value, DEFAULT_VIDEO_SECONDS)
    if seconds in VIDEO_SECONDS:
        return seconds
    best = DEFAULT_VIDEO_SECONDS
    for candidate in VIDEO_SECONDS:
        if abs(candidate - seconds) < abs(best - seconds):
            best = candidate
    return best


def parse_size(size: str) -> Tuple[int, int]:
    """Parse a ``WIDTHxHEIGHT`` string."""
    try:
        width_str, height_str = size.lower().split("x")
        width, height = int(width_str), int(height_str)
    except (AttributeError, ValueError):
        raise ParameterError("Invalid size format. Expected WIDTHxHEIGHT.")
    if width <= 0 or height <= 0:
        raise ParameterError("Invalid size format. Expected WIDTHxHEIGHT.")
    return width, height


def validate_video_size(size: Optional[str]) -> str:
    size = size or DEFAULT_VIDEO_SIZE
    if size not in VIDEO_SIZES:
        raise ParameterError(
            f"Invalid size. Supported sizes are {' and '.join(VIDEO_SIZES)}."
        )
    return size


@dataclass(frozen=True)
class GenerateParams:
    """Options for a text-to-image generation."""
    prompt: str
    model: str = DEFAULT_MODEL
    n: int = 1
    size: str = "1024x1024"
    quality: str = "auto"
    output_format: str = "png"
    output_compression: Optional[int] = None
    background: str = "auto"
    moderation: str = "auto"

    @classmethod
    def build(cls, prompt: Optional[str], **options: Any) -> "GenerateParams":
        """Build parameters from raw user input, applying defaults and clamps."""
        output_format = normalize_output_format(options.get("output_format"))
        return cls(
            prompt=require_prompt(prompt),
            model=resolve_model(options.get("model")),
            n=clamp_image_count(options.get("n")),
            size=options.get("size") or "1024x1024",
            quality=options.get("quality") or "auto",
            output_format=output_format,
            output_compression=parse_output_compression(
                options.get("output_compression"), output_format
            ),
            background=options.get("background") or "auto",
            moderation=options.get("moderation") or "auto",
        )

    def to_api_kwargs(self) -> Dict[str, Any]:
        kwargs = {
            "model": self.model,
            "prompt": self.prompt,
            "n": self.n,
            "size": self.size,
            "quality": self.quality,
            "output_format": self.output_format,
            "background": self.background,
            "moderation": self.moderation,
        }
        if self.output_compression is not None:
            kwargs["output_compression"] = self.output_compression
        return kwargs


@dataclass(frozen=True)
class EditParams:
    """Options for editing one or more source images."""
    prompt: str
    images: List[Path] = field(default_factory=list)
    mask: Optional[Path] = None
    model: str = DEFAULT_MODEL
    n: int = 1
    size: str = "auto"
    quality: str = "auto"

    @classmethod
    def build(
        cls,
        prompt: Optional[str],
        images: List[Path],
        mask: Optional[Path] = None,
        **options: Any
    ) -> "EditParams":
        if not images:
            raise ParameterError("No image file provided for editing.")
        return cls(
            prompt=require_prompt(prompt),
            images=list(images),
            mask=mask,
            model=resolve_model(options.get("model")),
            n=clamp_image_count(options.get("n")),
            size=options.get("size") or "auto",
            quality=options.get("quality") or "auto",
        )

    def to_api_kwargs(self) -> Dict[str, Any]:
        """API arguments without the file handles; ``auto`` values are omitted."""
        kwargs: Dict[str, Any] = {
            "model": self.model,
            "prompt": self.prompt,
            "n": self.n,
        }
        if self.size != "auto":
            kwargs["size"] = self.size
        if self.quality != "auto":
            kwargs["quality"] = self.quality
        return kwargs


@dataclass(frozen=True)
class VideoParams:
    """Options for a Sora image-to-video job."""
    prompt: str
    reference_image: Path
    size: str = DEFAULT_VIDEO_SIZE
    seconds: int = DEFAULT_VIDEO_SECONDS

    @classmethod
    def build(
        cls,
        prompt: Optional[str],
        reference_image: Optional[Path],
        size: Optional[str] = None,
        seconds: Any = None
    ) -> "VideoParams":
        prompt = require_prompt(prompt)
        size = validate_video_size(size)
        if reference_image is None:
            raise ParameterError("Reference image is required and must be a file.")
        return cls(
            prompt=prompt,
            reference_image=Path(reference_image),
            size=size,
            seconds=snap_video_seconds(seconds),
        )

    @property
    def dimensions(self) -> Tuple[int, int]:
        return parse_size(self.size)
