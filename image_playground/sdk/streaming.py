"""
Streaming relay.

Converts the provider's image streaming events into playground events
and encodes them as Server-Sent-Events frames.
"""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Optional

from ..config.loader import StorageMode
from ..core.pricing import CostResult, estimate_cost
from ..core.token_counter import InvalidUsageData
from ..storage.files import image_filename, save_b64_image

logger = logging.getLogger(__name__)

PARTIAL_IMAGE_SUFFIX = ".partial_image"
COMPLETED_SUFFIX = ".completed"


@dataclass(frozen=True)
class ImageResult:
    """One finished image as returned to the caller."""
    filename: str
    b64_json: str
    output_format: str
    path: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "filename": self.filename,
            "b64_json": self.b64_json,
            "output_format": self.output_format,
        }
        if self.path is not None:
            data["path"] = self.path
        return data


@dataclass(frozen=True)
class StreamEvent:
    """Event emitted to the client while an image streams in.

    ``type`` is one of ``partial_image``, ``completed``, ``done`` or
    ``error``; only the fields relevant to the type are set. ``cost_result``
    is the typed estimate behind ``cost`` and is not serialised.
    """
    type: str
    index: Optional[int] = None
    partial_image_index: Optional[int] = None
    b64_json: Optional[str] = None
    filename: Optional[str] = None
    path: Optional[str] = None
    output_format: Optional[str] = None
    images: List[ImageResult] = field(default_factory=list)
    usage: Optional[Dict[str, Any]] = None
    cost: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
    cost_result: Optional[CostResult] = field(default=None, compare=False, repr=False)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"type": self.type}
        for key in ("index", "partial_image_index", "b64_json", "filename",
                    "path", "output_format", "usage", "cost", "error"):
            value = getattr(self, key)
            if value is not None:
                data[key] = value
        if self.type == "done":
            data["images"] = [image.to_dict() for image in self.images]
        return data

    def to_sse(self) -> str:
        return f"data: {json.dumps(self.to_dict())}\n\n"


def _usage_dict(usage: Any) -> Optional[Dict[str, Any]]:
    if usage is None:
        return None
    if isinstance(usage, dict):
        return usage
    model_dump = getattr(usage, "model_dump", None)
    return model_dump() if callable(model_dump) else None


def relay_image_stream(
    events: Iterable[Any],
    *,
    model: str,
    output_format: str,
    timestamp_ms: int,
    storage_mode: StorageMode,
    output_dir: Path
) -> Iterator[StreamEvent]:
    """Relay provider stream events as playground StreamEvents.

    Completed images are saved to disk in FS mode as they arrive. The
    stream always ends with either a ``done`` event carrying every image,
    the last reported usage and its cost, or a single ``error`` event.

    Args:
        events: Provider events (``image_generation.*`` or ``image_edit.*``)
        model: Model the request was made with, for pricing
        output_format: File extension for saved images
        timestamp_ms: Timestamp used in generated filenames
        storage_mode: Whether to write images to disk
        output_dir: Directory for saved images
    """
    completed: List[ImageResult] = []
    final_usage: Optional[Dict[str, Any]] = None
    image_index = 0

    try:
        for event in events:
            event_type = getattr(event, "type", "") or ""
            if event_type.endswith(PARTIAL_IMAGE_SUFFIX):
                logger.debug("Partial image %s for image %d",
                             getattr(event, "partial_image_index", None), image_index)
                yield StreamEvent(
                    type="partial_image",
                    index=image_index,
                    partial_image_index=getattr(event, "partial_image_index", None),
                    b64_json=getattr(event, "b64_json", None),
                )
            elif event_type.endswith(COMPLETED_SUFFIX):
                b64_json = getattr(event, "b64_json", None) or ""
                filename = image_filename(timestamp_ms, image_index, output_format)
                path = None
                if storage_mode is StorageMode.FS:
                    if b64_json:
                        save_b64_image(b64_json, filename, output_dir)
                    path = str(Path(output_dir) / filename)

                image = ImageResult(
                    filename=filename,
                    b64_json=b64_json,
                    output_format=output_format,
                    path=path,
                )
                completed.append(image)
                yield StreamEvent(
                    type="completed",
                    index=image_index,
                    filename=filename,
                    b64_json=b64_json,
                    path=path,
                    output_format=output_format,
                )
                image_index += 1

                usage = _usage_dict(getattr(event, "usage", None))
                if usage:
                    final_usage = usage
            else:
                logger.debug("Ignoring stream event of type %r", event_type)
    except Exception as e:
        logger.error("Streaming error: %s", e)
        yield StreamEvent(type="error", error=str(e) or "Streaming error occurred")
        return

    logger.info("Stream complete, %d image(s)", len(completed))
    cost = estimate_cost(final_usage, model)
    if isinstance(cost, InvalidUsageData):
        logger.warning("No cost estimate for stream: %s", cost.reason)
        cost_dict = None
    else:
        cost_dict = cost.to_dict()
    yield StreamEvent(
        type="done",
        images=completed,
        usage=final_usage,
        cost=cost_dict,
        cost_result=cost,
    )
