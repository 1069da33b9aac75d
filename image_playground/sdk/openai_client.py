"""
OpenAI image client wrapper.

Runs generate/edit calls, attaches cost estimates, and records each call
in the generation history.
"""

import binascii
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, List, Optional, Sequence, Tuple

from openai import OpenAI

from ..config.loader import Settings, StorageMode
from ..core.params import EditParams, GenerateParams, Mode, clamp_partial_images
from ..core.pricing import CostResult, estimate_cost
from ..core.prompt_enhance import ReferenceImage, build_prompt_enhance_input
from ..core.token_counter import InvalidUsageData
from ..storage.files import image_filename, save_b64_image
from ..storage.models import GenerationEvent
from ..storage.repository import initialize_schema, insert_generation_event
from .errors import PromptEnhanceError, ProviderError, map_provider_error
from .streaming import ImageResult, StreamEvent, relay_image_stream

logger = logging.getLogger(__name__)

# Edits are always returned as PNG
EDIT_OUTPUT_FORMAT = "png"


def _now_ms() -> int:
    return int(time.time() * 1000)


def _upload(path: Path) -> Tuple[str, bytes]:
    return Path(path).name, Path(path).read_bytes()


def _edit_kwargs(params: EditParams) -> Dict[str, Any]:
    """API arguments for an edit with the source images and mask read into memory."""
    kwargs = params.to_api_kwargs()
    kwargs["image"] = [_upload(path) for path in params.images]
    if params.mask is not None:
        kwargs["mask"] = _upload(params.mask)
    return kwargs


@dataclass(frozen=True)
class GenerationResult:
    """Images returned by one blocking call, with usage and cost."""
    images: List[ImageResult]
    usage: Optional[Dict[str, Any]]
    cost: CostResult
    model: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "images": [image.to_dict() for image in self.images],
            "usage": self.usage,
            "cost": None if isinstance(self.cost, InvalidUsageData) else self.cost.to_dict(),
        }


@dataclass
class _CallRecord:
    mode: Mode
    model: str
    prompt: str
    started: float = field(default_factory=time.monotonic)


class ImagePlayground:
    """Image generation client that prices and records every call.

    Provider failures are raised as ProviderError; history writes fail
    loudly so no call goes unrecorded.
    """

    def __init__(
        self,
        settings: Settings,
        client: Optional[OpenAI] = None,
        record_history: bool = True,
        clock: Callable[[], int] = _now_ms
    ):
        """Initialize the playground client.

        Args:
            settings: Runtime configuration
            client: Preconfigured OpenAI client (built from settings if omitted)
            record_history: Write a GenerationEvent after each call
            clock: Millisecond clock used for filenames
        """
        self.settings = settings
        self.client = client or OpenAI(
            api_key=settings.require_openai_key(),
            base_url=settings.openai_base_url
        )
        self.record_history = record_history
        self._clock = clock
        if record_history:
            initialize_schema(settings.db_path)

    def generate(self, params: GenerateParams) -> GenerationResult:
        """Generate images from a prompt."""
        record = _CallRecord(Mode.GENERATE, params.model, params.prompt)
        logger.info("Generating %d image(s) with %s", params.n, params.model)
        try:
            response = self.client.images.generate(**params.to_api_kwargs())
        except Exception as e:
            raise map_provider_error(e) from e
        return self._finish(record, response, params.output_format)

    def edit(self, params: EditParams) -> GenerationResult:
        """Edit the source images described by ``params``."""
        record = _CallRecord(Mode.EDIT, params.model, params.prompt)
        logger.info("Editing %d image(s) with %s", len(params.images), params.model)
        kwargs = _edit_kwargs(params)
        try:
            response = self.client.images.edit(**kwargs)
        except Exception as e:
            raise map_provider_error(e) from e
        return self._finish(record, response, EDIT_OUTPUT_FORMAT)

    def generate_stream(self, params: GenerateParams, partial_images: Any = None) -> Iterator[StreamEvent]:
        """Stream a generation, yielding partial previews as they arrive."""
        record = _CallRecord(Mode.GENERATE, params.model, params.prompt)
        kwargs = params.to_api_kwargs()
        kwargs.update(stream=True, partial_images=clamp_partial_images(partial_images))
        logger.info("Streaming generation with %s, partial_images=%d",
                    params.model, kwargs["partial_images"])
        try:
            stream = self.client.images.generate(**kwargs)
        except Exception as e:
            raise map_provider_error(e) from e
        return self._relay(record, stream, params.output_format)

    def edit_stream(self, params: EditParams, partial_images: Any = None) -> Iterator[StreamEvent]:
        """Stream an edit, yielding partial previews as they arrive."""
        record = _CallRecord(Mode.EDIT, params.model, params.prompt)
        kwargs = _edit_kwargs(params)
        kwargs.update(stream=True, partial_images=clamp_partial_images(partial_images))
        try:
            stream = self.client.images.edit(**kwargs)
        except Exception as e:
            raise map_provider_error(e) from e
        return self._relay(record, stream, EDIT_OUTPUT_FORMAT)

    def _relay(self, record: _CallRecord, stream: Any, output_format: str) -> Iterator[StreamEvent]:
        for event in relay_image_stream(
            stream,
            model=record.model,
            output_format=output_format,
            timestamp_ms=self._clock(),
            storage_mode=self.settings.storage_mode,
            output_dir=self.settings.output_dir,
        ):
            if event.type == "done":
                self._record(
                    record,
                    images=event.images,
                    cost=event.cost_result,
                    streamed=True,
                )
            yield event

    def _finish(self, record: _CallRecord, response: Any, output_format: str) -> GenerationResult:
        data = getattr(response, "data", None)
        if not data:
            raise ProviderError("Failed to retrieve image data from API.", status=500)

        timestamp = self._clock()
        images = []
        for index, item in enumerate(data):
            b64_json = getattr(item, "b64_json", None)
            if not b64_json:
                raise ProviderError(f"Image data at index {index} is missing base64 data.", status=500)
            filename = image_filename(timestamp, index, output_format)
            path = None
            if self.settings.storage_mode is StorageMode.FS:
                try:
                    path = str(save_b64_image(b64_json, filename, self.settings.output_dir))
                except binascii.Error as e:
                    raise ProviderError(
                        f"Image data at index {index} is not valid base64.", status=502
                    ) from e
            images.append(ImageResult(filename, b64_json, output_format, path))

        usage = getattr(response, "usage", None)
        usage_dict = usage.model_dump() if hasattr(usage, "model_dump") else usage
        cost = estimate_cost(usage_dict, record.model)
        self._record(record, images=images, cost=cost, streamed=False)
        return GenerationResult(images=images, usage=usage_dict, cost=cost, model=record.model)

    def _record(self, record: _CallRecord, images: Sequence[ImageResult], cost: CostResult, streamed: bool) -> None:
        if isinstance(cost, InvalidUsageData):
            logger.warning("No cost estimate for %s call: %s", record.mode.value, cost.reason)
        if not self.record_history:
            return

        priced = not isinstance(cost, InvalidUsageData)
        event = GenerationEvent(
            timestamp=datetime.now(),
            mode=record.mode.value,
            model=record.model,
            prompt=record.prompt,
            image_count=len(images),
            filenames=tuple(image.filename for image in images),
            text_input_tokens=cost.text_input_tokens if priced else 0,
            image_input_tokens=cost.image_input_tokens if priced else 0,
            cached_input_tokens=cost.cached_input_tokens if priced else 0,
            output_tokens=cost.image_output_tokens if priced else 0,
            estimated_cost=cost.estimated_cost_usd if priced else None,
            duration_ms=int((time.monotonic() - record.started) * 1000),
            streamed=streamed,
        )
        insert_generation_event(event, self.settings.db_path)


class PromptEnhancer:
    """Rewrites prompts with a chat model through the Responses API."""

    def __init__(self, settings: Settings, client: Optional[OpenAI] = None):
        api_key = settings.enhance_api_key
        if not api_key:
            raise ProviderError("Server configuration error: API key not found.", status=500)
        self.model = settings.enhance_model
        if client is None:
            # Azure endpoints authenticate with an api-key header
            headers = {"api-key": api_key} if settings.azure_endpoint else None
            client = OpenAI(
                api_key=api_key,
                base_url=settings.enhance_base_url,
                default_headers=headers
            )
        self.client = client

    def enhance(
        self,
        mode: Mode,
        prompt: str,
        reference_images: Sequence[ReferenceImage] = (),
        video_has_reference_image: bool = False
    ) -> str:
        """Return the rewritten prompt.

        Raises:
            PromptEnhanceError: If the model returns an empty answer
            ProviderError: If the API call fails
        """
        request = build_prompt_enhance_input(
            mode, prompt, reference_images, video_has_reference_image
        )
        try:
            response = self.client.responses.create(
                model=self.model,
                instructions=request.instructions,
                input=request.input
            )
        except Exception as e:
            raise map_provider_error(e) from e

        enhanced = (getattr(response, "output_text", None) or "").strip()
        if not enhanced:
            raise PromptEnhanceError("Failed to enhance prompt.", status=502)
        return enhanced
