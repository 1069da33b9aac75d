"""
Sora video client.

Creates image-to-video jobs on Azure OpenAI, polls them to completion,
and downloads the rendered MP4.
"""

import io
import logging
import time
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, Optional

import requests
from PIL import Image, ImageOps, UnidentifiedImageError

from ..config.loader import Settings
from ..core.params import VideoParams
from ..storage.files import save_bytes
from ..storage.models import GenerationEvent
from ..storage.repository import initialize_schema, insert_generation_event
from .errors import VideoGenerationError

logger = logging.getLogger(__name__)

# Sora endpoints only accept the preview api-version
API_VERSION = "preview"
POLL_INTERVAL_SECONDS = 2.0
MAX_POLL_ATTEMPTS = 90
PENDING_STATUSES = ("queued", "in_progress", "running")
SUCCESS_STATUSES = ("succeeded", "completed")


def resize_reference_image(image_path: Path, width: int, height: int) -> bytes:
    """Cover-crop the reference image to exactly ``width`` x ``height`` PNG bytes.

    Raises:
        VideoGenerationError: If the file cannot be read as an image
    """
    try:
        with Image.open(image_path) as image:
            fitted = ImageOps.fit(image.convert("RGBA"), (width, height), centering=(0.5, 0.5))
    except (UnidentifiedImageError, OSError) as e:
        logger.error("Failed to process reference image %s: %s", image_path, e)
        raise VideoGenerationError("Reference image could not be read.", status=400) from e
    buffer = io.BytesIO()
    fitted.save(buffer, format="PNG")
    return buffer.getvalue()


@dataclass(frozen=True)
class VideoResult:
    filename: str
    path: str
    model: str
    job_id: str


class SoraVideoClient:
    """Thin REST client for Sora jobs on Azure OpenAI."""

    def __init__(
        self,
        settings: Settings,
        session: Optional[requests.Session] = None,
        sleep: Callable[[float], None] = time.sleep,
        timeout: float = 60.0,
        record_history: bool = True
    ):
        settings.require_azure()
        self.settings = settings
        self.base_url = f"{settings.azure_endpoint.rstrip('/')}/openai/v1"
        self.session = session or requests.Session()
        self.session.headers.update({"api-key": settings.azure_api_key})
        self._sleep = sleep
        self.timeout = timeout
        self.record_history = record_history
        if record_history:
            initialize_schema(settings.db_path)

    def create_job(self, params: VideoParams) -> str:
        """Submit a video job and return its id."""
        width, height = params.dimensions
        reference_png = resize_reference_image(params.reference_image, width, height)
        response = self.session.post(
            f"{self.base_url}/videos",
            params={"api-version": API_VERSION},
            data={
                "model": self.settings.sora_model,
                "prompt": params.prompt,
                "size": params.size,
                "seconds": str(params.seconds),
            },
            files={"input_reference": ("reference.png", reference_png, "image/png")},
            timeout=self.timeout
        )
        if not response.ok:
            logger.error("Azure create video error: %s", response.text)
            raise VideoGenerationError(
                f"Azure video creation failed: {response.status_code} {response.reason}",
                status=response.status_code
            )
        job_id = response.json().get("id")
        if not job_id:
            raise VideoGenerationError("Video creation did not return a job id.", status=500)
        logger.info("Created video job %s", job_id)
        return job_id

    def poll_job(self, job_id: str) -> Dict[str, Any]:
        """Poll until the job leaves the pending states.

        Raises:
            VideoGenerationError: On HTTP failure or after MAX_POLL_ATTEMPTS
        """
        for attempt in range(MAX_POLL_ATTEMPTS):
            response = self.session.get(
                f"{self.base_url}/videos/{job_id}",
                params={"api-version": API_VERSION},
                timeout=self.timeout
            )
            if not response.ok:
                raise VideoGenerationError(
                    f"Failed to poll video status: {response.status_code} "
                    f"{response.reason} {response.text}",
                    status=response.status_code
                )
            status_json = response.json()
            status = status_json.get("status")
            if not status or status in PENDING_STATUSES:
                logger.debug("Video job %s is %s (attempt %d)", job_id, status, attempt + 1)
                self._sleep(POLL_INTERVAL_SECONDS)
                continue
            return status_json

        raise VideoGenerationError(
            "Video generation timed out after ~3 minutes while waiting for completion.",
            status=504
        )

    def download(self, job_id: str) -> bytes:
        response = self.session.get(
            f"{self.base_url}/videos/{job_id}/content",
            params={"api-version": API_VERSION, "variant": "video"},
            headers={"Accept": "application/octet-stream"},
            timeout=self.timeout
        )
        if not response.ok:
            raise VideoGenerationError(
                f"Failed to download video content: {response.status_code} "
                f"{response.reason} {response.text}",
                status=response.status_code
            )
        return response.content

    def generate(self, params: VideoParams) -> VideoResult:
        """Create, wait for, and save one video.

        Returns:
            VideoResult pointing at the saved MP4
        """
        started = time.monotonic()
        job_id = self.create_job(params)
        status_json = self.poll_job(job_id)
        status = (status_json.get("status") or "").lower()
        if status not in SUCCESS_STATUSES:
            error = status_json.get("error") or {}
            reason = error.get("message") if isinstance(error, dict) else None
            raise VideoGenerationError(
                reason or "Video generation did not complete successfully.", status=500
            )

        content = self.download(job_id)
        filename = f"{int(time.time() * 1000)}-sora.mp4"
        path = save_bytes(content, filename, self.settings.output_dir)
        if self.record_history:
            insert_generation_event(GenerationEvent(
                timestamp=datetime.now(),
                mode="video",
                model=self.settings.sora_model,
                prompt=params.prompt,
                image_count=0,
                filenames=(filename,),
                duration_ms=int((time.monotonic() - started) * 1000)
            ), self.settings.db_path)
        return VideoResult(
            filename=filename,
            path=str(path),
            model=self.settings.sora_model,
            job_id=job_id
        )
