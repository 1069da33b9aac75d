"""
Output file storage.

Writes generated image and video bytes into the output directory.
"""

import base64
import logging
from pathlib import Path

logger = logging.getLogger(__name__)


def ensure_output_dir(output_dir: Path) -> Path:
    """Create the output directory if needed and return it."""
    output_dir = Path(output_dir)
    if not output_dir.exists():
        output_dir.mkdir(parents=True, exist_ok=True)
        logger.info("Created output directory: %s", output_dir)
    elif not output_dir.is_dir():
        raise NotADirectoryError(f"Output path is not a directory: {output_dir}")
    return output_dir


def image_filename(timestamp_ms: int, index: int, output_format: str) -> str:
    """``{timestamp}-{index}.{ext}``, the naming used for every saved image."""
    return f"{timestamp_ms}-{index}.{output_format}"


def save_b64_image(b64_json: str, filename: str, output_dir: Path) -> Path:
    """Decode base64 image data and write it to ``output_dir/filename``.

    Raises:
        binascii.Error: If the data is not valid base64
    """
    data = base64.b64decode(b64_json, validate=True)
    return save_bytes(data, filename, output_dir)


def save_bytes(data: bytes, filename: str, output_dir: Path) -> Path:
    path = ensure_output_dir(output_dir) / filename
    path.write_bytes(data)
    logger.info("Saved %s (%d bytes)", path, len(data))
    return path
