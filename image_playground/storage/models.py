"""
Data models for storage layer.

Defines the history record written after each generation.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Tuple


@dataclass(frozen=True)
class GenerationEvent:
    """Immutable record of one generate, edit, or video call.

    Append-only: once written to history a record is never modified.
    ``estimated_cost`` is None when the provider's usage data could not
    be priced.
    """
    timestamp: datetime
    mode: str
    model: str
    prompt: str
    image_count: int
    filenames: Tuple[str, ...] = field(default_factory=tuple)
    text_input_tokens: int = 0
    image_input_tokens: int = 0
    cached_input_tokens: int = 0
    output_tokens: int = 0
    estimated_cost: Optional[float] = None
    duration_ms: int = 0
    streamed: bool = False
