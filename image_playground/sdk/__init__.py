"""
SDK for Image Playground.

Provides programmatic access to image generation, video generation and
prompt enhancement.
"""

from .errors import ProviderError, PromptEnhanceError, VideoGenerationError
from .openai_client import GenerationResult, ImagePlayground, PromptEnhancer
from .video_client import SoraVideoClient

__all__ = [
    "GenerationResult",
    "ImagePlayground",
    "PromptEnhancer",
    "PromptEnhanceError",
    "ProviderError",
    "SoraVideoClient",
    "VideoGenerationError",
]
