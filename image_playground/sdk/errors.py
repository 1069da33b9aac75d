"""
Provider error mapping.

Turns OpenAI SDK failures into errors carrying an HTTP-like status.
"""

import openai

GPT_IMAGE_1_5_UNAVAILABLE = (
    "gpt-image-1.5 is not yet available. OpenAI has announced this model but has not "
    "enabled it in their API backend yet. Please select gpt-image-1 or gpt-image-1-mini "
    "or try gpt-image-1.5 again later."
)


class ProviderError(Exception):
    """Raised when the image or video provider rejects or fails a request."""
    def __init__(self, message: str, status: int = 500):
        super().__init__(message)
        self.message = message
        self.status = status


class PromptEnhanceError(ProviderError):
    """Raised when prompt enhancement returns nothing usable."""


class VideoGenerationError(ProviderError):
    """Raised when a Sora job cannot be created, finished, or downloaded."""


def map_provider_error(error: Exception) -> ProviderError:
    """Map an SDK exception to a ProviderError.

    The status code of API errors is passed through; the not-yet-enabled
    gpt-image-1.5 case gets an explanatory message.
    """
    if isinstance(error, ProviderError):
        return error
    if isinstance(error, openai.APIStatusError):
        message = getattr(error, "message", None) or str(error)
        if (
            error.status_code == 404
            and getattr(error, "code", None) == "model_not_found"
            and "gpt-image-1.5" in message
        ):
            return ProviderError(GPT_IMAGE_1_5_UNAVAILABLE, status=404)
        return ProviderError(message, status=error.status_code)
    if isinstance(error, openai.APIError):
        return ProviderError(getattr(error, "message", None) or str(error), status=502)
    return ProviderError(str(error) or "An unexpected error occurred.", status=500)
