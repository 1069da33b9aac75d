"""
Prompt enhancement templates.

Builds the instructions and input sent to a chat model that rewrites a
user's prompt for image generation, image editing, or video.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

from .params import Mode

MAX_REFERENCE_IMAGES = 5

GENERATE_SYSTEM_PROMPT = """You rewrite requests for a general-purpose text-to-image model into one strong prompt.

Describe, in flowing prose without labels: the setting, the main subject, the important details, framing and camera, light and mood, the medium or style, and any hard constraints.

Rules:
- Output only the prompt text. No markdown, lists, headings or surrounding quotes.
- Keep the user's intent and every fact they gave (names, brands, counts, colors, period, layout). Do not invent claims that change the meaning.
- Fill gaps with concrete, useful detail: materials, textures, environment, props, and specific camera terms such as focal length, depth of field or viewpoint.
- If the request implies a deliverable (advert, UI mockup, infographic, logo), match its expected polish, structure and legibility.
- Any text that must appear in the image goes verbatim in "QUOTES" with its typography: font style, weight, color, placement and contrast.
- When several reference images are involved, refer to them as Image 1, Image 2 and so on and say how they combine.
- State exclusions briefly, as constraints.
- Aim for roughly 75 to 140 words. Stay visual and skip filler praise words."""

EDIT_SYSTEM_PROMPT = """You rewrite image-editing requests into a precise edit instruction that avoids unintended changes.

Guidelines:
- Output only the instruction text. No markdown, labels or explanations.
- Name exactly what changes (object, region, text, color, lighting, clothing, background) and how it should look afterwards.
- Where it helps, use the form "Change only X to ..." followed by "Keep everything else the same."
- Preserve the original style, lighting, perspective and realism unless the user asks otherwise.
- Replacement text inside the image goes in "QUOTES" with its typography described.
- Keep it short, ideally 20 to 60 words.

Example input: "Make the dog a cat"
Example output: "Change only the dog into a fluffy Siamese cat sitting in the same spot, matching the original lighting and perspective. Keep everything else the same.\""""

VIDEO_SYSTEM_PROMPT = """You rewrite requests for a text-and-image-to-video model into one clear shot description.

Guidelines:
- Output only the prompt text. No markdown, labels or explanations.
- Describe the shot as it unfolds: subject and setting, the motion of the subject, camera movement, pacing, lighting and mood.
- Keep to a single continuous shot that fits a clip of a few seconds.
- Preserve every fact the user gave and do not add new story beats.
- Aim for roughly 40 to 100 words."""

VIDEO_REFERENCE_NOTE = (
    "The video starts from a reference image supplied by the user. Keep its subject, "
    "composition and style, and describe only how the scene moves from there."
)


@dataclass(frozen=True)
class ReferenceImage:
    """An image attached to an enhancement request as a data URL."""
    data_url: str
    alt: Optional[str] = None


def sanitize_reference_images(candidates: Any) -> List[ReferenceImage]:
    """Keep at most five well-formed ``data:image`` references.

    Accepts plain data URL strings or mappings with ``dataUrl`` and an
    optional ``alt``; anything else is skipped.
    """
    if not isinstance(candidates, (list, tuple)):
        return []

    sanitized: List[ReferenceImage] = []
    for candidate in candidates:
        if len(sanitized) >= MAX_REFERENCE_IMAGES:
            break
        if isinstance(candidate, str):
            if candidate.startswith("data:image"):
                sanitized.append(ReferenceImage(data_url=candidate))
            continue
        if isinstance(candidate, dict):
            data_url = candidate.get("dataUrl")
            alt = candidate.get("alt")
            if isinstance(data_url, str) and data_url.startswith("data:image"):
                sanitized.append(ReferenceImage(
                    data_url=data_url,
                    alt=alt if isinstance(alt, str) else None
                ))
    return sanitized


def system_prompt_for(mode: Mode, video_has_reference_image: bool = False) -> str:
    if mode is Mode.EDIT:
        return EDIT_SYSTEM_PROMPT
    if mode is Mode.VIDEO:
        if video_has_reference_image:
            return f"{VIDEO_SYSTEM_PROMPT}\n\n{VIDEO_REFERENCE_NOTE}"
        return VIDEO_SYSTEM_PROMPT
    return GENERATE_SYSTEM_PROMPT


@dataclass(frozen=True)
class PromptEnhanceRequest:
    """Instructions plus Responses API input for one enhancement."""
    instructions: str
    input: List[Dict[str, Any]]


def build_prompt_enhance_input(
    mode: Mode,
    prompt: str,
    reference_images: Sequence[ReferenceImage] = (),
    video_has_reference_image: bool = False
) -> PromptEnhanceRequest:
    """Build the Responses API request that rewrites ``prompt``.

    Reference images are sent alongside the user's text so the model can
    describe them by index.
    """
    has_reference = video_has_reference_image or bool(reference_images)
    content: List[Dict[str, Any]] = [{"type": "input_text", "text": prompt}]
    for index, image in enumerate(reference_images, start=1):
        label = f"Image {index}" + (f": {image.alt}" if image.alt else "")
        content.append({"type": "input_text", "text": label})
        content.append({"type": "input_image", "image_url": image.data_url})

    return PromptEnhanceRequest(
        instructions=system_prompt_for(mode, has_reference),
        input=[{"role": "user", "content": content}],
    )
