"""
Unit tests for prompt enhancement templates.
"""

from image_playground.core.params import Mode
from image_playground.core.prompt_enhance import (
    EDIT_SYSTEM_PROMPT,
    GENERATE_SYSTEM_PROMPT,
    MAX_REFERENCE_IMAGES,
    VIDEO_REFERENCE_NOTE,
    VIDEO_SYSTEM_PROMPT,
    ReferenceImage,
    build_prompt_enhance_input,
    sanitize_reference_images,
)

PNG_URL = "data:image/png;base64,AAAA"


class TestSanitizeReferenceImages:
    """Test filtering of attached reference images."""

    def test_non_list_input(self):
        assert sanitize_reference_images(None) == []
        assert sanitize_reference_images(PNG_URL) == []

    def test_strings_and_mappings(self):
        result = sanitize_reference_images([
            PNG_URL,
            "https://example.com/cat.png",
            {"dataUrl": PNG_URL, "alt": "a cat"},
            {"dataUrl": PNG_URL, "alt": 42},
            {"url": PNG_URL},
            7,
        ])
        assert result == [
            ReferenceImage(PNG_URL),
            ReferenceImage(PNG_URL, "a cat"),
            ReferenceImage(PNG_URL, None),
        ]

    def test_capped(self):
        result = sanitize_reference_images([PNG_URL] * 9)
        assert len(result) == MAX_REFERENCE_IMAGES


class TestBuildPromptEnhanceInput:
    """Test the Responses API request built for each mode."""

    def test_generate(self):
        request = build_prompt_enhance_input(Mode.GENERATE, "a fox")
        assert request.instructions == GENERATE_SYSTEM_PROMPT
        assert request.input == [
            {"role": "user", "content": [{"type": "input_text", "text": "a fox"}]}
        ]

    def test_edit(self):
        request = build_prompt_enhance_input(Mode.EDIT, "make the dog a cat")
        assert request.instructions == EDIT_SYSTEM_PROMPT

    def test_video_without_reference(self):
        request = build_prompt_enhance_input(Mode.VIDEO, "waves at dusk")
        assert request.instructions == VIDEO_SYSTEM_PROMPT

    def test_video_with_reference_flag(self):
        request = build_prompt_enhance_input(Mode.VIDEO, "waves", video_has_reference_image=True)
        assert request.instructions.startswith(VIDEO_SYSTEM_PROMPT)
        assert request.instructions.endswith(VIDEO_REFERENCE_NOTE)

    def test_reference_images_labelled_by_index(self):
        images = [ReferenceImage(PNG_URL, "logo"), ReferenceImage(PNG_URL)]
        request = build_prompt_enhance_input(Mode.GENERATE, "combine", images)
        content = request.input[0]["content"]
        assert content[1] == {"type": "input_text", "text": "Image 1: logo"}
        assert content[2] == {"type": "input_image", "image_url": PNG_URL}
        assert content[3] == {"type": "input_text", "text": "Image 2"}
        assert len(content) == 5
