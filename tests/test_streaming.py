"""
Unit tests for the streaming relay.

Tests event conversion, file saving, final usage/cost, and error events.
"""

import base64
import json
import tempfile
from pathlib import Path
from types import SimpleNamespace

from image_playground.config.loader import StorageMode
from image_playground.sdk.streaming import ImageResult, StreamEvent, relay_image_stream

B64 = base64.b64encode(b"image-bytes").decode()
USAGE = {
    "input_tokens_details": {"text_tokens": 100, "image_tokens": 0},
    "output_tokens": 10,
}


def _partial(prefix, index):
    return SimpleNamespace(type=f"{prefix}.partial_image", partial_image_index=index, b64_json="cGFydA==")


def _completed(prefix, usage=None):
    return SimpleNamespace(type=f"{prefix}.completed", b64_json=B64, usage=usage)


def _relay(events, output_dir, storage_mode=StorageMode.FS, output_format="png"):
    return list(relay_image_stream(
        events,
        model="gpt-image-1.5",
        output_format=output_format,
        timestamp_ms=1700000000000,
        storage_mode=storage_mode,
        output_dir=Path(output_dir),
    ))


class TestRelayImageStream:
    """Test conversion of provider events."""

    def test_generation_stream(self):
        with tempfile.TemporaryDirectory() as temp_dir:
            events = _relay([
                _partial("image_generation", 0),
                _partial("image_generation", 1),
                _completed("image_generation", usage=USAGE),
            ], temp_dir)

            assert [e.type for e in events] == ["partial_image", "partial_image", "completed", "done"]
            assert events[0].index == 0
            assert events[1].partial_image_index == 1

            completed = events[2]
            assert completed.filename == "1700000000000-0.png"
            assert completed.path == str(Path(temp_dir) / "1700000000000-0.png")
            assert (Path(temp_dir) / completed.filename).read_bytes() == b"image-bytes"

            done = events[3]
            assert done.usage == USAGE
            assert done.cost["billable_input_tokens"] == 100
            assert done.cost["estimated_cost_usd"] == 0.0008
            assert done.images == [ImageResult("1700000000000-0.png", B64, "png", completed.path)]

    def test_multiple_images_indexed(self):
        with tempfile.TemporaryDirectory() as temp_dir:
            events = _relay([
                _partial("image_edit", 0),
                _completed("image_edit"),
                _partial("image_edit", 0),
                _completed("image_edit", usage=USAGE),
            ], temp_dir)

            assert events[2].index == 1
            assert [e.filename for e in events if e.type == "completed"] == [
                "1700000000000-0.png", "1700000000000-1.png"
            ]
            assert len(events[-1].images) == 2

    def test_inline_mode_writes_nothing(self):
        with tempfile.TemporaryDirectory() as temp_dir:
            events = _relay([_completed("image_generation", usage=USAGE)], temp_dir,
                            storage_mode=StorageMode.INLINE, output_format="webp")
            assert events[0].path is None
            assert events[0].filename.endswith(".webp")
            assert list(Path(temp_dir).iterdir()) == []

    def test_missing_usage_gives_no_cost(self):
        with tempfile.TemporaryDirectory() as temp_dir:
            done = _relay([_completed("image_generation")], temp_dir)[-1]
            assert done.type == "done"
            assert done.usage is None
            assert done.cost is None

    def test_unknown_events_ignored(self):
        with tempfile.TemporaryDirectory() as temp_dir:
            events = _relay([SimpleNamespace(type="response.keepalive")], temp_dir)
            assert [e.type for e in events] == ["done"]

    def test_error_mid_stream(self):
        def failing():
            yield _partial("image_generation", 0)
            raise RuntimeError("connection reset")

        with tempfile.TemporaryDirectory() as temp_dir:
            events = _relay(failing(), temp_dir)
            assert [e.type for e in events] == ["partial_image", "error"]
            assert events[-1].error == "connection reset"


class TestStreamEvent:
    """Test SSE encoding."""

    def test_partial_event_sse(self):
        event = StreamEvent(type="partial_image", index=0, partial_image_index=1, b64_json="abc")
        frame = event.to_sse()
        assert frame.startswith("data: ")
        assert frame.endswith("\n\n")
        assert json.loads(frame[len("data: "):]) == {
            "type": "partial_image", "index": 0, "partial_image_index": 1, "b64_json": "abc"
        }

    def test_done_event_includes_images(self):
        event = StreamEvent(type="done", images=[ImageResult("f.png", "abc", "png")])
        assert event.to_dict() == {
            "type": "done",
            "images": [{"filename": "f.png", "b64_json": "abc", "output_format": "png"}],
        }

    def test_error_event(self):
        assert StreamEvent(type="error", error="boom").to_dict() == {"type": "error", "error": "boom"}
