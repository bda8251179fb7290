"""
Pytest configuration and fixtures
"""
import io
import json
import os
import tempfile
from datetime import date
from typing import List, Optional, Sequence

# Keep generated artifacts out of the working tree and never reach the real API
os.environ.setdefault("OUTPUT_DIR", tempfile.mkdtemp(prefix="age-progression-"))
os.environ.setdefault("GOOGLE_API_KEY", "test-key")

import pytest
from PIL import Image

from core.models import ContentPart, GenerationRequest, InlineImage
from pipeline.model_client import ModelClient

FIXED_TODAY = date(2026, 10, 18)


def make_png(color=(120, 90, 60), size=(8, 8)) -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", size, color=color).save(buf, format="PNG")
    return buf.getvalue()


def plan_json(count: int) -> str:
    return json.dumps([
        {"prompt": f"Variation {i} changes", "reasoning": f"Forensic rationale {i}"}
        for i in range(count)
    ])


class FakeModelClient(ModelClient):
    """Scriptable stand-in for the remote model.

    ``render_failures`` holds call positions (0-based) that raise;
    ``render_empty`` holds positions that answer with text only.
    """

    def __init__(
        self,
        plan_payload: Optional[str] = None,
        plan_error: Optional[Exception] = None,
        render_failures: Sequence[int] = (),
        render_empty: Sequence[int] = (),
    ):
        self.plan_payload = plan_payload
        self.plan_error = plan_error
        self.render_failures = set(render_failures)
        self.render_empty = set(render_empty)
        self.plan_calls: List[str] = []
        self.render_calls: List[dict] = []

    def plan_variations(self, instruction: str) -> Optional[str]:
        self.plan_calls.append(instruction)
        if self.plan_error is not None:
            raise self.plan_error
        return self.plan_payload

    def render_image(self, reference_image, mime_type, instruction, aspect_ratio, image_size):
        position = len(self.render_calls)
        self.render_calls.append({
            "reference_image": reference_image,
            "mime_type": mime_type,
            "instruction": instruction,
            "aspect_ratio": aspect_ratio,
            "image_size": image_size,
        })
        if position in self.render_failures:
            raise RuntimeError(f"render exploded at call {position}")
        if position in self.render_empty:
            return [ContentPart(text="I cannot render this.")]
        return [
            ContentPart(text="Here is the image."),
            ContentPart(inline_image=InlineImage(data=f"image-{position}".encode(), mime_type="image/png")),
        ]


@pytest.fixture
def reference_png() -> bytes:
    return make_png()


@pytest.fixture
def make_request(reference_png):
    def _make(**overrides) -> GenerationRequest:
        fields = dict(
            reference_image=reference_png,
            reference_mime_type="image/png",
            name="Jane Doe",
            gender="Female",
            age_at_missing=25,
            years_missing=5,
            location="Leeds, UK",
            scenario="Natural Aging (Standard Control Group)",
            additional_details="Scar above left eyebrow",
            variation_count=2,
        )
        fields.update(overrides)
        return GenerationRequest(**fields)
    return _make
