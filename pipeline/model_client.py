"""Capability interface for the remote generative model.

The orchestrator only ever talks to a ``ModelClient``; the Gemini
implementation lives in ``pipeline.gemini_client`` and tests use stubs.
"""
from abc import ABC, abstractmethod
from typing import Optional, Sequence

from core.models import ContentPart


class ModelClient(ABC):

    @abstractmethod
    def plan_variations(self, instruction: str) -> Optional[str]:
        """Request a structured variation plan.

        Returns the raw JSON payload (a list of ``{"prompt", "reasoning"}``
        objects) exactly as the model produced it, or ``None`` if the model
        returned no text. Parsing is the planner's job.
        """

    @abstractmethod
    def render_image(
        self,
        reference_image: bytes,
        mime_type: str,
        instruction: str,
        aspect_ratio: str,
        image_size: str,
    ) -> Sequence[ContentPart]:
        """Render one variation of the reference image.

        Returns the content parts of the response; zero or more of them may
        carry an inline image.
        """
