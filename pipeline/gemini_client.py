import logging
from typing import List, Optional, Sequence

# ---- Google Gemini ----
from google.genai import Client as GenAIClient
from google.genai import types as genai_types

from core.config import PipelineConfig
from core.errors import ConfigurationError
from core.models import ContentPart, InlineImage
from pipeline.model_client import ModelClient

logger = logging.getLogger(__name__)

# [{"prompt": str, "reasoning": str}, ...]
PLAN_SCHEMA = genai_types.Schema(
    type=genai_types.Type.ARRAY,
    items=genai_types.Schema(
        type=genai_types.Type.OBJECT,
        properties={
            "prompt": genai_types.Schema(type=genai_types.Type.STRING),
            "reasoning": genai_types.Schema(type=genai_types.Type.STRING),
        },
        required=["prompt", "reasoning"],
    ),
)


class GeminiModelClient(ModelClient):
    """Gemini-backed model client.

    Both operations share one ``google.genai`` client. Planning requests a
    JSON array constrained by ``PLAN_SCHEMA``; rendering requests image
    output with the configured aspect ratio and image size.
    """

    def __init__(self, config: Optional[PipelineConfig] = None, api_key: Optional[str] = None):
        self.config = config or PipelineConfig()
        api_key = api_key or self.config.GOOGLE_API_KEY
        if not api_key:
            raise ConfigurationError("GOOGLE_API_KEY env var is not set.")
        self._client = GenAIClient(
            api_key=api_key,
            http_options=genai_types.HttpOptions(timeout=int(self.config.REQUEST_TIMEOUT_SECONDS * 1000)),
        )

    # -------------------- Planning --------------------
    def plan_variations(self, instruction: str) -> Optional[str]:
        response = self._client.models.generate_content(
            model=self.config.PLANNER_MODEL,
            contents=self.config.PLAN_USER_PROMPT,
            config=genai_types.GenerateContentConfig(
                system_instruction=instruction,
                response_mime_type="application/json",
                response_schema=PLAN_SCHEMA,
            ),
        )
        if not response.candidates:
            logger.warning("[PLAN] Model returned no candidates")
            return None
        return response.text

    # -------------------- Rendering --------------------
    def render_image(
        self,
        reference_image: bytes,
        mime_type: str,
        instruction: str,
        aspect_ratio: str,
        image_size: str,
    ) -> Sequence[ContentPart]:
        response = self._client.models.generate_content(
            model=self.config.RENDER_MODEL,
            contents=[
                genai_types.Part.from_bytes(data=reference_image, mime_type=mime_type),
                instruction,
            ],
            config=genai_types.GenerateContentConfig(
                response_modalities=["IMAGE", "TEXT"],
                image_config=genai_types.ImageConfig(aspect_ratio=aspect_ratio, image_size=image_size),
            ),
        )
        return self._to_content_parts(response)

    @staticmethod
    def _to_content_parts(response) -> List[ContentPart]:
        """Flatten the first candidate of a google.genai response."""
        if not response.candidates:
            return []
        content = response.candidates[0].content
        if content is None or not content.parts:
            return []

        parts: List[ContentPart] = []
        for part in content.parts:
            inline = part.inline_data
            if inline is not None and inline.data:
                parts.append(ContentPart(
                    inline_image=InlineImage(data=inline.data, mime_type=inline.mime_type or "image/png")
                ))
            else:
                parts.append(ContentPart(text=part.text))
        return parts
