import base64
import logging
from dataclasses import dataclass, field
from typing import Iterator, List, Optional, Sequence

from core.config import PipelineConfig
from core.errors import VariationRenderError
from core.models import ContentPart, GenerationRequest, InlineImage, PredictionResultItem, VariationSpec
from pipeline.model_client import ModelClient
from pipeline.prompt_compiler import compile_render_instruction

logger = logging.getLogger(__name__)


@dataclass
class RenderTally:
    """Per-index outcomes of one render pass."""
    attempted: List[int] = field(default_factory=list)
    delivered: List[int] = field(default_factory=list)
    failures: List[VariationRenderError] = field(default_factory=list)

    @property
    def failed_indices(self) -> List[int]:
        return [f.index for f in self.failures if f.details.get("cause") == "error"]

    @property
    def empty_indices(self) -> List[int]:
        return [f.index for f in self.failures if f.details.get("cause") == "no_image"]


def first_inline_image(parts: Sequence[ContentPart]) -> Optional[InlineImage]:
    for part in parts or ():
        if part.inline_image is not None and part.inline_image.data:
            return part.inline_image
    return None


def to_data_url(image: InlineImage) -> str:
    encoded = base64.b64encode(image.data).decode("utf-8")
    return f"data:{image.mime_type};base64,{encoded}"


class RenderExecutor:
    """Renders planned variations one at a time, in plan order."""

    def __init__(self, client: ModelClient, config: Optional[PipelineConfig] = None):
        self.client = client
        self.config = config or PipelineConfig()

    def iter_results(
        self,
        request: GenerationRequest,
        variations: Sequence[VariationSpec],
        batch_stamp: int,
        tally: Optional[RenderTally] = None,
    ) -> Iterator[PredictionResultItem]:
        """Yield one result per successfully rendered variation.

        Each item is yielded before the next render call is issued. A failed
        or image-less variation is logged and skipped; the pass always runs
        to the last index.
        """
        tally = tally if tally is not None else RenderTally()
        total = len(variations)

        for index, variation in enumerate(variations):
            tally.attempted.append(index)
            logger.info("[RENDER] Variation %d/%d", index + 1, total)
            instruction = compile_render_instruction(request, variation)

            try:
                parts = self.client.render_image(
                    request.reference_image,
                    request.reference_mime_type,
                    instruction,
                    self.config.ASPECT_RATIO,
                    self.config.IMAGE_SIZE,
                )
            except Exception as e:
                logger.error("[RENDER] Failed to generate variation %d: %s", index + 1, e)
                tally.failures.append(VariationRenderError(
                    index, f"Render call failed: {e}", details={"cause": "error"}
                ))
                continue

            image = first_inline_image(parts)
            if image is None:
                logger.warning("[RENDER] Variation %d returned no image", index + 1)
                tally.failures.append(VariationRenderError(
                    index, "Response contained no inline image", details={"cause": "no_image"}
                ))
                continue

            item = PredictionResultItem(
                id=f"{batch_stamp}-{index}",
                image=to_data_url(image),
                caption=variation.reasoning,
            )
            tally.delivered.append(index)
            yield item
