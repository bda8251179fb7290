import base64
import logging
import os
import re
import uuid
from datetime import date
from typing import Callable, Iterator, List, Optional, Sequence

from core.config import PipelineConfig
from core.errors import PlanGenerationError
from core.models import (
    BatchStage,
    BatchSummary,
    GenerationRequest,
    PredictionOptions,
    PredictionResultItem,
    VariationSpec,
)
from pipeline.model_client import ModelClient
from pipeline.prompt_compiler import (
    compile_planning_instruction,
    evaluate_plan_constraints,
    validate_request,
)
from pipeline.render_executor import RenderExecutor, RenderTally
from pipeline.variation_planner import VariationPlanner

logger = logging.getLogger(__name__)

_MIME_EXTENSIONS = {"image/png": "png", "image/jpeg": "jpg", "image/webp": "webp"}


# --------------------------------------------------------------------------------------
# Helper utilities
# --------------------------------------------------------------------------------------
def ensure_dir(path: str) -> None:
    os.makedirs(path, exist_ok=True)


def new_batch_summary() -> BatchSummary:
    return BatchSummary(batch_id=uuid.uuid4().hex)


# --------------------------------------------------------------------------------------
# Core pipeline
# --------------------------------------------------------------------------------------
class PredictionGenerator:
    """Orchestrates one prediction batch: compile, plan, then render sequentially."""

    def __init__(
            self,
            client: Optional[ModelClient] = None,
            config: Optional[PipelineConfig] = None,
            options: Optional[PredictionOptions] = None,
        ):
        self.config = config or PipelineConfig()
        if options:
            if options.aspect_ratio:
                self.config.ASPECT_RATIO = options.aspect_ratio
            if options.image_size:
                self.config.IMAGE_SIZE = options.image_size

        if client is None:
            from pipeline.gemini_client import GeminiModelClient
            client = GeminiModelClient(self.config)
        self.client = client
        self.planner = VariationPlanner(client)
        self.executor = RenderExecutor(client, self.config)

    # -------------------- Planning --------------------
    def plan(
        self,
        request: GenerationRequest,
        today: Optional[date] = None,
        summary: Optional[BatchSummary] = None,
    ) -> List[VariationSpec]:
        """Compile the planning instruction and fetch the variation plan.

        Raises ``InvalidRequestError`` for unusable case data and
        ``PlanGenerationError`` when no plan can be obtained; nothing is
        rendered in either case.
        """
        if summary is None:
            summary = new_batch_summary()
        self._enter(summary, BatchStage.COMPILING)
        validate_request(request, self.config)
        constraints = evaluate_plan_constraints(request.scenario, request.variation_count, self.config)
        instruction = compile_planning_instruction(request, constraints, today)
        if constraints.auto_detect:
            logger.info("[BATCH] %s auto-detect mode, %d variation(s)", summary.batch_id, constraints.variation_count)
        else:
            logger.info("[BATCH] %s locked scenario %r, %d variation(s)",
                        summary.batch_id, constraints.locked_scenario, constraints.variation_count)

        self._enter(summary, BatchStage.PLANNING)
        try:
            variations = self.planner.plan(instruction)
        except PlanGenerationError:
            self._enter(summary, BatchStage.PLAN_FAILED)
            raise
        summary.planned = len(variations)
        if len(variations) != request.variation_count:
            logger.warning("[BATCH] %s requested %d variation(s), plan has %d",
                           summary.batch_id, request.variation_count, len(variations))
        return variations

    # -------------------- Rendering --------------------
    def stream(
        self,
        request: GenerationRequest,
        variations: Optional[Sequence[VariationSpec]] = None,
        today: Optional[date] = None,
        summary: Optional[BatchSummary] = None,
    ) -> Iterator[PredictionResultItem]:
        """Lazily yield results as each variation finishes rendering.

        When ``variations`` is omitted the plan is fetched on first iteration.
        Pass a ``BatchSummary`` to read the outcome once iteration completes.
        """
        if summary is None:
            summary = new_batch_summary()
        if variations is None:
            variations = self.plan(request, today=today, summary=summary)
        else:
            summary.planned = len(variations)

        self._enter(summary, BatchStage.RENDERING)
        tally = RenderTally()
        for item in self.executor.iter_results(request, variations, summary.submitted_at_ms, tally):
            summary.delivered += 1
            yield item

        summary.failed_indices = tally.failed_indices
        summary.empty_indices = tally.empty_indices
        self._enter(summary, BatchStage.DONE)
        logger.info("[BATCH] %s complete: %d/%d delivered",
                    summary.batch_id, summary.delivered, summary.planned)

    def generate_batch(
        self,
        request: GenerationRequest,
        on_result: Callable[[PredictionResultItem], None],
        today: Optional[date] = None,
    ) -> BatchSummary:
        """Run a full batch, handing each result to ``on_result`` as soon as it exists."""
        summary = new_batch_summary()
        for item in self.stream(request, today=today, summary=summary):
            on_result(item)
        return summary

    # -------------------- Artifacts --------------------
    def save_results(
        self,
        items: Sequence[PredictionResultItem],
        subject_name: str,
        batch_id: str,
        output_dir: Optional[str] = None,
    ) -> List[str]:
        """Write result images to ``<output_dir>/<batch_id>/<subject>_<id>.<ext>``."""
        run_dir = os.path.join(output_dir or self.config.OUTPUT_DIR, batch_id)
        ensure_dir(run_dir)
        safe_name = re.sub(r"\s+", "_", subject_name.strip()) or "subject"
        safe_name = re.sub(r"[^\w.-]", "", safe_name) or "subject"

        saved = []
        for item in items:
            header, _, payload = item.image.partition(",")
            mime_type = header[len("data:"):].split(";")[0]
            ext = _MIME_EXTENSIONS.get(mime_type, "png")
            path = os.path.join(run_dir, f"{safe_name}_{item.id}.{ext}")
            with open(path, "wb") as f:
                f.write(base64.b64decode(payload))
            saved.append(path)
        return saved

    @staticmethod
    def _enter(summary: BatchSummary, stage: BatchStage) -> None:
        logger.debug("[BATCH] %s %s -> %s", summary.batch_id, summary.stage.value, stage.value)
        summary.stage = stage
