import json
import logging
from typing import List

from pydantic import ValidationError

from core.errors import PlanGenerationError
from core.models import VariationSpec
from pipeline.model_client import ModelClient

logger = logging.getLogger(__name__)


class VariationPlanner:
    """Obtains the ordered variation plan for a batch. No retries."""

    def __init__(self, client: ModelClient):
        self.client = client

    def plan(self, instruction: str) -> List[VariationSpec]:
        try:
            response_text = self.client.plan_variations(instruction)
        except Exception as e:
            logger.exception("[PLAN] Planning call failed")
            raise PlanGenerationError(details={"reason": str(e)}) from e

        if not response_text or not response_text.strip():
            logger.error("[PLAN] Empty plan payload")
            raise PlanGenerationError(details={"reason": "empty response"})

        cleaned_response = response_text.replace("```json", "").replace("```", "").strip()
        try:
            data = json.loads(cleaned_response)
        except json.JSONDecodeError as e:
            logger.error("[PLAN] Failed to parse variation plan: %s", e)
            raise PlanGenerationError(details={"reason": f"invalid JSON: {e}"}) from e

        if not isinstance(data, list):
            logger.error("[PLAN] Plan payload is %s, expected a list", type(data).__name__)
            raise PlanGenerationError(details={"reason": "plan is not a list"})

        variations: List[VariationSpec] = []
        for position, entry in enumerate(data):
            try:
                variations.append(VariationSpec.model_validate(entry))
            except ValidationError as e:
                logger.warning("[PLAN] Dropping malformed variation at position %d: %s", position, e.errors())

        logger.info("[PLAN] Received %d variation(s), %d usable", len(data), len(variations))
        return variations
