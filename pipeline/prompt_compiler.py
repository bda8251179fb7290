"""Turns case data into model instructions.

Policy (which constraints apply to a plan) is kept apart from formatting
(how those constraints are phrased for the model):

    constraints = evaluate_plan_constraints(request.scenario, request.variation_count)
    instruction = compile_planning_instruction(request, constraints)

Everything here is a pure function of its inputs.
"""
import textwrap
from datetime import date
from typing import Optional

from core.config import PipelineConfig
from core.errors import InvalidRequestError
from core.models import GenerationRequest, PlanConstraints, VariationSpec


# --------------------------------------------------------------------------------------
# Validation
# --------------------------------------------------------------------------------------
def validate_request(request: GenerationRequest, config: Optional[PipelineConfig] = None) -> None:
    """Fail fast on requests that bypassed model validation."""
    config = config or PipelineConfig()
    if not request.reference_image:
        raise InvalidRequestError("Missing critical data: reference image.")
    for field in ("age_at_missing", "years_missing"):
        value = getattr(request, field, None)
        if not isinstance(value, int) or isinstance(value, bool):
            raise InvalidRequestError(f"Missing critical data: {field}.", details={"field": field})
        if value < 0:
            raise InvalidRequestError(f"{field} must be non-negative.", details={"field": field, "value": value})
    count = request.variation_count
    if not config.MIN_VARIATIONS <= count <= config.MAX_VARIATIONS:
        raise InvalidRequestError(
            f"variation_count must be between {config.MIN_VARIATIONS} and {config.MAX_VARIATIONS}.",
            details={"field": "variation_count", "value": count},
        )


# --------------------------------------------------------------------------------------
# Plan policy
# --------------------------------------------------------------------------------------
def _mentions(text: str, keywords) -> bool:
    lowered = text.lower()
    return any(k in lowered for k in keywords)


def evaluate_plan_constraints(
    scenario: str,
    variation_count: int,
    config: Optional[PipelineConfig] = None,
) -> PlanConstraints:
    config = config or PipelineConfig()
    auto_detect = scenario == config.AUTO_DETECT_SCENARIO

    wants_weight_gain = (
        variation_count >= config.WEIGHT_GAIN_MIN_COUNT
        or _mentions(scenario, config.NATURAL_AGING_KEYWORDS)
    )
    starvation = _mentions(scenario, config.STARVATION_KEYWORDS)

    return PlanConstraints(
        auto_detect=auto_detect,
        locked_scenario=None if auto_detect else scenario,
        variation_count=variation_count,
        explore_lifestyles=not auto_detect,
        require_weight_gain=wants_weight_gain and not starvation,
        weight_gain_suppressed=wants_weight_gain and starvation,
    )


# --------------------------------------------------------------------------------------
# Formatting
# --------------------------------------------------------------------------------------
def compile_planning_instruction(
    request: GenerationRequest,
    constraints: PlanConstraints,
    today: Optional[date] = None,
) -> str:
    today = today or date.today()
    current_age = request.current_age

    if constraints.auto_detect:
        scenario_block = (
            "Analyze the location and details to determine the most statistically "
            "plausible scenarios for this person."
        )
    else:
        scenario_block = (
            f'BASE SCENARIO: "{constraints.locked_scenario}". '
            "All generated variations MUST strictly adhere to this specific scenario."
        )

    rules = [
        "All variations must be grounded in the Base Scenario (if specified). "
        "Do not generate generic aging unless the scenario asks for it.",
    ]
    if constraints.explore_lifestyles:
        rules.append(
            f"Explore how *different lifestyles* within the Base Scenario would look in {request.location} "
            '(e.g., if "Homeless", show "Sheltered vs. Rough Sleeper vs. Transient"). '
            "Every variation must be a distinct sub-path."
        )
    else:
        rules.append("Each variation must represent a distinct plausible scenario.")
    rules.append(
        f"Analyze biological aging from age {request.age_at_missing} to {current_age} "
        f"specific to {request.gender} biology."
    )
    rules.append(
        "Incorporate environment-specific weathering, fashion, and grooming trends "
        f"for {today.year} in {request.location}."
    )
    if constraints.require_weight_gain:
        rules.append(
            "VARIATION STRATEGY: You MUST include exactly one variation depicting 'Significant Weight Gain' "
            "(fuller face, double chin, heavier build) to account for metabolic changes."
        )
    elif constraints.weight_gain_suppressed:
        rules.append(
            "VARIATION STRATEGY: Do NOT include a weight gain variation; "
            "the base scenario implies starvation or famine conditions."
        )
    numbered = "\n".join(f"{i}. {rule}" for i, rule in enumerate(rules, start=1))

    return textwrap.dedent("""\
        You are a specialized Forensic Age Progression AI.
        Current Date: {today}.

        Subject Data:
        - Name: {name}
        - Gender: {gender}
        - Age when lost: {age_lost}
        - Years Missing: {years_missing} (Since approx {missing_year})
        - Current Age: {current_age}
        - Location: {location}
        - Details: {details}

        CRITICAL SCENARIO CONSTRAINT:
        {scenario_block}

        Task: Generate {count} distinct visual variation profiles.

        Requirements:
        {rules}

        Output JSON format (an array of objects):
        - 'prompt': A description of the specific visual changes (aging, styling, weathering, clothing) to apply to the subject. Do NOT describe generic facial features (like "blue eyes" or "round face") unless they are changing due to age/health. The goal is to modify the REFERENCE IMAGE, not create a new person. Do NOT request changes to the pose, head angle, or camera composition.
        - 'reasoning': A forensic explanation of why they look this way, specifically linking the Base Scenario to the visual traits.
        """).format(
        today=today.isoformat(),
        name=request.name or "Unknown",
        gender=request.gender,
        age_lost=request.age_at_missing,
        years_missing=request.years_missing,
        missing_year=request.approx_missing_year(today),
        current_age=current_age,
        location=request.location or "Unknown",
        details=request.additional_details or "None provided",
        scenario_block=scenario_block,
        count=constraints.variation_count,
        rules=numbered,
    )


def compile_render_instruction(request: GenerationRequest, variation: VariationSpec) -> str:
    return textwrap.dedent("""\
        task: forensic_age_progression

        INSTRUCTIONS:
        1. You are a forensic artist. Use the provided image as the STRICT REFERENCE for the subject's identity, facial structure, and key features.
        2. Generate a photorealistic image of THIS SAME PERSON aged to {current_age} years old.
        3. Do NOT create a random person. Maintain the likeness of the input face.
        4. STRICTLY PRESERVE the head pose, camera angle, and composition of the reference image.
           - The subject must be in the exact same position.
           - Do not mirror, rotate, crop, or change the viewing angle.
        5. Apply ONLY the following physical changes and context:

        SCENARIO DETAILS: {details}

        CONTEXT: {scenario}
        LOCATION: {location}
        GENDER: {gender}

        Ensure photorealism, detailed skin texture, and correct anatomical aging structure while preserving identity.
        """).format(
        current_age=request.current_age,
        details=variation.prompt,
        scenario=request.scenario,
        location=request.location or "Unknown",
        gender=request.gender,
    )
