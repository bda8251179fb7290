import json

import pytest

from conftest import FakeModelClient, plan_json
from core.errors import PlanGenerationError
from pipeline.variation_planner import VariationPlanner


def test_plan_parses_ordered_list():
    planner = VariationPlanner(FakeModelClient(plan_payload=plan_json(3)))
    variations = planner.plan("instruction")
    assert [v.prompt for v in variations] == ["Variation 0 changes", "Variation 1 changes", "Variation 2 changes"]
    assert [v.reasoning for v in variations] == ["Forensic rationale 0", "Forensic rationale 1", "Forensic rationale 2"]


def test_plan_forwards_instruction_verbatim():
    client = FakeModelClient(plan_payload=plan_json(1))
    VariationPlanner(client).plan("exact instruction text")
    assert client.plan_calls == ["exact instruction text"]


def test_plan_strips_markdown_fences():
    payload = "```json\n" + plan_json(2) + "\n```"
    variations = VariationPlanner(FakeModelClient(plan_payload=payload)).plan("x")
    assert len(variations) == 2


@pytest.mark.parametrize("payload", [None, "", "   ", "not json at all", "{\"prompt\": \"a\"", "{\"prompt\": \"a\", \"reasoning\": \"b\"}", "42"])
def test_plan_rejects_unusable_payloads(payload):
    planner = VariationPlanner(FakeModelClient(plan_payload=payload))
    with pytest.raises(PlanGenerationError) as exc_info:
        planner.plan("x")
    assert exc_info.value.code == "PLAN_GENERATION_FAILED"
    assert str(exc_info.value) == "Failed to generate forensic profile plan."


def test_plan_wraps_client_errors():
    boom = ConnectionError("network down")
    planner = VariationPlanner(FakeModelClient(plan_error=boom))
    with pytest.raises(PlanGenerationError) as exc_info:
        planner.plan("x")
    assert exc_info.value.__cause__ is boom
    assert "network down" in exc_info.value.details["reason"]


def test_plan_does_not_retry():
    client = FakeModelClient(plan_payload="garbage")
    with pytest.raises(PlanGenerationError):
        VariationPlanner(client).plan("x")
    assert len(client.plan_calls) == 1


def test_plan_drops_only_malformed_elements():
    payload = json.dumps([
        {"prompt": "first", "reasoning": "r1"},
        {"prompt": "", "reasoning": "r2"},
        {"prompt": "third"},
        "just a string",
        {"prompt": "fifth", "reasoning": "  "},
        {"prompt": "sixth", "reasoning": "r6"},
    ])
    variations = VariationPlanner(FakeModelClient(plan_payload=payload)).plan("x")
    assert [v.prompt for v in variations] == ["first", "sixth"]


def test_plan_does_not_resize():
    assert VariationPlanner(FakeModelClient(plan_payload="[]")).plan("x") == []
    assert len(VariationPlanner(FakeModelClient(plan_payload=plan_json(7))).plan("x")) == 7
