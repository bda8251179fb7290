from types import SimpleNamespace
from unittest.mock import patch

import pytest
from google.genai import types as genai_types

from core.config import PipelineConfig
from core.errors import ConfigurationError
from pipeline.gemini_client import GeminiModelClient

def _part(data=None, mime_type=None, text=None):
    inline = SimpleNamespace(data=data, mime_type=mime_type) if data is not None else None
    return SimpleNamespace(inline_data=inline, text=text)

def _response(*parts):
    return SimpleNamespace(candidates=[SimpleNamespace(content=SimpleNamespace(parts=list(parts)))])

def test_missing_api_key_is_a_configuration_error():
    config = PipelineConfig()
    config.GOOGLE_API_KEY = None
    with pytest.raises(ConfigurationError):
        GeminiModelClient(config)

def test_content_parts_are_flattened_in_order():
    parts = GeminiModelClient._to_content_parts(_response(
        _part(text="thinking"),
        _part(data=b"img", mime_type="image/jpeg"),
        _part(data=b"", mime_type="image/png", text=None),
    ))
    assert parts[0].text == "thinking"
    assert parts[0].inline_image is None
    assert parts[1].inline_image.data == b"img"
    assert parts[1].inline_image.mime_type == "image/jpeg"
    assert parts[2].inline_image is None

def test_missing_mime_type_defaults_to_png():
    parts = GeminiModelClient._to_content_parts(_response(_part(data=b"img", mime_type=None)))
    assert parts[0].inline_image.mime_type == "image/png"

@pytest.mark.parametrize("response", [
    SimpleNamespace(candidates=None),
    SimpleNamespace(candidates=[]),
    SimpleNamespace(candidates=[SimpleNamespace(content=None)]),
    SimpleNamespace(candidates=[SimpleNamespace(content=SimpleNamespace(parts=None))]),
])
def test_empty_responses_have_no_parts(response):
    assert GeminiModelClient._to_content_parts(response) == []

def test_plan_variations_requests_json_with_instruction():
    with patch("pipeline.gemini_client.GenAIClient") as client_cls:
        sdk = client_cls.return_value
        sdk.models.generate_content.return_value = SimpleNamespace(
            candidates=[object()], text='[{"prompt": "a", "reasoning": "b"}]',
        )
        text = GeminiModelClient(api_key="k").plan_variations("system text")

    assert text == '[{"prompt": "a", "reasoning": "b"}]'
    client_cls.assert_called_once()
    assert client_cls.call_args.kwargs["api_key"] == "k"
    _, kwargs = sdk.models.generate_content.call_args
    assert kwargs["model"] == PipelineConfig.PLANNER_MODEL
    assert kwargs["contents"] == PipelineConfig.PLAN_USER_PROMPT
    config = kwargs["config"]
    assert config.system_instruction == "system text"
    assert config.response_mime_type == "application/json"
    assert config.response_schema.type == genai_types.Type.ARRAY
    assert config.response_schema.items.required == ["prompt", "reasoning"]

def test_plan_variations_without_candidates_returns_none():
    with patch("pipeline.gemini_client.GenAIClient") as client_cls:
        client_cls.return_value.models.generate_content.return_value = SimpleNamespace(candidates=[], text=None)
        assert GeminiModelClient(api_key="k").plan_variations("x") is None

def test_one_sdk_client_serves_both_operations():
    with patch("pipeline.gemini_client.GenAIClient") as client_cls:
        sdk = client_cls.return_value
        sdk.models.generate_content.side_effect = [
            SimpleNamespace(candidates=[object()], text="[]"),
            _response(_part(data=b"out", mime_type="image/png")),
        ]
        client = GeminiModelClient(api_key="k")
        client.plan_variations("plan")
        client.render_image(b"ref", "image/png", "render", "16:9", "1K")

    client_cls.assert_called_once()
    assert sdk.models.generate_content.call_count == 2

def test_render_image_sends_reference_and_settings():
    with patch("pipeline.gemini_client.GenAIClient") as client_cls:
        sdk = client_cls.return_value
        sdk.models.generate_content.return_value = _response(_part(data=b"out", mime_type="image/png"))
        client = GeminiModelClient(api_key="k")
        parts = client.render_image(b"ref", "image/jpeg", "render this", "16:9", "1K")

    assert parts[0].inline_image.data == b"out"
    _, kwargs = sdk.models.generate_content.call_args
    assert kwargs["model"] == PipelineConfig.RENDER_MODEL
    assert kwargs["contents"][1] == "render this"
    assert kwargs["config"].image_config.aspect_ratio == "16:9"
    assert kwargs["config"].image_config.image_size == "1K"
