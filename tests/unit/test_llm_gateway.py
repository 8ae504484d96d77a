import json

import pytest

from agents.types import IntentResult
from config.routes import LlmRoute
from llm_gateway import LlmGatewayError, call, route_generator


class _Response:
    def __init__(self, payload, status_code=200):
        self._payload = payload
        self.status_code = status_code
        self.text = json.dumps(payload)

    def json(self):
        return self._payload


class _Client:
    def __init__(self, *contents, status_code=200):
        self.contents = list(contents)
        self.status_code = status_code
        self.requests = []

    def post(self, url, *, json, headers, timeout):
        self.requests.append({"url": url, "json": json, "headers": headers, "timeout": timeout})
        content = self.contents.pop(0)
        return _Response({"choices": [{"message": {"content": content}}]}, self.status_code)


def _route(**kw):
    fields = {"name": "fast", "base_url": "http://llm.local", "model": "m1", "max_retries": 1}
    fields.update(kw)
    return LlmRoute(**fields)


def test_call_parses_schema_output():
    client = _Client('{"intent": "ACCEPT", "confidence": 0.9, "rationale": "ok"}')
    result = call("classify", IntentResult, cfg=_route(response_format="json_object"), client=client)
    assert result == IntentResult(intent="ACCEPT", confidence=0.9, rationale="ok")
    sent = client.requests[0]
    assert sent["url"] == "http://llm.local/v1/chat/completions"
    assert sent["json"]["response_format"] == {"type": "json_object"}
    assert sent["json"]["messages"][0]["role"] == "system"
    assert sent["json"]["messages"][-1] == {"role": "user", "content": "classify"}


def test_code_fences_are_stripped():
    client = _Client('```json\n{"intent": "REFUSE", "confidence": 1.0}\n```')
    assert call("x", IntentResult, cfg=_route(), client=client).intent == "REFUSE"


def test_invalid_output_is_retried_with_hint():
    client = _Client('{"intent": "MAYBE"}', '{"intent": "NEUTRAL", "confidence": 0.5}')
    result = call("x", IntentResult, cfg=_route(), client=client)
    assert result.intent == "NEUTRAL"
    retry_messages = client.requests[1]["json"]["messages"]
    assert retry_messages[-1]["content"].startswith("The previous reply failed validation.")


def test_exhausted_retries_raise():
    client = _Client("not json", "still not json")
    with pytest.raises(LlmGatewayError):
        call("x", IntentResult, cfg=_route(), client=client)


def test_error_status_raises():
    client = _Client("{}", status_code=503)
    with pytest.raises(LlmGatewayError):
        call("x", IntentResult, cfg=_route(), client=client)


def test_api_key_header_from_env(monkeypatch):
    monkeypatch.setenv("TEST_LLM_KEY", "secret")
    client = _Client('{"intent": "ACCEPT", "confidence": 1.0}')
    call("x", IntentResult, cfg=_route(api_key_env="TEST_LLM_KEY"), client=client)
    assert client.requests[0]["headers"]["Authorization"] == "Bearer secret"


def test_route_generator_binds_deadline_and_temperature():
    client = _Client('{"intent": "ACCEPT", "confidence": 1.0}')
    generate = route_generator(_route(max_retries=3, timeout_s=9.0), client=client)
    result = generate("prompt", IntentResult, temperature=0.25, timeout_ms=1200)
    assert result.intent == "ACCEPT"
    sent = client.requests[0]
    assert sent["timeout"] == pytest.approx(1.2)
    assert sent["json"]["temperature"] == 0.25


def test_route_generator_does_not_retry():
    client = _Client("garbage", '{"intent": "ACCEPT", "confidence": 1.0}')
    generate = route_generator(_route(max_retries=3), client=client)
    with pytest.raises(LlmGatewayError):
        generate("prompt", IntentResult, temperature=0.0, timeout_ms=500)
    assert len(client.requests) == 1
