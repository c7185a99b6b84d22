import json
from pathlib import Path
import sys

import httpx
import pytest

sys.path.append(str(Path(__file__).resolve().parents[1]))

from career_ai.core.config import settings
from career_ai.core.extract import ResponseParseError
from career_ai.services import llm


@pytest.fixture
def transport(monkeypatch, llm_keys):
    """Route every httpx.Client built by the llm module through a handler."""
    state = {"requests": []}
    real_client = httpx.Client

    def _client(**kwargs):
        return real_client(transport=httpx.MockTransport(_handle), **kwargs)

    def _handle(request):
        state["requests"].append(request)
        return state["handler"](request)

    monkeypatch.setattr(llm.httpx, "Client", _client)
    return state


def test_anthropic_request_shape_and_text(transport):
    transport["handler"] = lambda request: httpx.Response(
        200, json={"content": [{"type": "text", "text": '{"ok": true}'}]}
    )
    text = llm.call_llm("system!", "hello", provider="anthropic", max_tokens=123)
    assert text == '{"ok": true}'

    request = transport["requests"][0]
    assert str(request.url) == f"{settings.anthropic_api_base}/messages"
    assert request.headers["x-api-key"] == "test-anthropic-key"
    body = json.loads(request.content)
    assert body["system"] == "system!"
    assert body["max_tokens"] == 123
    assert body["messages"] == [{"role": "user", "content": "hello"}]


def test_openai_request_puts_system_message_first(transport):
    transport["handler"] = lambda request: httpx.Response(
        200, json={"choices": [{"message": {"content": "hi"}}]}
    )
    assert llm.call_llm("sys", "hello", provider="openai", model="gpt-test") == "hi"
    request = transport["requests"][0]
    assert request.headers["authorization"] == "Bearer test-openai-key"
    body = json.loads(request.content)
    assert body["model"] == "gpt-test"
    assert body["messages"][0] == {"role": "system", "content": "sys"}


def test_http_error_keeps_status(transport):
    transport["handler"] = lambda request: httpx.Response(429, json={"error": "slow down"})
    with pytest.raises(llm.LlmError) as exc_info:
        llm.call_llm(None, "hello")
    assert exc_info.value.status_code == 429


def test_empty_reply_is_502(transport):
    transport["handler"] = lambda request: httpx.Response(200, json={"content": []})
    with pytest.raises(llm.LlmError) as exc_info:
        llm.call_llm(None, "hello")
    assert exc_info.value.status_code == 502


def test_missing_key_is_not_configured(monkeypatch):
    monkeypatch.setattr(settings, "openai_api_key", None)
    with pytest.raises(llm.LlmNotConfigured):
        llm.call_llm(None, "hello", provider="openai")
    with pytest.raises(llm.LlmNotConfigured):
        llm.call_llm(None, "hello", provider="gemini")


def test_stream_parses_anthropic_deltas(transport):
    events = [
        {"type": "message_start"},
        {"type": "content_block_delta", "delta": {"type": "text_delta", "text": "Hel"}},
        {"type": "content_block_delta", "delta": {"type": "text_delta", "text": "lo"}},
        {"type": "message_stop"},
    ]
    payload = "".join(f"event: x\ndata: {json.dumps(e)}\n\n" for e in events) + "data: not-json\n\n"
    transport["handler"] = lambda request: httpx.Response(
        200, content=payload.encode(), headers={"content-type": "text/event-stream"}
    )
    chunks = list(llm.stream_llm("sys", [{"role": "user", "content": "hi"}]))
    assert chunks == ["Hel", "lo"]
    assert json.loads(transport["requests"][0].content)["stream"] is True


def test_stream_http_error_raises_before_chunks(transport):
    transport["handler"] = lambda request: httpx.Response(401, json={"error": "bad key"})
    with pytest.raises(llm.LlmError) as exc_info:
        next(llm.stream_llm(None, [{"role": "user", "content": "hi"}]))
    assert exc_info.value.status_code == 401


def test_parse_model_json_raises_on_garbage():
    assert llm.parse_model_json('text {"a": 1} text', feature="test") == {"a": 1}
    with pytest.raises(ResponseParseError):
        llm.parse_model_json("nothing here", feature="test")
