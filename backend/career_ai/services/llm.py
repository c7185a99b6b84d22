import json
import logging
from typing import Any, Iterator

import httpx

from career_ai.core.config import settings
from career_ai.core.extract import ResponseParseError, try_extract_json

logger = logging.getLogger(__name__)

SUPPORTED_LLM_PROVIDERS = {"anthropic", "openai"}
MAX_LOGGED_RESPONSE_CHARS = 500


class LlmError(RuntimeError):
    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class LlmNotConfigured(LlmError):
    pass


def _provider_config(provider: str) -> tuple[str | None, str, str]:
    if provider not in SUPPORTED_LLM_PROVIDERS:
        raise LlmNotConfigured(f"Unsupported LLM provider '{provider}'")
    if provider == "openai":
        return (
            settings.openai_api_key,
            settings.openai_model,
            settings.openai_api_base.rstrip("/"),
        )
    return (
        settings.anthropic_api_key,
        settings.anthropic_model,
        settings.anthropic_api_base.rstrip("/"),
    )


def llm_is_configured(provider: str) -> bool:
    api_key, model, _ = _provider_config(provider)
    return bool(api_key and model)


def get_model(provider: str) -> str:
    return _provider_config(provider)[1]


def _request(
    provider: str,
    system_prompt: str | None,
    messages: list[dict[str, str]],
    *,
    model: str | None,
    max_tokens: int,
    stream: bool,
) -> tuple[str, dict[str, str], dict[str, Any]]:
    api_key, default_model, api_base = _provider_config(provider)
    if not api_key:
        raise LlmNotConfigured(f"{provider} API key is not configured")
    model = (model or default_model or "").strip()
    if not model:
        raise LlmNotConfigured(f"No model configured for provider '{provider}'")

    if provider == "anthropic":
        headers = {
            "x-api-key": api_key,
            "anthropic-version": settings.anthropic_version,
            "content-type": "application/json",
        }
        body: dict[str, Any] = {"model": model, "max_tokens": max_tokens, "messages": messages}
        if system_prompt:
            body["system"] = system_prompt
        if stream:
            body["stream"] = True
        return f"{api_base}/messages", headers, body

    headers = {
        "Authorization": f"Bearer {api_key}",
        "Content-Type": "application/json",
    }
    chat_messages = list(messages)
    if system_prompt:
        chat_messages.insert(0, {"role": "system", "content": system_prompt})
    body = {"model": model, "max_completion_tokens": max_tokens, "messages": chat_messages}
    if stream:
        body["stream"] = True
    return f"{api_base}/chat/completions", headers, body


def _response_text(provider: str, data: dict[str, Any]) -> str:
    if provider == "anthropic":
        for block in data.get("content") or []:
            if block.get("type") == "text":
                return block.get("text") or ""
        return ""
    choices = data.get("choices") or []
    if not choices:
        return ""
    return (choices[0].get("message") or {}).get("content") or ""


def call_llm(
    system_prompt: str | None,
    user_content: str,
    *,
    provider: str = "anthropic",
    model: str | None = None,
    max_tokens: int = 4096,
) -> str:
    """Single-turn completion; returns the reply text or raises ``LlmError``."""
    url, headers, body = _request(
        provider,
        system_prompt,
        [{"role": "user", "content": user_content}],
        model=model,
        max_tokens=max_tokens,
        stream=False,
    )
    try:
        with httpx.Client(timeout=settings.llm_timeout_seconds) as client:
            response = client.post(url, headers=headers, json=body)
            response.raise_for_status()
            data = response.json()
    except httpx.HTTPStatusError as exc:
        status = exc.response.status_code
        raise LlmError(
            f"LLM API error ({status}): {exc.response.text[:500]}",
            status_code=status,
        ) from exc
    except (httpx.HTTPError, ValueError) as exc:
        raise LlmError(f"LLM call failed: {exc}") from exc

    text = _response_text(provider, data)
    if not text.strip():
        raise LlmError("LLM returned an empty response", status_code=502)
    return text


def _stream_delta(provider: str, event: dict[str, Any]) -> str | None:
    if provider == "anthropic":
        if event.get("type") == "content_block_delta":
            delta = event.get("delta") or {}
            if delta.get("type") == "text_delta":
                return delta.get("text")
        if event.get("type") == "error":
            error = event.get("error") or {}
            raise LlmError(f"LLM stream error: {error.get('message') or error}")
        return None
    choices = event.get("choices") or []
    if not choices:
        return None
    return (choices[0].get("delta") or {}).get("content")


def stream_llm(
    system_prompt: str | None,
    messages: list[dict[str, str]],
    *,
    provider: str = "anthropic",
    model: str | None = None,
    max_tokens: int = 1024,
) -> Iterator[str]:
    """Yield text deltas as the provider streams them."""
    url, headers, body = _request(
        provider,
        system_prompt,
        messages,
        model=model,
        max_tokens=max_tokens,
        stream=True,
    )
    with httpx.Client(timeout=settings.llm_timeout_seconds) as client:
        try:
            with client.stream("POST", url, headers=headers, json=body) as response:
                if response.status_code >= 400:
                    response.read()
                    raise LlmError(
                        f"LLM API error ({response.status_code}): {response.text[:500]}",
                        status_code=response.status_code,
                    )
                for line in response.iter_lines():
                    if not line.startswith("data:"):
                        continue
                    payload = line[len("data:"):].strip()
                    if not payload or payload == "[DONE]":
                        continue
                    try:
                        event = json.loads(payload)
                    except json.JSONDecodeError:
                        logger.warning("Skipping malformed stream event: %s", payload[:200])
                        continue
                    text = _stream_delta(provider, event)
                    if text:
                        yield text
        except httpx.HTTPError as exc:
            raise LlmError(f"LLM stream failed: {exc}") from exc


def parse_model_json(text: str, *, feature: str) -> Any:
    result = try_extract_json(text)
    if result.ok:
        if result.strategy != "direct":
            logger.info("%s: recovered JSON via %s", feature, result.strategy)
        return result.value
    logger.warning(
        "%s: could not parse model response (%s): %s",
        feature,
        result.reason,
        (text or "")[:MAX_LOGGED_RESPONSE_CHARS],
    )
    raise ResponseParseError(text or "", result.reason or "unknown")
