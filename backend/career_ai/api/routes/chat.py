from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import StreamingResponse

from career_ai.api.deps import get_client_ip
from career_ai.api.errors import ensure_llm_configured, upstream_http_error
from career_ai.core.ratelimit import chat_rate_limiter
from career_ai.schemas.api import ChatIn
from career_ai.services.chat import stream_chat_events
from career_ai.services.llm import LlmError

router = APIRouter()

MSG_EMPTY_MESSAGES = "メッセージが空です。"
SSE_HEADERS = {"Cache-Control": "no-cache", "Connection": "keep-alive"}


@router.post("/chat")
def chat(payload: ChatIn, client_ip: str = Depends(get_client_ip)):
    ensure_llm_configured("anthropic")
    chat_rate_limiter.check(client_ip)
    if not payload.messages:
        raise HTTPException(status_code=400, detail=MSG_EMPTY_MESSAGES)

    messages = [message.model_dump() for message in payload.messages]
    try:
        events = stream_chat_events(messages, payload.diagnosis_data, payload.analysis_result)
    except LlmError as exc:
        raise upstream_http_error(exc, feature="chat") from exc
    return StreamingResponse(events, media_type="text/event-stream", headers=SSE_HEADERS)
