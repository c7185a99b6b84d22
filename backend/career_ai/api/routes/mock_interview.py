from fastapi import APIRouter, Depends, HTTPException, Query

from career_ai.api.deps import get_client_ip, get_kv
from career_ai.api.errors import (
    MSG_LINK_EXPIRED,
    MSG_SESSION_NOT_FOUND,
    MSG_STORE_READ_FAILED,
    ensure_llm_configured,
    upstream_http_error,
)
from career_ai.core.extract import ResponseParseError
from career_ai.core.kv import KvError, KvStore
from career_ai.core.ratelimit import (
    mock_evaluate_rate_limiter,
    mock_next_rate_limiter,
    mock_start_rate_limiter,
    mock_summary_rate_limiter,
)
from career_ai.schemas.api import MockEvaluateIn, MockNextIn, MockStartIn, MockSummaryIn
from career_ai.services.llm import LlmError
from career_ai.services.mock_interview import (
    MSG_SETTINGS_MISSING,
    SessionNotFound,
    evaluate_answer,
    get_session,
    next_question,
    start_session,
    summarize,
)

router = APIRouter(prefix="/mock-interview")

MSG_PARAMS_MISSING = "パラメータが不足しています。"
MSG_SESSION_ID_MISSING = "セッションIDが不足しています。"
MSG_ID_MISSING = "IDが指定されていません。"


@router.post("/start")
def start(payload: MockStartIn, client_ip: str = Depends(get_client_ip), kv: KvStore = Depends(get_kv)):
    ensure_llm_configured("openai")
    mock_start_rate_limiter.check(client_ip)
    try:
        return start_session(kv, payload.settings, payload.resume_data, payload.diagnosis_result)
    except (LlmError, ResponseParseError) as exc:
        raise upstream_http_error(exc, feature="mock-interview-start") from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=MSG_SETTINGS_MISSING) from exc


@router.post("/next")
def next_(payload: MockNextIn, client_ip: str = Depends(get_client_ip), kv: KvStore = Depends(get_kv)):
    ensure_llm_configured("anthropic")
    mock_next_rate_limiter.check(client_ip)
    if not payload.session_id or payload.current_question_index is None:
        raise HTTPException(status_code=400, detail=MSG_PARAMS_MISSING)
    try:
        return next_question(kv, payload.session_id, payload.current_question_index)
    except SessionNotFound as exc:
        raise HTTPException(status_code=404, detail=MSG_SESSION_NOT_FOUND) from exc


@router.post("/evaluate")
def evaluate(payload: MockEvaluateIn, client_ip: str = Depends(get_client_ip), kv: KvStore = Depends(get_kv)):
    ensure_llm_configured("anthropic")
    mock_evaluate_rate_limiter.check(client_ip)
    if not payload.session_id or payload.question_index is None or not payload.question or not payload.answer:
        raise HTTPException(status_code=400, detail=MSG_PARAMS_MISSING)
    try:
        return evaluate_answer(
            kv,
            payload.session_id,
            payload.question_index,
            payload.question,
            payload.answer,
            payload.answer_duration,
        )
    except SessionNotFound as exc:
        raise HTTPException(status_code=404, detail=MSG_SESSION_NOT_FOUND) from exc
    except (LlmError, ResponseParseError) as exc:
        raise upstream_http_error(exc, feature="mock-interview-evaluate") from exc


@router.post("/summary")
def summary(payload: MockSummaryIn, client_ip: str = Depends(get_client_ip), kv: KvStore = Depends(get_kv)):
    ensure_llm_configured("openai")
    mock_summary_rate_limiter.check(client_ip)
    if not payload.session_id:
        raise HTTPException(status_code=400, detail=MSG_SESSION_ID_MISSING)
    try:
        return summarize(kv, payload.session_id)
    except SessionNotFound as exc:
        raise HTTPException(status_code=404, detail=MSG_SESSION_NOT_FOUND) from exc
    except (LlmError, ResponseParseError) as exc:
        raise upstream_http_error(exc, feature="mock-interview-summary") from exc


@router.get("/summary")
def shared_session(id: str | None = Query(default=None), kv: KvStore = Depends(get_kv)):
    if not id:
        raise HTTPException(status_code=400, detail=MSG_ID_MISSING)
    try:
        return get_session(kv, id)
    except SessionNotFound as exc:
        raise HTTPException(status_code=404, detail=MSG_LINK_EXPIRED) from exc
    except KvError as exc:
        raise HTTPException(status_code=500, detail=MSG_STORE_READ_FAILED) from exc
