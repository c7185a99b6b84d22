import logging
from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException

from career_ai.api.deps import get_client_ip, get_kv, require_admin_session
from career_ai.api.errors import (
    MSG_BAD_REQUEST,
    MSG_DIAGNOSIS_NOT_FOUND,
    MSG_STORE_WRITE_FAILED,
    ensure_llm_configured,
    upstream_http_error,
)
from career_ai.core.extract import ResponseParseError
from career_ai.core.kv import KvError, KvStore
from career_ai.core.ratelimit import analyze_rate_limiter
from career_ai.schemas.api import DiagnosisIdIn, SelfAnalysisIn
from career_ai.services.diagnosis import (
    DiagnosisNotFound,
    analyze,
    generate_agent_analysis,
    generate_detailed_plan,
    save_self_analysis,
)
from career_ai.services.llm import LlmError

logger = logging.getLogger(__name__)

router = APIRouter()

MSG_DIAGNOSIS_ID_MISSING = "診断IDが指定されていません。"
MSG_ANSWERS_MISSING = "回答データがありません。"
MSG_SELF_ANALYSIS_MISSING = "自己分析データがありません。先に自己分析を完了してください。"


@router.post("/analyze")
def analyze_diagnosis(
    body: dict[str, Any] = Body(...),
    client_ip: str = Depends(get_client_ip),
    kv: KvStore = Depends(get_kv),
):
    ensure_llm_configured("anthropic")
    analyze_rate_limiter.check(client_ip)

    diagnosis_data = body.get("diagnosisData", body)
    if not isinstance(diagnosis_data, dict) or not diagnosis_data:
        raise HTTPException(status_code=400, detail=MSG_BAD_REQUEST)

    try:
        diagnosis_id, result = analyze(kv, diagnosis_data)
    except (LlmError, ResponseParseError) as exc:
        raise upstream_http_error(exc, feature="analyze") from exc
    except KvError as exc:
        logger.error("Could not store diagnosis: %s", exc)
        raise HTTPException(status_code=500, detail=MSG_STORE_WRITE_FAILED) from exc
    return {"diagnosisId": diagnosis_id, **result}


@router.post("/self-analysis")
def self_analysis(payload: SelfAnalysisIn, kv: KvStore = Depends(get_kv)):
    if not payload.diagnosis_id:
        raise HTTPException(status_code=400, detail=MSG_DIAGNOSIS_ID_MISSING)
    if not payload.answers:
        raise HTTPException(status_code=400, detail=MSG_ANSWERS_MISSING)
    try:
        save_self_analysis(kv, payload.diagnosis_id, payload.answers)
    except DiagnosisNotFound as exc:
        raise HTTPException(status_code=404, detail=MSG_DIAGNOSIS_NOT_FOUND) from exc
    except KvError as exc:
        raise HTTPException(status_code=500, detail=MSG_STORE_WRITE_FAILED) from exc
    return {"success": True}


@router.post("/analyze-agent")
def analyze_agent(
    payload: DiagnosisIdIn,
    _: str = Depends(require_admin_session),
    kv: KvStore = Depends(get_kv),
):
    if not payload.diagnosis_id:
        raise HTTPException(status_code=400, detail=MSG_DIAGNOSIS_ID_MISSING)
    try:
        return generate_agent_analysis(kv, payload.diagnosis_id)
    except DiagnosisNotFound as exc:
        raise HTTPException(status_code=404, detail=MSG_DIAGNOSIS_NOT_FOUND) from exc
    except (LlmError, ResponseParseError) as exc:
        raise upstream_http_error(exc, feature="analyze-agent") from exc


@router.post("/analyze-detailed")
def analyze_detailed(
    payload: DiagnosisIdIn,
    _: str = Depends(require_admin_session),
    kv: KvStore = Depends(get_kv),
):
    if not payload.diagnosis_id:
        raise HTTPException(status_code=400, detail=MSG_DIAGNOSIS_ID_MISSING)
    try:
        return generate_detailed_plan(kv, payload.diagnosis_id)
    except DiagnosisNotFound as exc:
        raise HTTPException(status_code=404, detail=MSG_DIAGNOSIS_NOT_FOUND) from exc
    except (LlmError, ResponseParseError) as exc:
        raise upstream_http_error(exc, feature="analyze-detailed") from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=MSG_SELF_ANALYSIS_MISSING) from exc
