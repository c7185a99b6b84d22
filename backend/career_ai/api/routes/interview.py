from fastapi import APIRouter, Depends, HTTPException

from career_ai.api.deps import get_client_ip
from career_ai.api.errors import ensure_llm_configured, upstream_http_error
from career_ai.core.extract import ResponseParseError
from career_ai.core.ratelimit import interview_rate_limiter
from career_ai.schemas.api import InterviewIn
from career_ai.services.interview import generate_questions, review_answers
from career_ai.services.llm import LlmError

router = APIRouter()

MSG_ANSWERS_MISSING = "回答データがありません。"
MSG_INVALID_ACTION = "不正なactionです。"


@router.post("/interview")
def interview(payload: InterviewIn, client_ip: str = Depends(get_client_ip)):
    ensure_llm_configured("anthropic")
    interview_rate_limiter.check(client_ip)

    try:
        if payload.action == "generate":
            return generate_questions(payload.career_path, payload.career_detail, payload.user_profile)
        if payload.action == "review":
            if not payload.questions:
                raise HTTPException(status_code=400, detail=MSG_ANSWERS_MISSING)
            qa_pairs = [qa.model_dump() for qa in payload.questions]
            return review_answers(payload.career_path, qa_pairs)
    except (LlmError, ResponseParseError) as exc:
        raise upstream_http_error(exc, feature=f"interview-{payload.action}") from exc
    raise HTTPException(status_code=400, detail=MSG_INVALID_ACTION)
