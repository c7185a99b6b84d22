import logging
from urllib.parse import quote

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import Response
from fpdf.errors import FPDFException

from career_ai.api.deps import get_client_ip, get_kv
from career_ai.api.errors import ensure_llm_configured, upstream_http_error
from career_ai.core.extract import ResponseParseError
from career_ai.core.kv import KvStore
from career_ai.core.ratelimit import resume_rate_limiter
from career_ai.schemas.api import ResumeDownloadIn, ResumeGenerateIn
from career_ai.services.llm import LlmError
from career_ai.services.resume import generate_documents, generate_pr
from career_ai.services.resume_pdf import render_document

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/resume")

MSG_UNKNOWN_ACTION = "不明なアクションです。"
MSG_FORM_MISSING = "入力データがありません。"
MSG_PDF_FAILED = "PDF生成に失敗しました。"


@router.post("/generate")
def generate(payload: ResumeGenerateIn, client_ip: str = Depends(get_client_ip), kv: KvStore = Depends(get_kv)):
    ensure_llm_configured("openai")
    resume_rate_limiter.check(client_ip)
    if payload.action not in ("generate-pr", "generate-document"):
        raise HTTPException(status_code=400, detail=MSG_UNKNOWN_ACTION)
    if not payload.form_data:
        raise HTTPException(status_code=400, detail=MSG_FORM_MISSING)

    try:
        if payload.action == "generate-pr":
            return generate_pr(payload.form_data, payload.field or "selfPR", payload.diagnosis_data)
        return generate_documents(
            kv,
            payload.type or "both",
            payload.form_data,
            payload.diagnosis_data,
            client_ip,
        )
    except (LlmError, ResponseParseError) as exc:
        raise upstream_http_error(exc, feature=f"resume-{payload.action}") from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=MSG_UNKNOWN_ACTION) from exc


@router.post("/download")
def download(payload: ResumeDownloadIn):
    data = payload.generated_cv if payload.doc_type == "cv" else payload.generated_resume
    try:
        content, filename = render_document(payload.doc_type, data)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except FPDFException as exc:
        logger.exception("PDF generation failed")
        raise HTTPException(status_code=500, detail=MSG_PDF_FAILED) from exc
    return Response(
        content=content,
        media_type="application/pdf",
        headers={"Content-Disposition": f"attachment; filename*=UTF-8''{quote(filename)}"},
    )
