from fastapi import APIRouter
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from career_ai.core.database import engine
from career_ai.services.llm import SUPPORTED_LLM_PROVIDERS, get_model, llm_is_configured

router = APIRouter(prefix="/meta")


@router.get("/health")
def health_meta():
    db_ok = False
    db_error = None
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        db_ok = True
    except SQLAlchemyError as exc:
        db_error = str(exc)
    return {
        "ok": db_ok,
        "database": {"ok": db_ok, "error": db_error},
        "ai": {
            provider: {"enabled": llm_is_configured(provider), "model": get_model(provider)}
            for provider in sorted(SUPPORTED_LLM_PROVIDERS)
        },
    }
