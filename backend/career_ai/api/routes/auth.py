import logging

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse

from career_ai.api.deps import get_client_ip
from career_ai.api.errors import MSG_MISCONFIGURED
from career_ai.core.config import settings
from career_ai.core.ratelimit import login_rate_limiter
from career_ai.schemas.api import LoginIn
from career_ai.services.auth import AdminNotConfigured, check_credentials, create_session_token

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth")

MSG_BAD_CREDENTIALS = "ユーザー名またはパスワードが正しくありません。"


@router.post("/login")
def login(payload: LoginIn, client_ip: str = Depends(get_client_ip)):
    login_rate_limiter.check(client_ip)
    try:
        valid = check_credentials(payload.username, payload.password)
    except AdminNotConfigured as exc:
        logger.error("Admin login attempted without credentials configured")
        raise HTTPException(status_code=500, detail=MSG_MISCONFIGURED) from exc
    if not valid:
        logger.warning("Failed admin login from %s", client_ip)
        raise HTTPException(status_code=401, detail=MSG_BAD_CREDENTIALS)

    response = JSONResponse({"success": True})
    response.set_cookie(
        settings.session_cookie_name,
        create_session_token(payload.username or ""),
        max_age=settings.session_ttl_seconds,
        httponly=True,
        secure=settings.session_cookie_secure,
        samesite="lax",
        path="/",
    )
    return response


@router.post("/logout")
def logout():
    response = JSONResponse({"success": True})
    response.delete_cookie(settings.session_cookie_name, path="/")
    return response
