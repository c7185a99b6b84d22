from fastapi import HTTPException, Request

from career_ai.core.config import settings
from career_ai.core.database import SessionLocal
from career_ai.core.kv import KvStore
from career_ai.services.auth import verify_session_token

MSG_AUTH_REQUIRED = "認証が必要です。"
MSG_SESSION_INVALID = "セッションが無効です。"

default_kv = KvStore(SessionLocal)


def get_kv() -> KvStore:
    return default_kv


def get_client_ip(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()
    if request.client and request.client.host:
        return request.client.host
    return "unknown"


def require_admin_session(request: Request) -> str:
    token = request.cookies.get(settings.session_cookie_name)
    if not token:
        raise HTTPException(status_code=401, detail=MSG_AUTH_REQUIRED)
    username = verify_session_token(token)
    if not username:
        raise HTTPException(status_code=401, detail=MSG_SESSION_INVALID)
    return username
