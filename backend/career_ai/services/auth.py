import base64
import hashlib
import hmac
import json
import time

from career_ai.core.config import settings


class AdminNotConfigured(RuntimeError):
    pass


def _b64url_encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).decode("utf-8").rstrip("=")


def _b64url_decode(raw: str) -> bytes:
    padding = "=" * ((4 - len(raw) % 4) % 4)
    return base64.urlsafe_b64decode(raw + padding)


def _sign(payload_b64: str) -> str:
    sig = hmac.new(
        settings.session_secret.encode("utf-8"),
        payload_b64.encode("utf-8"),
        hashlib.sha256,
    ).digest()
    return _b64url_encode(sig)


def check_credentials(username: str | None, password: str | None) -> bool:
    if not settings.admin_username or not settings.admin_password:
        raise AdminNotConfigured("ADMIN_USERNAME / ADMIN_PASSWORD are not set")
    user_ok = hmac.compare_digest((username or "").encode("utf-8"), settings.admin_username.encode("utf-8"))
    password_ok = hmac.compare_digest((password or "").encode("utf-8"), settings.admin_password.encode("utf-8"))
    return user_ok and password_ok


def create_session_token(username: str, *, now: float | None = None) -> str:
    issued = int(now if now is not None else time.time())
    payload = {"username": username, "exp": issued + settings.session_ttl_seconds}
    payload_raw = json.dumps(payload, separators=(",", ":"), sort_keys=True).encode("utf-8")
    payload_b64 = _b64url_encode(payload_raw)
    return f"{payload_b64}.{_sign(payload_b64)}"


def verify_session_token(token: str | None, *, now: float | None = None) -> str | None:
    """Return the username for a valid, unexpired token, else ``None``."""
    if not token:
        return None
    try:
        payload_b64, sig_b64 = token.split(".", 1)
    except ValueError:
        return None
    if not hmac.compare_digest(_sign(payload_b64), sig_b64):
        return None

    try:
        payload = json.loads(_b64url_decode(payload_b64).decode("utf-8"))
    except (ValueError, UnicodeDecodeError):
        return None
    if not isinstance(payload, dict):
        return None

    username = payload.get("username")
    exp = payload.get("exp")
    if not username or not isinstance(exp, int):
        return None
    if exp < int(now if now is not None else time.time()):
        return None
    return username
