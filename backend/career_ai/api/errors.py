import logging

from fastapi import HTTPException

from career_ai.core.extract import ResponseParseError
from career_ai.services.llm import LlmError, LlmNotConfigured, llm_is_configured

logger = logging.getLogger(__name__)

MSG_BAD_REQUEST = "リクエストの形式が正しくありません。"
MSG_MISCONFIGURED = "サーバーの設定に問題があります。管理者にお問い合わせください。"
MSG_EMPTY_RESPONSE = "AIからの応答が空でした。再度お試しください。"
MSG_PARSE_FAILED = "AIの応答を処理できませんでした。再度お試しください。"
MSG_UPSTREAM_RATE_LIMITED = "APIのレート制限に達しました。しばらく待ってから再度お試しください。"
MSG_UPSTREAM_UNAUTHORIZED = "APIキーが無効です。正しいAPIキーを設定してください。"
MSG_UPSTREAM_FAILED = "API呼び出しに失敗しました。しばらく後にお試しください。"
MSG_UNEXPECTED = "予期しないエラーが発生しました。"
MSG_PAYLOAD_TOO_LARGE = "データサイズが大きすぎます。"
MSG_LINK_EXPIRED = "このリンクは期限切れか、存在しません。"
MSG_DIAGNOSIS_NOT_FOUND = "診断データが見つかりません。"
MSG_SESSION_NOT_FOUND = "セッションが見つかりません。"
MSG_STORE_READ_FAILED = "データの取得に失敗しました。"
MSG_STORE_WRITE_FAILED = "データの保存に失敗しました。"


def upstream_http_error(exc: Exception, *, feature: str) -> HTTPException:
    """Translate a language-model or parse failure into the user-facing error."""
    if isinstance(exc, ResponseParseError):
        return HTTPException(status_code=502, detail=MSG_PARSE_FAILED)
    if isinstance(exc, LlmNotConfigured):
        logger.error("%s: LLM not configured: %s", feature, exc)
        return HTTPException(status_code=500, detail=MSG_MISCONFIGURED)
    if isinstance(exc, LlmError):
        logger.error("%s: LLM call failed: %s", feature, exc)
        if exc.status_code == 429:
            return HTTPException(status_code=429, detail=MSG_UPSTREAM_RATE_LIMITED)
        if exc.status_code == 401:
            return HTTPException(status_code=401, detail=MSG_UPSTREAM_UNAUTHORIZED)
        if exc.status_code == 502:
            return HTTPException(status_code=502, detail=MSG_EMPTY_RESPONSE)
        return HTTPException(status_code=502, detail=MSG_UPSTREAM_FAILED)
    logger.exception("%s: unexpected failure", feature)
    return HTTPException(status_code=500, detail=MSG_UNEXPECTED)


def ensure_llm_configured(provider: str) -> None:
    if not llm_is_configured(provider):
        logger.error("%s credentials are not configured", provider)
        raise HTTPException(status_code=500, detail=MSG_MISCONFIGURED)
