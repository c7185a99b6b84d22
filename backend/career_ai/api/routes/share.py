import logging
from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException, Query

from career_ai.api.deps import get_client_ip, get_kv
from career_ai.api.errors import MSG_LINK_EXPIRED, MSG_PAYLOAD_TOO_LARGE, MSG_STORE_READ_FAILED
from career_ai.core.kv import KvError, KvStore
from career_ai.core.ratelimit import (
    profile_share_rate_limiter,
    share_interview_rate_limiter,
    share_rate_limiter,
)
from career_ai.services.sharing import (
    MSG_SHARE_ID_UNKNOWN,
    PayloadTooLarge,
    ShareNotFound,
    create_interview_share,
    create_result_share,
    get_interview_share,
    get_profile_share,
    get_result_share,
    save_profile_share,
    update_interview_share,
)

logger = logging.getLogger(__name__)

router = APIRouter()

MSG_SHARE_ID_MISSING = "共有IDが指定されていません。"
MSG_ID_MISSING = "IDが指定されていません。"
MSG_SHARE_CREATE_FAILED = "共有リンクの作成に失敗しました。しばらく後にお試しください。"
MSG_SHARE_UPDATE_FAILED = "共有データの更新に失敗しました。しばらく後にお試しください。"
MSG_SHARE_READ_FAILED = "共有データの取得に失敗しました。"
MSG_PROFILE_CREATE_FAILED = "プロフィール共有の作成に失敗しました。"


def _write(fn, kv: KvStore, body: dict[str, Any], *, failure_message: str):
    try:
        return fn(kv, body)
    except PayloadTooLarge as exc:
        logger.info("Rejected share payload: %s", exc)
        raise HTTPException(status_code=413, detail=MSG_PAYLOAD_TOO_LARGE) from exc
    except ShareNotFound as exc:
        raise HTTPException(status_code=404, detail=MSG_SHARE_ID_UNKNOWN) from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except KvError as exc:
        logger.error("Share write failed: %s", exc)
        raise HTTPException(status_code=500, detail=failure_message) from exc


def _read(fn, kv: KvStore, share_id: str | None, *, missing_message: str, failure_message: str):
    if not share_id:
        raise HTTPException(status_code=400, detail=missing_message)
    try:
        return fn(kv, share_id)
    except ShareNotFound as exc:
        raise HTTPException(status_code=404, detail=MSG_LINK_EXPIRED) from exc
    except KvError as exc:
        logger.error("Share read failed: %s", exc)
        raise HTTPException(status_code=500, detail=failure_message) from exc


@router.post("/share")
def create_share(
    body: dict[str, Any] = Body(...),
    client_ip: str = Depends(get_client_ip),
    kv: KvStore = Depends(get_kv),
):
    share_rate_limiter.check(client_ip)
    share_id = _write(create_result_share, kv, body, failure_message=MSG_SHARE_CREATE_FAILED)
    return {"shareId": share_id}


@router.get("/share")
def read_share(id: str | None = Query(default=None), kv: KvStore = Depends(get_kv)):
    return _read(
        get_result_share,
        kv,
        id,
        missing_message=MSG_SHARE_ID_MISSING,
        failure_message=MSG_SHARE_READ_FAILED,
    )


@router.post("/share-interview")
def create_interview_questions_share(
    body: dict[str, Any] = Body(...),
    client_ip: str = Depends(get_client_ip),
    kv: KvStore = Depends(get_kv),
):
    share_interview_rate_limiter.check(client_ip)
    share_id = _write(create_interview_share, kv, body, failure_message=MSG_SHARE_CREATE_FAILED)
    return {"shareId": share_id}


@router.put("/share-interview")
def update_interview_questions_share(
    body: dict[str, Any] = Body(...),
    client_ip: str = Depends(get_client_ip),
    kv: KvStore = Depends(get_kv),
):
    share_interview_rate_limiter.check(client_ip)
    share_id = _write(update_interview_share, kv, body, failure_message=MSG_SHARE_UPDATE_FAILED)
    return {"shareId": share_id}


@router.get("/share-interview")
def read_interview_questions_share(id: str | None = Query(default=None), kv: KvStore = Depends(get_kv)):
    return _read(
        get_interview_share,
        kv,
        id,
        missing_message=MSG_SHARE_ID_MISSING,
        failure_message=MSG_SHARE_READ_FAILED,
    )


@router.post("/profile/share")
def create_profile_share(
    body: dict[str, Any] = Body(...),
    client_ip: str = Depends(get_client_ip),
    kv: KvStore = Depends(get_kv),
):
    profile_share_rate_limiter.check(client_ip)
    return _write(save_profile_share, kv, body, failure_message=MSG_PROFILE_CREATE_FAILED)


@router.get("/profile/share")
def read_profile_share(id: str | None = Query(default=None), kv: KvStore = Depends(get_kv)):
    return _read(
        get_profile_share,
        kv,
        id,
        missing_message=MSG_ID_MISSING,
        failure_message=MSG_STORE_READ_FAILED,
    )
