import logging

from fastapi import APIRouter, Depends, HTTPException, Query

from career_ai.api.deps import get_kv, require_admin_session
from career_ai.api.errors import MSG_DIAGNOSIS_NOT_FOUND, MSG_STORE_READ_FAILED
from career_ai.core.kv import KvError, KvStore
from career_ai.services.diagnosis import DiagnosisNotFound, delete_diagnosis, get_diagnosis, list_diagnoses

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", dependencies=[Depends(require_admin_session)])

MSG_LIST_FAILED = "診断一覧の取得に失敗しました。"
MSG_DELETE_FAILED = "診断データの削除に失敗しました。"
MSG_ID_MISSING = "IDが指定されていません。"


def _page_number(raw: str | None) -> int:
    try:
        return max(1, int(raw or 1))
    except ValueError:
        return 1


@router.get("/diagnoses")
def admin_diagnoses(
    id: str | None = Query(default=None),
    page: str | None = Query(default=None),
    search: str | None = Query(default=None),
    kv: KvStore = Depends(get_kv),
):
    if id:
        try:
            return get_diagnosis(kv, id)
        except DiagnosisNotFound as exc:
            raise HTTPException(status_code=404, detail=MSG_DIAGNOSIS_NOT_FOUND) from exc
        except KvError as exc:
            logger.error("Diagnosis read failed: %s", exc)
            raise HTTPException(status_code=500, detail=MSG_STORE_READ_FAILED) from exc
    try:
        return list_diagnoses(kv, page=_page_number(page), search=search)
    except KvError as exc:
        logger.error("Diagnosis listing failed: %s", exc)
        raise HTTPException(status_code=500, detail=MSG_LIST_FAILED) from exc


@router.delete("/diagnoses")
def admin_delete_diagnosis(id: str | None = Query(default=None), kv: KvStore = Depends(get_kv)):
    if not id:
        raise HTTPException(status_code=400, detail=MSG_ID_MISSING)
    try:
        delete_diagnosis(kv, id)
    except DiagnosisNotFound as exc:
        raise HTTPException(status_code=404, detail=MSG_DIAGNOSIS_NOT_FOUND) from exc
    except KvError as exc:
        logger.error("Diagnosis delete failed: %s", exc)
        raise HTTPException(status_code=500, detail=MSG_DELETE_FAILED) from exc
    logger.info("Deleted diagnosis %s", id)
    return {"success": True}
