from __future__ import annotations

import json
import logging
from typing import Any

from career_ai.core.config import settings
from career_ai.core.ids import generate_id
from career_ai.core.kv import KvStore

logger = logging.getLogger(__name__)

RESULT_SHARE_PREFIX = "career-ai:share:"
INTERVIEW_SHARE_PREFIX = "career-ai:interview:"
PROFILE_SHARE_PREFIX = "career-ai:profile:"

RESULT_SHARE_TTL_SECONDS = 60 * 60 * 24 * 30
INTERVIEW_SHARE_TTL_SECONDS = 60 * 60 * 24 * 90
PROFILE_SHARE_TTL_SECONDS = 60 * 60 * 24 * 90

SHARE_PAYLOAD_LIMIT = 500_000
PROFILE_PAYLOAD_LIMIT = 1_000_000

PROFILE_FIELDS = (
    "basicInfo",
    "resumeData",
    "generatedResume",
    "generatedCV",
    "diagnosisShareId",
    "interviewShareId",
)

MSG_RESULT_MISSING = "共有する結果データがありません。"
MSG_SHARE_DATA_MISSING = "共有するデータが不足しています。"
MSG_SHARE_ID_UNKNOWN = "指定された共有IDが見つかりません。"


class ShareNotFound(LookupError):
    pass


class PayloadTooLarge(ValueError):
    def __init__(self, size: int, limit: int):
        super().__init__(f"payload of {size} characters exceeds {limit}")
        self.size = size
        self.limit = limit


def payload_size(body: Any) -> int:
    """Character length of the body serialized as JSON."""
    return len(json.dumps(body, ensure_ascii=False, separators=(",", ":")))


def ensure_payload_size(body: Any, limit: int) -> None:
    size = payload_size(body)
    if size > limit:
        raise PayloadTooLarge(size, limit)


def _load(kv: KvStore, key: str) -> dict[str, Any]:
    data = kv.get_json(key)
    if data is None:
        raise ShareNotFound(key)
    return data


def create_result_share(kv: KvStore, body: dict[str, Any]) -> str:
    if not body.get("analysisResult"):
        raise ValueError(MSG_RESULT_MISSING)
    ensure_payload_size(body, SHARE_PAYLOAD_LIMIT)

    share_id = generate_id()
    kv.set_json(
        f"{RESULT_SHARE_PREFIX}{share_id}",
        {
            "analysisResult": body["analysisResult"],
            "diagnosisData": body.get("diagnosisData"),
            "diagnosisId": body.get("diagnosisId"),
            "createdAt": kv.now_ms(),
        },
        RESULT_SHARE_TTL_SECONDS,
    )
    return share_id


def get_result_share(kv: KvStore, share_id: str) -> dict[str, Any]:
    data = _load(kv, f"{RESULT_SHARE_PREFIX}{share_id}")
    return {
        "analysisResult": data.get("analysisResult"),
        "diagnosisData": data.get("diagnosisData"),
        "diagnosisId": data.get("diagnosisId"),
    }


def _validate_interview_share(body: dict[str, Any]) -> None:
    if not body.get("careerTitle") or not body.get("questions"):
        raise ValueError(MSG_SHARE_DATA_MISSING)
    ensure_payload_size(body, SHARE_PAYLOAD_LIMIT)


def _interview_record(kv: KvStore, body: dict[str, Any]) -> dict[str, Any]:
    return {
        "careerTitle": body["careerTitle"],
        "questions": body["questions"],
        "createdAt": kv.now_ms(),
    }


def create_interview_share(kv: KvStore, body: dict[str, Any]) -> str:
    _validate_interview_share(body)
    share_id = generate_id()
    kv.set_json(
        f"{INTERVIEW_SHARE_PREFIX}{share_id}",
        _interview_record(kv, body),
        INTERVIEW_SHARE_TTL_SECONDS,
    )
    return share_id


def update_interview_share(kv: KvStore, body: dict[str, Any]) -> str:
    share_id = body.get("shareId")
    if not share_id:
        raise ValueError(MSG_SHARE_DATA_MISSING)
    _validate_interview_share(body)

    key = f"{INTERVIEW_SHARE_PREFIX}{share_id}"
    if not kv.exists(key):
        raise ShareNotFound(share_id)
    kv.set_json(key, _interview_record(kv, body), INTERVIEW_SHARE_TTL_SECONDS)
    return share_id


def get_interview_share(kv: KvStore, share_id: str) -> dict[str, Any]:
    data = _load(kv, f"{INTERVIEW_SHARE_PREFIX}{share_id}")
    return {"careerTitle": data.get("careerTitle"), "questions": data.get("questions")}


def save_profile_share(kv: KvStore, body: dict[str, Any]) -> dict[str, str]:
    """Create a profile share, or refresh one while keeping its ``createdAt``."""
    ensure_payload_size(body, PROFILE_PAYLOAD_LIMIT)

    existing_id = body.get("shareId")
    share_id = existing_id or generate_id()
    key = f"{PROFILE_SHARE_PREFIX}{share_id}"
    now = kv.now_iso()

    created_at = now
    if existing_id:
        previous = kv.get_json(key)
        if isinstance(previous, dict) and previous.get("createdAt"):
            created_at = previous["createdAt"]

    data = {field: body.get(field) or None for field in PROFILE_FIELDS}
    data["createdAt"] = created_at
    data["updatedAt"] = now
    kv.set_json(key, data, PROFILE_SHARE_TTL_SECONDS)

    base_url = settings.public_app_base_url.rstrip("/")
    return {"shareId": share_id, "shareUrl": f"{base_url}/profile/share/{share_id}"}


def get_profile_share(kv: KvStore, share_id: str) -> dict[str, Any]:
    return _load(kv, f"{PROFILE_SHARE_PREFIX}{share_id}")
