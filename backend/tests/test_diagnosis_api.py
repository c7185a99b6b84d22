import json
from pathlib import Path
import sys

import pytest

sys.path.append(str(Path(__file__).resolve().parents[1]))

from career_ai.core.config import settings
from career_ai.services import diagnosis
from career_ai.services.auth import create_session_token
from career_ai.services.llm import LlmError

QUESTIONNAIRE = {
    "ageRange": "20代後半",
    "employmentStatus": "正社員",
    "jobType": "営業",
    "concerns": ["年収"],
    "values": ["成長"],
}

ANALYSIS = {
    "career_paths": [{"title": "法人営業", "match_score": 82}],
    "skill_analysis": {"current_skills": {"交渉": 7}, "target_skills": {"交渉": 9}},
    "overall_advice": "いまの強みを生かしましょう。",
}


@pytest.fixture
def fake_model(monkeypatch):
    calls = []

    def _fake(system_prompt, user_content, **kwargs):
        calls.append({"system": system_prompt, "user": user_content, **kwargs})
        return "```json\n" + json.dumps(ANALYSIS, ensure_ascii=False) + "\n```"

    monkeypatch.setattr(diagnosis, "call_llm", _fake)
    return calls


@pytest.fixture
def admin_cookie(client):
    client.cookies.set(settings.session_cookie_name, create_session_token("admin"))
    return client


def test_analyze_stores_record_and_index(client, kv, llm_keys, fake_model):
    response = client.post("/api/analyze", json={"diagnosisData": QUESTIONNAIRE})
    assert response.status_code == 200
    body = response.json()
    diagnosis_id = body["diagnosisId"]
    assert len(diagnosis_id) == 12
    assert body["overall_advice"] == ANALYSIS["overall_advice"]

    stored = kv.get_json(f"career-ai:diagnosis:{diagnosis_id}")
    assert stored["diagnosisData"] == QUESTIONNAIRE
    assert stored["analysisResult"] == ANALYSIS
    assert kv.ttl(f"career-ai:diagnosis:{diagnosis_id}") == diagnosis.DIAGNOSIS_TTL_SECONDS

    entry = json.loads(kv.lrange(diagnosis.DIAGNOSIS_INDEX_KEY, 0, 0)[0])
    assert entry["id"] == diagnosis_id
    assert entry["jobType"] == "営業"
    assert "年齢層: 20代後半" in fake_model[0]["user"]
    assert fake_model[0]["provider"] == "anthropic"


def test_analyze_accepts_bare_questionnaire(client, llm_keys, fake_model):
    response = client.post("/api/analyze", json=QUESTIONNAIRE)
    assert response.status_code == 200
    assert "diagnosisId" in response.json()


def test_analyze_without_key_is_misconfigured(client, monkeypatch):
    monkeypatch.setattr(settings, "anthropic_api_key", None)
    response = client.post("/api/analyze", json=QUESTIONNAIRE)
    assert response.status_code == 500
    assert "設定" in response.json()["error"]


def test_analyze_rate_limit_after_three_calls(client, llm_keys, fake_model):
    for _ in range(3):
        assert client.post("/api/analyze", json=QUESTIONNAIRE).status_code == 200
    blocked = client.post("/api/analyze", json=QUESTIONNAIRE)
    assert blocked.status_code == 429
    assert blocked.json()["error"] == "リクエスト回数の上限に達しました。1分後に再度お試しください。"
    assert blocked.json()["retry_after_seconds"] >= 1


def test_analyze_malformed_json_body_is_400(client, llm_keys):
    response = client.post("/api/analyze", content="{not json", headers={"Content-Type": "application/json"})
    assert response.status_code == 400
    assert response.json() == {"error": "リクエストの形式が正しくありません。"}


def test_analyze_unparseable_model_output_is_502(client, llm_keys, monkeypatch):
    monkeypatch.setattr(diagnosis, "call_llm", lambda *a, **k: "I cannot help with that.")
    response = client.post("/api/analyze", json=QUESTIONNAIRE)
    assert response.status_code == 502


@pytest.mark.parametrize("status,expected", [(429, 429), (401, 401), (500, 502)])
def test_analyze_upstream_errors_map_to_status(client, llm_keys, monkeypatch, status, expected):
    def _boom(*args, **kwargs):
        raise LlmError("upstream", status_code=status)

    monkeypatch.setattr(diagnosis, "call_llm", _boom)
    response = client.post("/api/analyze", json=QUESTIONNAIRE)
    assert response.status_code == expected
    assert "error" in response.json()


def test_record_expires_after_ttl(client, kv, clock, llm_keys, fake_model):
    diagnosis_id = client.post("/api/analyze", json=QUESTIONNAIRE).json()["diagnosisId"]
    clock.advance(days=90, seconds=1)
    assert kv.get(f"career-ai:diagnosis:{diagnosis_id}") is None


def test_self_analysis_updates_record_and_index_name(client, kv, llm_keys, fake_model):
    diagnosis_id = client.post("/api/analyze", json=QUESTIONNAIRE).json()["diagnosisId"]
    response = client.post(
        "/api/self-analysis",
        json={"diagnosisId": diagnosis_id, "answers": {"name": "山田太郎", "hobby": "釣り"}},
    )
    assert response.status_code == 200
    stored = kv.get_json(f"career-ai:diagnosis:{diagnosis_id}")
    assert stored["selfAnalysis"]["hobby"] == "釣り"
    assert "selfAnalysisAt" in stored
    entry = json.loads(kv.lrange(diagnosis.DIAGNOSIS_INDEX_KEY, 0, 0)[0])
    assert entry["name"] == "山田太郎"


def test_self_analysis_validation(client):
    assert client.post("/api/self-analysis", json={"answers": {"a": 1}}).status_code == 400
    assert client.post("/api/self-analysis", json={"diagnosisId": "x"}).status_code == 400
    missing = client.post("/api/self-analysis", json={"diagnosisId": "nope", "answers": {"a": 1}})
    assert missing.status_code == 404


def test_admin_routes_require_session(client):
    assert client.get("/api/admin/diagnoses").status_code == 401
    client.cookies.set(settings.session_cookie_name, "forged.token")
    response = client.get("/api/admin/diagnoses")
    assert response.status_code == 401
    assert response.json()["error"] == "セッションが無効です。"
    assert client.post("/api/analyze-agent", json={"diagnosisId": "x"}).status_code == 401


def test_admin_listing_prunes_expired_entries(admin_cookie, kv, clock, llm_keys, fake_model):
    client = admin_cookie
    old_id = client.post("/api/analyze", json=QUESTIONNAIRE).json()["diagnosisId"]
    kv.delete(f"career-ai:diagnosis:{old_id}")
    new_id = client.post("/api/analyze", json=QUESTIONNAIRE).json()["diagnosisId"]

    listing = client.get("/api/admin/diagnoses").json()
    assert [d["id"] for d in listing["diagnoses"]] == [new_id]
    assert listing["total"] == 1
    assert listing["pageSize"] == 20
    assert listing["totalPages"] == 1
    assert kv.llen(diagnosis.DIAGNOSIS_INDEX_KEY) == 1


def _seed_index(kv, live_count, stale_count):
    # Stale entries sit at the head of the index, as the oldest would after lpush.
    for n in range(stale_count):
        kv.rpush(diagnosis.DIAGNOSIS_INDEX_KEY, json.dumps({"id": f"stale{n}", "name": ""}))
    live_ids = [f"live{n}" for n in range(live_count)]
    for diagnosis_id in live_ids:
        kv.set_json(diagnosis.diagnosis_key(diagnosis_id), {"diagnosisData": QUESTIONNAIRE}, 3600)
        kv.rpush(diagnosis.DIAGNOSIS_INDEX_KEY, json.dumps({"id": diagnosis_id, "name": ""}))
    return live_ids


def test_listing_pages_keep_every_live_entry_after_pruning(kv):
    live_ids = _seed_index(kv, live_count=25, stale_count=5)

    first = diagnosis.list_diagnoses(kv, page=1)
    second = diagnosis.list_diagnoses(kv, page=2)

    assert len(first["diagnoses"]) == 20
    assert len(second["diagnoses"]) == 5
    assert first["total"] == second["total"] == 25
    assert first["totalPages"] == 2
    seen = [d["id"] for d in first["diagnoses"] + second["diagnoses"]]
    assert seen == live_ids
    assert kv.llen(diagnosis.DIAGNOSIS_INDEX_KEY) == 25


@pytest.mark.parametrize("raw_page", ["abc", "0", "-3", ""])
def test_admin_listing_bad_page_falls_back_to_first(admin_cookie, kv, raw_page):
    _seed_index(kv, live_count=3, stale_count=0)
    response = admin_cookie.get("/api/admin/diagnoses", params={"page": raw_page})
    assert response.status_code == 200
    assert response.json()["page"] == 1
    assert len(response.json()["diagnoses"]) == 3


def test_admin_search_and_detail_and_delete(admin_cookie, kv, llm_keys, fake_model):
    client = admin_cookie
    sales_id = client.post("/api/analyze", json=QUESTIONNAIRE).json()["diagnosisId"]
    client.post("/api/analyze", json={**QUESTIONNAIRE, "jobType": "エンジニア"})

    found = client.get("/api/admin/diagnoses", params={"search": "営業"}).json()
    assert [d["id"] for d in found["diagnoses"]] == [sales_id]

    detail = client.get("/api/admin/diagnoses", params={"id": sales_id})
    assert detail.json()["diagnosisData"]["jobType"] == "営業"

    assert client.delete("/api/admin/diagnoses", params={"id": sales_id}).status_code == 200
    assert client.get("/api/admin/diagnoses", params={"id": sales_id}).status_code == 404
    assert client.delete("/api/admin/diagnoses", params={"id": sales_id}).status_code == 404
    assert kv.llen(diagnosis.DIAGNOSIS_INDEX_KEY) == 1


def test_agent_analysis_is_cached(admin_cookie, kv, llm_keys, fake_model):
    client = admin_cookie
    diagnosis_id = client.post("/api/analyze", json=QUESTIONNAIRE).json()["diagnosisId"]
    first = client.post("/api/analyze-agent", json={"diagnosisId": diagnosis_id})
    second = client.post("/api/analyze-agent", json={"diagnosisId": diagnosis_id})
    assert first.status_code == 200
    assert first.json() == second.json()
    # one call for analyze, one for the agent report
    assert len(fake_model) == 2
    assert fake_model[1]["provider"] == "openai"
    assert kv.get_json(f"career-ai:diagnosis:{diagnosis_id}")["agentAnalysis"] == ANALYSIS


def test_detailed_plan_requires_self_analysis(admin_cookie, llm_keys, fake_model):
    client = admin_cookie
    diagnosis_id = client.post("/api/analyze", json=QUESTIONNAIRE).json()["diagnosisId"]
    response = client.post("/api/analyze-detailed", json={"diagnosisId": diagnosis_id})
    assert response.status_code == 400
