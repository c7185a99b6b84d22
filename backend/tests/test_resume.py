import json
from datetime import date
from pathlib import Path
import sys
from urllib.parse import unquote

import pytest

sys.path.append(str(Path(__file__).resolve().parents[1]))

from career_ai.services import resume
from career_ai.services.resume_pdf import render_cv_pdf, render_document, render_resume_pdf

FORM = {
    "basicInfo": {"lastName": "山田", "firstName": "太郎", "preferences": {"industry": "IT", "position": "PM"}},
    "education": [{"school": "東京大学", "startYear": "2012", "startMonth": "4", "status": "卒業"}],
    "workHistory": [
        {
            "company": "ABC商事",
            "position": "主任",
            "employmentType": "正社員",
            "startYear": "2016",
            "startMonth": "4",
            "isCurrent": True,
            "duties": "法人営業",
        }
    ],
    "noWorkHistory": False,
    "qualifications": [{"name": "TOEIC 800", "year": "2019", "month": "6"}],
    "skills": ["交渉", "Excel"],
    "languages": [{"language": "英語", "level": "ビジネス"}],
    "selfPR": "粘り強い",
    "motivation": "",
}

GENERATED_RESUME = {
    "personalInfo": {"name": "Taro Yamada", "nameKana": "ヤマダ タロウ", "birthdate": "1994-01-01", "age": 32},
    "education": [{"yearMonth": "2012/4", "detail": "University of Tokyo"}],
    "workHistory": [{"yearMonth": "2016/4", "detail": "ABC Trading"}],
    "qualifications": [],
    "selfPR": "Persistent and reliable.",
}
GENERATED_CV = {
    "summary": "Five years of B2B sales.",
    "workHistory": [{"company": "ABC Trading", "period": "2016-", "achievements": ["Top seller 2020"]}],
    "skills": {"technical": ["Excel"], "business": ["Negotiation"], "languages": []},
    "qualifications": ["TOEIC 800"],
}


def test_self_pr_prompt_lists_work_history():
    prompt = resume.build_pr_prompt(FORM, "selfPR", {"jobType": "営業", "industry": "商社"})
    assert "ABC商事（20164〜現在）主任" in prompt
    assert "【キャリア診断結果】職種: 営業 / 業界: 商社" in prompt
    assert '"selfPR"' in prompt


def test_motivation_prompt_includes_preferences():
    prompt = resume.build_pr_prompt(FORM, "motivation", None)
    assert "【希望業界】IT" in prompt
    assert "【希望職種】PM" in prompt


def test_generate_pr_rejects_unknown_field():
    with pytest.raises(ValueError):
        resume.generate_pr(FORM, "hobby")


def test_generate_document_stores_snapshot(client, kv, llm_keys, monkeypatch):
    calls = []

    def _fake(system_prompt, prompt, **kwargs):
        calls.append(system_prompt)
        return json.dumps(GENERATED_CV if system_prompt == resume.CV_SYSTEM_PROMPT else GENERATED_RESUME)

    monkeypatch.setattr(resume, "call_llm", _fake)
    response = client.post(
        "/api/resume/generate",
        json={"action": "generate-document", "type": "both", "formData": FORM},
        headers={"X-Forwarded-For": "203.0.113.7, 10.0.0.1"},
    )
    assert response.status_code == 200
    body = response.json()
    assert body["generatedResume"] == GENERATED_RESUME
    assert body["generatedCV"] == GENERATED_CV
    assert calls == [resume.RESUME_SYSTEM_PROMPT, resume.CV_SYSTEM_PROMPT]

    snapshot = kv.get_json("career-ai:resume:203.0.113.7")
    assert snapshot["type"] == "both"
    assert kv.ttl("career-ai:resume:203.0.113.7") == resume.RESUME_TTL_SECONDS


def test_generate_pr_route(client, llm_keys, monkeypatch):
    monkeypatch.setattr(resume, "call_llm", lambda *a, **k: '{"selfPR": "粘り強く成果を出します。"}')
    response = client.post(
        "/api/resume/generate",
        json={"action": "generate-pr", "field": "selfPR", "formData": FORM},
    )
    assert response.json() == {"selfPR": "粘り強く成果を出します。"}


def test_generate_unknown_action(client, llm_keys):
    response = client.post("/api/resume/generate", json={"action": "translate", "formData": FORM})
    assert response.status_code == 400


def test_render_pdfs_produce_pdf_bytes():
    for content in (render_resume_pdf(GENERATED_RESUME), render_cv_pdf(GENERATED_CV)):
        assert content.startswith(b"%PDF")


def test_render_with_japanese_text_on_core_font():
    data = {**GENERATED_RESUME, "selfPR": "日本語の自己PR"}
    assert render_resume_pdf(data, font_path="").startswith(b"%PDF")


def test_render_document_names_file_by_date():
    _, filename = render_document("cv", GENERATED_CV, today=date(2026, 3, 1))
    assert filename == "職務経歴書_20260301.pdf"
    _, filename = render_document("resume", GENERATED_RESUME, today=date(2026, 3, 1))
    assert filename == "履歴書_20260301.pdf"


def test_invalid_resume_data_rejected():
    with pytest.raises(ValueError):
        render_resume_pdf({"education": []})
    with pytest.raises(ValueError):
        render_cv_pdf({"summary": "no history"})


def test_download_route(client):
    response = client.post("/api/resume/download", json={"docType": "resume", "generatedResume": GENERATED_RESUME})
    assert response.status_code == 200
    assert response.headers["content-type"] == "application/pdf"
    disposition = unquote(response.headers["content-disposition"])
    assert "履歴書_" in disposition
    assert response.content.startswith(b"%PDF")

    bad = client.post("/api/resume/download", json={"docType": "cv", "generatedCV": {"summary": "x"}})
    assert bad.status_code == 400
    assert bad.json()["error"] == "職務経歴書データが不正です。"
