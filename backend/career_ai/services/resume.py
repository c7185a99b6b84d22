from __future__ import annotations

import logging
from typing import Any

from career_ai.core.kv import KvError, KvStore
from career_ai.services.llm import call_llm, parse_model_json

logger = logging.getLogger(__name__)

RESUME_PREFIX = "career-ai:resume:"
RESUME_TTL_SECONDS = 60 * 60 * 24 * 90
DOCUMENT_TYPES = ("resume", "cv", "both")
PR_FIELDS = ("selfPR", "motivation")

RESUME_SYSTEM_PROMPT = """あなたは転職のプロフェッショナルです。
以下の情報をもとに、JIS規格に準拠した履歴書の内容を作成してください。

以下のJSON形式のみで出力してください:
{
  "personalInfo": {
    "name": "氏名",
    "nameKana": "フリガナ",
    "birthdate": "YYYY年M月D日",
    "age": 数値,
    "gender": "性別",
    "address": "住所",
    "phone": "電話番号",
    "email": "メール"
  },
  "education": [
    { "yearMonth": "YYYY年M月", "detail": "学校名 入学/卒業" }
  ],
  "workHistory": [
    { "yearMonth": "YYYY年M月", "detail": "会社名 入社/退職\\n部署に配属" }
  ],
  "qualifications": [
    { "yearMonth": "YYYY年M月", "detail": "資格名 取得" }
  ],
  "selfPR": "自己PR文"
}

ルール:
- 学歴は入学と卒業(中退)を別行にする
- 職歴は入社、配属、退職を適切に分ける
- 最後の職歴が在職中なら "現在に至る" を追加
- 自己PRはユーザー入力を丁寧に整える"""

CV_SYSTEM_PROMPT = """あなたは転職のプロフェッショナルです。
以下の情報をもとに、説得力のある職務経歴書の内容を作成してください。
ユーザーが入力した業務内容を、採用担当者に響く表現にブラッシュアップしてください。

以下のJSON形式のみで出力してください:
{
  "summary": "職務要約（3〜4行で経歴を要約）",
  "workHistory": [
    {
      "company": "会社名",
      "period": "YYYY年M月〜YYYY年M月（X年）",
      "department": "部署",
      "position": "役職",
      "employmentType": "雇用形態",
      "companyDescription": "事業内容の簡潔な説明",
      "responsibilities": "業務内容の詳細",
      "achievements": ["実績1", "実績2"]
    }
  ],
  "skills": {
    "technical": ["スキル1"],
    "business": ["スキル2"],
    "languages": ["語学"]
  },
  "qualifications": ["資格名（取得年）"],
  "selfPR": "ブラッシュアップした自己PR文",
  "motivation": "志望動機（あれば）"
}

ルール:
- 業務内容は具体的な数値や成果を含めてブラッシュアップ
- 実績は箇条書きで2〜5個
- スキルはtechnical/business/languagesに分類"""


def _period(work: dict[str, Any]) -> str:
    start = f"{work.get('startYear', '')}{work.get('startMonth', '')}"
    end = "現在" if work.get("isCurrent") else f"{work.get('endYear', '')}{work.get('endMonth', '')}"
    return f"{start}〜{end}"


def _skills(form: dict[str, Any]) -> str:
    return "、".join(str(s) for s in form.get("skills") or [])


def build_pr_prompt(form: dict[str, Any], field: str, diagnosis_data: dict[str, Any] | None) -> str:
    work_history = form.get("workHistory") or []
    if field == "selfPR":
        history = "\n\n".join(
            f"{w.get('company', '')}（{_period(w)}）{w.get('position') or ''}\n業務内容: {w.get('duties', '')}"
            for w in work_history
        )
        diagnosis = ""
        if diagnosis_data:
            diagnosis = (
                f"\n【キャリア診断結果】職種: {diagnosis_data.get('jobType') or ''}"
                f" / 業界: {diagnosis_data.get('industry') or ''}"
            )
        return (
            "あなたは転職のプロフェッショナルです。\n"
            "以下の情報をもとに、採用担当者に響く自己PR文を200〜400字程度で生成してください。\n"
            "具体的なエピソードや数値を盛り込み、日本のビジネス文書にふさわしい表現にしてください。\n\n"
            f"【職歴】\n{history}\n\n"
            f"【スキル】{_skills(form)}{diagnosis}\n\n"
            'JSON形式で出力: { "selfPR": "生成した自己PR文" }'
        )

    history = "\n".join(
        f"{w.get('company', '')}（{w.get('position') or ''}）: {w.get('duties', '')}" for w in work_history
    )
    preferences = (form.get("basicInfo") or {}).get("preferences") or {}
    lines = [
        "あなたは転職のプロフェッショナルです。",
        "以下の情報をもとに、説得力のある志望動機を200〜300字程度で生成してください。",
        "",
        f"【職歴】\n{history}",
        "",
        f"【スキル】{_skills(form)}",
    ]
    if preferences.get("industry"):
        lines.append(f"【希望業界】{preferences['industry']}")
    if preferences.get("position"):
        lines.append(f"【希望職種】{preferences['position']}")
    lines.extend(["", 'JSON形式で出力: { "motivation": "生成した志望動機文" }'])
    return "\n".join(lines)


def generate_pr(form: dict[str, Any], field: str = "selfPR", diagnosis_data: dict[str, Any] | None = None) -> Any:
    if field not in PR_FIELDS:
        raise ValueError(f"Unknown PR field '{field}'")
    text = call_llm(None, build_pr_prompt(form, field, diagnosis_data), provider="openai", max_tokens=2048)
    return parse_model_json(text, feature="resume-generate-pr")


def build_profile_summary(form: dict[str, Any], diagnosis_data: dict[str, Any] | None) -> str:
    basic = form.get("basicInfo") or {}
    education = "\n".join(
        f"  {e.get('startYear', '')}{e.get('startMonth', '')} {e.get('school', '')}"
        f"{' ' + e['faculty'] if e.get('faculty') else ''} ({e.get('status', '')})"
        for e in form.get("education") or []
        if e.get("school")
    )
    if form.get("noWorkHistory"):
        work = "職歴: なし"
    else:
        work = "職歴:\n" + "\n\n".join(
            f"  {w.get('company', '')}（{_period(w)}）\n"
            f"  部署: {w.get('department') or 'なし'} / 役職: {w.get('position') or 'なし'}"
            f" / {w.get('employmentType', '')}\n"
            f"  業務内容: {w.get('duties', '')}"
            for w in form.get("workHistory") or []
            if w.get("company")
        )
    qualifications = "、".join(
        f"{q.get('name')}（{q.get('year', '')}{q.get('month', '')}）"
        for q in form.get("qualifications") or []
        if q.get("name")
    )
    languages = "、".join(
        f"{lang.get('language')}（{lang.get('level', '')}）"
        for lang in form.get("languages") or []
        if lang.get("language")
    )
    parts = [
        f"基本情報: {basic.get('lastName', '')} {basic.get('firstName', '')}",
        f"学歴:\n{education}",
        work,
        f"資格: {qualifications or 'なし'}",
        f"スキル: {_skills(form) or 'なし'}",
        f"語学: {languages or 'なし'}",
        f"自己PR: {form.get('selfPR', '')}",
        f"志望動機: {form['motivation']}" if form.get("motivation") else "",
        (
            f"キャリア診断データ: 職種={diagnosis_data.get('jobType') or ''}, 業界={diagnosis_data.get('industry') or ''}"
            if diagnosis_data
            else ""
        ),
    ]
    return "\n\n".join(part for part in parts if part)


def generate_documents(
    kv: KvStore,
    doc_type: str,
    form: dict[str, Any],
    diagnosis_data: dict[str, Any] | None,
    client_id: str,
) -> dict[str, Any]:
    """Generate a resume and/or CV and keep a snapshot for the client."""
    if doc_type not in DOCUMENT_TYPES:
        raise ValueError(f"Unknown document type '{doc_type}'")
    summary = build_profile_summary(form, diagnosis_data)

    generated_resume = None
    generated_cv = None
    if doc_type in ("resume", "both"):
        text = call_llm(RESUME_SYSTEM_PROMPT, summary, provider="openai", max_tokens=4096)
        generated_resume = parse_model_json(text, feature="resume-generate-resume")
    if doc_type in ("cv", "both"):
        text = call_llm(CV_SYSTEM_PROMPT, summary, provider="openai", max_tokens=4096)
        generated_cv = parse_model_json(text, feature="resume-generate-cv")

    now = kv.now_iso()
    snapshot = {
        "type": doc_type,
        "formData": form,
        "generatedResume": generated_resume,
        "generatedCV": generated_cv,
        "createdAt": now,
        "updatedAt": now,
    }
    try:
        kv.set_json(f"{RESUME_PREFIX}{client_id}", snapshot, RESUME_TTL_SECONDS)
    except KvError:
        logger.warning("Could not store resume snapshot for %s", client_id, exc_info=True)

    return {
        "type": doc_type,
        "generatedResume": generated_resume,
        "generatedCV": generated_cv,
        "formData": form,
    }
