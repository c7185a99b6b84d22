from __future__ import annotations

import json
import logging
import math
from typing import Any

from career_ai.core.config import settings
from career_ai.core.extract import ResponseParseError
from career_ai.core.ids import generate_id
from career_ai.core.kv import KvError, KvStore
from career_ai.services.llm import call_llm, parse_model_json

logger = logging.getLogger(__name__)

DIAGNOSIS_PREFIX = "career-ai:diagnosis:"
DIAGNOSIS_INDEX_KEY = "career-ai:diagnosis-index"
DIAGNOSIS_TTL_SECONDS = 60 * 60 * 24 * 90
PAGE_SIZE = 20
INDEX_SEARCH_FIELDS = ("id", "name", "ageRange", "jobType", "employmentStatus")

ANALYSIS_SYSTEM_PROMPT = """あなたは経験豊富な日本のキャリアアドバイザー「キャリアAI」です。
以下の特徴を持ちます：
- 10年以上の人材業界経験を持つプロフェッショナル
- 日本の労働市場に精通している
- 相談者の気持ちに寄り添いながらも、現実的なアドバイスをする
- 特定の企業や求人を推薦せず、中立的な立場を保つ
- 「絶対」「必ず」などの断定的な表現は避ける

★最重要ルール：中学生が読んですぐわかる日本語で書いてください★
- ビジネス用語・カタカナ専門用語は使わない
- 1文は30文字以内。短く書く
- やさしい口調にする

以下のJSON形式のみで回答してください。JSON以外のテキストは含めないでください。

{
  "career_paths": [
    {
      "title": "お仕事の名前（短く）",
      "match_score": 85,
      "salary_range": { "min": 400, "max": 600, "unit": "万円" },
      "description": "どんなお仕事か（1〜2文）",
      "why_recommended": "なぜこれがおすすめか（1文で）",
      "roadmap": [
        { "step": 1, "period": "0〜3ヶ月", "action": "やること（1行）" }
      ],
      "required_skills": ["スキル1", "スキル2"],
      "pros": ["いいところ（短く）"],
      "cons": ["気をつけること（短く）"],
      "risks": "注意ポイント（1文）"
    }
  ],
  "skill_analysis": {
    "current_skills": { "わかりやすいスキル名": 8 },
    "target_skills": { "わかりやすいスキル名": 5 }
  },
  "overall_advice": "全体のアドバイス（2〜3文）"
}

ルール：
- career_paths は2〜3個提示する
- match_score は 0〜100 の整数
- salary_range の min/max は万円単位の整数
- roadmap は3〜5ステップ
- current_skills / target_skills のスコアは 1〜10 の整数
- スキルは4〜6個にしぼる"""

AGENT_SYSTEM_PROMPT = """あなたは経験豊富な転職エージェントの分析AIです。
求職者の診断データとAI分析結果を踏まえて、転職エージェントが求職者にアドバイスするための詳細な分析レポートを作成してください。
以下のJSON形式のみで回答してください。JSON以外のテキストは含めないでください。

{
  "detailed_career_plans": [
    {
      "title": "キャリアパス名",
      "match_score": 85,
      "salary_range": { "min": 400, "max": 600, "unit": "万円", "market_average": 500 },
      "detailed_description": "詳細な説明（2〜3文）",
      "why_recommended": "推薦理由",
      "roadmap": [
        { "step": 1, "period": "0〜3ヶ月", "action": "アクション名", "detail": "具体的な実行内容" }
      ],
      "required_skills": ["スキル1"],
      "skill_development_plan": "スキル開発プラン",
      "pros": ["メリット"],
      "cons": ["デメリット"],
      "risks": "リスク説明",
      "specific_recommendations": ["具体的アドバイス"],
      "transition_difficulty": "easy|moderate|challenging"
    }
  ],
  "skill_gap_analysis": [
    {
      "skill_name": "スキル名",
      "current_level": 5,
      "target_level": 8,
      "gap": 3,
      "priority": "high|medium|low",
      "improvement_method": "改善方法",
      "estimated_time": "習得期間"
    }
  ],
  "market_insights": {
    "industry_trend": "業界のトレンド",
    "demand_level": "需要レベル",
    "competition_level": "競争環境",
    "future_outlook": "将来の見通し",
    "recommended_timing": "転職の推奨タイミング"
  },
  "salary_negotiation": {
    "current_market_range": { "min": 400, "max": 700 },
    "negotiation_points": ["交渉ポイント"],
    "leverage_factors": ["強みとなる要素"],
    "timing_advice": "交渉のタイミング"
  },
  "interview_preparation": {
    "key_questions": ["想定質問"],
    "talking_points": ["アピールポイント"],
    "potential_concerns": ["懸念点"],
    "presentation_tips": ["見せ方のコツ"]
  },
  "red_flags": [
    { "flag": "注意点", "severity": "high|medium|low", "mitigation": "対策" }
  ],
  "agent_summary": "総合的な所見と推奨アクション（3〜5文）"
}"""

DETAILED_PLAN_SYSTEM_PROMPT = """あなたは経験豊富な転職エージェントの分析AIです。
求職者の診断データ、AI分析結果、および詳細な自己分析アンケートの回答を踏まえて、
転職エージェントが求職者に提示するための包括的なキャリア・人生プランを作成してください。
以下のJSON形式のみで回答してください。JSON以外のテキストは含めないでください。

{
  "personalProfile": {
    "summary": "人物像の要約（3〜5文）",
    "coreStrengths": ["強み1", "強み2", "強み3"],
    "personalityType": "パーソナリティタイプ",
    "workStyle": "適した働き方"
  },
  "careerStrategy": {
    "shortTerm": { "period": "0〜6ヶ月", "goals": ["目標"], "actions": ["アクション"] },
    "midTerm": { "period": "6ヶ月〜2年", "goals": ["目標"], "actions": ["アクション"] },
    "longTerm": { "period": "2年〜5年", "goals": ["目標"], "actions": ["アクション"] }
  },
  "lifePlan": {
    "financialPlan": "経済面のアドバイス",
    "familyPlan": "ライフプランのアドバイス",
    "lifestyleAdvice": "生活のアドバイス",
    "balanceStrategy": "仕事とプライベートのバランス戦略"
  },
  "gapAnalysis": {
    "currentVsDesired": [
      { "area": "分野名", "current": "現在", "desired": "希望", "action": "具体策" }
    ]
  },
  "detailedRecommendations": {
    "jobRecommendations": [
      { "title": "推薦職種名", "reason": "推薦理由", "salary": "想定年収", "fit": 85 }
    ],
    "skillDevelopment": [
      { "skill": "スキル", "method": "学習方法", "timeline": "習得目安" }
    ],
    "networkingAdvice": "人脈構築のアドバイス"
  },
  "agentTalkingPoints": ["面談で伝えるべきポイント"],
  "overallSummary": "総合的な所見と推奨アクション（5〜8文）"
}"""


class DiagnosisNotFound(LookupError):
    pass


def diagnosis_key(diagnosis_id: str) -> str:
    return f"{DIAGNOSIS_PREFIX}{diagnosis_id}"


def _join(values: Any) -> str:
    if isinstance(values, (list, tuple)):
        return "、".join(str(v) for v in values if v not in (None, ""))
    return str(values or "")


def _job_type_label(data: dict[str, Any]) -> str:
    job_type = data.get("jobType") or ""
    other = (data.get("jobTypeOther") or "").strip()
    if job_type == "その他" and other:
        return f"{job_type}（{other}）"
    return job_type


def build_analysis_message(data: dict[str, Any]) -> str:
    lines = [
        "以下の診断データに基づいてキャリアプランを提案してください。",
        "",
        "【あなたについて】",
        f"年齢層: {data.get('ageRange', '')}",
        f"就業状況: {data.get('employmentStatus', '')}",
        f"職種: {_job_type_label(data)}",
    ]
    optional_lines = [
        ("最終学歴", data.get("education")),
        ("業界", data.get("industry")),
        ("経験年数", data.get("experienceYears")),
        ("スキル", _join(data.get("skills") or []) + (f"、{data['customSkill']}" if data.get("customSkill") else "")),
        ("資格", data.get("certifications")),
    ]
    lines.extend(f"{label}: {value}" for label, value in optional_lines if value)
    lines.extend(
        [
            "",
            "【これからのこと】",
            f"気になること: {_join(data.get('concerns') or [])}",
            f"大事にしたいこと: {_join(data.get('values') or [])}",
        ]
    )
    if data.get("interests"):
        lines.append(f"興味のあること: {data['interests']}")
    if data.get("urgency"):
        lines.append(f"転職の緊急度: {data['urgency']}")
    return "\n".join(lines)


def _summarize_analysis(result: dict[str, Any]) -> list[str]:
    paths = result.get("career_paths") or []
    titles = "、".join(
        f"{path.get('title', '')}({path.get('match_score', '-')}点)"
        for path in paths
        if isinstance(path, dict)
    )
    return [
        f"キャリアパス: {titles}",
        f"アドバイス: {result.get('overall_advice', '')}",
    ]


def build_agent_message(stored: dict[str, Any]) -> str:
    data = stored.get("diagnosisData") or {}
    lines = [
        "以下の求職者データとAI分析結果を踏まえて、エージェント向けの詳細分析を行ってください。",
        "",
        "【求職者情報】",
        f"年齢層: {data.get('ageRange', '')}",
        f"就業状況: {data.get('employmentStatus', '')}",
        f"職種: {_job_type_label(data)}",
        f"気になること: {_join(data.get('concerns') or [])}",
        f"大事にしたいこと: {_join(data.get('values') or [])}",
        "",
        "【AI分析結果（求職者向け）】",
        *_summarize_analysis(stored.get("analysisResult") or {}),
    ]
    return "\n".join(lines)


def _format_answers(answers: dict[str, Any]) -> list[str]:
    lines = []
    for key, value in answers.items():
        if key.endswith("Other"):
            continue
        text = _join(value) if isinstance(value, (list, tuple)) else str(value if value is not None else "")
        other = answers.get(f"{key}Other")
        if other:
            text = f"{text}（{other}）" if text else str(other)
        lines.append(f"{key}: {text}")
    return lines


def build_detailed_plan_message(stored: dict[str, Any]) -> str:
    data = stored.get("diagnosisData") or {}
    answers = stored.get("selfAnalysis") or {}
    lines = [
        "以下の求職者データを総合的に分析し、詳細なキャリア・人生プランを作成してください。",
        "",
        "=== 基本診断データ ===",
        f"年齢層: {data.get('ageRange', '')}",
        f"就業状況: {data.get('employmentStatus', '')}",
        f"職種: {_job_type_label(data)}",
        f"気になること: {_join(data.get('concerns') or [])}",
        f"大事にしたいこと: {_join(data.get('values') or [])}",
        "",
        "=== AI分析結果 ===",
        *_summarize_analysis(stored.get("analysisResult") or {}),
        "",
        "=== 自己分析アンケート ===",
        *_format_answers(answers),
    ]
    return "\n".join(lines)


def _index_entry(diagnosis_id: str, created_at: int, data: dict[str, Any], name: str = "") -> dict[str, Any]:
    return {
        "id": diagnosis_id,
        "createdAt": created_at,
        "name": name,
        "ageRange": data.get("ageRange", ""),
        "jobType": _job_type_label(data),
        "employmentStatus": data.get("employmentStatus", ""),
    }


def analyze(kv: KvStore, diagnosis_data: dict[str, Any]) -> tuple[str, dict[str, Any]]:
    """Generate a career plan, then persist it with an admin index entry."""
    text = call_llm(
        ANALYSIS_SYSTEM_PROMPT,
        build_analysis_message(diagnosis_data),
        provider="anthropic",
        max_tokens=4096,
    )
    result = parse_model_json(text, feature="analyze")
    if not isinstance(result, dict):
        raise ResponseParseError(text, "not a JSON object")

    diagnosis_id = generate_id()
    created_at = kv.now_ms()
    stored = {
        "diagnosisData": diagnosis_data,
        "analysisResult": result,
        "createdAt": created_at,
    }
    kv.set_json(diagnosis_key(diagnosis_id), stored, DIAGNOSIS_TTL_SECONDS)

    entry = _index_entry(diagnosis_id, created_at, diagnosis_data)
    try:
        kv.lpush(DIAGNOSIS_INDEX_KEY, json.dumps(entry, ensure_ascii=False))
    except KvError:
        logger.warning("Diagnosis %s stored but index update failed", diagnosis_id, exc_info=True)
    return diagnosis_id, result


def get_diagnosis(kv: KvStore, diagnosis_id: str) -> dict[str, Any]:
    stored = kv.get_json(diagnosis_key(diagnosis_id))
    if not stored:
        raise DiagnosisNotFound(diagnosis_id)
    return stored


def _store_diagnosis(kv: KvStore, diagnosis_id: str, stored: dict[str, Any]) -> None:
    kv.set_json(diagnosis_key(diagnosis_id), stored, DIAGNOSIS_TTL_SECONDS)


def _rename_index_entry(kv: KvStore, diagnosis_id: str, name: str) -> None:
    for position, raw in enumerate(kv.lrange(DIAGNOSIS_INDEX_KEY, 0, -1)):
        entry = json.loads(raw)
        if entry.get("id") != diagnosis_id:
            continue
        entry["name"] = name
        kv.lset(DIAGNOSIS_INDEX_KEY, position, json.dumps(entry, ensure_ascii=False))
        return


def save_self_analysis(kv: KvStore, diagnosis_id: str, answers: dict[str, Any]) -> None:
    stored = get_diagnosis(kv, diagnosis_id)
    stored["selfAnalysis"] = answers
    stored["selfAnalysisAt"] = kv.now_ms()
    _store_diagnosis(kv, diagnosis_id, stored)

    name = str(answers.get("name") or "").strip()
    if not name:
        return
    try:
        _rename_index_entry(kv, diagnosis_id, name)
    except (KvError, IndexError, ValueError):
        logger.warning("Could not update index name for diagnosis %s", diagnosis_id, exc_info=True)


def _cached_enrichment(
    kv: KvStore,
    diagnosis_id: str,
    stored: dict[str, Any],
    *,
    field: str,
    feature: str,
    system_prompt: str,
    message: str,
) -> dict[str, Any]:
    if stored.get(field):
        return stored[field]

    text = call_llm(
        system_prompt,
        message,
        provider="openai",
        model=settings.agent_model,
        max_tokens=8192,
    )
    result = parse_model_json(text, feature=feature)
    stored[field] = result
    try:
        _store_diagnosis(kv, diagnosis_id, stored)
    except KvError:
        logger.warning("Could not cache %s for diagnosis %s", field, diagnosis_id, exc_info=True)
    return result


def generate_agent_analysis(kv: KvStore, diagnosis_id: str) -> dict[str, Any]:
    stored = get_diagnosis(kv, diagnosis_id)
    return _cached_enrichment(
        kv,
        diagnosis_id,
        stored,
        field="agentAnalysis",
        feature="analyze-agent",
        system_prompt=AGENT_SYSTEM_PROMPT,
        message=build_agent_message(stored),
    )


def generate_detailed_plan(kv: KvStore, diagnosis_id: str) -> dict[str, Any]:
    stored = get_diagnosis(kv, diagnosis_id)
    if not stored.get("selfAnalysis"):
        raise ValueError("Self-analysis answers are required")
    return _cached_enrichment(
        kv,
        diagnosis_id,
        stored,
        field="detailedPlan",
        feature="analyze-detailed",
        system_prompt=DETAILED_PLAN_SYSTEM_PROMPT,
        message=build_detailed_plan_message(stored),
    )


def _matches(entry: dict[str, Any], term: str) -> bool:
    return any(term in str(entry.get(field) or "").lower() for field in INDEX_SEARCH_FIELDS)


def _prune_stale(kv: KvStore, raw_entries: list[str]) -> list[dict[str, Any]]:
    """Drop index entries whose record has expired; removal is best-effort."""
    live: list[dict[str, Any]] = []
    for raw in raw_entries:
        try:
            entry = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Skipping malformed diagnosis index entry: %s", raw[:200])
            continue
        if kv.exists(diagnosis_key(str(entry.get("id")))):
            live.append(entry)
            continue
        try:
            kv.lrem(DIAGNOSIS_INDEX_KEY, raw, 1)
        except KvError:
            logger.warning("Could not prune stale index entry %s", entry.get("id"), exc_info=True)
    return live


def list_diagnoses(kv: KvStore, *, page: int = 1, search: str | None = None) -> dict[str, Any]:
    page = max(1, page)
    start = (page - 1) * PAGE_SIZE
    term = (search or "").strip().lower()

    # Prune before slicing so removals never shift live entries off a page.
    entries = _prune_stale(kv, kv.lrange(DIAGNOSIS_INDEX_KEY, 0, -1))
    if term:
        entries = [entry for entry in entries if _matches(entry, term)]
    total = len(entries)
    diagnoses = entries[start:start + PAGE_SIZE]

    return {
        "diagnoses": diagnoses,
        "total": total,
        "page": page,
        "pageSize": PAGE_SIZE,
        "totalPages": math.ceil(total / PAGE_SIZE),
    }


def delete_diagnosis(kv: KvStore, diagnosis_id: str) -> None:
    if not kv.delete(diagnosis_key(diagnosis_id)):
        raise DiagnosisNotFound(diagnosis_id)
    try:
        for raw in kv.lrange(DIAGNOSIS_INDEX_KEY, 0, -1):
            if json.loads(raw).get("id") == diagnosis_id:
                kv.lrem(DIAGNOSIS_INDEX_KEY, raw, 0)
    except (KvError, ValueError):
        logger.warning("Diagnosis %s deleted but index cleanup failed", diagnosis_id, exc_info=True)
