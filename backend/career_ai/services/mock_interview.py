from __future__ import annotations

import json
import logging
from typing import Any

from career_ai.core.extract import ResponseParseError
from career_ai.core.ids import generate_id
from career_ai.core.kv import KvStore
from career_ai.services.llm import LlmError, call_llm, parse_model_json

logger = logging.getLogger(__name__)

SESSION_PREFIX = "career-ai:mock-session:"
SESSION_TTL_SECONDS = 60 * 60 * 24
COMPLETED_TTL_SECONDS = 60 * 60 * 24 * 90
REQUIRED_SETTINGS = ("industry", "position", "interviewType", "questionCount")

MSG_SETTINGS_MISSING = "面接設定が不足しています。"

INTERVIEW_TYPE_LABELS = {
    "first": "一次面接（人事担当者による基本質問）",
    "second": "二次面接（現場マネージャーによる深掘り）",
    "final": "最終面接（役員面接、志望度・人柄重視）",
}

SHORT_TYPE_LABELS = {
    "first": "一次面接",
    "second": "二次面接",
    "final": "最終面接",
}

START_PROMPT = """あなたは{industry}業界の{position}職の面接官です。
面接タイプ: {type_label}

以下の候補者の情報を踏まえて、面接質問を{question_count}問作成してください。

候補者の情報:
- 職歴: {work_history}
- スキル: {skills}
- 自己PR: {self_pr}
- キャリア診断結果: {diagnosis}

面接タイプ別の特徴:
- 一次面接: 自己紹介、転職理由、志望動機、基本的なスキル確認が中心
- 二次面接: 業務の深掘り、課題解決経験、マネジメント経験、技術的な質問
- 最終面接: 入社意欲、将来ビジョン、企業理解度、人柄・価値観

以下のJSON形式で出力してください:
{{
  "interviewerProfile": {{
    "name": "面接官の名前（例: 田中）",
    "role": "面接官の役職（例: 人事部 採用マネージャー）"
  }},
  "openingMessage": "本日はお忙しい中、面接にお越しいただきありがとうございます。...",
  "questions": [
    {{
      "id": 1,
      "question": "まずは自己紹介をお願いいたします。",
      "category": "自己紹介",
      "intent": "候補者の概要把握、コミュニケーション力の確認",
      "followUpHints": ["経歴の深掘り", "転職理由への接続"]
    }}
  ]
}}"""

FOLLOW_UP_PROMPT = """前の質問: {question}
候補者の回答: {answer}
次に予定している質問: {planned}

候補者の回答を踏まえて、次の質問を判断してください:
A) 予定通りの質問をする
B) 回答の内容を深掘りする質問に差し替える

Bの場合、面接官の自然な口調で深掘り質問を作成してください。
ただし質問全体の{question_count}問というバランスを考慮してください。

JSONで出力:
{{
  "useFollowUp": true or false,
  "question": "深掘りする場合の質問テキスト（Aの場合は予定の質問をそのまま）",
  "transition": "なるほど、○○ということですね。では次に..."
}}"""

EVALUATE_PROMPT = """あなたは{industry}業界の{position}職の{type_label}の面接官です。
面接官名: {interviewer_name}（{interviewer_role}）

以下の質問に対する候補者の回答を評価してください。

質問: {question}
候補者の回答: {answer}
回答時間: {duration}秒

{previous}

以下のJSON形式で評価してください:
{{
  "score": 78,
  "goodPoints": ["良い点"],
  "improvementPoints": ["改善点"],
  "detailScores": {{
    "relevance": 80,
    "specificity": 85,
    "logic": 72,
    "enthusiasm": 78
  }},
  "shortFeedback": "短いフィードバック（2文程度）"
}}

評価基準:
- 90-100: 素晴らしい回答。実際の面接でも高評価。
- 75-89: 良い回答。いくつかの改善で更に良くなる。
- 60-74: 平均的。改善の余地が大きい。
- 0-59: 要改善。具体性や論理性が不足。

回答時間の目安:
- 30秒未満: 短すぎる（内容が薄い可能性）
- 1-2分: 適切
- 3分以上: 長すぎる（要点がぼやける可能性）"""

SUMMARY_PROMPT = """以下の模擬面接の結果を総合的に評価してください。

面接設定:
  業界: {industry}
  職種: {position}
  面接タイプ: {type_label}

各質問の回答と評価:
{qa_list}

以下のJSON形式で総合評価を出力してください:
{{
  "totalScore": 78,
  "grade": "B+",
  "passLikelihood": "合格の可能性が高い",
  "overallScores": {{
    "content": 80,
    "logic": 75,
    "communication": 82,
    "understanding": 70,
    "enthusiasm": 85
  }},
  "strengths": ["強み"],
  "improvements": ["改善点"],
  "overallFeedback": "総合フィードバック",
  "nextSteps": ["次にやること"]
}}

grade基準:
- S: 90-100
- A+: 85-89
- A: 80-84
- B+: 75-79
- B: 70-74
- C+: 65-69
- C: 60-64
- D: 0-59"""


class SessionNotFound(LookupError):
    pass


def session_key(session_id: str) -> str:
    return f"{SESSION_PREFIX}{session_id}"


def get_session(kv: KvStore, session_id: str) -> dict[str, Any]:
    session = kv.get_json(session_key(session_id))
    if not session:
        raise SessionNotFound(session_id)
    return session


def _save(kv: KvStore, session: dict[str, Any], ttl_seconds: int) -> None:
    kv.set_json(session_key(session["sessionId"]), session, ttl_seconds)


def build_start_prompt(settings: dict[str, Any], resume_data: dict[str, Any] | None, diagnosis_result: Any) -> str:
    resume_data = resume_data or {}
    interview_type = settings["interviewType"]
    skills = resume_data.get("skills")
    return START_PROMPT.format(
        industry=settings["industry"],
        position=settings["position"],
        type_label=INTERVIEW_TYPE_LABELS.get(interview_type, interview_type),
        question_count=settings["questionCount"],
        work_history=json.dumps(resume_data["workHistory"], ensure_ascii=False) if resume_data.get("workHistory") else "不明",
        skills="、".join(str(s) for s in skills) if skills else "不明",
        self_pr=resume_data.get("selfPR") or "不明",
        diagnosis=json.dumps(diagnosis_result, ensure_ascii=False) if diagnosis_result else "なし",
    )


def start_session(
    kv: KvStore,
    settings: dict[str, Any] | None,
    resume_data: dict[str, Any] | None = None,
    diagnosis_result: Any = None,
) -> dict[str, Any]:
    settings = settings or {}
    if any(not settings.get(field) for field in REQUIRED_SETTINGS):
        raise ValueError(MSG_SETTINGS_MISSING)

    text = call_llm(
        None,
        build_start_prompt(settings, resume_data, diagnosis_result),
        provider="openai",
        max_tokens=16384,
    )
    plan = parse_model_json(text, feature="mock-interview-start")
    questions = plan.get("questions") if isinstance(plan, dict) else None
    if not questions:
        raise ResponseParseError(text, "no questions in interview plan")

    session = {
        "sessionId": generate_id(),
        "settings": settings,
        "interviewerProfile": plan.get("interviewerProfile") or {},
        "openingMessage": plan.get("openingMessage") or "",
        "questions": questions,
        "answers": [],
        "status": "in-progress",
        "startedAt": kv.now_iso(),
    }
    _save(kv, session, SESSION_TTL_SECONDS)
    logger.info("Mock interview %s started with %d questions", session["sessionId"], len(questions))
    return {
        "sessionId": session["sessionId"],
        "interviewerProfile": session["interviewerProfile"],
        "openingMessage": session["openingMessage"],
        "firstQuestion": questions[0],
    }


def _planned(question: dict[str, Any], index: int) -> dict[str, Any]:
    return {
        "question": question.get("question", ""),
        "transition": "",
        "questionIndex": index,
        "isComplete": False,
    }


def next_question(kv: KvStore, session_id: str, current_index: int) -> dict[str, Any]:
    """Pick the question after ``current_index``, possibly a follow-up.

    The model may swap the planned question for one that digs into the last
    answer. Any failure along the way falls back to the planned question.
    """
    session = get_session(kv, session_id)
    next_index = current_index + 1
    questions = session.get("questions") or []
    if next_index >= len(questions):
        return {"isComplete": True}

    planned = questions[next_index]
    last_answer = next(
        (a for a in session.get("answers") or [] if a.get("questionIndex") == current_index),
        None,
    )
    if last_answer is None:
        return _planned(planned, next_index)

    prompt = FOLLOW_UP_PROMPT.format(
        question=last_answer.get("question", ""),
        answer=last_answer.get("answer", ""),
        planned=planned.get("question", ""),
        question_count=session.get("settings", {}).get("questionCount", len(questions)),
    )
    try:
        decision = parse_model_json(
            call_llm(None, prompt, provider="anthropic", max_tokens=1024),
            feature="mock-interview-next",
        )
    except (LlmError, ResponseParseError) as exc:
        logger.info("Follow-up decision failed for %s, using planned question: %s", session_id, exc)
        return _planned(planned, next_index)
    if not isinstance(decision, dict):
        return _planned(planned, next_index)

    use_follow_up = bool(decision.get("useFollowUp")) and bool(decision.get("question"))
    return {
        "question": decision["question"] if use_follow_up else planned.get("question", ""),
        "transition": decision.get("transition") or "",
        "questionIndex": next_index,
        "isComplete": False,
    }


def evaluate_answer(
    kv: KvStore,
    session_id: str,
    question_index: int,
    question: str,
    answer: str,
    answer_duration: int | float | None = None,
) -> dict[str, Any]:
    session = get_session(kv, session_id)
    settings = session.get("settings") or {}
    interviewer = session.get("interviewerProfile") or {}
    interview_type = settings.get("interviewType", "")
    previous = "\n\n".join(
        f"Q: {a.get('question', '')}\nA: {a.get('answer', '')}" for a in session.get("answers") or []
    )

    prompt = EVALUATE_PROMPT.format(
        industry=settings.get("industry", ""),
        position=settings.get("position", ""),
        type_label=SHORT_TYPE_LABELS.get(interview_type, interview_type),
        interviewer_name=interviewer.get("name", ""),
        interviewer_role=interviewer.get("role", ""),
        question=question,
        answer=answer,
        duration=answer_duration or 0,
        previous=f"これまでの質疑応答:\n{previous}" if previous else "",
    )
    evaluation = parse_model_json(
        call_llm(None, prompt, provider="anthropic", max_tokens=2048),
        feature="mock-interview-evaluate",
    )

    session.setdefault("answers", []).append(
        {
            "questionIndex": question_index,
            "question": question,
            "answer": answer,
            "answerDuration": answer_duration or 0,
            "evaluation": evaluation,
            "answeredAt": kv.now_iso(),
        }
    )
    _save(kv, session, SESSION_TTL_SECONDS)
    return evaluation


def _qa_block(answer: dict[str, Any]) -> str:
    evaluation = answer.get("evaluation") or {}
    return "\n".join(
        [
            f"Q{int(answer.get('questionIndex', 0)) + 1}: {answer.get('question', '')}",
            f"A: {answer.get('answer', '')}",
            f"スコア: {evaluation.get('score', '-')}/100",
            f"良い点: {'、'.join(evaluation.get('goodPoints') or [])}",
            f"改善点: {'、'.join(evaluation.get('improvementPoints') or [])}",
        ]
    )


def summarize(kv: KvStore, session_id: str) -> dict[str, Any]:
    session = get_session(kv, session_id)
    settings = session.get("settings") or {}
    interview_type = settings.get("interviewType", "")
    prompt = SUMMARY_PROMPT.format(
        industry=settings.get("industry", ""),
        position=settings.get("position", ""),
        type_label=SHORT_TYPE_LABELS.get(interview_type, interview_type),
        qa_list="\n\n---\n\n".join(_qa_block(a) for a in session.get("answers") or []),
    )
    summary = parse_model_json(
        call_llm(None, prompt, provider="openai", max_tokens=4096),
        feature="mock-interview-summary",
    )

    session["status"] = "completed"
    session["summary"] = summary
    session["completedAt"] = kv.now_iso()
    _save(kv, session, COMPLETED_TTL_SECONDS)
    logger.info("Mock interview %s completed", session_id)
    return summary
