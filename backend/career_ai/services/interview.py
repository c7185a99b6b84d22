from typing import Any

from career_ai.services.llm import call_llm, parse_model_json

GENERATE_SYSTEM_PROMPT = """あなたは経験豊富な日本の面接官・キャリアアドバイザーです。
指定されたキャリアパスに対して、面接で想定される質問を5つ生成してください。
以下のJSON形式のみで回答してください。JSON以外のテキストは含めないでください。

{
  "questions": [
    { "id": 1, "question": "質問文" },
    { "id": 2, "question": "質問文" },
    { "id": 3, "question": "質問文" },
    { "id": 4, "question": "質問文" },
    { "id": 5, "question": "質問文" }
  ]
}

ルール：
- 質問は5つちょうど生成する
- 志望動機、自己PR、強み・弱み、キャリアビジョン、具体的な経験を問うものをバランスよく含める
- 候補者の現在のスキルや経験を踏まえた実践的な質問にする
- 日本の転職面接でよく聞かれる形式にする"""

REVIEW_SYSTEM_PROMPT = """あなたは経験豊富な日本の面接コーチです。
候補者の面接回答を添削し、改善案を提示してください。
以下のJSON形式のみで回答してください。JSON以外のテキストは含めないでください。

{
  "reviews": [
    {
      "question": "質問文",
      "original_answer": "元の回答",
      "improved_answer": "改善された回答（具体例を交えて、STARメソッドを活用）",
      "score": 70,
      "feedback": "具体的なフィードバック（良い点と改善点を含む）"
    }
  ],
  "overall_score": 65,
  "overall_advice": "全体的なアドバイス（3〜5文）"
}

ルール：
- score は 0〜100 の整数（100が最高評価）
- overall_score は各回答のスコアを総合的に判断した値
- improved_answer は元の回答をベースに大幅に改善したバージョン
- feedback には必ず「良い点」と「改善すべき点」の両方を含める"""


def generate_questions(
    career_path: str | None,
    career_detail: str | None = None,
    user_profile: str | None = None,
) -> Any:
    parts = [
        f"対象キャリアパス: {career_path or ''}",
        f"キャリアパスの詳細:\n{career_detail}" if career_detail else "",
        f"候補者の情報:\n{user_profile}" if user_profile else "",
    ]
    text = call_llm(
        GENERATE_SYSTEM_PROMPT,
        "\n\n".join(part for part in parts if part),
        provider="anthropic",
        max_tokens=2048,
    )
    return parse_model_json(text, feature="interview-generate")


def review_answers(career_path: str | None, qa_pairs: list[dict[str, str]]) -> Any:
    if not qa_pairs:
        raise ValueError("No answers to review")
    blocks = [
        f"【質問{index}】{pair.get('question', '')}\n【回答{index}】{pair.get('answer', '')}"
        for index, pair in enumerate(qa_pairs, start=1)
    ]
    message = "\n".join(
        [
            f"対象キャリアパス: {career_path or ''}",
            "",
            "以下の質問と回答を添削してください。",
            "",
            "\n\n".join(blocks),
        ]
    )
    text = call_llm(REVIEW_SYSTEM_PROMPT, message, provider="anthropic", max_tokens=4096)
    return parse_model_json(text, feature="interview-review")
