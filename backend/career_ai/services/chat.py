import json
import logging
from typing import Any, Iterable, Iterator

from career_ai.services.llm import LlmError, stream_llm

logger = logging.getLogger(__name__)

CHAT_MAX_TOKENS = 1024
MSG_STREAM_FAILED = "API呼び出しに失敗しました: {detail}"
MSG_STREAM_UNEXPECTED = "予期しないエラーが発生しました。"

ADVISOR_PROMPT = """あなたは経験豊富な日本のキャリアアドバイザー「キャリアAI」です。
以下の特徴を持ちます：
- 10年以上の人材業界経験を持つプロフェッショナル
- 日本の労働市場に精通している
- 相談者の気持ちに寄り添いながらも、現実的なアドバイスをする
- 特定の企業や求人を推薦せず、中立的な立場を保つ
- 「絶対」「必ず」などの断定的な表現は避ける
- 回答はMarkdown形式で読みやすく整理する
- 回答は簡潔に、長くても500文字程度にまとめる"""


def build_chat_system_prompt(
    diagnosis_data: dict[str, Any] | None = None,
    analysis_result: dict[str, Any] | None = None,
) -> str:
    prompt = ADVISOR_PROMPT
    if diagnosis_data:
        prompt += "\n\n【ユーザーの診断データ】\n" + json.dumps(diagnosis_data, ensure_ascii=False, indent=2)
    if analysis_result:
        prompt += "\n\n【AIが提案したキャリアプラン】\n" + json.dumps(analysis_result, ensure_ascii=False, indent=2)
    if diagnosis_data or analysis_result:
        prompt += "\n\n上記の診断データとキャリアプランの内容を踏まえて、ユーザーの質問に答えてください。"
    return prompt


def sse_frame(payload: dict[str, Any] | str) -> str:
    data = payload if isinstance(payload, str) else json.dumps(payload, ensure_ascii=False)
    return f"data: {data}\n\n"


def open_chat_stream(
    messages: list[dict[str, str]],
    diagnosis_data: dict[str, Any] | None = None,
    analysis_result: dict[str, Any] | None = None,
) -> tuple[str | None, Iterator[str]]:
    """Start the upstream stream and pull its first chunk.

    Errors raised before any text arrives propagate to the caller, which can
    still answer with an HTTP status. Returns the first chunk (``None`` for an
    empty reply) and the iterator holding the rest.
    """
    deltas = stream_llm(
        build_chat_system_prompt(diagnosis_data, analysis_result),
        messages,
        provider="anthropic",
        max_tokens=CHAT_MAX_TOKENS,
    )
    first = next(deltas, None)
    return first, deltas


def sse_events(first: str | None, rest: Iterable[str]) -> Iterator[str]:
    """Forward text deltas as SSE frames; failures end the stream in-band."""
    try:
        if first:
            yield sse_frame({"text": first})
        for text in rest:
            yield sse_frame({"text": text})
        yield sse_frame("[DONE]")
    except LlmError as exc:
        logger.warning("Chat stream failed mid-response: %s", exc)
        yield sse_frame({"error": MSG_STREAM_FAILED.format(detail=exc)})
    except Exception:
        logger.exception("Chat stream failed unexpectedly")
        yield sse_frame({"error": MSG_STREAM_UNEXPECTED})


def stream_chat_events(
    messages: list[dict[str, str]],
    diagnosis_data: dict[str, Any] | None = None,
    analysis_result: dict[str, Any] | None = None,
) -> Iterator[str]:
    """Open the upstream stream eagerly and return the SSE frame iterator."""
    first, rest = open_chat_stream(messages, diagnosis_data, analysis_result)
    return sse_events(first, rest)
