from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Accepts the browser client's camelCase keys as well as snake_case."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class DiagnosisIdIn(CamelModel):
    diagnosis_id: Optional[str] = None


class SelfAnalysisIn(CamelModel):
    diagnosis_id: Optional[str] = None
    answers: Optional[dict[str, Any]] = None


class ChatMessage(BaseModel):
    role: Literal["user", "assistant"]
    content: str


class ChatIn(CamelModel):
    messages: list[ChatMessage] = []
    diagnosis_data: Optional[dict[str, Any]] = None
    analysis_result: Optional[dict[str, Any]] = None


class QuestionAnswer(BaseModel):
    question: str = ""
    answer: str = ""


class InterviewIn(CamelModel):
    action: Optional[str] = None
    career_path: Optional[str] = None
    career_detail: Optional[str] = None
    user_profile: Optional[str] = None
    questions: Optional[list[QuestionAnswer]] = None


class MockStartIn(CamelModel):
    settings: Optional[dict[str, Any]] = None
    resume_data: Optional[dict[str, Any]] = None
    diagnosis_result: Optional[Any] = None


class MockNextIn(CamelModel):
    session_id: Optional[str] = None
    current_question_index: Optional[int] = None


class MockEvaluateIn(CamelModel):
    session_id: Optional[str] = None
    question_index: Optional[int] = None
    question: Optional[str] = None
    answer: Optional[str] = None
    answer_duration: Optional[float] = None


class MockSummaryIn(CamelModel):
    session_id: Optional[str] = None


class ResumeGenerateIn(CamelModel):
    action: Optional[str] = None
    form_data: Optional[dict[str, Any]] = None
    field: Optional[str] = None
    type: Optional[str] = None
    diagnosis_data: Optional[dict[str, Any]] = None


class ResumeDownloadIn(CamelModel):
    doc_type: Literal["resume", "cv"] = "resume"
    generated_resume: Optional[dict[str, Any]] = None
    generated_cv: Optional[dict[str, Any]] = Field(default=None, alias="generatedCV")


class LoginIn(BaseModel):
    username: Optional[str] = None
    password: Optional[str] = None
