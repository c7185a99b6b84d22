"""PDF rendering for generated resumes (履歴書) and CVs (職務経歴書) using fpdf2.

Japanese text needs a Unicode TTF font; point ``PDF_FONT_PATH`` at one (for
example Noto Sans JP). Without it the core Helvetica font is used and any
character outside latin-1 is replaced.
"""

from __future__ import annotations

import logging
from datetime import date
from pathlib import Path
from typing import Any

from fpdf import FPDF
from fpdf.enums import XPos, YPos

from career_ai.core.config import settings

logger = logging.getLogger(__name__)

CORE_FONT = "Helvetica"
UNICODE_FONT = "ResumeFont"
CORE_FONT_ENCODING = "latin-1"

MSG_INVALID_RESUME = "履歴書データが不正です。"
MSG_INVALID_CV = "職務経歴書データが不正です。"


class ResumePdf:
    """Thin writer over ``FPDF`` that knows whether it can render Japanese."""

    def __init__(self, font_path: str | None = None):
        self.pdf = FPDF()
        self.pdf.set_margins(18, 18, 18)
        self.pdf.set_auto_page_break(auto=True, margin=18)
        self.pdf.add_page()
        self.family = CORE_FONT
        path = font_path if font_path is not None else settings.pdf_font_path
        if path and Path(path).is_file():
            self.pdf.add_font(UNICODE_FONT, "", path)
            self.family = UNICODE_FONT
        elif path:
            logger.warning("PDF font %s not found, falling back to %s", path, CORE_FONT)

    @property
    def unicode(self) -> bool:
        return self.family == UNICODE_FONT

    def _text(self, value: Any) -> str:
        text = "" if value is None else str(value)
        if self.unicode:
            return text
        return text.encode(CORE_FONT_ENCODING, "replace").decode(CORE_FONT_ENCODING)

    def _font(self, size: float) -> None:
        self.pdf.set_font(self.family, "", size)

    def title(self, text: str) -> None:
        self._font(18)
        self.pdf.cell(0, 12, self._text(text), align="C", new_x=XPos.LMARGIN, new_y=YPos.NEXT)
        self.pdf.ln(2)

    def heading(self, text: str) -> None:
        self.pdf.ln(3)
        self._font(12)
        self.pdf.set_fill_color(235, 240, 245)
        self.pdf.cell(0, 8, self._text(text), fill=True, new_x=XPos.LMARGIN, new_y=YPos.NEXT)
        self.pdf.ln(1)

    def line(self, text: Any, size: float = 10) -> None:
        self._font(size)
        self.pdf.multi_cell(0, 6, self._text(text), new_x=XPos.LMARGIN, new_y=YPos.NEXT)

    def row(self, label: Any, value: Any) -> None:
        self._font(10)
        self.pdf.cell(35, 6, self._text(label), new_x=XPos.RIGHT, new_y=YPos.TOP)
        self.pdf.multi_cell(0, 6, self._text(value), new_x=XPos.LMARGIN, new_y=YPos.NEXT)

    def bullets(self, items: Any) -> None:
        for item in items or []:
            self.line(f"- {item}")

    def output(self) -> bytes:
        return bytes(self.pdf.output())


def _dated_rows(writer: ResumePdf, entries: Any) -> None:
    for entry in entries or []:
        if isinstance(entry, dict):
            writer.row(entry.get("yearMonth", ""), entry.get("detail", ""))


def render_resume_pdf(data: dict[str, Any], *, font_path: str | None = None) -> bytes:
    info = data.get("personalInfo") if isinstance(data, dict) else None
    if not isinstance(info, dict):
        raise ValueError(MSG_INVALID_RESUME)

    writer = ResumePdf(font_path)
    writer.title("履歴書")
    writer.line(f"{date.today().year}年{date.today().month}月{date.today().day}日現在", size=9)

    writer.heading("基本情報")
    writer.row("氏名", info.get("name", ""))
    writer.row("フリガナ", info.get("nameKana", ""))
    age = info.get("age")
    writer.row("生年月日", f"{info.get('birthdate', '')}" + (f"（満{age}歳）" if age not in (None, "") else ""))
    writer.row("性別", info.get("gender", ""))
    writer.row("住所", info.get("address", ""))
    writer.row("電話番号", info.get("phone", ""))
    writer.row("メール", info.get("email", ""))

    writer.heading("学歴")
    _dated_rows(writer, data.get("education"))
    writer.heading("職歴")
    _dated_rows(writer, data.get("workHistory"))
    writer.line("以上", size=9)
    writer.heading("免許・資格")
    _dated_rows(writer, data.get("qualifications"))

    if data.get("selfPR"):
        writer.heading("自己PR")
        writer.line(data["selfPR"])
    return writer.output()


def render_cv_pdf(data: dict[str, Any], *, font_path: str | None = None) -> bytes:
    history = data.get("workHistory") if isinstance(data, dict) else None
    if not isinstance(history, list):
        raise ValueError(MSG_INVALID_CV)

    writer = ResumePdf(font_path)
    writer.title("職務経歴書")
    writer.line(f"{date.today().year}年{date.today().month}月{date.today().day}日現在", size=9)

    if data.get("summary"):
        writer.heading("職務要約")
        writer.line(data["summary"])

    writer.heading("職務経歴")
    for job in history:
        if not isinstance(job, dict):
            continue
        writer.line(f"{job.get('company', '')}  {job.get('period', '')}", size=11)
        if job.get("companyDescription"):
            writer.line(job["companyDescription"], size=9)
        details = " / ".join(
            str(job[field]) for field in ("department", "position", "employmentType") if job.get(field)
        )
        if details:
            writer.line(details)
        if job.get("responsibilities"):
            writer.line(job["responsibilities"])
        writer.bullets(job.get("achievements"))
        writer.pdf.ln(2)

    skills = data.get("skills") or {}
    if isinstance(skills, dict) and any(skills.values()):
        writer.heading("活かせる経験・知識・技術")
        for label, field in (("技術", "technical"), ("ビジネス", "business"), ("語学", "languages")):
            if skills.get(field):
                writer.row(label, "、".join(str(s) for s in skills[field]))

    if data.get("qualifications"):
        writer.heading("資格")
        writer.bullets(data["qualifications"])
    if data.get("selfPR"):
        writer.heading("自己PR")
        writer.line(data["selfPR"])
    if data.get("motivation"):
        writer.heading("志望動機")
        writer.line(data["motivation"])
    return writer.output()


def render_document(doc_type: str, data: Any, *, today: date | None = None) -> tuple[bytes, str]:
    """Render ``doc_type`` and return the PDF with its download filename."""
    stamp = (today or date.today()).strftime("%Y%m%d")
    if doc_type == "cv":
        if not isinstance(data, dict):
            raise ValueError(MSG_INVALID_CV)
        return render_cv_pdf(data), f"職務経歴書_{stamp}.pdf"
    if not isinstance(data, dict):
        raise ValueError(MSG_INVALID_RESUME)
    return render_resume_pdf(data), f"履歴書_{stamp}.pdf"
