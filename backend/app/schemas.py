from typing import Literal

from pydantic import BaseModel, Field, field_validator


# ---------- GENERATION SERVICE PAYLOADS ----------

class TurnPayload(BaseModel):
    speaker: Literal["interviewer", "candidate", "system"]
    text: str


class GenerationRequest(BaseModel):
    priorTurns: list[TurnPayload]
    mode: Literal["greeting", "next-question", "score"]


class QuestionPayload(BaseModel):
    text: str | None = None
    done: bool = False

    @field_validator("text")
    @classmethod
    def _strip_text(cls, value):
        if value is None:
            return None
        value = str(value).strip()
        return value or None


class FeedbackPayload(BaseModel):
    overallScore: float = Field(ge=0, le=100)
    confidenceLevel: Literal["Low", "Medium", "High"]
    strengths: list[str]
    improvements: list[str]
    suggestions: list[str]

    @field_validator("overallScore", mode="before")
    @classmethod
    def _clamp_score(cls, value):
        if isinstance(value, bool):
            raise ValueError("score must be a number")
        try:
            score = float(value)
        except (TypeError, ValueError) as exc:
            raise ValueError("score must be a number") from exc
        return max(0.0, min(100.0, score))

    @field_validator("confidenceLevel", mode="before")
    @classmethod
    def _normalize_level(cls, value):
        normalized = str(value or "").strip().lower()
        mapping = {"low": "Low", "medium": "Medium", "high": "High"}
        return mapping.get(normalized, value)

    @field_validator("strengths", "improvements", "suggestions", mode="before")
    @classmethod
    def _clean_items(cls, value):
        if value is None:
            return []
        if isinstance(value, str):
            value = [value]
        if not isinstance(value, list):
            raise ValueError("expected a list of strings")
        return [str(item).strip() for item in value if str(item or "").strip()]


# ---------- API ----------

class FeedbackReportResponse(BaseModel):
    overallScore: int
    confidenceLevel: str
    strengths: list[str]
    improvements: list[str]
    suggestions: list[str]


class TurnResponse(BaseModel):
    speaker: str
    text: str


class SessionSnapshotResponse(BaseModel):
    session_id: str
    state: str
    status_text: str
    remaining_seconds: int
    total_seconds: int
    report: FeedbackReportResponse | None = None
    report_error: str | None = None
    partial_report: dict = Field(default_factory=dict)
    answer_capture_available: bool = True
    preempted_reason: str | None = None
    transcript: list[TurnResponse] = Field(default_factory=list)


class SessionCommand(BaseModel):
    action: Literal["start", "begin", "answer", "stop", "restart"]
    duration_minutes: float | None = None
