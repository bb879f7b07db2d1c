from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterator, Optional, Tuple, Union

from core.state import SessionState


class Speaker(str, Enum):
    INTERVIEWER = "interviewer"
    CANDIDATE = "candidate"
    SYSTEM = "system"


@dataclass(frozen=True)
class Turn:
    speaker: Speaker
    text: str

    def to_dict(self) -> dict:
        return {"speaker": self.speaker.value, "text": self.text}


class ConversationLog:
    """
    Append-only transcript of ONE session. Insertion order is transcript order.
    """

    def __init__(self):
        self._turns: list[Turn] = []

    def append(self, speaker: Speaker, text: str) -> Turn:
        turn = Turn(speaker=Speaker(speaker), text=str(text or "").strip())
        self._turns.append(turn)
        return turn

    def turns(self) -> Tuple[Turn, ...]:
        return tuple(self._turns)

    def count(self, speaker: Speaker) -> int:
        return sum(1 for turn in self._turns if turn.speaker == speaker)

    @property
    def exchanges(self) -> int:
        return self.count(Speaker.CANDIDATE)

    def to_list(self) -> list[dict]:
        return [turn.to_dict() for turn in self._turns]

    def __len__(self) -> int:
        return len(self._turns)

    def __iter__(self) -> Iterator[Turn]:
        return iter(tuple(self._turns))


@dataclass(frozen=True)
class Question:
    text: str


class Exhausted:
    """Returned by a dialogue provider when it has no further questions."""

    _instance: Optional["Exhausted"] = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "EXHAUSTED"


EXHAUSTED = Exhausted()

NextQuestion = Union[Question, Exhausted]


class ConfidenceLevel(str, Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"

    @classmethod
    def parse(cls, value) -> "ConfidenceLevel":
        normalized = str(value or "").strip().lower()
        for level in cls:
            if level.value.lower() == normalized:
                return level
        raise ValueError(f"unknown confidence level: {value!r}")


@dataclass(frozen=True)
class FeedbackReport:
    overall_score: int
    confidence_level: ConfidenceLevel
    strengths: Tuple[str, ...] = ()
    improvements: Tuple[str, ...] = ()
    suggestions: Tuple[str, ...] = ()

    def to_dict(self) -> dict:
        return {
            "overallScore": self.overall_score,
            "confidenceLevel": self.confidence_level.value,
            "strengths": list(self.strengths),
            "improvements": list(self.improvements),
            "suggestions": list(self.suggestions),
        }


# ---------- SPEECH CAPTURE RESULT ----------

class CaptureErrorKind(str, Enum):
    NO_SPEECH = "no_speech"
    DENIED = "denied"
    NOT_SUPPORTED = "not_supported"
    BUSY = "busy"
    CANCELLED = "cancelled"
    TIMEOUT = "timeout"
    ERROR = "error"

    @classmethod
    def from_raw(cls, value) -> "CaptureErrorKind":
        normalized = str(value or "").strip().lower().replace("-", "_")
        aliases = {
            "not_allowed": cls.DENIED,
            "service_not_allowed": cls.DENIED,
            "aborted": cls.CANCELLED,
        }
        if normalized in aliases:
            return aliases[normalized]
        for kind in cls:
            if kind.value == normalized:
                return kind
        return cls.ERROR


@dataclass(frozen=True)
class CaptureSuccess:
    text: str


@dataclass(frozen=True)
class CaptureError:
    kind: CaptureErrorKind
    message: str = ""


CaptureResult = Union[CaptureSuccess, CaptureError]


@dataclass(frozen=True)
class Deadline:
    total_seconds: int
    remaining_seconds: int


@dataclass(frozen=True)
class SessionSnapshot:
    session_id: str
    state: SessionState
    status_text: str
    remaining_seconds: int = 0
    total_seconds: int = 0
    report: Optional[FeedbackReport] = None
    report_error: Optional[str] = None
    partial_report: dict = field(default_factory=dict)
    answer_capture_available: bool = True
    preempted_reason: Optional[str] = None
    transcript: Tuple[Turn, ...] = ()

    def to_dict(self) -> dict:
        return {
            "session_id": self.session_id,
            "state": self.state.value,
            "status_text": self.status_text,
            "remaining_seconds": self.remaining_seconds,
            "total_seconds": self.total_seconds,
            "report": self.report.to_dict() if self.report else None,
            "report_error": self.report_error,
            "partial_report": dict(self.partial_report),
            "answer_capture_available": self.answer_capture_available,
            "preempted_reason": self.preempted_reason,
            "transcript": [turn.to_dict() for turn in self.transcript],
        }
