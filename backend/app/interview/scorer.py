from pydantic import ValidationError

from app.ai_reasoning.json_output import extract_json_dict
from app.interview.errors import GenerationError
from app.interview.models import ConfidenceLevel, ConversationLog, FeedbackReport, Speaker
from app.schemas import FeedbackPayload

FILLER_WORDS = {"um", "uh", "hmm", "like", "basically", "actually", "erm"}
STRUCTURE_MARKERS = {"first", "then", "finally", "because", "result", "example", "so"}

IDEAL_ANSWER_WORDS = 60


def _safe_float(value, default: float = 0.0) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _clamp_score(value, default: int = 50) -> int:
    try:
        return max(0, min(100, int(round(float(value)))))
    except (TypeError, ValueError):
        return default


# ---------- GENERATED REPORT ----------

def _partial_fields(data: dict) -> dict:
    """Fields of a malformed report that are individually usable."""
    partial = {}
    if "overallScore" in data:
        score = _safe_float(data.get("overallScore"), -1.0)
        if score >= 0:
            partial["overallScore"] = _clamp_score(score)
    try:
        partial["confidenceLevel"] = ConfidenceLevel.parse(data.get("confidenceLevel")).value
    except ValueError:
        pass
    for key in ("strengths", "improvements", "suggestions"):
        items = data.get(key)
        if isinstance(items, list):
            cleaned = [str(item).strip() for item in items if str(item or "").strip()]
            if cleaned:
                partial[key] = cleaned
    return partial


def parse_feedback_report(raw: str) -> FeedbackReport:
    data = extract_json_dict(raw)
    if not isinstance(data, dict):
        raise GenerationError("feedback response was not a JSON object")

    try:
        payload = FeedbackPayload.model_validate(data)
    except ValidationError as exc:
        raise GenerationError(
            f"feedback response failed validation ({exc.error_count()} errors)",
            partial=_partial_fields(data),
        ) from exc

    return FeedbackReport(
        overall_score=_clamp_score(payload.overallScore),
        confidence_level=ConfidenceLevel.parse(payload.confidenceLevel),
        strengths=tuple(payload.strengths),
        improvements=tuple(payload.improvements),
        suggestions=tuple(payload.suggestions),
    )


# ---------- HEURISTIC REPORT (scripted interviewer) ----------

def _answer_score(text: str) -> float:
    words = [w.strip(".,!?;:").lower() for w in str(text or "").split()]
    words = [w for w in words if w]
    if not words:
        return 0.0

    length_score = min(1.0, len(words) / IDEAL_ANSWER_WORDS) * 60.0
    filler_ratio = sum(1 for w in words if w in FILLER_WORDS) / len(words)
    fluency_score = max(0.0, 1.0 - filler_ratio * 5.0) * 25.0
    structure_hits = len({w for w in words if w in STRUCTURE_MARKERS})
    structure_score = min(1.0, structure_hits / 3.0) * 15.0

    return length_score + fluency_score + structure_score


def calculate_final_score(log: ConversationLog) -> FeedbackReport:
    answers = [turn.text for turn in log if turn.speaker == Speaker.CANDIDATE]
    asked = log.count(Speaker.INTERVIEWER)

    if not answers:
        return FeedbackReport(
            overall_score=0,
            confidence_level=ConfidenceLevel.LOW,
            improvements=("Answer at least one question so there is something to assess.",),
            suggestions=("Start a new session when you are ready to speak.",),
        )

    per_answer = [_answer_score(text) for text in answers]
    coverage = len(answers) / max(1, asked)
    overall = _clamp_score((sum(per_answer) / len(per_answer)) * (0.7 + 0.3 * coverage))

    word_counts = [len(text.split()) for text in answers]
    avg_words = sum(word_counts) / len(word_counts)
    filler_total = sum(
        1 for text in answers for w in text.lower().split() if w.strip(".,!?") in FILLER_WORDS
    )

    if overall >= 75:
        level = ConfidenceLevel.HIGH
    elif overall >= 45:
        level = ConfidenceLevel.MEDIUM
    else:
        level = ConfidenceLevel.LOW

    strengths = []
    improvements = []
    suggestions = []

    if avg_words >= IDEAL_ANSWER_WORDS * 0.6:
        strengths.append("Answers were developed with enough detail.")
    else:
        improvements.append("Answers were short; expand with context, actions, and results.")
        suggestions.append("Use the STAR structure: Situation, Task, Action, Result.")

    if filler_total <= len(answers):
        strengths.append("Delivery was fluent with few filler words.")
    else:
        improvements.append("Reduce filler words such as 'um' and 'like'.")
        suggestions.append("Pause briefly instead of filling silence.")

    if coverage >= 1.0:
        strengths.append("Every question asked received an answer.")
    else:
        improvements.append("Some questions were left unanswered before the session ended.")
        suggestions.append("Budget your time so each question gets a complete answer.")

    if not suggestions:
        suggestions.append("Practice with a longer session to build on this performance.")

    return FeedbackReport(
        overall_score=overall,
        confidence_level=level,
        strengths=tuple(strengths),
        improvements=tuple(improvements),
        suggestions=tuple(suggestions),
    )
