from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Awaitable, Callable, Sequence

from pydantic import ValidationError

from app.ai_reasoning.json_output import extract_json_dict
from app.ai_reasoning.prompts.final_summary_prompt import build_final_summary_prompt
from app.ai_reasoning.prompts.followup_prompt import build_followup_prompt
from app.ai_reasoning.prompts.greeting_prompt import build_greeting_prompt
from app.company_modes import get_company_mode_prompt, normalize_company_mode
from app.interview.errors import GenerationError
from app.interview.models import (
    EXHAUSTED,
    ConversationLog,
    FeedbackReport,
    NextQuestion,
    Question,
    Speaker,
)
from app.interview.questions import generate_questions
from app.interview.scorer import calculate_final_score, parse_feedback_report
from app.schemas import GenerationRequest, QuestionPayload
from core.config import DIALOGUE_PROVIDER, GENERATIVE_MAX_QUESTIONS, STATIC_QUESTION_LIMIT

logger = logging.getLogger("interview.dialogue")

LlmFn = Callable[[str], Awaitable[str]]


class DialogueProvider(ABC):
    """Supplies the greeting, the next question, and the final report."""

    def reset(self) -> None:
        return None

    @abstractmethod
    async def greeting(self, duration_minutes: float) -> str:
        ...

    @abstractmethod
    async def next_question(self, log: ConversationLog) -> NextQuestion:
        ...

    @abstractmethod
    async def score(self, log: ConversationLog) -> FeedbackReport:
        ...


class StaticDialogueProvider(DialogueProvider):
    """Fixed, ordered question list; exhausted after the last item."""

    def __init__(self, questions: Sequence[str] | None = None, role: str = "general"):
        items = list(questions) if questions is not None else generate_questions(role, STATIC_QUESTION_LIMIT)
        self.questions = [str(q).strip() for q in items if str(q or "").strip()]
        self._cursor = 0

    def reset(self) -> None:
        self._cursor = 0

    async def greeting(self, duration_minutes: float) -> str:
        return (
            "Hello, thank you for coming in today. "
            f"We'll chat for about {duration_minutes:g} minutes. Are you ready to begin?"
        )

    async def next_question(self, log: ConversationLog) -> NextQuestion:
        if self._cursor >= len(self.questions):
            return EXHAUSTED
        question = Question(text=self.questions[self._cursor])
        self._cursor += 1
        return question

    async def score(self, log: ConversationLog) -> FeedbackReport:
        return calculate_final_score(log)


def build_generation_request(log: ConversationLog, mode: str) -> dict:
    request = GenerationRequest(priorTurns=log.to_list(), mode=mode)
    return request.model_dump()


def parse_question(raw: str) -> NextQuestion:
    data = extract_json_dict(raw)
    if not isinstance(data, dict):
        raise GenerationError("question response was not a JSON object")
    try:
        payload = QuestionPayload.model_validate(data)
    except ValidationError as exc:
        raise GenerationError("question response failed validation") from exc
    if payload.done:
        return EXHAUSTED
    if not payload.text:
        raise GenerationError("question response had no text")
    return Question(text=payload.text)


class GenerativeDialogueProvider(DialogueProvider):
    """
    Resume-aware interviewer backed by the generation service.
    One service call per request; never retries on its own.
    """

    def __init__(
        self,
        llm_fn: LlmFn | None = None,
        resume_context: str = "",
        company_mode: str = "general",
        max_questions: int = GENERATIVE_MAX_QUESTIONS,
    ):
        if llm_fn is None:
            from app.ai_reasoning.llm import call_llm
            llm_fn = call_llm
        self.llm_fn = llm_fn
        self.resume_context = str(resume_context or "").strip()
        self.company_mode = normalize_company_mode(company_mode)
        self.max_questions = max(1, int(max_questions))

    async def _call(self, prompt: str) -> str:
        try:
            return await self.llm_fn(prompt)
        except GenerationError:
            raise
        except Exception as exc:
            raise GenerationError(f"generation call failed: {exc}") from exc

    async def greeting(self, duration_minutes: float) -> str:
        prompt = build_greeting_prompt(duration_minutes, get_company_mode_prompt(self.company_mode))
        raw = await self._call(prompt)
        greeting = parse_question(raw)
        if not isinstance(greeting, Question):
            raise GenerationError("greeting response had no text")
        return greeting.text

    async def next_question(self, log: ConversationLog) -> NextQuestion:
        if log.count(Speaker.INTERVIEWER) >= self.max_questions:
            return EXHAUSTED
        request = build_generation_request(log, "next-question")
        prompt = build_followup_prompt(
            request,
            resume_context=self.resume_context,
            company_prompt=get_company_mode_prompt(self.company_mode),
        )
        raw = await self._call(prompt)
        return parse_question(raw)

    async def score(self, log: ConversationLog) -> FeedbackReport:
        request = build_generation_request(log, "score")
        prompt = build_final_summary_prompt(request, resume_context=self.resume_context)
        raw = await self._call(prompt)
        return parse_feedback_report(raw)


def build_dialogue_provider(
    mode: str | None = None,
    *,
    role: str = "general",
    resume_context: str = "",
    company_mode: str = "general",
    llm_fn: LlmFn | None = None,
) -> DialogueProvider:
    selected = str(mode or DIALOGUE_PROVIDER).strip().lower()
    if selected == "generative":
        return GenerativeDialogueProvider(
            llm_fn=llm_fn,
            resume_context=resume_context,
            company_mode=company_mode,
        )
    if selected != "static":
        logger.warning("unknown dialogue provider %r, using static", selected)
    return StaticDialogueProvider(role=role)
