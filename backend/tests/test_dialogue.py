import json

import pytest

from app.interview.dialogue import (
    GenerativeDialogueProvider,
    StaticDialogueProvider,
    build_dialogue_provider,
    build_generation_request,
    parse_question,
)
from app.interview.errors import GenerationError
from app.interview.models import EXHAUSTED, ConversationLog, Question, Speaker
from app.interview.questions import generate_questions


class ScriptedLlm:
    def __init__(self, *replies):
        self.replies = list(replies)
        self.prompts: list[str] = []

    async def __call__(self, prompt: str) -> str:
        self.prompts.append(prompt)
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply


# ---------- static ----------

@pytest.mark.asyncio
async def test_static_provider_yields_in_order_then_exhausts():
    provider = StaticDialogueProvider(questions=["Q1?", "Q2?"])
    log = ConversationLog()

    assert await provider.next_question(log) == Question(text="Q1?")
    assert await provider.next_question(log) == Question(text="Q2?")
    assert await provider.next_question(log) is EXHAUSTED
    assert await provider.next_question(log) is EXHAUSTED


@pytest.mark.asyncio
async def test_static_provider_reset_rewinds():
    provider = StaticDialogueProvider(questions=["Q1?"])
    log = ConversationLog()

    await provider.next_question(log)
    provider.reset()

    assert await provider.next_question(log) == Question(text="Q1?")


@pytest.mark.asyncio
async def test_static_greeting_mentions_duration():
    greeting = await StaticDialogueProvider(questions=["Q1?"]).greeting(5)
    assert "5 minutes" in greeting


def test_generate_questions_puts_role_questions_after_opener():
    questions = generate_questions("backend engineer", limit=10)
    general = generate_questions("general", limit=10)

    assert questions[0] == general[0]
    assert questions[1] not in general
    assert len(generate_questions("general", limit=2)) == 2


# ---------- generative ----------

def test_parse_question_variants():
    assert parse_question('{"text": "Why this team?"}') == Question(text="Why this team?")
    assert parse_question('{"done": true}') is EXHAUSTED

    with pytest.raises(GenerationError):
        parse_question("not json at all")
    with pytest.raises(GenerationError):
        parse_question('{"text": "   "}')


def test_generation_request_carries_prior_turns():
    log = ConversationLog()
    log.append(Speaker.INTERVIEWER, "Tell me about yourself.")
    log.append(Speaker.CANDIDATE, "I build data pipelines.")

    request = build_generation_request(log, "next-question")

    assert request["mode"] == "next-question"
    assert [turn["speaker"] for turn in request["priorTurns"]] == ["interviewer", "candidate"]


@pytest.mark.asyncio
async def test_generative_provider_includes_transcript_and_resume_in_prompt():
    llm = ScriptedLlm('{"text": "What did the pipeline process?"}')
    provider = GenerativeDialogueProvider(llm_fn=llm, resume_context="Built Spark jobs at Acme", company_mode="amazon")
    log = ConversationLog()
    log.append(Speaker.INTERVIEWER, "Tell me about yourself.")
    log.append(Speaker.CANDIDATE, "I build data pipelines.")

    question = await provider.next_question(log)

    assert question == Question(text="What did the pipeline process?")
    assert "I build data pipelines." in llm.prompts[0]
    assert "Built Spark jobs at Acme" in llm.prompts[0]
    assert "Amazon" in llm.prompts[0]


@pytest.mark.asyncio
async def test_generative_provider_wraps_service_failures():
    provider = GenerativeDialogueProvider(llm_fn=ScriptedLlm(RuntimeError("network down")))

    with pytest.raises(GenerationError):
        await provider.next_question(ConversationLog())


@pytest.mark.asyncio
async def test_generative_provider_stops_at_question_cap():
    llm = ScriptedLlm()
    provider = GenerativeDialogueProvider(llm_fn=llm, max_questions=1)
    log = ConversationLog()
    log.append(Speaker.INTERVIEWER, "Only question?")

    assert await provider.next_question(log) is EXHAUSTED
    assert llm.prompts == []


@pytest.mark.asyncio
async def test_generative_score_malformed_payload_raises_with_partial():
    llm = ScriptedLlm(json.dumps({"overallScore": 70, "confidenceLevel": "High"}))
    provider = GenerativeDialogueProvider(llm_fn=llm)

    with pytest.raises(GenerationError) as excinfo:
        await provider.score(ConversationLog())

    assert excinfo.value.partial == {"overallScore": 70, "confidenceLevel": "High"}


@pytest.mark.asyncio
async def test_generative_greeting():
    llm = ScriptedLlm('{"text": "Welcome! Ready to start?"}')
    provider = GenerativeDialogueProvider(llm_fn=llm)

    assert await provider.greeting(10) == "Welcome! Ready to start?"


def test_build_dialogue_provider_selects_implementation():
    assert isinstance(build_dialogue_provider("static"), StaticDialogueProvider)
    assert isinstance(build_dialogue_provider("unknown"), StaticDialogueProvider)
    generative = build_dialogue_provider("generative", llm_fn=ScriptedLlm())
    assert isinstance(generative, GenerativeDialogueProvider)


@pytest.mark.asyncio
@pytest.mark.parametrize("bad_score", [None, [1], {}])
async def test_generative_score_non_numeric_score_raises_generation_error(bad_score):
    llm = ScriptedLlm(json.dumps({
        "overallScore": bad_score,
        "confidenceLevel": "High",
        "strengths": ["Clear"],
        "improvements": ["Depth"],
        "suggestions": ["Practice"],
    }))
    provider = GenerativeDialogueProvider(llm_fn=llm)

    with pytest.raises(GenerationError) as excinfo:
        await provider.score(ConversationLog())

    assert excinfo.value.partial["confidenceLevel"] == "High"
