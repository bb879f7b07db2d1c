import asyncio
import logging
import time

from openai import AsyncOpenAI

from app.interview.errors import GenerationError
from app.system_metrics import observe_generation_latency_ms
from core.config import GENERATION_TIMEOUT_SEC, MODEL_NAME, OPENAI_API_KEY

logger = logging.getLogger("app.ai_reasoning.llm")

client = AsyncOpenAI(api_key=OPENAI_API_KEY or "missing-key")


async def call_llm(prompt: str, timeout_sec: float = GENERATION_TIMEOUT_SEC) -> str:
    """
    Sends prompt to the generation service and returns the raw text response.
    Exactly one attempt; the caller parses and validates the JSON.
    Raises GenerationError on timeout or transport failure.
    """
    if not str(prompt or "").strip():
        return "{}"

    started = time.monotonic()
    try:
        response = await asyncio.wait_for(
            client.chat.completions.create(
                model=MODEL_NAME,
                messages=[
                    {
                        "role": "system",
                        "content": "You are a strict JSON generator. Output JSON only."
                    },
                    {
                        "role": "user",
                        "content": prompt
                    }
                ],
                temperature=0.4,
            ),
            timeout=timeout_sec,
        )
    except asyncio.TimeoutError as exc:
        logger.warning("call_llm timeout | timeout_sec=%s", timeout_sec)
        raise GenerationError("generation service timed out") from exc
    except Exception as exc:
        logger.warning("call_llm failure | err=%s", exc)
        raise GenerationError(f"generation service call failed: {exc}") from exc
    finally:
        observe_generation_latency_ms((time.monotonic() - started) * 1000.0)

    try:
        message = response.choices[0].message.content
    except (AttributeError, IndexError, TypeError) as exc:
        raise GenerationError("generation service response had no message") from exc
    return str(message or "{}").strip() or "{}"
