# backend/core/state.py

from enum import Enum


class SessionState(str, Enum):
    IDLE = "idle"
    GREETING = "greeting"
    AWAITING_BEGIN_CONFIRMATION = "awaiting_begin_confirmation"
    ASKING_QUESTION = "asking_question"
    AWAITING_ANSWER = "awaiting_answer"
    LISTENING_FOR_ANSWER = "listening_for_answer"
    PROCESSING_ANSWER = "processing_answer"
    SHOWING_RESULTS = "showing_results"

    @property
    def is_live(self) -> bool:
        return self not in (SessionState.IDLE, SessionState.SHOWING_RESULTS)

