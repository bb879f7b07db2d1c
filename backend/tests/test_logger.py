import json
import logging

from core.logger import log_event, session_event_logger
from core.state import SessionState


def _events(caplog):
    return [json.loads(record.getMessage()) for record in caplog.records if record.name == "interview"]


def test_log_event_redacts_candidate_speech(caplog):
    caplog.set_level(logging.INFO, logger="interview")

    log_event("session_controller", "transcript_received", "s-1", text="my salary is 90k", to_state=SessionState.PROCESSING_ANSWER)

    event = _events(caplog)[-1]
    assert event["session_id"] == "s-1"
    assert event["text"] == {"redacted": True, "length": 16}
    assert event["to_state"] == "processing_answer"


def test_session_event_logger_binds_component_and_session(caplog):
    caplog.set_level(logging.INFO, logger="interview")
    log = session_event_logger("ws_session", "s-2")

    log("command", action="start", accepted=True)

    event = _events(caplog)[-1]
    assert event["component"] == "ws_session"
    assert event["event"] == "command"
    assert event["accepted"] is True
