import asyncio
import logging
import uuid
from dataclasses import dataclass
from typing import Callable, Optional

from app.interview.dialogue import DialogueProvider
from app.interview.errors import DeviceUnavailable, GenerationError, Preempted
from app.interview.models import (
    CaptureErrorKind,
    CaptureSuccess,
    ConversationLog,
    Exhausted,
    FeedbackReport,
    SessionSnapshot,
    Speaker,
)
from app.services.media_service import MediaDevice, MediaResourceManager
from app.services.speech_input import Recognizer, SpeechInputAdapter, UnsupportedRecognizer
from app.services.speech_output import SilentSynthesizer, SpeechOutputAdapter, Synthesizer
from app.session.timer import DeadlineTimer
from app.system_metrics import decrement_metric, increment_metric
from core.config import (
    DEFAULT_DURATION_MINUTES,
    LISTEN_TIMEOUT_SEC,
    MAX_DURATION_MINUTES,
    MEDIA_ACQUIRE_TIMEOUT_SEC,
    SPEAK_TIMEOUT_SEC,
    TIMER_TICK_SEC,
)
from core.logger import session_event_logger
from core.state import SessionState

logging.basicConfig(
    format="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
    level=logging.INFO,
)

logger = logging.getLogger("session_controller")

SnapshotListener = Callable[[SessionSnapshot], None]

STATUS_IDLE = "Set your interview duration and click 'Start' to begin."
STATUS_CONNECTING = "Connecting to the interviewer..."
STATUS_THINKING = "Thinking of the next question..."
STATUS_LISTENING = "Listening..."
STATUS_PROCESSING = "Processing your answer..."
STATUS_ANALYZING = "Analyzing your performance..."
STATUS_REPORT_READY = "Your performance report is ready."
STATUS_NO_CAMERA = "Could not access camera. Please check permissions."
STATUS_NO_INTERVIEWER = "Sorry, the interviewer could not connect. Please try again."
STATUS_RETRY_ANSWER = "I didn't catch that. Please try again."
STATUS_NO_RECOGNITION = "Speech recognition is not available here. You can stop the interview to get feedback."
STATUS_FEEDBACK_FAILED = "Sorry, I couldn't generate feedback."
STATUS_QUESTION_FAILED = "Sorry, an error occurred while preparing the next question."
STATUS_STOPPED = "Interview stopped."
STATUS_NOTHING_TO_SCORE = "The interview ended before any answers were recorded."

PREEMPTION_TURNS = {
    "deadline": "Time's up!",
    "user_stop": "Interview stopped by user.",
}


@dataclass(frozen=True)
class SessionControllerConfig:
    """Configuration knobs for one interview session."""

    tick_seconds: float = TIMER_TICK_SEC
    default_duration_minutes: float = DEFAULT_DURATION_MINUTES
    max_duration_minutes: float = MAX_DURATION_MINUTES
    media_acquire_timeout_sec: Optional[float] = MEDIA_ACQUIRE_TIMEOUT_SEC
    listen_timeout_sec: Optional[float] = LISTEN_TIMEOUT_SEC
    speak_timeout_sec: Optional[float] = SPEAK_TIMEOUT_SEC


class SessionController:
    """
    Finite-state machine for one timed mock interview.

    Everything runs on the event loop thread. Each asynchronous step runs in
    a task stamped with the session epoch; preemption bumps the epoch, so a
    result that resolves afterwards is dropped instead of applied. All the
    host can do is call the facade methods and read `snapshot()`.
    """

    def __init__(
        self,
        *,
        dialogue: DialogueProvider,
        media_device: MediaDevice,
        recognizer_factory: Callable[[], Recognizer] = UnsupportedRecognizer,
        synthesizer: Optional[Synthesizer] = None,
        config: Optional[SessionControllerConfig] = None,
        session_id: Optional[str] = None,
    ):
        self.session_id = session_id or str(uuid.uuid4())
        self._log_event = session_event_logger("session_controller", self.session_id)
        self.dialogue = dialogue
        self.config = config or SessionControllerConfig()
        self.media = MediaResourceManager(media_device, acquire_timeout_sec=self.config.media_acquire_timeout_sec)
        self.speech_out = SpeechOutputAdapter(synthesizer or SilentSynthesizer(), timeout_sec=self.config.speak_timeout_sec)
        self.speech_in: Optional[SpeechInputAdapter] = None
        self._recognizer_factory = recognizer_factory

        self.tasks: list[asyncio.Task] = []
        self._listeners: list[SnapshotListener] = []
        self._epoch = 0

        self.state = SessionState.IDLE
        self.status_text = STATUS_IDLE
        self._reset_entities()

    # ------------------------------------------------------------------
    # Facade

    def start(self, duration_minutes: Optional[float] = None) -> bool:
        if self.state != SessionState.IDLE:
            return self._reject("start")

        try:
            minutes = float(duration_minutes if duration_minutes is not None else self.config.default_duration_minutes)
        except (TypeError, ValueError):
            minutes = 0.0
        if minutes <= 0 or minutes > self.config.max_duration_minutes:
            self.status_text = f"Choose a duration above 0 and up to {self.config.max_duration_minutes:g} minutes."
            self._emit()
            return self._reject("start", detail="invalid_duration")

        self._reset_entities()
        self._epoch += 1
        self.duration_minutes = minutes
        self.total_seconds = max(1, int(round(minutes * 60)))
        self.dialogue.reset()
        self.speech_in = SpeechInputAdapter(self._recognizer_factory(), timeout_sec=self.config.listen_timeout_sec)
        self.answer_capture_available = self.speech_in.supported

        increment_metric("sessions_started")
        increment_metric("sessions_active")
        self._transition(SessionState.GREETING, "start", status=STATUS_CONNECTING)
        self._spawn(self._run_greeting(self._epoch))
        return True

    def begin_questions(self) -> bool:
        if self.state != SessionState.AWAITING_BEGIN_CONFIRMATION:
            return self._reject("begin")
        self._transition(SessionState.ASKING_QUESTION, "user_begins", status=STATUS_THINKING)
        self._spawn(self._advance(self._epoch))
        return True

    def trigger_answer(self) -> bool:
        if self.state != SessionState.AWAITING_ANSWER:
            return self._reject("answer")
        if self.speech_in is None or not self.speech_in.supported:
            self.answer_capture_available = False
            self.status_text = STATUS_NO_RECOGNITION
            self._emit()
            return self._reject("answer", detail="recognition_unavailable")
        self._transition(SessionState.LISTENING_FOR_ANSWER, "capture_requested", status=STATUS_LISTENING)
        self._spawn(self._listen(self._epoch))
        return True

    def stop(self) -> bool:
        if not self.state.is_live:
            return self._reject("stop")
        return self._preempt("user_stop")

    def restart(self) -> bool:
        if self.state != SessionState.SHOWING_RESULTS:
            return self._reject("restart")
        self._teardown()
        self._discard_session()
        self._transition(SessionState.IDLE, "restart", status=STATUS_IDLE)
        return True

    async def shutdown(self) -> None:
        """Abnormal teardown: the host went away mid-session."""
        was_live = self.state.is_live
        self._teardown()
        self._discard_session()
        if self.state != SessionState.IDLE:
            self._transition(SessionState.IDLE, "shutdown", status=STATUS_IDLE)
        if was_live:
            decrement_metric("sessions_active")

        current = asyncio.current_task()
        pending = [task for task in self.tasks if task is not current]
        self.tasks.clear()
        await asyncio.gather(*pending, return_exceptions=True)
        self._listeners.clear()

    # ------------------------------------------------------------------
    # Observable

    def snapshot(self) -> SessionSnapshot:
        if self.timer is not None:
            remaining = self.timer.snapshot().remaining_seconds
        elif self.state.is_live:
            remaining = self.total_seconds
        else:
            remaining = 0
        return SessionSnapshot(
            session_id=self.session_id,
            state=self.state,
            status_text=self.status_text,
            remaining_seconds=remaining,
            total_seconds=self.total_seconds,
            report=self.report,
            report_error=self.report_error,
            partial_report=dict(self.partial_report),
            answer_capture_available=self.answer_capture_available,
            preempted_reason=self.preemption.reason if self.preemption else None,
            transcript=self.log.turns(),
        )

    def subscribe(self, listener: SnapshotListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    # ------------------------------------------------------------------
    # Flows

    async def _run_greeting(self, epoch: int) -> None:
        try:
            await self.media.acquire()
        except DeviceUnavailable as exc:
            if not self._is_current(epoch):
                return
            increment_metric("device_unavailable")
            logger.warning("media unavailable | session_id=%s err=%s", self.session_id, exc)
            self._abort_to_idle("device_unavailable", STATUS_NO_CAMERA)
            return

        try:
            greeting = await self.dialogue.greeting(self.duration_minutes)
        except GenerationError as exc:
            if not self._is_current(epoch):
                return
            increment_metric("generation_failures")
            logger.warning("greeting generation failed | session_id=%s err=%s", self.session_id, exc)
            self._abort_to_idle("greeting_failed", STATUS_NO_INTERVIEWER)
            return
        if not self._is_current(epoch):
            return

        self.status_text = greeting
        self._emit()
        await self.speech_out.speak(greeting)
        if not self._is_current(epoch):
            return

        self._start_timer(epoch)
        self._transition(SessionState.AWAITING_BEGIN_CONFIRMATION, "greeting_spoken", status=greeting)

    async def _advance(self, epoch: int) -> None:
        try:
            result = await self.dialogue.next_question(self.log)
        except GenerationError as exc:
            if not self._is_current(epoch):
                return
            increment_metric("generation_failures")
            logger.warning("question generation failed | session_id=%s err=%s", self.session_id, exc)
            self._finish("generation_failed", status=STATUS_QUESTION_FAILED)
            return

        if not self._is_current(epoch) or self._deadline_passed():
            return

        if isinstance(result, Exhausted):
            increment_metric("sessions_exhausted")
            self._finish("questions_exhausted")
            return

        self.log.append(Speaker.INTERVIEWER, result.text)
        self._transition(SessionState.ASKING_QUESTION, "question_ready", status=result.text)
        await self.speech_out.speak(result.text)
        if not self._is_current(epoch):
            return
        self._transition(SessionState.AWAITING_ANSWER, "question_spoken")

    async def _listen(self, epoch: int) -> None:
        result = await self.speech_in.capture_once()
        if not self._is_current(epoch):
            if isinstance(result, CaptureSuccess):
                increment_metric("late_results_discarded")
            return

        if isinstance(result, CaptureSuccess):
            if self._deadline_passed():
                increment_metric("late_results_discarded")
                return
            self.log.append(Speaker.CANDIDATE, result.text)
            self._transition(SessionState.PROCESSING_ANSWER, "transcript_received", status=STATUS_PROCESSING)
            await self._advance(epoch)
            return

        increment_metric("capture_failures")
        if result.kind == CaptureErrorKind.NOT_SUPPORTED:
            self.answer_capture_available = False
            status = STATUS_NO_RECOGNITION
        else:
            status = STATUS_RETRY_ANSWER
        self._transition(SessionState.AWAITING_ANSWER, f"capture_{result.kind.value}", status=status)

    async def _score(self, epoch: int) -> None:
        try:
            report: FeedbackReport = await self.dialogue.score(self.log)
        except GenerationError as exc:
            if not self._is_current(epoch):
                return
            increment_metric("generation_failures")
            logger.warning("feedback generation failed | session_id=%s err=%s", self.session_id, exc)
            self.report_error = str(exc)
            self.partial_report = dict(exc.partial)
            self.status_text = STATUS_FEEDBACK_FAILED
            self._emit()
            return

        if not self._is_current(epoch):
            return
        increment_metric("sessions_completed")
        self.report = report
        self.status_text = STATUS_REPORT_READY
        self._log_event(
            "report_ready",
            overall_score=report.overall_score,
            confidence_level=report.confidence_level,
        )
        self._emit()

    # ------------------------------------------------------------------
    # Preemption and teardown

    def _preempt(self, reason: str) -> bool:
        if not self.state.is_live:
            return False

        exchanges = self.log.exchanges
        self.preemption = Preempted(reason)
        increment_metric(f"preemptions_{reason}")
        self._log_event(
            "preempted",
            reason=reason,
            state=self.state,
            exchanges=exchanges,
        )

        self._teardown()
        if reason == "user_stop" and exchanges == 0:
            decrement_metric("sessions_active")
            self._discard_session()
            self._transition(SessionState.IDLE, reason, status=STATUS_STOPPED)
            return True

        self.log.append(Speaker.SYSTEM, PREEMPTION_TURNS.get(reason, reason))
        self._finish(reason)
        return True

    def _finish(self, reason: str, status: Optional[str] = None) -> None:
        """Enter ShowingResults; score only when there is at least one answer."""
        self._teardown()
        if self.state.is_live:
            decrement_metric("sessions_active")

        if self.log.exchanges == 0:
            self.report_error = "No answers were recorded, so there is nothing to score."
            self._transition(SessionState.SHOWING_RESULTS, reason, status=status or STATUS_NOTHING_TO_SCORE)
            return

        self._transition(SessionState.SHOWING_RESULTS, reason, status=status or STATUS_ANALYZING)
        self._spawn(self._score(self._epoch))

    def _abort_to_idle(self, reason: str, status: str) -> None:
        self._teardown()
        if self.state.is_live:
            decrement_metric("sessions_active")
        self._discard_session()
        self._transition(SessionState.IDLE, reason, status=status)

    def _teardown(self) -> None:
        """Cancel in-flight work, stop the clock and release media, without awaiting."""
        self._epoch += 1

        try:
            current = asyncio.current_task()
        except RuntimeError:
            current = None
        for task in self.tasks:
            if task is not current and not task.done():
                task.cancel()

        if self.speech_in is not None:
            self.speech_in.cancel()
        self.speech_out.cancel()
        if self.timer is not None:
            self.timer.stop()

        try:
            self.media.release()
        except Exception as exc:
            increment_metric("media_release_failures")
            logger.warning("media release raised | session_id=%s err=%s", self.session_id, exc)

    def _discard_session(self) -> None:
        if self.speech_in is not None:
            self.speech_in.close()
        self.speech_in = None
        self._reset_entities()

    def _reset_entities(self) -> None:
        self.log = ConversationLog()
        self.timer: Optional[DeadlineTimer] = None
        self.duration_minutes = 0.0
        self.total_seconds = 0
        self.report: Optional[FeedbackReport] = None
        self.report_error: Optional[str] = None
        self.partial_report: dict = {}
        self.answer_capture_available = True
        self.preemption: Optional[Preempted] = None

    # ------------------------------------------------------------------
    # Timer

    def _start_timer(self, epoch: int) -> None:
        def _expired() -> None:
            if self._is_current(epoch):
                self._preempt("deadline")

        self.timer = DeadlineTimer(
            self.total_seconds,
            on_expired=_expired,
            on_tick=lambda _remaining: self._emit(),
            tick_seconds=self.config.tick_seconds,
        )
        self.timer.start()

    def _deadline_passed(self) -> bool:
        # the deadline wins over a result that lands in the same turn
        if self.timer is None or not self.timer.expired:
            return False
        if not self.timer.fired:
            self.timer.fire()
        return True

    # ------------------------------------------------------------------
    # Helpers

    def _is_current(self, epoch: int) -> bool:
        return epoch == self._epoch

    def _spawn(self, coro) -> asyncio.Task:
        self.tasks = [task for task in self.tasks if not task.done()]
        epoch = self._epoch
        task = asyncio.create_task(coro)
        task.add_done_callback(lambda done: self._on_flow_done(done, epoch))
        self.tasks.append(task)
        return task

    def _on_flow_done(self, task: asyncio.Task, epoch: int) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is None:
            return
        logger.error(
            "session flow failed | session_id=%s err=%s",
            self.session_id,
            exc,
            exc_info=(type(exc), exc, exc.__traceback__),
        )
        if not self._is_current(epoch):
            return
        if self.state.is_live:
            if self.log.exchanges > 0:
                self._finish("flow_error", status=STATUS_QUESTION_FAILED)
            else:
                self._abort_to_idle("flow_error", STATUS_NO_INTERVIEWER)
        elif self.state == SessionState.SHOWING_RESULTS and self.report is None:
            self.report_error = str(exc) or exc.__class__.__name__
            self.status_text = STATUS_FEEDBACK_FAILED
            self._emit()

    def _transition(self, state: SessionState, reason: str, status: Optional[str] = None) -> None:
        previous = self.state
        self.state = state
        if status is not None:
            self.status_text = status
        self._log_event(
            "state_transition",
            from_state=previous,
            to_state=state,
            reason=reason,
            log_length=len(self.log),
        )
        self._emit()

    def _reject(self, command: str, detail: str = "wrong_state") -> bool:
        self._log_event(
            "command_rejected",
            command=command,
            state=self.state,
            detail=detail,
        )
        return False

    def _emit(self) -> None:
        if not self._listeners:
            return
        snapshot = self.snapshot()
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                logger.exception("snapshot listener failed | session_id=%s", self.session_id)
