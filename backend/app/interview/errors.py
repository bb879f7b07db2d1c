class InterviewError(Exception):
    """Base class for every failure the session controller knows how to contain."""


class DeviceUnavailable(InterviewError):
    """Camera or microphone denied, absent, or did not answer in time."""


class RecognitionError(InterviewError):
    def __init__(self, kind: str = "error", message: str = ""):
        self.kind = str(kind or "error")
        super().__init__(message or f"speech recognition failed ({self.kind})")


class NotSupported(RecognitionError):
    def __init__(self, message: str = ""):
        super().__init__("not_supported", message or "speech recognition is not supported")


class PlaybackUnsupported(InterviewError):
    """Speech synthesis is unavailable; callers degrade to text only."""


class GenerationError(InterviewError):
    def __init__(self, message: str = "", partial: dict | None = None):
        self.partial = dict(partial or {})
        super().__init__(message or "generation service returned no usable output")


class Preempted(InterviewError):
    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"session preempted: {reason}")
