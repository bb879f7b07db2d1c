from __future__ import annotations

import asyncio
import logging
import uuid
from typing import Any, Awaitable, Callable

from app.interview.errors import DeviceUnavailable, PlaybackUnsupported, RecognitionError

logger = logging.getLogger("voice.bridge")

SendFn = Callable[[dict], Awaitable[None]]


class ClientDeviceBridge:
    """
    Device capability surface hosted by the browser on the other end of a
    websocket. Requests go out as JSON messages; replies are matched back to
    the waiting future by request_id. Replies nobody waits for are dropped.
    """

    def __init__(self, send_fn: SendFn):
        self._send_fn = send_fn
        self._pending: dict[str, asyncio.Future] = {}
        self._background: set[asyncio.Task] = set()
        self.recognition_available = False
        self.synthesis_available = False

    # ---------- inbound ----------

    def set_capabilities(self, payload: dict) -> None:
        self.recognition_available = bool(payload.get("recognition"))
        self.synthesis_available = bool(payload.get("synthesis"))
        logger.info(
            "client capabilities | recognition=%s synthesis=%s",
            self.recognition_available,
            self.synthesis_available,
        )

    def resolve(self, payload: dict) -> bool:
        """Route a client reply to its waiting request. Returns False for stale replies."""
        request_id = str(payload.get("request_id") or "")
        future = self._pending.pop(request_id, None)
        if future is None or future.done():
            logger.info("stale device reply ignored | type=%s", payload.get("type"))
            if payload.get("type") == "media.ready":
                # nobody owns this stream any more
                self.notify("media.release", stream_id=payload.get("stream_id"))
            return False
        future.set_result(dict(payload))
        return True

    # ---------- outbound ----------

    async def request(self, message_type: str, **fields) -> dict:
        request_id = uuid.uuid4().hex[:12]
        future = asyncio.get_running_loop().create_future()
        self._pending[request_id] = future
        try:
            await self._send_fn({"type": message_type, "request_id": request_id, **fields})
            return await future
        finally:
            self._pending.pop(request_id, None)

    def notify(self, message_type: str, **fields) -> None:
        """Fire-and-forget message for synchronous callers (release, cancel)."""
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("no running loop; dropped %s", message_type)
            return
        task = loop.create_task(self._send_quietly({"type": message_type, **fields}))
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def _send_quietly(self, payload: dict) -> None:
        try:
            await self._send_fn(payload)
        except Exception as exc:
            logger.warning("bridge notify failed | type=%s err=%s", payload.get("type"), exc)

    def close(self) -> None:
        for future in self._pending.values():
            if not future.done():
                future.cancel()
        self._pending.clear()


class ClientMediaDevice:
    def __init__(self, bridge: ClientDeviceBridge):
        self.bridge = bridge

    async def open(self) -> Any:
        reply = await self.bridge.request("media.acquire", video=True, audio=True)
        if reply.get("type") != "media.ready":
            raise DeviceUnavailable(str(reply.get("reason") or "camera/microphone permission denied"))
        return {"stream_id": str(reply.get("stream_id") or reply.get("request_id") or "")}

    def close(self, stream: Any) -> None:
        stream_id = stream.get("stream_id") if isinstance(stream, dict) else None
        self.bridge.notify("media.release", stream_id=stream_id)


class ClientRecognizer:
    def __init__(self, bridge: ClientDeviceBridge):
        self.bridge = bridge
        self.available = bridge.recognition_available

    async def recognize(self) -> str:
        reply = await self.bridge.request("speech.listen")
        if reply.get("type") == "speech.error":
            raise RecognitionError(str(reply.get("kind") or "error"), str(reply.get("message") or ""))
        return str(reply.get("text") or "")

    def abort(self) -> None:
        self.bridge.notify("speech.listen_cancel")


class ClientSynthesizer:
    def __init__(self, bridge: ClientDeviceBridge):
        self.bridge = bridge

    @property
    def available(self) -> bool:
        return self.bridge.synthesis_available

    async def speak(self, text: str) -> None:
        reply = await self.bridge.request("speech.speak", text=text)
        if reply.get("type") == "speech.unsupported":
            raise PlaybackUnsupported(str(reply.get("message") or "speech synthesis unavailable"))

    def cancel(self) -> None:
        self.bridge.notify("speech.speak_cancel")
