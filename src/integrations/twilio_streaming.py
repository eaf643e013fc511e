"""Twilio Media Streams side of the call bridge.

Inbound frames carry an ``event`` tag (``start``, ``media``, ``mark``, ...).
Outbound frames are ``media`` (assistant audio), ``mark`` (playback ack
request), ``clear`` (flush unplayed audio) and ``stop`` (hang up).
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any

from fastapi import WebSocket
from starlette.websockets import WebSocketDisconnect, WebSocketState

from bridge.errors import FrameParseError
from bridge.state import MARK_NAME, CallSession

if TYPE_CHECKING:  # pragma: no cover
    from integrations.openai_realtime import RealtimeSession

LOGGER = logging.getLogger(__name__)


def parse_twilio_ws_message(text: str) -> dict[str, Any]:
    try:
        message = json.loads(text)
    except (TypeError, ValueError) as exc:
        raise FrameParseError(f"Invalid JSON frame: {exc}") from exc
    if not isinstance(message, dict):
        raise FrameParseError("Frame is not a JSON object.")
    return message


def frame_section(frame: dict[str, Any], key: str) -> dict[str, Any] | None:
    """Return the nested object under ``key``, or None when the frame has none."""

    section = frame.get(key)
    if not section:
        return None
    if not isinstance(section, dict):
        raise FrameParseError(f"Frame field {key!r} is not an object.")
    return section


def parse_media(media: dict[str, Any]) -> tuple[str, int]:
    """Return ``(payload, timestamp_ms)`` from a ``media`` frame body.

    Twilio sends the timestamp as a decimal string.
    """

    payload = media.get("payload")
    if not isinstance(payload, str) or not payload:
        raise FrameParseError("Media frame without payload.")
    try:
        timestamp_ms = int(media.get("timestamp"))
    except (TypeError, ValueError) as exc:
        raise FrameParseError(f"Media frame with invalid timestamp: {media.get('timestamp')!r}") from exc
    return payload, timestamp_ms


def media_frame(stream_sid: str, payload: str) -> dict[str, Any]:
    return {"event": "media", "streamSid": stream_sid, "media": {"payload": payload}}


def mark_frame(stream_sid: str, name: str = MARK_NAME) -> dict[str, Any]:
    return {"event": "mark", "streamSid": stream_sid, "mark": {"name": name}}


def clear_frame(stream_sid: str) -> dict[str, Any]:
    return {"event": "clear", "streamSid": stream_sid}


def stop_frame(stream_sid: str, *, call_sid: str | None, account_sid: str | None) -> dict[str, Any]:
    return {
        "event": "stop",
        "streamSid": stream_sid,
        "stop": {"accountSid": account_sid, "callSid": call_sid},
    }


class TwilioMediaRelay:
    """Owns the Twilio websocket for one call.

    Never raises on a closed socket: outbound frames are dropped with a warning.
    """

    def __init__(self, websocket: WebSocket, call: CallSession) -> None:
        self._websocket = websocket
        self._call = call
        self._session: RealtimeSession | None = None

    def bind(self, session: RealtimeSession) -> None:
        self._session = session

    def on_stream_start(self, start: dict[str, Any]) -> None:
        self._call.stream_sid = start.get("streamSid")
        self._call.call_sid = start.get("callSid")
        self._call.account_sid = start.get("accountSid")
        self._call.timing.reset()
        self._call.marks.clear()
        LOGGER.info("Incoming stream has started streamSid=%s callSid=%s", self._call.stream_sid, self._call.call_sid)

    async def on_caller_audio(self, media: dict[str, Any]) -> None:
        payload, timestamp_ms = parse_media(media)
        if self._session is None:
            LOGGER.debug("No realtime session bound yet; dropping caller audio")
            return
        await self._session.send_audio(payload, timestamp_ms)

    def on_playback_ack(self) -> None:
        self._call.marks.pop()

    async def play_assistant_audio(self, payload: str) -> None:
        if not self._call.stream_started:
            LOGGER.debug("Stream not started; dropping assistant audio")
            return
        stream_sid = self._call.stream_sid
        await self._send(media_frame(stream_sid, payload))
        # Twilio echoes the mark once everything before it has played.
        await self._send(mark_frame(stream_sid))
        self._call.marks.push()

    async def clear_buffer(self) -> None:
        self._call.marks.clear()
        if not self._call.stream_started:
            LOGGER.warning("Stream not started; nothing to clear")
            return
        stream_sid = self._call.stream_sid
        await self._send(clear_frame(stream_sid))

    async def hangup(self) -> None:
        if not self._call.stream_started:
            LOGGER.warning("Stream not started; cannot send stop frame")
            return
        stream_sid = self._call.stream_sid
        LOGGER.info("Hanging up call callSid=%s", self._call.call_sid)
        await self._send(
            stop_frame(stream_sid, call_sid=self._call.call_sid, account_sid=self._call.account_sid)
        )

    async def _send(self, frame: dict[str, Any]) -> None:
        if self._websocket.client_state != WebSocketState.CONNECTED:
            LOGGER.warning("Twilio websocket is not open. Cannot send %s frame", frame.get("event"))
            return
        try:
            await self._websocket.send_text(json.dumps(frame))
        except (WebSocketDisconnect, RuntimeError) as exc:
            LOGGER.warning("Twilio websocket closed while sending %s frame: %s", frame.get("event"), exc)
