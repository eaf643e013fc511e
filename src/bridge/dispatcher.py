"""Binds one Twilio media stream to one realtime model session."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable

from fastapi import WebSocket
from starlette.websockets import WebSocketDisconnect

from bridge.errors import FrameParseError
from bridge.state import CallSession
from integrations.openai_realtime import RealtimeSession
from integrations.twilio_streaming import TwilioMediaRelay, frame_section, parse_twilio_ws_message

LOGGER = logging.getLogger(__name__)

SessionFactory = Callable[[CallSession, TwilioMediaRelay], Awaitable[RealtimeSession]]


class MediaStreamDispatcher:
    """Routes inbound Twilio frames for the lifetime of one connection.

    The model session is opened on the first inbound frame, so connections that
    never send anything never reach the model.
    """

    def __init__(self, websocket: WebSocket, session_factory: SessionFactory) -> None:
        self._websocket = websocket
        self._session_factory = session_factory
        self._call = CallSession()
        self._relay = TwilioMediaRelay(websocket, self._call)
        self._session: RealtimeSession | None = None
        self._closed = False

    @property
    def call(self) -> CallSession:
        return self._call

    @property
    def session(self) -> RealtimeSession | None:
        return self._session

    async def run(self) -> None:
        try:
            async for message in self._websocket.iter_text():
                await self.handle_message(message)
        except WebSocketDisconnect:
            pass
        except Exception:
            LOGGER.exception("Media stream bridge failed")
        finally:
            LOGGER.info("Client disconnected.")
            await self.close()

    async def handle_message(self, message: str) -> None:
        if self._closed:
            return
        if self._session is None:
            self._session = await self._session_factory(self._call, self._relay)
            self._relay.bind(self._session)

        try:
            frame = parse_twilio_ws_message(message)
            await self._dispatch(frame)
        except FrameParseError as exc:
            LOGGER.error("Error parsing message: %s Message: %r", exc.detail, message)

    async def _dispatch(self, frame: dict) -> None:
        event = frame.get("event")
        if event == "media":
            media = frame_section(frame, "media")
            if media is not None:
                await self._relay.on_caller_audio(media)
        elif event == "start":
            start = frame_section(frame, "start")
            if start is not None:
                self._relay.on_stream_start(start)
        elif event == "mark":
            # Twilio also echoes marks when the buffer was cleared.
            self._relay.on_playback_ack()
        else:
            LOGGER.info("Received non-media event: %s", event)

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._session is not None:
            await self._session.close()
