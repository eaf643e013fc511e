"""Twilio Voice integration.

This module provides:
- The incoming-call webhook returning TwiML that connects the call to a Media Stream.
- The Media Stream websocket bridging the call to the OpenAI Realtime API.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request, Response, WebSocket
from starlette.websockets import WebSocketState
from twilio.twiml.voice_response import Connect, VoiceResponse

from api.dependencies import get_app_settings, get_session_factory
from bridge.dispatcher import MediaStreamDispatcher, SessionFactory
from config.settings import Settings

LOGGER = logging.getLogger(__name__)

router = APIRouter(prefix="/twilio", tags=["twilio"])


def _to_ws_url(http_url: str) -> str:
    if http_url.startswith("https://"):
        return "wss://" + http_url.removeprefix("https://")
    if http_url.startswith("http://"):
        return "ws://" + http_url.removeprefix("http://")
    return http_url


def _stream_url(request: Request, settings: Settings) -> str:
    path = request.app.url_path_for("twilio_media_stream")
    if settings.public_base_url:
        return _to_ws_url(settings.public_base_url.rstrip("/") + path)
    # Twilio only connects to secure websockets.
    host = request.headers.get("host") or request.url.netloc
    return f"wss://{host}{path}"


def _twiml_response(xml: str) -> Response:
    # Twilio expects application/xml
    return Response(content=xml, media_type="application/xml")


@router.api_route("/incoming-call", methods=["GET", "POST"])
async def twilio_incoming_call(
    request: Request,
    settings: Settings = Depends(get_app_settings),
) -> Response:
    stream_url = _stream_url(request, settings)
    LOGGER.info("Connecting incoming call to %s", stream_url)

    response = VoiceResponse()
    response.say(settings.connect_announcement)
    connect = Connect()
    connect.stream(url=stream_url)
    response.append(connect)
    return _twiml_response(str(response))


@router.websocket("/media-stream", name="twilio_media_stream")
async def twilio_media_stream(
    websocket: WebSocket,
    session_factory: SessionFactory = Depends(get_session_factory),
) -> None:
    await websocket.accept()
    LOGGER.info("WebSocket connection established")

    dispatcher = MediaStreamDispatcher(websocket, session_factory)
    await dispatcher.run()

    if websocket.client_state == WebSocketState.CONNECTED:
        await websocket.close()
