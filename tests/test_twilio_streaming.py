from __future__ import annotations

import asyncio

import pytest
from starlette.websockets import WebSocketState

from bridge.errors import FrameParseError
from bridge.state import CallSession
from integrations.twilio_streaming import (
    TwilioMediaRelay,
    parse_media,
    parse_twilio_ws_message,
)

from conftest import FakeTwilioSocket

START = {"streamSid": "MZ1", "callSid": "CA1", "accountSid": "AC1"}


class RecordingSession:
    def __init__(self) -> None:
        self.audio: list[tuple[str, int]] = []

    async def send_audio(self, payload: str, timestamp_ms: int) -> None:
        self.audio.append((payload, timestamp_ms))


def _started_relay() -> tuple[TwilioMediaRelay, FakeTwilioSocket, CallSession]:
    socket = FakeTwilioSocket()
    call = CallSession()
    relay = TwilioMediaRelay(socket, call)
    relay.on_stream_start(START)
    return relay, socket, call


def test_parse_rejects_invalid_json_and_non_objects():
    with pytest.raises(FrameParseError):
        parse_twilio_ws_message("{not json")
    with pytest.raises(FrameParseError):
        parse_twilio_ws_message("[1, 2]")


def test_parse_media_converts_string_timestamp():
    assert parse_media({"payload": "AAA=", "timestamp": "160"}) == ("AAA=", 160)


def test_parse_media_rejects_bad_timestamp():
    with pytest.raises(FrameParseError):
        parse_media({"payload": "AAA=", "timestamp": "soon"})
    with pytest.raises(FrameParseError):
        parse_media({"timestamp": "20"})


def test_stream_start_captures_identity_and_resets_timing():
    socket = FakeTwilioSocket()
    call = CallSession()
    call.timing.latest_media_timestamp_ms = 5000
    call.timing.response_start_timestamp_ms = 4000
    call.timing.last_assistant_item_id = "item-old"
    call.marks.push()

    TwilioMediaRelay(socket, call).on_stream_start(START)

    assert (call.stream_sid, call.call_sid, call.account_sid) == ("MZ1", "CA1", "AC1")
    assert call.timing.latest_media_timestamp_ms == 0
    assert not call.timing.utterance_active
    assert call.timing.last_assistant_item_id is None
    assert len(call.marks) == 0


def test_play_assistant_audio_sends_media_then_mark():
    relay, socket, call = _started_relay()

    asyncio.run(relay.play_assistant_audio("ZGVsdGE="))

    assert socket.sent == [
        {"event": "media", "streamSid": "MZ1", "media": {"payload": "ZGVsdGE="}},
        {"event": "mark", "streamSid": "MZ1", "mark": {"name": "responsePart"}},
    ]
    assert len(call.marks) == 1


def test_play_assistant_audio_before_stream_start_is_dropped():
    socket = FakeTwilioSocket()
    call = CallSession()
    relay = TwilioMediaRelay(socket, call)

    asyncio.run(relay.play_assistant_audio("ZGVsdGE="))

    assert socket.sent == []
    assert len(call.marks) == 0


def test_playback_ack_pops_one_mark():
    relay, _socket, call = _started_relay()

    async def _play_twice():
        await relay.play_assistant_audio("a")
        await relay.play_assistant_audio("b")

    asyncio.run(_play_twice())
    relay.on_playback_ack()
    assert len(call.marks) == 1

    relay.on_playback_ack()
    relay.on_playback_ack()
    assert len(call.marks) == 0


def test_clear_buffer_sends_clear_and_empties_marks():
    relay, socket, call = _started_relay()
    call.marks.push()
    call.marks.push()

    asyncio.run(relay.clear_buffer())

    assert socket.sent == [{"event": "clear", "streamSid": "MZ1"}]
    assert len(call.marks) == 0


def test_hangup_sends_stop_with_call_identity():
    relay, socket, _call = _started_relay()

    asyncio.run(relay.hangup())

    assert socket.sent == [
        {"event": "stop", "streamSid": "MZ1", "stop": {"accountSid": "AC1", "callSid": "CA1"}}
    ]


def test_closed_socket_drops_frames_without_raising(caplog):
    relay, socket, call = _started_relay()
    socket.client_state = WebSocketState.DISCONNECTED

    asyncio.run(relay.play_assistant_audio("a"))
    asyncio.run(relay.hangup())

    assert socket.sent == []
    assert "not open" in caplog.text


def test_caller_audio_is_forwarded_to_bound_session():
    relay, _socket, _call = _started_relay()
    session = RecordingSession()
    relay.bind(session)

    asyncio.run(relay.on_caller_audio({"payload": "AAA=", "timestamp": "40"}))

    assert session.audio == [("AAA=", 40)]


def test_caller_audio_without_session_is_dropped():
    relay, _socket, _call = _started_relay()
    asyncio.run(relay.on_caller_audio({"payload": "AAA=", "timestamp": "40"}))
