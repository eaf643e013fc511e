from __future__ import annotations

import json

from fastapi.testclient import TestClient


class EchoSession:
    """Plays every caller chunk straight back, so the socket shows the round trip."""

    def __init__(self, relay) -> None:
        self._relay = relay

    async def send_audio(self, payload: str, timestamp_ms: int) -> None:
        await self._relay.play_assistant_audio(payload)

    async def close(self) -> None:
        return None


def test_health(app):
    with TestClient(app) as client:
        resp = client.get("/api/health")

    assert resp.status_code == 200
    assert resp.json() == {"status": "ok", "message": "Welcome to the AI Phone Assistant!"}


def test_incoming_call_returns_connect_stream_twiml(app):
    with TestClient(app) as client:
        resp = client.post("/api/twilio/incoming-call", headers={"host": "assistant.example.com"})

    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("application/xml")
    assert "<Say>Connecting to A.I. assistant.</Say>" in resp.text
    assert '<Stream url="wss://assistant.example.com/api/twilio/media-stream"' in resp.text


def test_incoming_call_prefers_public_base_url(app, tmp_path):
    import api.dependencies as deps
    from config.settings import Settings

    app.dependency_overrides[deps.get_app_settings] = lambda: Settings(
        public_base_url="https://abc.ngrok-free.app/", data_dir=tmp_path, _env_file=None
    )
    try:
        with TestClient(app) as client:
            resp = client.get("/api/twilio/incoming-call")
    finally:
        app.dependency_overrides.clear()

    assert '<Stream url="wss://abc.ngrok-free.app/api/twilio/media-stream"' in resp.text


def test_media_stream_bridges_audio_back_to_twilio(app):
    import api.dependencies as deps

    async def factory(call, relay):
        return EchoSession(relay)

    app.dependency_overrides[deps.get_session_factory] = lambda: factory
    try:
        with TestClient(app) as client:
            with client.websocket_connect("/api/twilio/media-stream") as ws:
                ws.send_text(
                    json.dumps(
                        {"event": "start", "start": {"streamSid": "MZ9", "callSid": "CA9", "accountSid": "AC9"}}
                    )
                )
                ws.send_text(json.dumps({"event": "media", "media": {"timestamp": "20", "payload": "AAA="}}))

                media = ws.receive_json()
                mark = ws.receive_json()
    finally:
        app.dependency_overrides.clear()

    assert media == {"event": "media", "streamSid": "MZ9", "media": {"payload": "AAA="}}
    assert mark == {"event": "mark", "streamSid": "MZ9", "mark": {"name": "responsePart"}}


def test_documents_route_serves_stored_text(app):
    import api.dependencies as deps

    settings = deps.get_app_settings()
    settings.documents_dir.mkdir(parents=True, exist_ok=True)
    (settings.documents_dir / "story.txt").write_text("Vlad's story", encoding="utf-8")

    with TestClient(app) as client:
        found = client.get("/api/documents/story")
        missing = client.get("/api/documents/unknown")
        invalid = client.get("/api/documents/bad.key")

    assert found.status_code == 200
    assert found.text == "Vlad's story"
    assert missing.status_code == 404
    assert invalid.status_code == 422
