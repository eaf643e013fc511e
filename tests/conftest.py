from __future__ import annotations

import json
import os
import sys
from pathlib import Path

import pytest
from starlette.websockets import WebSocketState
from websockets.protocol import State

REPO_ROOT = Path(__file__).resolve().parents[1]
SRC_PATH = REPO_ROOT / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))


class FakeModelSocket:
    """Stands in for the websockets client connection to the realtime API."""

    def __init__(self, incoming: list[str] | None = None) -> None:
        self.state = State.OPEN
        self.sent: list[dict] = []
        self._incoming = list(incoming or [])
        self.closed = False

    async def send(self, data: str) -> None:
        self.sent.append(json.loads(data))

    async def close(self) -> None:
        self.closed = True
        self.state = State.CLOSED

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        for message in self._incoming:
            yield message

    def sent_types(self) -> list[str]:
        return [event["type"] for event in self.sent]


class FakeTwilioSocket:
    """Stands in for the FastAPI websocket accepted from Twilio."""

    def __init__(self, incoming: list[str] | None = None) -> None:
        self.client_state = WebSocketState.CONNECTED
        self.sent: list[dict] = []
        self._incoming = list(incoming or [])

    async def send_text(self, data: str) -> None:
        self.sent.append(json.loads(data))

    async def iter_text(self):
        for message in self._incoming:
            yield message

    def sent_events(self) -> list[str]:
        return [frame["event"] for frame in self.sent]


@pytest.fixture()
def settings(tmp_path):
    from config.settings import Settings

    return Settings(
        openai_api_key="sk-test",
        session_update_delay_seconds=0,
        document_lookup_url="https://lookup.test/documents",
        data_dir=tmp_path,
        _env_file=None,
    )


@pytest.fixture(scope="session")
def app(tmp_path_factory: pytest.TempPathFactory):
    tmp_dir = tmp_path_factory.mktemp("runtime")

    os.environ["DATA_DIR"] = str(tmp_dir)
    os.environ["OPENAI_API_KEY"] = "sk-test"
    os.environ.pop("PUBLIC_BASE_URL", None)

    import importlib

    # Ensure clean import with the test settings.
    for module_name in [
        "config.settings",
        "api.dependencies",
        "api.documents",
        "api.twilio_routes",
        "api.routes",
        "main",
    ]:
        sys.modules.pop(module_name, None)

    main = importlib.import_module("main")
    return main.app
