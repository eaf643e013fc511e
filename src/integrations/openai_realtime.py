"""OpenAI Realtime side of the call bridge.

One ``RealtimeSession`` per call. It forwards caller audio to the model, relays
model audio back through the Twilio relay, answers tool calls, and truncates
the assistant's utterance when the caller barges in.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Callable, Sequence
from typing import TYPE_CHECKING, Any

import websockets
from websockets.exceptions import ConnectionClosed
from websockets.protocol import State

from bridge.errors import RealtimeConfigurationError, RealtimeProtocolError
from bridge.state import CallSession
from config.settings import Settings
from integrations import realtime_events as events
from prompts.loader import GREETING, SYSTEM_INSTRUCTIONS, load_prompt
from tools.biography import FunctionTool

if TYPE_CHECKING:  # pragma: no cover
    from integrations.twilio_streaming import TwilioMediaRelay

LOGGER = logging.getLogger(__name__)


def parse_realtime_event(raw: str | bytes) -> dict[str, Any]:
    try:
        event = json.loads(raw)
    except (TypeError, ValueError) as exc:
        raise RealtimeProtocolError(f"Invalid JSON event: {exc}") from exc
    if not isinstance(event, dict) or not isinstance(event.get("type"), str):
        raise RealtimeProtocolError("Event is not an object with a string type.")
    return event


class RealtimeSession:
    def __init__(
        self,
        settings: Settings,
        call: CallSession,
        relay: TwilioMediaRelay,
        tools: Sequence[FunctionTool] = (),
        *,
        connect: Callable[..., Any] = websockets.connect,
    ) -> None:
        self._settings = settings
        self._call = call
        self._relay = relay
        self._tools = {tool.name: tool for tool in tools}
        self._connect = connect
        self._ws: Any = None
        self._receive_task: asyncio.Task | None = None
        self._configure_task: asyncio.Task | None = None
        self._tool_tasks: set[asyncio.Task] = set()

    @property
    def is_open(self) -> bool:
        return self._ws is not None and self._ws.state is State.OPEN

    @property
    def pending_tool_calls(self) -> set[asyncio.Task]:
        return set(self._tool_tasks)

    async def open(self) -> None:
        """Connect to the model and schedule the session configuration."""

        if not self._settings.openai_api_key:
            raise RealtimeConfigurationError("OPENAI_API_KEY is not configured.")

        url = f"{self._settings.openai_realtime_url}?model={self._settings.openai_realtime_model}"
        headers = {
            "Authorization": f"Bearer {self._settings.openai_api_key}",
            "OpenAI-Beta": "realtime=v1",
        }
        self._ws = await self._connect(url, additional_headers=headers)
        LOGGER.info("Connected to realtime API model=%s", self._settings.openai_realtime_model)

        self._receive_task = asyncio.create_task(self._receive_loop())
        self._configure_task = asyncio.create_task(self._configure_after_delay())

    async def close(self) -> None:
        for task in (self._receive_task, self._configure_task, *self._tool_tasks):
            if task is not None and not task.done() and task is not asyncio.current_task():
                task.cancel()
        self._tool_tasks.clear()
        if self.is_open:
            await self._ws.close()
            LOGGER.info("Closed realtime API connection")

    async def send_audio(self, payload: str, timestamp_ms: int) -> None:
        self._call.timing.latest_media_timestamp_ms = timestamp_ms
        await self.send_event(events.input_audio_append(payload))

    async def send_event(self, event: dict[str, Any]) -> None:
        if not self.is_open:
            return
        try:
            await self._ws.send(json.dumps(event))
        except ConnectionClosed as exc:
            LOGGER.warning("Realtime socket closed while sending %s: %s", event.get("type"), exc)

    async def send_session_update(self) -> None:
        update = events.session_update(
            voice=self._settings.openai_voice,
            instructions=load_prompt(SYSTEM_INSTRUCTIONS),
            temperature=self._settings.openai_temperature,
            tools=[tool.schema() for tool in self._tools.values()],
        )
        LOGGER.info("Sending session update: %s", json.dumps(update))
        await self.send_event(update)
        await self.send_initial_conversation_item()

    async def send_initial_conversation_item(self) -> None:
        # The model speaks first.
        await self.send_event(events.user_text_item(load_prompt(GREETING)))
        await self.send_event(events.response_create())

    async def handle_message(self, raw: str | bytes) -> None:
        try:
            event = parse_realtime_event(raw)
            await self.handle_incoming_event(event)
        except Exception:
            LOGGER.exception("Error processing realtime message: %r", raw)
            # Protocol state can't be trusted after a failed message.
            await self._relay.hangup()

    async def handle_incoming_event(self, event: dict[str, Any]) -> None:
        event_type = event["type"]

        if event_type in events.LOG_EVENT_TYPES:
            LOGGER.info("Received event: %s %s", event_type, json.dumps(event, indent=2))

        if event_type == events.RESPONSE_DONE:
            await self._handle_response_done(event.get("response") or {})
        elif event_type == events.RESPONSE_AUDIO_DELTA:
            await self._handle_audio_delta(event)
        elif event_type == events.SPEECH_STARTED:
            await self.handle_speech_started()

    async def handle_speech_started(self) -> None:
        """Caller barged in: cut the assistant off where the caller stopped hearing it."""

        timing = self._call.timing
        if not timing.utterance_active:
            return

        elapsed_ms = timing.elapsed_ms()
        if timing.last_assistant_item_id and elapsed_ms > 0:
            LOGGER.info(
                "Truncating item %s at %sms", timing.last_assistant_item_id, elapsed_ms
            )
            await self.send_event(
                events.conversation_item_truncate(timing.last_assistant_item_id, elapsed_ms)
            )

        # Audio may still be buffered on Twilio's side even when nothing was heard.
        await self._relay.clear_buffer()

        timing.retire_utterance()
        self._call.marks.clear()

    async def _handle_response_done(self, response: dict[str, Any]) -> None:
        if response.get("status") == events.RESPONSE_STATUS_FAILED:
            LOGGER.error("Realtime response failed: %s", response)
            await self._relay.hangup()
            return

        output = (response.get("output") or [None])[0]
        if not isinstance(output, dict) or output.get("type") != events.OUTPUT_TYPE_FUNCTION_CALL:
            return
        tool = self._tools.get(output.get("name"))
        if tool is None:
            LOGGER.warning("Model called unknown tool %r", output.get("name"))
            return

        task = asyncio.create_task(self._run_tool(tool, output.get("call_id")))
        self._tool_tasks.add(task)
        task.add_done_callback(self._tool_tasks.discard)

    async def _handle_audio_delta(self, event: dict[str, Any]) -> None:
        delta = event.get("delta")
        if not delta:
            return
        await self._relay.play_assistant_audio(delta)

        # First delta of a new utterance starts the elapsed time counter.
        self._call.timing.mark_response_start()
        if event.get("item_id"):
            self._call.timing.last_assistant_item_id = event["item_id"]

    async def _run_tool(self, tool: FunctionTool, call_id: str | None) -> None:
        try:
            result = await tool.invoke()
        except Exception:
            LOGGER.exception("Tool %s failed", tool.name)
            return
        if not result:
            LOGGER.warning("Tool %s returned no result; nothing sent", tool.name)
            return

        await self.send_event(events.function_call_output(call_id, result))
        if self._settings.openai_respond_after_tool_output:
            await self.send_event(events.response_create())

    async def _configure_after_delay(self) -> None:
        await asyncio.sleep(self._settings.session_update_delay_seconds)
        await self.send_session_update()

    async def _receive_loop(self) -> None:
        try:
            async for message in self._ws:
                await self.handle_message(message)
        except ConnectionClosed as exc:
            LOGGER.info("Realtime socket closed with error: %s", exc)
        LOGGER.info("Disconnected from the OpenAI Realtime API")
