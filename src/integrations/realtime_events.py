"""OpenAI Realtime event vocabulary used by the call bridge.

Server events we act on, the diagnostic events we only log, and builders for
every client event the bridge sends.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

# Server events
RESPONSE_DONE = "response.done"
RESPONSE_AUDIO_DELTA = "response.audio.delta"
SPEECH_STARTED = "input_audio_buffer.speech_started"

LOG_EVENT_TYPES = frozenset(
    {
        "error",
        "response.content.done",
        "rate_limits.updated",
        "input_audio_buffer.committed",
        "input_audio_buffer.speech_stopped",
        "input_audio_buffer.speech_started",
        "session.created",
    }
)

RESPONSE_STATUS_FAILED = "failed"
OUTPUT_TYPE_FUNCTION_CALL = "function_call"

# Client events
SESSION_UPDATE = "session.update"
CONVERSATION_ITEM_CREATE = "conversation.item.create"
CONVERSATION_ITEM_TRUNCATE = "conversation.item.truncate"
RESPONSE_CREATE = "response.create"
INPUT_AUDIO_BUFFER_APPEND = "input_audio_buffer.append"
FUNCTION_CALL_OUTPUT = "function_call_output"

AUDIO_FORMAT_G711_ULAW = "g711_ulaw"


def session_update(
    *,
    voice: str,
    instructions: str,
    temperature: float,
    tools: Iterable[dict[str, Any]],
) -> dict[str, Any]:
    return {
        "type": SESSION_UPDATE,
        "session": {
            "turn_detection": {"type": "server_vad"},
            "input_audio_format": AUDIO_FORMAT_G711_ULAW,
            "output_audio_format": AUDIO_FORMAT_G711_ULAW,
            "voice": voice,
            "instructions": instructions,
            "modalities": ["text", "audio"],
            "temperature": temperature,
            "tool_choice": "auto",
            "tools": list(tools),
        },
    }


def user_text_item(text: str) -> dict[str, Any]:
    return {
        "type": CONVERSATION_ITEM_CREATE,
        "item": {
            "type": "message",
            "role": "user",
            "content": [{"type": "input_text", "text": text}],
        },
    }


def response_create() -> dict[str, Any]:
    return {"type": RESPONSE_CREATE}


def input_audio_append(payload: str) -> dict[str, Any]:
    return {"type": INPUT_AUDIO_BUFFER_APPEND, "audio": payload}


def conversation_item_truncate(item_id: str, audio_end_ms: int) -> dict[str, Any]:
    """Drop model-side audio and transcript past ``audio_end_ms`` of ``item_id``."""

    return {
        "type": CONVERSATION_ITEM_TRUNCATE,
        "item_id": item_id,
        "content_index": 0,
        "audio_end_ms": audio_end_ms,
    }


def function_call_output(call_id: str, output: str) -> dict[str, Any]:
    return {
        "type": CONVERSATION_ITEM_CREATE,
        "item": {
            "type": FUNCTION_CALL_OUTPUT,
            "call_id": call_id,
            "output": output,
        },
    }
