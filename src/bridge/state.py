"""Per-call state shared by the Twilio relay and the realtime session."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field

MARK_NAME = "responsePart"


class AckQueue:
    """FIFO of playback marks sent to Twilio and not yet acknowledged.

    The length is a lower bound on the assistant audio still waiting to be
    played on the caller's side. It is a liveness signal, not a byte count.
    """

    def __init__(self) -> None:
        self._marks: deque[str] = deque()

    def push(self, name: str = MARK_NAME) -> None:
        self._marks.append(name)

    def pop(self) -> str | None:
        if not self._marks:
            return None
        return self._marks.popleft()

    def clear(self) -> None:
        self._marks.clear()

    def __len__(self) -> int:
        return len(self._marks)

    def __bool__(self) -> bool:
        return bool(self._marks)

    def snapshot(self) -> list[str]:
        return list(self._marks)


@dataclass(slots=True)
class PlaybackTimingState:
    """Playhead bookkeeping used to truncate an interrupted utterance.

    ``response_start_timestamp_ms`` is only set while an assistant utterance is
    streaming to the caller. Both timestamps come from Twilio media frames.
    """

    latest_media_timestamp_ms: int = 0
    response_start_timestamp_ms: int | None = None
    last_assistant_item_id: str | None = None

    @property
    def utterance_active(self) -> bool:
        return self.response_start_timestamp_ms is not None

    def mark_response_start(self) -> None:
        if self.response_start_timestamp_ms is None:
            self.response_start_timestamp_ms = self.latest_media_timestamp_ms

    def elapsed_ms(self) -> int:
        if self.response_start_timestamp_ms is None:
            return 0
        return self.latest_media_timestamp_ms - self.response_start_timestamp_ms

    def retire_utterance(self) -> None:
        self.response_start_timestamp_ms = None
        self.last_assistant_item_id = None

    def reset(self) -> None:
        self.latest_media_timestamp_ms = 0
        self.retire_utterance()


@dataclass(slots=True)
class CallSession:
    """Everything that lives exactly as long as one Twilio media stream."""

    stream_sid: str | None = None
    call_sid: str | None = None
    account_sid: str | None = None
    timing: PlaybackTimingState = field(default_factory=PlaybackTimingState)
    marks: AckQueue = field(default_factory=AckQueue)

    @property
    def stream_started(self) -> bool:
        return self.stream_sid is not None
