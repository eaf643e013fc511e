"""Exceptions raised while bridging a call between Twilio and the realtime model.

None of these are retried. Parse failures drop a frame; protocol failures on the
model side end the call.
"""

from __future__ import annotations


class BridgeError(Exception):
    default_detail: str = "Call bridge error"

    def __init__(self, detail: str | None = None) -> None:
        super().__init__(detail or self.default_detail)
        self.detail = detail or self.default_detail


class FrameParseError(BridgeError):
    default_detail = "Malformed media stream frame."


class RealtimeProtocolError(BridgeError):
    default_detail = "Malformed realtime event."


class RealtimeConfigurationError(BridgeError):
    default_detail = "Realtime session is not configured."
