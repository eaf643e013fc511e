"""Shared FastAPI dependencies.

Settings are resolved here, once, and handed to every component explicitly.
"""

from __future__ import annotations

from fastapi import Depends

from bridge.dispatcher import SessionFactory
from bridge.state import CallSession
from config.settings import Settings, get_settings
from integrations.document_lookup import DocumentLookupClient
from integrations.openai_realtime import RealtimeSession
from integrations.twilio_streaming import TwilioMediaRelay
from tools.biography import build_biography_tool


def get_app_settings() -> Settings:
    return get_settings()


def get_document_client(settings: Settings = Depends(get_app_settings)) -> DocumentLookupClient:
    return DocumentLookupClient(
        settings.document_lookup_url,
        timeout=settings.document_lookup_timeout_seconds,
    )


def get_session_factory(
    settings: Settings = Depends(get_app_settings),
    lookup: DocumentLookupClient = Depends(get_document_client),
) -> SessionFactory:
    biography = build_biography_tool(lookup, settings.biography_document_key)

    async def open_session(call: CallSession, relay: TwilioMediaRelay) -> RealtimeSession:
        session = RealtimeSession(settings, call, relay, tools=[biography])
        await session.open()
        return session

    return open_session
