"""Entry point for the AI phone assistant service."""

from __future__ import annotations

import logging

from fastapi import FastAPI

from api.routes import router as api_router
from config.settings import get_settings

settings = get_settings()

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)

app = FastAPI(
    title="AI Phone Assistant",
    description="Bridges Twilio Media Streams with the OpenAI Realtime API.",
)
app.include_router(api_router, prefix="/api")


def run() -> None:
    import os

    import uvicorn

    uvicorn.run(
        "main:app",
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "8000")),
    )
