"""API-facing Pydantic models."""

from __future__ import annotations

from pydantic import BaseModel


class HealthResponse(BaseModel):
    status: str = "ok"
    message: str = "Welcome to the AI Phone Assistant!"
