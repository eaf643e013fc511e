"""FastAPI routes exposing the phone assistant."""

from __future__ import annotations

from fastapi import APIRouter

from api.documents import router as documents_router
from api.schemas import HealthResponse
from api.twilio_routes import router as twilio_router

router = APIRouter()
router.include_router(twilio_router)
router.include_router(documents_router)


@router.get("/health", response_model=HealthResponse)
async def health() -> HealthResponse:
    return HealthResponse()
