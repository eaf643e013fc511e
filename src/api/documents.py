"""Local document store served over HTTP.

Lets a single deployment act as its own lookup endpoint: point
``DOCUMENT_LOOKUP_URL`` at ``<public base>/api/documents``.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Path
from fastapi.responses import PlainTextResponse

from api.dependencies import get_app_settings
from config.settings import Settings

router = APIRouter(prefix="/documents", tags=["documents"])


@router.get("/{key}", response_class=PlainTextResponse)
async def get_document(
    key: str = Path(pattern=r"^[A-Za-z0-9_-]+$"),
    settings: Settings = Depends(get_app_settings),
) -> PlainTextResponse:
    path = settings.documents_dir / f"{key}.txt"
    if not path.is_file():
        raise HTTPException(status_code=404, detail="Document not found")
    return PlainTextResponse(path.read_text(encoding="utf-8"))
