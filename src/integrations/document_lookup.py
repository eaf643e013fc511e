"""HTTP client for the external document (biography) lookup endpoint."""

from __future__ import annotations

import logging

import httpx

LOGGER = logging.getLogger(__name__)

NOT_FOUND_FALLBACK = "Document not found."
ERROR_FALLBACK = "Error retrieving document data."


class DocumentLookupClient:
    """Fetches a text document by key with ``GET <base_url>/<key>``.

    Failures never reach the caller: a missing document and a failed request
    both degrade to a fixed, human-readable fallback string.
    """

    def __init__(
        self,
        base_url: str | None,
        *,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/") if base_url else None
        self._timeout = timeout
        self._transport = transport

    async def fetch(self, key: str) -> str:
        if not self._base_url:
            LOGGER.error("Document lookup URL is not configured; cannot fetch %r", key)
            return ERROR_FALLBACK

        url = f"{self._base_url}/{key}"
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                response = await client.get(url)
            if response.status_code == httpx.codes.NOT_FOUND:
                LOGGER.warning("Document %r not found at %s", key, url)
                return NOT_FOUND_FALLBACK
            response.raise_for_status()
        except httpx.HTTPError as exc:
            LOGGER.error("Document lookup failed for %r: %s", key, exc)
            return ERROR_FALLBACK

        text = response.text.strip()
        if not text:
            return NOT_FOUND_FALLBACK
        return text
