"""Function tools exposed to the realtime model."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from integrations.document_lookup import DocumentLookupClient

BIOGRAPHY_FUNCTION_NAME = "load_biography"
BIOGRAPHY_DESCRIPTION = (
    "Vlad Krasovsky initial biography and summary of his personal and professional background"
)


@dataclass(frozen=True)
class FunctionTool:
    """Static description of a tool plus the coroutine that answers it."""

    name: str
    description: str
    invocation: Callable[[], Awaitable[str | None]]
    parameters: dict[str, Any] = field(
        default_factory=lambda: {"type": "object", "properties": {}}
    )

    def schema(self) -> dict[str, Any]:
        """Declaration sent to the model in ``session.update``."""

        return {
            "type": "function",
            "name": self.name,
            "description": self.description,
            "parameters": self.parameters,
        }

    async def invoke(self) -> str | None:
        return await self.invocation()


def build_biography_tool(lookup: DocumentLookupClient, document_key: str) -> FunctionTool:
    async def load_biography() -> str:
        return await lookup.fetch(document_key)

    return FunctionTool(
        name=BIOGRAPHY_FUNCTION_NAME,
        description=BIOGRAPHY_DESCRIPTION,
        invocation=load_biography,
    )
