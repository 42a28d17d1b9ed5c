"""
Tool definition shared by every agent tool.

A tool pairs a pydantic parameters model (its JSON schema is what the model
sees) with an async handler. Billable tools also carry a `usage` function
that maps a successful result to the UsageDelta recorded in the ledger.
"""

from __future__ import annotations

import json

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel

from models.usage_models import UsageDelta

ToolHandler = Callable[[Any], Awaitable[Any]]
UsageFunction = Callable[[Any], UsageDelta | None]


@dataclass(frozen=True)
class Tool:
    name: str
    description: str
    parameters: type[BaseModel]
    handler: ToolHandler
    provider: str | None = None
    usage: UsageFunction | None = None

    @property
    def billable(self) -> bool:
        return self.usage is not None

    def schema(self) -> dict[str, Any]:
        """Function definition in the chat completions `tools` format."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters.model_json_schema(),
            },
        }

    def parse_arguments(self, raw: str | None) -> BaseModel:
        """Validate the model's raw JSON arguments.

        Raises:
            pydantic.ValidationError: If the arguments do not match the parameters model
        """
        return self.parameters.model_validate_json(raw or "{}")

    async def invoke(self, arguments: BaseModel) -> Any:
        return await self.handler(arguments)

    def usage_for(self, result: Any) -> UsageDelta | None:
        if self.usage is None:
            return None
        return self.usage(result)


def decode_arguments(raw: str | None) -> Any:
    """Best-effort decode of raw tool arguments for display in the stream."""
    if not raw:
        return {}
    try:
        return json.loads(raw)
    except ValueError:
        return raw


def tool_schemas(tools: dict[str, Tool]) -> list[dict[str, Any]]:
    return [tool.schema() for tool in tools.values()]


__all__ = ["Tool", "ToolHandler", "UsageFunction", "decode_arguments", "tool_schemas"]
