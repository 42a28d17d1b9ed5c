"""
Chart tool. Produces a chart spec the chat client renders; no data leaves the service.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field, model_validator

from tools.base import Tool


class VisualizeDataArgs(BaseModel):
    chart_type: Literal["bar", "line", "pie", "area", "table"] = Field(..., description="Chart to draw")
    title: str = Field(..., min_length=1, max_length=200)
    data: list[dict[str, Any]] = Field(..., min_length=1, max_length=500, description="Rows to plot")
    x_key: str = Field(..., description="Row key for the category or x axis")
    y_keys: list[str] = Field(..., min_length=1, description="Row keys for the plotted values")

    @model_validator(mode="after")
    def keys_present(self) -> VisualizeDataArgs:
        known = set().union(*(row.keys() for row in self.data))
        missing = [k for k in [self.x_key, *self.y_keys] if k not in known]
        if missing:
            raise ValueError(f"Keys not found in data: {', '.join(missing)}")
        return self


async def visualize_data(args: VisualizeDataArgs) -> dict[str, Any]:
    return {
        "type": "chart",
        "chartType": args.chart_type,
        "title": args.title,
        "data": args.data,
        "xKey": args.x_key,
        "yKeys": args.y_keys,
    }


def visualization_tools() -> list[Tool]:
    return [
        Tool(
            name="visualize_data",
            description="Render query results as a chart or table in the chat. Pass the rows to plot.",
            parameters=VisualizeDataArgs,
            handler=visualize_data,
        )
    ]


__all__ = ["VisualizeDataArgs", "visualization_tools", "visualize_data"]
