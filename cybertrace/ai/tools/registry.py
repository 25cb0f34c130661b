"""In-process tools exposed to the model.

Each tool declares its input as a pydantic model. Arguments are validated
before the function runs, and every failure is returned as text so the
model can read it and react.
"""

import inspect
from dataclasses import dataclass
from typing import Any, Callable

from pydantic import BaseModel, ValidationError

from cybertrace.ai.tools.humanize_timestamp import HumanizeTimestampInput, humanize_timestamp
from cybertrace.ai.tools.table import TableInput, generate_table_data


@dataclass(frozen=True)
class LocalTool:
    """A tool implemented in this process."""

    name: str
    description: str
    input_model: type[BaseModel]
    func: Callable[..., Any]

    @property
    def input_schema(self) -> dict:
        return self.input_model.model_json_schema()

    async def execute(self, args: dict[str, Any]) -> Any:
        try:
            params = self.input_model.model_validate(args or {})
        except ValidationError as e:
            return f"Invalid arguments for {self.name}: {e}"

        try:
            result = self.func(**params.model_dump())
            if inspect.isawaitable(result):
                result = await result
            return result
        except Exception as e:
            return f"Error executing {self.name}: {e}"


LOCAL_TOOLS: dict[str, LocalTool] = {
    tool.name: tool
    for tool in (
        LocalTool(
            name="humanize_timestamp_tool",
            description="Converts a UNIX epoch timestamp (in milliseconds) to a human-readable datetime string.",
            input_model=HumanizeTimestampInput,
            func=humanize_timestamp,
        ),
        LocalTool(
            name="table_tool",
            description=(
                "Generates a structured table from data arrays. Use this when you need to "
                "display tabular data in a formatted table instead of plain text."
            ),
            input_model=TableInput,
            func=generate_table_data,
        ),
    )
}
