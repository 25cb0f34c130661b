"""Merged tool catalogue for one conversation turn."""

from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Literal, Mapping, Optional

import structlog

from cybertrace.ai.tools.registry import LocalTool
from cybertrace.errors import ToolExecutionError

logger = structlog.get_logger()

Executor = Callable[[dict[str, Any]], Awaitable[Any]]


@dataclass(frozen=True)
class CatalogueEntry:
    """A callable tool as the model sees it."""

    name: str
    description: str
    input_schema: dict
    source: Literal["local", "external"]
    executor: Executor = field(repr=False, compare=False)

    def definition(self) -> dict:
        return {
            "name": self.name,
            "description": self.description,
            "input_schema": self.input_schema,
        }

    @classmethod
    def from_local(cls, tool: LocalTool) -> "CatalogueEntry":
        return cls(
            name=tool.name,
            description=tool.description,
            input_schema=tool.input_schema,
            source="local",
            executor=tool.execute,
        )


def merge_catalogues(
    local: Mapping[str, CatalogueEntry], external: Mapping[str, CatalogueEntry]
) -> dict[str, CatalogueEntry]:
    """Merge two catalogues, local entries first.

    An external tool whose name is already taken by a local one is dropped,
    so a remote server can never replace an in-process tool.
    """
    merged: dict[str, CatalogueEntry] = {}
    for name, entry in local.items():
        merged[name] = entry
    for name, entry in external.items():
        if name in merged:
            logger.warning("external_tool_shadowed", tool=name)
            continue
        merged[name] = entry
    return merged


class ToolCatalogue:
    """Resolves and executes tools for the orchestrator."""

    def __init__(self, entries: Mapping[str, CatalogueEntry]):
        self._entries = dict(entries)

    @classmethod
    def build(
        cls,
        local_tools: Mapping[str, LocalTool],
        external: Mapping[str, CatalogueEntry],
    ) -> "ToolCatalogue":
        local = {name: CatalogueEntry.from_local(tool) for name, tool in local_tools.items()}
        return cls(merge_catalogues(local, external))

    def __contains__(self, name: str) -> bool:
        return name in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def names(self) -> list[str]:
        return list(self._entries)

    def get(self, name: str) -> Optional[CatalogueEntry]:
        return self._entries.get(name)

    def definitions(self) -> list[dict]:
        return [entry.definition() for entry in self._entries.values()]

    async def execute(self, name: str, args: dict[str, Any]) -> Any:
        """Run a tool; failures come back as an error string."""
        entry = self._entries.get(name)
        if entry is None:
            return f"Unknown tool: {name}"
        try:
            return await entry.executor(args)
        except Exception as e:
            logger.warning("tool_execution_failed", tool=name, error=str(e))
            return str(ToolExecutionError(name, str(e)))
