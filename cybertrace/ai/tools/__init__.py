"""Tool registry and catalogue."""

from cybertrace.ai.tools.registry import LOCAL_TOOLS, LocalTool
from cybertrace.ai.tools.catalogue import CatalogueEntry, ToolCatalogue, merge_catalogues

__all__ = [
    "LOCAL_TOOLS",
    "LocalTool",
    "CatalogueEntry",
    "ToolCatalogue",
    "merge_catalogues",
]
