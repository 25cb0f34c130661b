"""Shape row data into a table the client renders as a component."""

import re
from datetime import datetime
from typing import Any, Literal, Optional

from pydantic import BaseModel, Field

ColumnType = Literal["string", "number", "date", "boolean"]


class TableColumn(BaseModel):
    key: str = Field(description="The key/field name from the data objects")
    label: str = Field(description="The display label for the column header")
    type: Optional[ColumnType] = Field(default=None, description="The data type of the column")


class TableInput(BaseModel):
    data: list[dict[str, Any]] = Field(
        description="Array of objects representing table rows. Each object should have consistent keys."
    )
    columns: Optional[list[TableColumn]] = Field(
        default=None,
        description="Optional array of column definitions. If not provided, columns will be inferred from the data.",
    )
    title: Optional[str] = Field(default=None, description="Optional title for the table")
    caption: Optional[str] = Field(default=None, description="Optional caption/description for the table")


def column_label(key: str) -> str:
    """``bootupTimestamp`` -> ``Bootup Timestamp``."""
    if not key:
        return key
    return key[0].upper() + re.sub(r"([A-Z])", r" \1", key[1:])


def infer_column_type(value: Any) -> ColumnType:
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, datetime):
        return "date"
    if isinstance(value, str):
        try:
            datetime.fromisoformat(value)
            return "date"
        except ValueError:
            pass
        try:
            float(value)
            return "number"
        except ValueError:
            pass
    return "string"


def generate_table_data(
    data: list[dict[str, Any]],
    columns: Optional[list[dict[str, Any]]] = None,
    title: Optional[str] = None,
    caption: Optional[str] = None,
) -> dict[str, Any]:
    """Build ``{columns, rows, title, caption}`` from row dicts.

    Columns are inferred from the first row when not given.
    """
    table_columns = columns
    if not table_columns and data:
        first_row = data[0]
        table_columns = [
            {"key": key, "label": column_label(key), "type": infer_column_type(value)}
            for key, value in first_row.items()
        ]

    return {
        "columns": table_columns or [],
        "rows": data,
        "title": title,
        "caption": caption,
    }
