"""Convert UNIX epoch milliseconds to a readable datetime string."""

from datetime import datetime, timezone
from zoneinfo import ZoneInfo

from pydantic import BaseModel, Field


class HumanizeTimestampInput(BaseModel):
    timestamp_ms: float = Field(description="The UNIX epoch timestamp in milliseconds.")
    tz: str = Field(
        default="UTC",
        description='The target timezone (e.g., "America/New_York").',
    )


def humanize_timestamp(timestamp_ms: float, tz: str = "UTC") -> str:
    """Format an epoch-milliseconds timestamp as ``YYYY-MM-DD HH:MM:SS ZZZ``.

    Args:
        timestamp_ms: The UNIX epoch timestamp in milliseconds.
        tz: IANA timezone name. Defaults to UTC.

    Returns:
        The formatted datetime in the given timezone, or an error message
        if the timestamp or timezone is invalid.
    """
    try:
        zone = ZoneInfo(tz)
        moment = datetime.fromtimestamp(int(timestamp_ms) / 1000, tz=timezone.utc)
        local = moment.astimezone(zone)
        return local.strftime("%Y-%m-%d %H:%M:%S ") + (local.tzname() or tz)
    except Exception as e:
        return f"Error converting timestamp {timestamp_ms} to timezone {tz}: {e}"
