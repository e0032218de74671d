"""Format timestamp tool — converts between millisecond timestamps and dates."""

import re
import time
from datetime import datetime, timezone
from typing import Callable
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from agent.exceptions import ToolArgumentError
from tools.base_tool import ParameterSpec, Tool

FORMATS = ("iso", "locale", "relative")
_FRACTION = re.compile(r"(\d{2}:\d{2}:\d{2})[.,](\d+)")


def iso_millis(dt: datetime) -> str:
    """UTC ISO-8601 with millisecond precision and a ``Z`` suffix."""
    dt = dt.astimezone(timezone.utc)
    return dt.strftime("%Y-%m-%dT%H:%M:%S.") + f"{dt.microsecond // 1000:03d}Z"


def relative_label(diff_ms: float) -> str:
    """Coarse human label for a time difference, e.g. ``3 hours ago``."""
    seconds = int(abs(diff_ms) // 1000)
    minutes = seconds // 60
    hours = minutes // 60
    days = hours // 24

    if days > 0:
        count, unit = days, "day"
    elif hours > 0:
        count, unit = hours, "hour"
    elif minutes > 0:
        count, unit = minutes, "minute"
    else:
        count, unit = seconds, "second"

    label = f"{count} {unit}{'' if count == 1 else 's'}"
    return f"in {label}" if diff_ms < 0 else f"{label} ago"


def resolve_timezone(name: str):
    if name.upper() == "UTC":
        return timezone.utc
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        raise ToolArgumentError(f"Unknown timezone: {name}")


def parse_date_string(text: str) -> datetime:
    """
    Parse an ISO-8601 date or date-time. Naive values are taken as UTC.
    Free-form dates such as "Nov 14 2023" are rejected.
    """
    cleaned = text.strip()
    # fromisoformat before 3.11 only takes 3 or 6 fraction digits
    cleaned = _FRACTION.sub(lambda m: f"{m.group(1)}.{m.group(2)[:6].ljust(6, '0')}", cleaned)
    if cleaned.endswith(("Z", "z")):
        cleaned = cleaned[:-1] + "+00:00"
    try:
        dt = datetime.fromisoformat(cleaned)
    except ValueError:
        raise ToolArgumentError(f"Invalid date string: {text}")
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


class FormatTimestampTool(Tool):
    name = "format_timestamp"
    description = "Convert milliseconds timestamp to human-readable date or vice versa"
    parameters = {
        "timestamp": ParameterSpec("number", "Milliseconds timestamp to convert to date"),
        "dateString": ParameterSpec("string", "ISO 8601 date string to convert to milliseconds timestamp"),
        "timezone": ParameterSpec("string", "Timezone for formatting (default: UTC)"),
        "format": ParameterSpec(
            "string", 'Output format: "iso", "locale", "relative" (default: "iso")'
        ),
    }

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock

    async def before_execution(self, **kwargs):
        if kwargs.get("timestamp") is None and not kwargs.get("dateString"):
            raise ToolArgumentError(
                'format_timestamp requires either "timestamp" or "dateString" parameter'
            )
        fmt = kwargs.get("format") or "iso"
        if fmt not in FORMATS:
            raise ToolArgumentError(
                f"Unknown format '{fmt}'. Use one of: {', '.join(FORMATS)}"
            )

    async def execute(self, **kwargs) -> dict:
        if kwargs.get("timestamp") is not None:
            return self._from_timestamp(
                kwargs["timestamp"],
                kwargs.get("timezone") or "UTC",
                kwargs.get("format") or "iso",
            )
        return self._from_date_string(kwargs["dateString"])

    def _from_timestamp(self, timestamp: float, tz_name: str, fmt: str) -> dict:
        tz = resolve_timezone(tz_name)
        try:
            date = datetime.fromtimestamp(timestamp / 1000, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            raise ToolArgumentError(f"Timestamp out of range: {timestamp}")

        if fmt == "locale":
            formatted = date.astimezone(tz).strftime("%m/%d/%Y, %I:%M:%S %p")
        elif fmt == "relative":
            formatted = relative_label(self._clock() * 1000 - timestamp)
        else:
            formatted = iso_millis(date)

        return {
            "timestamp": timestamp,
            "date": iso_millis(date),
            "timezone": tz_name,
            "formatted": formatted,
        }

    @staticmethod
    def _from_date_string(date_string: str) -> dict:
        date = parse_date_string(date_string)
        return {
            "dateString": date_string,
            "timestamp": round(date.timestamp() * 1000),
            "iso": iso_millis(date),
        }
