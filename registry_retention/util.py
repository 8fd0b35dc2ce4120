import os
from datetime import datetime
from pathlib import Path


def auto_path() -> Path:
    context = Path(os.getcwd())
    return context


def parse_timestamp(value: str | None) -> datetime | None:
    """Parses an RFC 3339 timestamp as written by image builders and registries, which may carry nanoseconds.

    :param value: The timestamp string, e.g. ``2024-05-01T12:30:00.123456789Z``.
    :return: The parsed datetime, or None for an empty value.
    """
    if not value:
        return None
    return datetime.fromisoformat(value.replace("Z", "+00:00"))
