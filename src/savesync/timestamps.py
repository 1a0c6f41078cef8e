"""
Snapshot naming: DD-MM-YYYY_HH-MM-SS.

The name is the only wire-visible format and must be reproduced exactly.
Parsing splits on '_' and then on '-' rather than trusting strptime, so
anything else in a backup folder is rejected instead of misread.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

SNAPSHOT_FORMAT = "%d-%m-%Y_%H-%M-%S"


def format_timestamp(moment: datetime) -> str:
    """Render a datetime as a snapshot name (second precision)."""
    return moment.strftime(SNAPSHOT_FORMAT)


def parse_timestamp(name: str) -> datetime:
    """Parse a snapshot name back into a datetime.

    Args:
        name: A name like '07-03-2025_21-04-59'.

    Returns:
        datetime: Naive local datetime.

    Raises:
        ValueError: If the name is not a valid snapshot name.
    """
    parts = name.split("_")
    if len(parts) != 2:
        raise ValueError(f"Not a snapshot name: {name!r}")
    date_part = parts[0].split("-")
    time_part = parts[1].split("-")
    if len(date_part) != 3 or len(time_part) != 3:
        raise ValueError(f"Not a snapshot name: {name!r}")
    if not all(p.isdigit() for p in date_part + time_part):
        raise ValueError(f"Not a snapshot name: {name!r}")

    day, month, year = (int(p) for p in date_part)
    hour, minute, second = (int(p) for p in time_part)
    return datetime(year, month, day, hour, minute, second)


def try_parse_timestamp(name: str) -> Optional[datetime]:
    """Like parse_timestamp, but returns None for non-snapshot names."""
    try:
        return parse_timestamp(name)
    except ValueError:
        return None


def display_timestamp(name: str) -> str:
    """Short human form 'DD/MM/YYYY HH:MM' used in listings."""
    moment = parse_timestamp(name)
    return moment.strftime("%d/%m/%Y %H:%M")
