"""
dates.py — Canonical display dates for Socrata timestamps.

Socrata floating timestamps look like "2023-07-04T21:15:00.000". They are
read as UTC and rendered in Chicago local time as

    2023/07/04 16:15:00 CDT

Fields are zero-padded and ordered year → second, so comparing two
canonical strings lexicographically gives chronological order. The
earliest/latest tracking in incident_aggregator relies on that.
"""

from datetime import datetime, timezone
from zoneinfo import ZoneInfo

CHICAGO_TZ = ZoneInfo("America/Chicago")
CANONICAL_FORMAT = "%Y/%m/%d %H:%M:%S %Z"

_RAW_FORMATS = (
    "%Y-%m-%dT%H:%M:%S.%f",
    "%Y-%m-%dT%H:%M:%S",
)


def format_date(raw_date: str) -> str:
    """
    Convert a raw Socrata timestamp into the canonical display format.

    Unparseable input is returned unchanged so the record is still counted.
    """
    for fmt in _RAW_FORMATS:
        try:
            parsed = datetime.strptime(raw_date, fmt)
        except (TypeError, ValueError):
            continue
        return parsed.replace(tzinfo=timezone.utc).astimezone(CHICAGO_TZ).strftime(CANONICAL_FORMAT)
    return raw_date
