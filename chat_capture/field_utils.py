"""
Normalization for creator, model and date fields.
"""

from datetime import datetime, timezone
from typing import Optional

from dateutil import parser as date_parser

from .config import PLATFORM_NAMES
from .share_utils import find_in_value
from .title_utils import trim_internal

TIMESTAMP_KEYS = ('update_time', 'create_time', 'timestamp', 'created_at', 'updated_at')

# Unix times below this are seconds, above it milliseconds
MILLISECONDS_THRESHOLD = 1e12


def make_creator(name: str, creator_type: str = 'author') -> dict:
    """Single-field creator record."""
    return {
        'last_name': name,
        'field_mode': 1,
        'creator_type': creator_type,
    }


def is_platform_name(value) -> bool:
    return trim_internal(value).lower() in PLATFORM_NAMES


def normalize_author(value) -> Optional[str]:
    """Trimmed author name, or None when empty or the platform's own name."""
    name = trim_internal(value) if isinstance(value, str) else ''
    if not name or is_platform_name(name):
        return None
    return name


def normalize_model(value) -> Optional[str]:
    model = trim_internal(value) if isinstance(value, str) else ''
    return model or None


def parse_timestamp(value) -> Optional[datetime]:
    """
    Parse unix seconds, unix milliseconds or a date string into an aware datetime.

    Naive datetimes are taken as UTC. Returns None if unparseable.
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            value = float(text)
        except ValueError:
            try:
                parsed = date_parser.parse(text)
            except (ValueError, OverflowError):
                return None
            if parsed.tzinfo is None:
                parsed = parsed.replace(tzinfo=timezone.utc)
            return parsed

    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)

    if isinstance(value, (int, float)):
        if value <= 0:
            return None
        seconds = value / 1000 if value >= MILLISECONDS_THRESHOLD else value
        try:
            return datetime.fromtimestamp(seconds, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None

    return None


def format_date(moment: datetime) -> str:
    return moment.astimezone(timezone.utc).isoformat(timespec='seconds')


def normalize_date(value) -> Optional[str]:
    """ISO 8601 string with an explicit UTC offset, or None."""
    moment = parse_timestamp(value)
    return format_date(moment) if moment else None


def newest_timestamp(values) -> Optional[datetime]:
    """Newest of the parseable values."""
    newest = None
    for value in values:
        moment = parse_timestamp(value)
        if moment and (newest is None or moment > newest):
            newest = moment
    return newest


def collect_timestamps(payload, keys=TIMESTAMP_KEYS) -> list:
    """Every value stored under a timestamp key anywhere in the payload."""
    found = []

    def accept(leaf, key):
        if key in keys and leaf is not None:
            found.append(leaf)
        return None

    find_in_value(payload, accept)
    return found


def now_utc() -> str:
    return format_date(datetime.now(timezone.utc))
