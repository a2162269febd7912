import re
from datetime import date, datetime
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from app.core.config import APP_TIMEZONE
from app.services.text_utils import normalize_spaces

SHEET_DATE_FORMAT = "%d/%m/%Y"
SHEET_TIMESTAMP_FORMAT = "%d/%m/%Y %H:%M:%S"
INPUT_DATE_FORMATS = ("%Y-%m-%d", "%d/%m/%Y", "%d-%m-%Y", "%d/%m/%y", "%Y/%m/%d")
ISO_WITH_TIME = re.compile(r"^(\d{4}-\d{2}-\d{2})[T ]")


def parse_date(value: object) -> Optional[date]:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = normalize_spaces(value)
    if not text or text == "-":
        return None
    match = ISO_WITH_TIME.match(text)
    if match:
        text = match.group(1)
    for fmt in INPUT_DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    return None


def format_sheet_date(value: date) -> str:
    return value.strftime(SHEET_DATE_FORMAT)


def normalize_sheet_date(value: object) -> Optional[str]:
    parsed = parse_date(value)
    return format_sheet_date(parsed) if parsed else None


def _local_zone():
    try:
        return ZoneInfo(APP_TIMEZONE)
    except (ZoneInfoNotFoundError, ValueError):
        return None


def now_local() -> datetime:
    zone = _local_zone()
    return datetime.now(zone) if zone else datetime.now()


def today_local() -> date:
    return now_local().date()
