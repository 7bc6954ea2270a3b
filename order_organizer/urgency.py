"""Urgency classification of an order against today's date."""

import datetime
import logging
from enum import Enum
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

logger = logging.getLogger(__name__)

DEFAULT_TIMEZONE = "America/Sao_Paulo"


class UrgencyCode(str, Enum):
    LATE = "LATE"
    DUE_TODAY = "DUE_TODAY"
    FUTURE = "FUTURE"
    NO_DATE = "NO_DATE"

    def __str__(self) -> str:
        return self.value


def classify(today: datetime.date, due: Optional[datetime.date]) -> UrgencyCode:
    if due is None:
        return UrgencyCode.NO_DATE
    if due < today:
        return UrgencyCode.LATE
    if due == today:
        return UrgencyCode.DUE_TODAY
    return UrgencyCode.FUTURE


def resolve_zone(name: Optional[str]) -> ZoneInfo:
    """Configured zone, or the default one when the name is blank or unknown."""
    if name and name.strip():
        try:
            return ZoneInfo(name.strip())
        except (ZoneInfoNotFoundError, ValueError):
            logger.warning(f"Unknown time zone '{name}', using {DEFAULT_TIMEZONE}")
    return ZoneInfo(DEFAULT_TIMEZONE)


def today_in(zone: ZoneInfo) -> datetime.date:
    return datetime.datetime.now(zone).date()
