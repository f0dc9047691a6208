"""The two date representations SigV4 needs: calendar date and full timestamp."""

import datetime
from typing import NamedTuple, Optional

CALENDAR_FORMAT = '%Y%m%d'
FULL_FORMAT = '%Y%m%dT%H%M%SZ'


class DatePair(NamedTuple):
    calendar_date: str
    full_date: str


def get_date_pair(now: Optional[datetime.datetime] = None) -> DatePair:
    """Return the calendar date and full date for now (UTC)"""
    if now is None:
        now = datetime.datetime.now(datetime.timezone.utc)
    elif now.tzinfo is not None:
        now = now.astimezone(datetime.timezone.utc)
    return DatePair(now.strftime(CALENDAR_FORMAT), now.strftime(FULL_FORMAT))


def parse_date(full_date: str) -> DatePair:
    """Split a YYYYMMDDThhmmssZ timestamp into its date pair"""
    return DatePair(full_date.split('T')[0], full_date)
