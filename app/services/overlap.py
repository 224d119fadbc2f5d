# app/services/overlap.py

from datetime import datetime
from typing import Iterable, Optional

from app.models.enums import LIVE_STATUSES
from app.models.outpass import Outpass


def intervals_overlap(
    from_date: datetime,
    to_date: datetime,
    other_from: datetime,
    other_to: datetime,
) -> bool:
    """Touching endpoints count as overlap: a new pass cannot start the instant another ends."""
    return other_from <= to_date and from_date <= other_to


def find_overlap(
    existing: Iterable[Outpass],
    from_date: datetime,
    to_date: datetime,
) -> Optional[Outpass]:
    """
    Return the first live outpass whose interval intersects [from_date, to_date),
    or None. Non-live records are ignored even if the caller passes them in.
    """
    for outpass in existing:
        if outpass.status not in LIVE_STATUSES:
            continue
        if intervals_overlap(from_date, to_date, outpass.from_date, outpass.to_date):
            return outpass
    return None
