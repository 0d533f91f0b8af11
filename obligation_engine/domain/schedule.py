"""Date sequence generation for recurring obligations"""

import logging
from datetime import date
from typing import List, Optional

from obligation_engine.config import settings
from obligation_engine.domain.exceptions import InvalidRecurrenceError
from obligation_engine.domain.models import Periodicity
from obligation_engine.utils.date_utils import shift_date

logger = logging.getLogger(__name__)


def normalize_periodicity(value: Periodicity | str | None) -> Periodicity:
    """
    Resolve a stored periodicity value.

    Unknown or missing values fall back to monthly. The fallback is logged
    because it points at bad data rather than a valid schedule.
    """
    if isinstance(value, Periodicity):
        return value
    try:
        return Periodicity(value)
    except ValueError:
        logger.warning("Unknown periodicity, falling back to monthly", extra={"periodicity": value})
        return Periodicity.MONTHLY


def next_occurrence(current: date, periodicity: Periodicity | str) -> date:
    """One period step after `current`"""
    return shift_date(current, normalize_periodicity(periodicity))


def generate_dates(
    start_date: date,
    end_date: date,
    periodicity: Periodicity | str,
    max_count: Optional[int] = None,
) -> List[date]:
    """
    Generate the ordered dates of a recurrence (inclusive of start, never past end).

    Requirements:
    - First element equals start_date, all elements within [start, end]
    - Strictly ascending, identical output for identical input
    - Month-based periods are computed from start_date (start + k * step), so a
      day-of-month clamped by a short month is restored afterwards:
      Jan 31 -> Feb 29 -> Mar 31 -> Apr 30

    Raises:
        InvalidRecurrenceError: when the sequence would exceed max_count dates
    """
    if end_date < start_date:
        return []

    period = normalize_periodicity(periodicity)
    limit = max_count if max_count is not None else settings.max_generated_entries

    dates = []
    step = 0
    current = start_date
    while current <= end_date:
        if len(dates) >= limit:
            raise InvalidRecurrenceError(
                f"Recurrence from {start_date.isoformat()} to {end_date.isoformat()} "
                f"({period.value}) exceeds {limit} entries"
            )
        dates.append(current)
        step += 1
        current = shift_date(start_date, period, step)

    return dates
