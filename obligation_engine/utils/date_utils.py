"""Date manipulation utilities"""

from datetime import date
from typing import Dict

from dateutil.relativedelta import relativedelta

from obligation_engine.domain.models import Periodicity

# Day-based periods step in fixed days, the rest in calendar months
PERIOD_STEPS: Dict[Periodicity, relativedelta] = {
    Periodicity.DAILY: relativedelta(days=1),
    Periodicity.WEEKLY: relativedelta(days=7),
    Periodicity.BIWEEKLY: relativedelta(days=14),
    Periodicity.MONTHLY: relativedelta(months=1),
    Periodicity.BIMONTHLY: relativedelta(months=2),
    Periodicity.QUARTERLY: relativedelta(months=3),
    Periodicity.SEMIANNUAL: relativedelta(months=6),
    Periodicity.ANNUAL: relativedelta(months=12),
}


def shift_date(origin: date, periodicity: Periodicity, steps: int = 1) -> date:
    """Move `origin` forward by `steps` periods (month-end days clamp, e.g. Jan 31 + 1 month = Feb 29)"""
    return origin + PERIOD_STEPS[periodicity] * steps


def add_days(from_date: date, days: int) -> date:
    return from_date + relativedelta(days=days)
