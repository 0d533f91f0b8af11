"""Reconciliation of a stored recurrence group against an edited recurrence definition"""

from dataclasses import replace
from datetime import date
from typing import List, Optional, Sequence

from obligation_engine.domain.models import (
    EntryStatus,
    Periodicity,
    ReconciliationPlan,
    ScheduledEntry,
)
from obligation_engine.domain.schedule import generate_dates, next_occurrence, normalize_periodicity


def build_series_entry(
    anchor: ScheduledEntry,
    expected_date: date,
    periodicity: Periodicity,
    end_date: date,
) -> ScheduledEntry:
    """New pending entry of the anchor's series on `expected_date`"""
    return replace(
        anchor,
        id=None,
        expected_date=expected_date,
        status=EntryStatus.PENDING,
        is_recurring=True,
        periodicity=periodicity,
        recurrence_end_date=end_date,
        installment_info=None,
        realized_transaction_id=None,
        effective_date=None,
    )


def _resume_dates(
    anchor: ScheduledEntry,
    last_existing: date,
    period: Periodicity,
    new_end_date: date,
    series_start: Optional[date],
) -> List[date]:
    """
    Dates after `last_existing` up to `new_end_date`.

    While the periodicity is unchanged the series keeps its own cadence, counted
    from the series start (or the anchor) when the stored dates sit on it, so a
    day clamped by a short month is restored later. Otherwise expansion steps
    from the latest stored date.
    """
    if anchor.periodicity is not None and normalize_periodicity(anchor.periodicity) == period:
        for origin in (series_start, anchor.expected_date):
            if origin is None or origin > last_existing:
                continue
            if last_existing in generate_dates(origin, last_existing, period):
                return [day for day in generate_dates(origin, new_end_date, period) if day > last_existing]

    return generate_dates(next_occurrence(last_existing, period), new_end_date, period)


def plan_reconciliation(
    anchor: ScheduledEntry,
    existing: Sequence[ScheduledEntry],
    new_periodicity: Periodicity | str,
    new_end_date: date,
    series_start: Optional[date] = None,
) -> ReconciliationPlan:
    """
    Compute which entries to create and delete after a recurrence edit.

    Algorithm:
    1. Expansion resumes after the latest stored date, or after the anchor when
       the group is empty. Earlier entries, paid or edited, are never
       regenerated. An unchanged periodicity stays on the series cadence
       (Jan 31 -> Feb 29 -> Mar 31); a new one steps from the latest date.
    2. Generated dates up to the new end date that are not stored yet become
       pending entries copied from the anchor.
    3. Stored entries dated strictly after the new end date are removed,
       except paid ones: realized history is immutable.

    An end date before the next candidate simply produces no creates.
    """
    period = normalize_periodicity(new_periodicity)
    stored_dates = {entry.expected_date for entry in existing}
    last_existing = max(stored_dates) if stored_dates else anchor.expected_date

    to_create: List[ScheduledEntry] = [
        build_series_entry(anchor, day, period, new_end_date)
        for day in _resume_dates(anchor, last_existing, period, new_end_date, series_start)
        if day not in stored_dates
    ]

    to_delete = [
        entry
        for entry in sorted(existing, key=lambda e: e.expected_date)
        if entry.expected_date > new_end_date and entry.status != EntryStatus.PAID
    ]

    return ReconciliationPlan(to_create=to_create, to_delete=to_delete)
