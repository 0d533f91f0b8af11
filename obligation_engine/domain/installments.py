"""Installment plan generation for fixed-count obligations"""

from datetime import date
from decimal import Decimal, ROUND_DOWN
from typing import List

from obligation_engine.domain.exceptions import InvalidRecurrenceError
from obligation_engine.domain.models import Installment, Periodicity
from obligation_engine.domain.schedule import normalize_periodicity
from obligation_engine.utils.date_utils import shift_date

CENT = Decimal("0.01")


def generate_installment_plan(
    total_amount: Decimal,
    num_installments: int,
    first_date: date,
    periodicity: Periodicity | str = Periodicity.MONTHLY,
) -> List[Installment]:
    """
    Split a total into equal installments one period apart.

    Requirements:
    - Every installment gets the total divided by the count, rounded down to cents
    - Last installment absorbs the rounding remainder so the plan sums exactly
    - Due dates follow the same calendar arithmetic as recurring schedules

    Example:
        400.03 in 4 → [100.00, 100.00, 100.00, 100.03]

    Raises:
        InvalidRecurrenceError: non-positive total or count
    """
    if num_installments < 1:
        raise InvalidRecurrenceError("Installment count must be at least 1")
    if total_amount <= 0:
        raise InvalidRecurrenceError("Installment total must be positive")

    period = normalize_periodicity(periodicity)
    total = Decimal(total_amount).quantize(CENT)
    base_amount = (total / num_installments).quantize(CENT, rounding=ROUND_DOWN)
    if base_amount <= 0:
        raise InvalidRecurrenceError(f"{total} cannot be split into {num_installments} installments")
    remainder = total - base_amount * num_installments

    installments = []
    for i in range(num_installments):
        amount = base_amount + (remainder if i == num_installments - 1 else Decimal("0"))
        installments.append(
            Installment(index=i + 1, due_date=shift_date(first_date, period, i), amount=amount)
        )

    return installments
