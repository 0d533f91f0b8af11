"""Domain models - pure Python dataclasses representing business entities"""

import uuid
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional


class EntryKind(str, Enum):
    INCOME = "income"
    EXPENSE = "expense"


class EntryStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    CANCELED = "canceled"


class AccountScope(str, Enum):
    PERSONAL = "personal"
    BUSINESS = "business"


class Periodicity(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    BIWEEKLY = "biweekly"
    MONTHLY = "monthly"
    BIMONTHLY = "bimonthly"
    QUARTERLY = "quarterly"
    SEMIANNUAL = "semiannual"
    ANNUAL = "annual"


class SeriesType(str, Enum):
    RECURRENCE = "recurrence"
    INSTALLMENT = "installment"


@dataclass
class InstallmentInfo:
    """Position of an entry inside a fixed-count installment plan"""

    current_index: int
    total_count: int


@dataclass
class ScheduledEntry:
    """Expected, not-yet-realized income or expense"""

    owner_id: str
    kind: EntryKind
    amount: Decimal
    description: str
    category_id: str
    expected_date: date
    account_scope: AccountScope = AccountScope.PERSONAL
    account_id: Optional[str] = None
    counterparty: Optional[str] = None
    status: EntryStatus = EntryStatus.PENDING
    is_recurring: bool = False
    periodicity: Optional[Periodicity] = None
    recurrence_end_date: Optional[date] = None
    installment_info: Optional[InstallmentInfo] = None
    recurrence_group_id: Optional[uuid.UUID] = None
    realized_transaction_id: Optional[uuid.UUID] = None
    effective_date: Optional[date] = None
    id: Optional[uuid.UUID] = None


@dataclass
class LedgerTransaction:
    """Realized financial movement created when a scheduled entry is confirmed"""

    owner_id: str
    kind: EntryKind
    amount: Decimal
    description: str
    category_id: str
    transaction_date: date
    account_scope: AccountScope
    originating_entry_id: uuid.UUID
    account_id: Optional[str] = None
    payer: Optional[str] = None
    payee: Optional[str] = None
    id: Optional[uuid.UUID] = None


@dataclass
class RecurrenceDefinition:
    """What a user enters when first defining a recurring obligation"""

    owner_id: str
    kind: EntryKind
    amount: Decimal
    description: str
    category_id: str
    start_date: date
    periodicity: Periodicity
    end_date: Optional[date] = None
    account_scope: AccountScope = AccountScope.PERSONAL
    account_id: Optional[str] = None
    counterparty: Optional[str] = None


@dataclass
class InstallmentDefinition:
    """Fixed-count purchase or receivable split into equal installments"""

    owner_id: str
    kind: EntryKind
    total_amount: Decimal
    count: int
    description: str
    category_id: str
    first_date: date
    periodicity: Periodicity = Periodicity.MONTHLY
    account_scope: AccountScope = AccountScope.PERSONAL
    account_id: Optional[str] = None
    counterparty: Optional[str] = None


@dataclass
class Installment:
    """Single payment in an installment plan"""

    index: int
    due_date: date
    amount: Decimal


@dataclass
class ReconciliationPlan:
    """Create/delete diff aligning a stored recurrence group with an edited definition"""

    to_create: List[ScheduledEntry] = field(default_factory=list)
    to_delete: List[ScheduledEntry] = field(default_factory=list)

    @property
    def is_noop(self) -> bool:
        return not self.to_create and not self.to_delete

    def impact_summary(self) -> str:
        if self.is_noop:
            return "No entries will change"
        parts = []
        if self.to_create:
            parts.append(f"{len(self.to_create)} entries will be created")
        if self.to_delete:
            parts.append(f"{len(self.to_delete)} entries will be removed")
        return "; ".join(parts)


@dataclass
class OperationResult:
    """
    Outcome of a caller-facing lifecycle operation.

    Either ok with an optional payload, or failed with the error kind and a
    message meant to be shown verbatim.
    """

    ok: bool
    error_kind: Optional[str] = None
    message: Optional[str] = None
    entry: Optional[ScheduledEntry] = None
    entries: List[ScheduledEntry] = field(default_factory=list)
    transaction_id: Optional[uuid.UUID] = None
    group_id: Optional[uuid.UUID] = None
    plan: Optional[ReconciliationPlan] = None
    requires_confirmation: bool = False
    details: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def success(cls, **payload: Any) -> "OperationResult":
        return cls(ok=True, **payload)

    @classmethod
    def failure(cls, error_kind: str, message: str) -> "OperationResult":
        return cls(ok=False, error_kind=error_kind, message=message)
