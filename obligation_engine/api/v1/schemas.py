"""Pydantic schemas for API request/response validation"""

from pydantic import BaseModel, Field
from datetime import date
from decimal import Decimal
from typing import Any, Dict, List, Literal, Optional

from obligation_engine.domain.models import (
    AccountScope,
    EntryKind,
    EntryStatus,
    OperationResult,
    Periodicity,
    ReconciliationPlan,
    ScheduledEntry,
)


class EntryCreateRequest(BaseModel):
    """Request body for POST /v1/entries"""

    owner_id: str = Field(..., min_length=1, description="Owner identifier")
    kind: EntryKind
    amount: Decimal = Field(..., gt=0, decimal_places=2)
    description: str = Field(..., min_length=1)
    category_id: str = Field(..., min_length=1)
    expected_date: date
    account_scope: AccountScope = AccountScope.PERSONAL
    account_id: Optional[str] = None
    counterparty: Optional[str] = Field(None, description="Payer for expenses, payee for incomes")


class ConfirmRequest(BaseModel):
    """Request body for POST /v1/entries/{entry_id}/confirm"""

    effective_date: Optional[date] = Field(None, description="Defaults to today")


class RecurrenceCreateRequest(BaseModel):
    """Request body for POST /v1/recurrences"""

    owner_id: str = Field(..., min_length=1)
    kind: EntryKind
    amount: Decimal = Field(..., gt=0, decimal_places=2)
    description: str = Field(..., min_length=1)
    category_id: str = Field(..., min_length=1)
    start_date: date
    periodicity: Periodicity
    end_date: Optional[date] = Field(None, description="Open-ended series expand over the configured horizon")
    account_scope: AccountScope = AccountScope.PERSONAL
    account_id: Optional[str] = None
    counterparty: Optional[str] = None


class RecurrenceChangeRequest(BaseModel):
    """Request body for previewing or applying a recurrence edit"""

    periodicity: Periodicity
    end_date: date


class RecurrenceUpdateRequest(RecurrenceChangeRequest):
    """Request body for PUT /v1/recurrences/{anchor_entry_id}"""

    confirmed: bool = Field(False, description="Apply a plan that creates or removes entries")


class InstallmentCreateRequest(BaseModel):
    """Request body for POST /v1/installments"""

    owner_id: str = Field(..., min_length=1)
    kind: EntryKind
    total_amount: Decimal = Field(..., gt=0, decimal_places=2)
    count: int = Field(..., ge=1, le=480)
    description: str = Field(..., min_length=1)
    category_id: str = Field(..., min_length=1)
    first_date: date
    periodicity: Periodicity = Periodicity.MONTHLY
    account_scope: AccountScope = AccountScope.PERSONAL
    account_id: Optional[str] = None
    counterparty: Optional[str] = None


class InstallmentInfoSchema(BaseModel):
    current_index: int
    total_count: int


class EntrySchema(BaseModel):
    """Scheduled entry as returned by the API"""

    id: Optional[str] = None
    owner_id: str
    kind: EntryKind
    amount: Decimal
    description: str
    category_id: str
    expected_date: date
    account_scope: AccountScope
    account_id: Optional[str] = None
    counterparty: Optional[str] = None
    status: EntryStatus
    is_recurring: bool
    periodicity: Optional[Periodicity] = None
    recurrence_end_date: Optional[date] = None
    installment_info: Optional[InstallmentInfoSchema] = None
    recurrence_group_id: Optional[str] = None
    realized_transaction_id: Optional[str] = None
    effective_date: Optional[date] = None

    @classmethod
    def from_domain(cls, entry: ScheduledEntry) -> "EntrySchema":
        return cls(
            id=str(entry.id) if entry.id else None,
            owner_id=entry.owner_id,
            kind=entry.kind,
            amount=entry.amount,
            description=entry.description,
            category_id=entry.category_id,
            expected_date=entry.expected_date,
            account_scope=entry.account_scope,
            account_id=entry.account_id,
            counterparty=entry.counterparty,
            status=entry.status,
            is_recurring=entry.is_recurring,
            periodicity=entry.periodicity,
            recurrence_end_date=entry.recurrence_end_date,
            installment_info=(
                InstallmentInfoSchema(
                    current_index=entry.installment_info.current_index,
                    total_count=entry.installment_info.total_count,
                )
                if entry.installment_info
                else None
            ),
            recurrence_group_id=str(entry.recurrence_group_id) if entry.recurrence_group_id else None,
            realized_transaction_id=str(entry.realized_transaction_id) if entry.realized_transaction_id else None,
            effective_date=entry.effective_date,
        )


class PlanSchema(BaseModel):
    """Reconciliation plan with its human-readable impact"""

    to_create: List[EntrySchema]
    to_delete: List[EntrySchema]
    is_noop: bool
    summary: str

    @classmethod
    def from_domain(cls, plan: ReconciliationPlan) -> "PlanSchema":
        return cls(
            to_create=[EntrySchema.from_domain(e) for e in plan.to_create],
            to_delete=[EntrySchema.from_domain(e) for e in plan.to_delete],
            is_noop=plan.is_noop,
            summary=plan.impact_summary(),
        )


class OperationResponse(BaseModel):
    """Successful lifecycle operation"""

    ok: Literal[True] = True
    message: Optional[str] = None
    entry: Optional[EntrySchema] = None
    entries: List[EntrySchema] = []
    transaction_id: Optional[str] = None
    group_id: Optional[str] = None
    plan: Optional[PlanSchema] = None
    requires_confirmation: bool = False
    details: Dict[str, Any] = {}

    @classmethod
    def from_result(cls, result: OperationResult) -> "OperationResponse":
        return cls(
            message=result.message,
            entry=EntrySchema.from_domain(result.entry) if result.entry else None,
            entries=[EntrySchema.from_domain(e) for e in result.entries],
            transaction_id=str(result.transaction_id) if result.transaction_id else None,
            group_id=str(result.group_id) if result.group_id else None,
            plan=PlanSchema.from_domain(result.plan) if result.plan else None,
            requires_confirmation=result.requires_confirmation,
            details=result.details,
        )


class EntryListResponse(BaseModel):
    """Response for entry listings"""

    owner_id: str
    entries: List[EntrySchema]


class ErrorDetail(BaseModel):
    """Body of `detail` for failed operations"""

    ok: Literal[False] = False
    error_kind: str
    message: str
