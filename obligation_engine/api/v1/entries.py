"""Scheduled entry endpoints: create, list, confirm, cancel, delete"""

import uuid
from typing import Literal, Optional
from fastapi import APIRouter, Depends, Query

from obligation_engine.api.dependencies import get_lifecycle_service, to_response
from obligation_engine.api.v1.schemas import (
    ConfirmRequest,
    EntryCreateRequest,
    EntryListResponse,
    EntrySchema,
    OperationResponse,
)
from obligation_engine.domain.models import AccountScope, EntryKind, EntryStatus, OperationResult, ScheduledEntry
from obligation_engine.domain.exceptions import NotFoundError
from obligation_engine.services.lifecycle import ObligationLifecycleService

router = APIRouter()


@router.post("/entries", response_model=OperationResponse, status_code=201)
def create_entry(
    request_body: EntryCreateRequest,
    service: ObligationLifecycleService = Depends(get_lifecycle_service),
):
    """Create a single pending entry (no recurrence)"""
    result = service.create_entry(
        ScheduledEntry(
            owner_id=request_body.owner_id,
            kind=request_body.kind,
            amount=request_body.amount,
            description=request_body.description,
            category_id=request_body.category_id,
            expected_date=request_body.expected_date,
            account_scope=request_body.account_scope,
            account_id=request_body.account_id,
            counterparty=request_body.counterparty,
        )
    )
    return to_response(result)


@router.get("/entries", response_model=EntryListResponse)
def list_entries(
    owner_id: str = Query(..., description="Owner identifier"),
    kind: Optional[EntryKind] = Query(None),
    account_scope: Optional[AccountScope] = Query(None),
    status: Optional[EntryStatus] = Query(None),
    service: ObligationLifecycleService = Depends(get_lifecycle_service),
):
    """List an owner's scheduled entries ordered by expected date"""
    entries = service.entries.list_entries(owner_id, kind=kind, account_scope=account_scope, status=status)
    return EntryListResponse(owner_id=owner_id, entries=[EntrySchema.from_domain(e) for e in entries])


@router.get("/entries/upcoming", response_model=EntryListResponse)
def list_upcoming(
    owner_id: str = Query(..., description="Owner identifier"),
    account_scope: AccountScope = Query(AccountScope.PERSONAL),
    service: ObligationLifecycleService = Depends(get_lifecycle_service),
):
    """
    Pending entries due soon.

    Returns:
        Up to the configured limit of entries due within the upcoming window
    """
    entries = service.upcoming(owner_id, account_scope)
    return EntryListResponse(owner_id=owner_id, entries=[EntrySchema.from_domain(e) for e in entries])


@router.get("/entries/{entry_id}", response_model=OperationResponse)
def get_entry(
    entry_id: uuid.UUID,
    service: ObligationLifecycleService = Depends(get_lifecycle_service),
):
    entry = service.entries.find(entry_id)
    if entry is None:
        return to_response(OperationResult.failure(NotFoundError.error_kind, f"Scheduled entry {entry_id} not found"))
    return to_response(OperationResult.success(entry=entry))


@router.post("/entries/{entry_id}/confirm", response_model=OperationResponse)
def confirm_entry(
    entry_id: uuid.UUID,
    request_body: Optional[ConfirmRequest] = None,
    service: ObligationLifecycleService = Depends(get_lifecycle_service),
):
    """
    Realize a pending entry into a ledger transaction.

    Flow:
    1. Insert the ledger transaction (payer/payee from the entry's counterparty)
    2. Mark the entry paid with the effective date and transaction link
    Both happen in one commit.
    """
    effective_date = request_body.effective_date if request_body else None
    return to_response(service.confirm(entry_id, effective_date))


@router.post("/entries/{entry_id}/cancel", response_model=OperationResponse)
def cancel_entry(
    entry_id: uuid.UUID,
    service: ObligationLifecycleService = Depends(get_lifecycle_service),
):
    """Undo a confirmation: delete the ledger transaction, entry back to pending"""
    return to_response(service.cancel(entry_id))


@router.delete("/entries/{entry_id}", response_model=OperationResponse)
def delete_entry(
    entry_id: uuid.UUID,
    scope: Literal["single", "series"] = Query("single"),
    service: ObligationLifecycleService = Depends(get_lifecycle_service),
):
    """Delete a non-paid entry, or it and the later non-paid entries of its series"""
    return to_response(service.delete_entry(entry_id, scope=scope))
