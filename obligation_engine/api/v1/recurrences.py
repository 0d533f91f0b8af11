"""Recurrence and installment endpoints: expand, preview and apply edits"""

import uuid
from fastapi import APIRouter, Depends

from obligation_engine.api.dependencies import get_lifecycle_service, to_response
from obligation_engine.api.v1.schemas import (
    InstallmentCreateRequest,
    OperationResponse,
    RecurrenceChangeRequest,
    RecurrenceCreateRequest,
    RecurrenceUpdateRequest,
)
from obligation_engine.domain.models import InstallmentDefinition, RecurrenceDefinition
from obligation_engine.services.lifecycle import ObligationLifecycleService

router = APIRouter()


@router.post("/recurrences", response_model=OperationResponse, status_code=201)
def create_recurrence(
    request_body: RecurrenceCreateRequest,
    service: ObligationLifecycleService = Depends(get_lifecycle_service),
):
    """Expand a new recurring obligation into pending entries, one per date"""
    definition = RecurrenceDefinition(**request_body.model_dump())
    return to_response(service.expand_recurrence(definition))


@router.post("/recurrences/{anchor_entry_id}/preview", response_model=OperationResponse)
def preview_recurrence_update(
    anchor_entry_id: uuid.UUID,
    request_body: RecurrenceChangeRequest,
    service: ObligationLifecycleService = Depends(get_lifecycle_service),
):
    """Show which entries an edit would create or remove, without writing"""
    return to_response(
        service.preview_recurrence_update(anchor_entry_id, request_body.periodicity, request_body.end_date)
    )


@router.put("/recurrences/{anchor_entry_id}", response_model=OperationResponse)
def update_recurrence(
    anchor_entry_id: uuid.UUID,
    request_body: RecurrenceUpdateRequest,
    service: ObligationLifecycleService = Depends(get_lifecycle_service),
):
    """
    Change periodicity and/or end date of the series from the anchor entry on.

    Returns:
        requires_confirmation=true with the plan when entries would be created or
        removed and `confirmed` was not set; the applied plan otherwise
    """
    return to_response(
        service.update_recurrence(
            anchor_entry_id,
            request_body.periodicity,
            request_body.end_date,
            confirmed=request_body.confirmed,
        )
    )


@router.post("/installments", response_model=OperationResponse, status_code=201)
def create_installments(
    request_body: InstallmentCreateRequest,
    service: ObligationLifecycleService = Depends(get_lifecycle_service),
):
    """Split a total into a fixed number of pending installments"""
    definition = InstallmentDefinition(**request_body.model_dump())
    return to_response(service.expand_installments(definition))
