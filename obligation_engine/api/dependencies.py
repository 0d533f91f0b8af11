"""Dependency injection for FastAPI endpoints"""

from fastapi import Depends, HTTPException, Request
from sqlalchemy.orm import Session

from obligation_engine.api.v1.schemas import ErrorDetail, OperationResponse
from obligation_engine.domain.models import OperationResult
from obligation_engine.infrastructure.database.session import get_db
from obligation_engine.services.lifecycle import ObligationLifecycleService

STATUS_BY_ERROR_KIND = {
    "not_found": 404,
    "invalid_state": 409,
    "invalid_entry": 422,
    "invalid_recurrence": 422,
    "store_failure": 503,
}


def get_request_id(request: Request) -> str:
    """Extract request ID from request state"""
    return getattr(request.state, "request_id", "unknown")


def get_lifecycle_service(request: Request, db: Session = Depends(get_db)) -> ObligationLifecycleService:
    """Provide a lifecycle service bound to the request's session"""
    return ObligationLifecycleService(db, request_id=get_request_id(request))


def to_response(result: OperationResult) -> OperationResponse:
    """Map an operation result to a response, or raise with the error kind and verbatim message"""
    if not result.ok:
        raise HTTPException(
            status_code=STATUS_BY_ERROR_KIND.get(result.error_kind, 500),
            detail=ErrorDetail(error_kind=result.error_kind, message=result.message).model_dump(),
        )
    return OperationResponse.from_result(result)
