"""Audit log endpoints."""

from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from gradebook.core.config import settings
from gradebook.core.database import get_db
from gradebook.core.dependencies import AdminStaff, CurrentStaff
from gradebook.models.audit import AuditAction
from gradebook.schemas.audit import AuditDispatchResult, AuditLogFilter, AuditLogResponse
from gradebook.schemas.common import PaginatedResponse
from gradebook.services.audit import AuditEmitter

router = APIRouter()


@router.get("", response_model=PaginatedResponse[AuditLogResponse])
def list_audit_logs(
    staff: AdminStaff,
    db: Annotated[Session, Depends(get_db)],
    action: str | None = None,
    actor_id: str | None = None,
    entity_type: str | None = None,
    entity_id: str | None = None,
    date_from: datetime | None = None,
    date_to: datetime | None = None,
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=200),
):
    """
    List the school's audit logs with filtering.
    Audit logs are append-only and cannot be modified.
    """
    service = AuditEmitter(db)
    filters = AuditLogFilter(
        action=action,
        actor_id=actor_id,
        entity_type=entity_type,
        entity_id=entity_id,
        date_from=date_from,
        date_to=date_to,
    )
    logs, total = service.list_logs(
        staff.school_id,
        filters=filters,
        page=page,
        page_size=page_size,
    )

    return PaginatedResponse(
        items=logs,
        total=total,
        page=page,
        page_size=page_size,
        total_pages=(total + page_size - 1) // page_size,
    )


@router.get("/actions", response_model=list[str])
def list_audit_actions(
    staff: CurrentStaff,
):
    """
    List all available audit action types.
    """
    return [action.value for action in AuditAction]


@router.post("/dispatch", response_model=AuditDispatchResult)
def dispatch_audit_outbox(
    staff: AdminStaff,
    db: Annotated[Session, Depends(get_db)],
):
    """Run one outbox relay pass now instead of waiting for the scheduler."""
    service = AuditEmitter(db)
    return service.dispatch_pending(settings.AUDIT_RELAY_BATCH_SIZE)
