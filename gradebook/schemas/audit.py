"""Audit log schemas."""

from datetime import datetime

from gradebook.schemas.common import BaseSchema


class AuditLogResponse(BaseSchema):
    """Audit log response schema."""

    id: int
    timestamp: datetime
    school_id: str | None
    actor_id: str
    actor_name: str
    action: str
    entity_type: str
    entity_id: str | None
    details: str | None
    origin: str


class AuditLogFilter(BaseSchema):
    """Audit log filtering options."""

    action: str | None = None
    actor_id: str | None = None
    entity_type: str | None = None
    entity_id: str | None = None
    date_from: datetime | None = None
    date_to: datetime | None = None


class AuditDispatchResult(BaseSchema):
    """Outcome of one outbox relay pass."""

    delivered: int
    failed: int
