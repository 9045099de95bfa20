"""Audit emitter with a transactional outbox.

Audit events are staged in ``audit_outbox`` inside the same transaction as
the change they describe, then relayed to the audit sink after commit. A sink
failure leaves the event pending for the next relay pass and never fails the
primary operation.
"""

import logging
from datetime import datetime, timezone

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from gradebook.models.audit import AuditAction, AuditLog, AuditOutboxEvent
from gradebook.schemas.audit import AuditDispatchResult, AuditLogFilter, AuditLogResponse

logger = logging.getLogger(__name__)


class AuditLogSink:
    """Default sink: append to the ``audit_logs`` table."""

    def __init__(self, db: Session):
        self.db = db

    def deliver(self, event: AuditOutboxEvent) -> AuditLog:
        log = AuditLog(
            timestamp=event.timestamp,
            school_id=event.school_id,
            actor_id=event.actor_id,
            actor_name=event.actor_name,
            action=event.action,
            entity_type=event.entity_type,
            entity_id=event.entity_id,
            details=event.details,
            origin=event.origin,
            outbox_event_id=event.id,
        )
        self.db.add(log)
        self.db.flush()
        return log


class AuditEmitter:
    """Audit service - append-only."""

    def __init__(self, db: Session, sink: AuditLogSink | None = None):
        self.db = db
        self.sink = sink or AuditLogSink(db)

    def stage(
        self,
        action: AuditAction | str,
        entity_type: str,
        entity_id: str | int | None,
        actor_id: str,
        actor_name: str,
        details: str | None = None,
        school_id: str | None = None,
        origin: str = "system",
    ) -> AuditOutboxEvent:
        """Stage an audit event in the current transaction."""
        event = AuditOutboxEvent(
            timestamp=datetime.now(timezone.utc),
            school_id=school_id,
            actor_id=actor_id,
            actor_name=actor_name,
            action=action.value if isinstance(action, AuditAction) else action,
            entity_type=entity_type,
            entity_id=str(entity_id) if entity_id is not None else None,
            details=details,
            origin=origin,
        )
        self.db.add(event)
        self.db.flush()
        return event

    def pending(self, limit: int = 200) -> list[AuditOutboxEvent]:
        result = self.db.execute(
            select(AuditOutboxEvent)
            .where(AuditOutboxEvent.delivered_at.is_(None))
            .order_by(AuditOutboxEvent.id)
            .limit(limit)
        )
        return list(result.scalars().all())

    def dispatch_pending(self, limit: int = 200) -> AuditDispatchResult:
        """Relay pending outbox events to the sink.

        Each delivery runs in its own savepoint so one failing event does not
        undo the others. The caller commits.
        """
        delivered = 0
        failed = 0
        for event in self.pending(limit):
            try:
                with self.db.begin_nested():
                    self.sink.deliver(event)
                    event.delivered_at = datetime.now(timezone.utc)
                    event.attempts += 1
                delivered += 1
            except Exception as e:
                event.attempts += 1
                event.last_error = str(e)
                failed += 1
                logger.warning(
                    f"Audit event {event.id} ({event.action}) not delivered: {e}"
                )
        self.db.flush()
        if delivered or failed:
            logger.info(f"Audit relay delivered {delivered}, failed {failed}")
        return AuditDispatchResult(delivered=delivered, failed=failed)

    def list_logs(
        self,
        school_id: str,
        filters: AuditLogFilter | None = None,
        page: int = 1,
        page_size: int = 50,
    ) -> tuple[list[AuditLogResponse], int]:
        """List audit logs with filtering."""
        query = select(AuditLog).where(AuditLog.school_id == school_id)

        if filters:
            if filters.action:
                query = query.where(AuditLog.action == filters.action)
            if filters.actor_id:
                query = query.where(AuditLog.actor_id == filters.actor_id)
            if filters.entity_type:
                query = query.where(AuditLog.entity_type == filters.entity_type)
            if filters.entity_id:
                query = query.where(AuditLog.entity_id == filters.entity_id)
            if filters.date_from:
                query = query.where(AuditLog.timestamp >= filters.date_from)
            if filters.date_to:
                query = query.where(AuditLog.timestamp <= filters.date_to)

        # Count total
        count_result = self.db.execute(
            select(func.count()).select_from(query.subquery())
        )
        total = count_result.scalar() or 0

        # Apply pagination and ordering
        query = (
            query
            .order_by(AuditLog.timestamp.desc(), AuditLog.id.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
        )

        result = self.db.execute(query)
        return [AuditLogResponse.model_validate(log) for log in result.scalars().all()], total
