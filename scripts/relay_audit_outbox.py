"""Drain the audit outbox once, outside the API process."""

from dotenv import load_dotenv

load_dotenv()

from gradebook.core.config import settings  # noqa: E402
from gradebook.core.database import SessionLocal  # noqa: E402
from gradebook.services.audit import AuditEmitter  # noqa: E402

db = SessionLocal()
try:
    emitter = AuditEmitter(db)
    pending = len(emitter.pending(settings.AUDIT_RELAY_BATCH_SIZE))
    print(f"Pending audit events: {pending}")

    result = emitter.dispatch_pending(settings.AUDIT_RELAY_BATCH_SIZE)
    db.commit()
    print(f"Delivered {result.delivered}, failed {result.failed}")
finally:
    db.close()
