"""Staff directory: resolves a caller to their school and role."""

import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from gradebook.core.exceptions import UnauthorizedError
from gradebook.models.staff import StaffMember, StaffRole

logger = logging.getLogger(__name__)


class StaffDirectory:
    """Authorization lookups against the staff directory.

    Every check fails closed: an unknown or inactive staff id, a school
    mismatch, or a missing admin record all raise UnauthorizedError before any
    write happens.
    """

    def __init__(self, db: Session):
        self.db = db

    def resolve(self, staff_id: str) -> StaffMember:
        """Get the active staff record for ``staff_id``."""
        result = self.db.execute(
            select(StaffMember).where(StaffMember.id == staff_id)
        )
        staff = result.scalar_one_or_none()
        if not staff or not staff.is_active:
            logger.warning(f"Unknown or inactive staff id {staff_id}")
            raise UnauthorizedError("Unauthorized: Staff member not found")
        return staff

    def require_member(self, staff_id: str, school_id: str) -> StaffMember:
        """Resolve ``staff_id`` and check they belong to ``school_id``."""
        staff = self.resolve(staff_id)
        if staff.school_id != school_id:
            logger.warning(
                f"Tenant mismatch: staff {staff_id} ({staff.school_id}) acting on {school_id}"
            )
            raise UnauthorizedError()
        return staff

    def require_admin(self, staff_id: str, school_id: str) -> StaffMember:
        """Resolve ``staff_id`` as an admin of ``school_id``."""
        staff = self.require_member(staff_id, school_id)
        if not staff.is_admin:
            raise UnauthorizedError("Unauthorized: Admin not found")
        return staff

    def require_role(self, staff_id: str, school_id: str, role: StaffRole) -> StaffMember:
        """Check the caller may act in ``role``; claiming admin needs an admin record."""
        staff = self.require_member(staff_id, school_id)
        if role == StaffRole.ADMIN and not staff.is_admin:
            raise UnauthorizedError("Unauthorized: Admin not found")
        return staff
