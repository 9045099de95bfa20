"""FastAPI dependency injection utilities."""

from typing import Annotated

from fastapi import Depends, Header
from sqlalchemy import select
from sqlalchemy.orm import Session

from gradebook.core.database import get_db
from gradebook.core.exceptions import AuthenticationError, UnauthorizedError
from gradebook.core.security import verify_access_token
from gradebook.models.staff import StaffMember
from gradebook.schemas.mark import ActorRef


def get_current_staff(
    db: Annotated[Session, Depends(get_db)],
    authorization: str = Header(..., description="Bearer token"),
) -> StaffMember:
    """Extract and validate the calling staff member from the JWT token."""
    if not authorization.startswith("Bearer "):
        raise AuthenticationError("Invalid authorization header format")

    token = authorization[7:]  # Remove "Bearer " prefix
    payload = verify_access_token(token)

    if not payload:
        raise AuthenticationError("Invalid or expired token")

    staff_id = payload.get("sub")
    if not staff_id:
        raise AuthenticationError("Invalid token payload")

    result = db.execute(select(StaffMember).where(StaffMember.id == staff_id))
    staff = result.scalar_one_or_none()

    if not staff:
        raise AuthenticationError("Staff member not found")

    if not staff.is_active:
        raise AuthenticationError("Staff account is deactivated")

    return staff


def require_admin(
    staff: Annotated[StaffMember, Depends(get_current_staff)],
) -> StaffMember:
    """Dependency that requires a school admin."""
    if not staff.is_admin:
        raise UnauthorizedError("Unauthorized: Admin not found")
    return staff


def actor_ref(staff: StaffMember) -> ActorRef:
    """The caller as recorded on marks and audit entries."""
    return ActorRef(id=staff.id, name=staff.name, role=staff.role)


# Type aliases for dependency injection
CurrentStaff = Annotated[StaffMember, Depends(get_current_staff)]
AdminStaff = Annotated[StaffMember, Depends(require_admin)]
