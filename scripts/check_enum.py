"""Check that PostgreSQL enum types carry every label the models use."""
from sqlalchemy import text

from gradebook.core.database import engine
from gradebook.models import CalendarStatus, Department, ExamStatus, ExamType, StaffRole, SubmissionStatus

ENUMS = {
    "examtype": ExamType,
    "examstatus": ExamStatus,
    "department": Department,
    "staffrole": StaffRole,
    "submissionstatus": SubmissionStatus,
    "calendarstatus": CalendarStatus,
}

with engine.connect() as conn:
    for type_name, enum_cls in ENUMS.items():
        result = conn.execute(
            text(
                "SELECT e.enumlabel FROM pg_enum e JOIN pg_type t ON e.enumtypid = t.oid "
                "WHERE t.typname = :type_name"
            ),
            {"type_name": type_name},
        )
        labels = {row[0] for row in result}
        # SQLAlchemy stores member names, not values
        missing = [member.name for member in enum_cls if member.name not in labels]

        if not labels:
            print(f"{type_name}: type not found - run `alembic upgrade head`")
        elif missing:
            print(f"{type_name}: missing {missing}, adding...")
            for label in missing:
                conn.execute(text(f"ALTER TYPE {type_name} ADD VALUE IF NOT EXISTS '{label}'"))
            conn.commit()
        else:
            print(f"{type_name}: ok")
