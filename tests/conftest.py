import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["AUDIT_RELAY_INTERVAL_SECONDS"] = "0"
os.environ["AUDIT_DISPATCH_ON_REQUEST"] = "false"

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine, event  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

import gradebook.models  # noqa: E402,F401
from gradebook.core.database import Base, SessionLocal  # noqa: E402
from gradebook.models.staff import StaffMember, StaffRole  # noqa: E402
from gradebook.schemas.mark import ActorRef  # noqa: E402
from gradebook.services.exam import ExamService  # noqa: E402
from tests.factories import OTHER_SCHOOL, SCHOOL, exam_definition  # noqa: E402

test_engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)


# pysqlite needs these for SAVEPOINT support
@event.listens_for(test_engine, "connect")
def _disable_pysqlite_transactions(dbapi_connection, connection_record):
    dbapi_connection.isolation_level = None


@event.listens_for(test_engine, "begin")
def _emit_begin(conn):
    conn.exec_driver_sql("BEGIN")


SessionLocal.configure(bind=test_engine)


STAFF = [
    ("admin-1", SCHOOL, "Ama Admin", StaffRole.ADMIN),
    ("teacher-1", SCHOOL, "Kofi Subject", StaffRole.SUBJECT_TEACHER),
    ("ct-1", SCHOOL, "Efua Class", StaffRole.CLASS_TEACHER),
    ("admin-2", OTHER_SCHOOL, "Yaw Elsewhere", StaffRole.ADMIN),
]


@pytest.fixture(autouse=True)
def schema():
    Base.metadata.create_all(bind=test_engine)
    session = SessionLocal()
    for staff_id, school_id, name, role in STAFF:
        session.add(StaffMember(id=staff_id, school_id=school_id, name=name, role=role))
    session.commit()
    session.close()
    yield
    Base.metadata.drop_all(bind=test_engine)


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def admin():
    return ActorRef(id="admin-1", name="Ama Admin", role=StaffRole.ADMIN)


@pytest.fixture
def teacher():
    return ActorRef(id="teacher-1", name="Kofi Subject", role=StaffRole.SUBJECT_TEACHER)


@pytest.fixture
def class_teacher():
    return ActorRef(id="ct-1", name="Efua Class", role=StaffRole.CLASS_TEACHER)


@pytest.fixture
def exam(db):
    """A draft exam of school-a with math (100) and English (50)."""
    return ExamService(db).create_exam(SCHOOL, exam_definition(), "admin-1")


@pytest.fixture
def client():
    from gradebook.main import app

    return TestClient(app)
