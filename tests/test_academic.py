from datetime import date, timedelta

import pytest
from sqlalchemy import select

from gradebook.core.exceptions import DependentDataExistsError, InvalidInputError, NotFoundError, UnauthorizedError
from gradebook.models.academic import CalendarStatus
from gradebook.models.audit import AuditOutboxEvent
from gradebook.schemas.academic import AcademicYearCreate, TermCreate
from gradebook.services.academic import AcademicCalendarService, initial_status
from tests.factories import SCHOOL


def year_request(name="2030/2031", start=date(2030, 9, 1), end=date(2031, 7, 31), **extra):
    return AcademicYearCreate(year_name=name, start_date=start, end_date=end, **extra)


def term_request(year_id, number=1, **extra):
    data = {
        "academic_year_id": year_id,
        "term_name": f"Term {number}",
        "term_number": number,
        "start_date": date(2030, 9, 1),
        "end_date": date(2030, 12, 15),
    }
    data.update(extra)
    return TermCreate(**data)


@pytest.fixture
def service(db):
    return AcademicCalendarService(db)


def test_initial_status_from_dates():
    today = date.today()
    week = timedelta(days=7)

    assert initial_status(today - week, today + week, False) == CalendarStatus.ACTIVE
    assert initial_status(today + week, today + 2 * week, False) == CalendarStatus.UPCOMING
    assert initial_status(today - 2 * week, today - week, False) == CalendarStatus.COMPLETED
    assert initial_status(today + week, today + 2 * week, True) == CalendarStatus.ACTIVE


def test_year_dates_must_be_ordered():
    with pytest.raises(InvalidInputError):
        year_request(start=date(2031, 1, 1), end=date(2030, 1, 1))


def test_create_year(service, db):
    year = service.create_year(SCHOOL, year_request(), "admin-1")

    assert year.year_code.startswith("AY")
    assert len(year.year_code) == 8
    assert year.status == CalendarStatus.UPCOMING
    assert service.get_current(SCHOOL).current_year is None

    event = db.execute(select(AuditOutboxEvent)).scalar_one()
    assert (event.action, event.entity_type) == ("CREATE", "academic_year")


def test_only_admins_manage_the_calendar(service):
    with pytest.raises(UnauthorizedError):
        service.create_year(SCHOOL, year_request(), "teacher-1")
    with pytest.raises(UnauthorizedError):
        service.create_year(SCHOOL, year_request(), "admin-2")


def test_create_year_as_current(service):
    year = service.create_year(SCHOOL, year_request(set_as_current=True), "admin-1")

    assert year.status == CalendarStatus.ACTIVE
    current = service.get_current(SCHOOL)
    assert current.current_year.id == year.id
    assert current.current_term is None


def test_switching_current_year_moves_the_pointer(service):
    first = service.create_year(SCHOOL, year_request(set_as_current=True), "admin-1")
    second = service.create_year(
        SCHOOL,
        year_request("2031/2032", date(2031, 9, 1), date(2032, 7, 31)),
        "admin-1",
    )

    current = service.set_current_year(SCHOOL, second.id, "admin-1")

    assert current.current_year.id == second.id
    assert current.current_year.status == CalendarStatus.ACTIVE
    assert service.get_current(SCHOOL).current_year.id != first.id
    assert service.get_current("school-b").current_year is None


def test_set_current_year_from_other_school_is_not_found(service):
    year = service.create_year(SCHOOL, year_request(), "admin-1")
    with pytest.raises(NotFoundError):
        AcademicCalendarService(service.db).set_current_year("school-b", year.id, "admin-2")


def test_terms(service):
    year = service.create_year(SCHOOL, year_request(), "admin-1")
    first = service.create_term(SCHOOL, term_request(year.id, 1), "admin-1")
    second = service.create_term(
        SCHOOL,
        term_request(year.id, 2, start_date=date(2031, 1, 10), end_date=date(2031, 4, 1), set_as_current=True),
        "admin-1",
    )

    assert first.term_code.startswith("TRM")
    assert [t.id for t in service.list_terms(SCHOOL, year.id)] == [first.id, second.id]
    assert service.get_current(SCHOOL).current_term.id == second.id

    service.set_current_term(SCHOOL, first.id, "admin-1")
    assert service.get_current(SCHOOL).current_term.id == first.id


def test_term_needs_a_year_of_the_same_school(service):
    with pytest.raises(NotFoundError):
        service.create_term(SCHOOL, term_request(404), "admin-1")


def test_year_with_terms_cannot_be_deleted(service):
    year = service.create_year(SCHOOL, year_request(), "admin-1")
    service.create_term(SCHOOL, term_request(year.id), "admin-1")

    with pytest.raises(DependentDataExistsError) as exc_info:
        service.delete_year(SCHOOL, year.id, "admin-1")
    assert exc_info.value.details["terms"] == 1


def test_deleting_current_year_clears_pointer(service, db):
    year = service.create_year(SCHOOL, year_request(set_as_current=True), "admin-1")

    service.delete_year(SCHOOL, year.id, "admin-1")

    assert service.list_years(SCHOOL) == []
    assert service.get_current(SCHOOL).current_year is None
    actions = db.execute(select(AuditOutboxEvent.action).order_by(AuditOutboxEvent.id)).scalars().all()
    assert actions == ["CREATE", "DELETE"]


def test_deleting_current_term_clears_pointer(service):
    year = service.create_year(SCHOOL, year_request(), "admin-1")
    term = service.create_term(SCHOOL, term_request(year.id, set_as_current=True), "admin-1")

    service.delete_term(SCHOOL, term.id, "admin-1")

    assert service.get_current(SCHOOL).current_term is None
    assert service.list_terms(SCHOOL) == []
    service.delete_year(SCHOOL, year.id, "admin-1")


def test_bulk_delete_reports_each_year(service, db):
    empty = service.create_year(SCHOOL, year_request(), "admin-1")
    busy = service.create_year(
        SCHOOL,
        year_request("2031/2032", date(2031, 9, 1), date(2032, 7, 31)),
        "admin-1",
    )
    service.create_term(SCHOOL, term_request(busy.id), "admin-1")

    result = service.bulk_delete_years(SCHOOL, [empty.id, busy.id, 9999], "admin-1")

    assert (result.total, result.successful, result.failed) == (3, 1, 2)
    outcome = {r.id: r for r in result.results}
    assert outcome[str(empty.id)].success
    assert "Delete terms first" in outcome[str(busy.id)].error
    assert not outcome["9999"].success
    assert [y.id for y in service.list_years(SCHOOL)] == [busy.id]

    bulk_events = db.execute(
        select(AuditOutboxEvent).where(AuditOutboxEvent.action == "BULK_DELETE")
    ).scalars().all()
    assert [e.entity_id for e in bulk_events] == [str(empty.id)]
