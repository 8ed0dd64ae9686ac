import datetime as dt

import pydantic
import pytest

from agenda.domain.intervals import TimeInterval
from agenda.domain.models import (
    Appointment,
    AppointmentFilter,
    AppointmentPatch,
    AppointmentRequest,
    AppointmentStatus,
    ClassFilter,
    ClassPatch,
    ClassSession,
)

UTC = dt.timezone.utc


def _at(hour: int) -> dt.datetime:
    return dt.datetime(2023, 6, 15, hour, tzinfo=UTC)


def _appointment(**overrides: object) -> Appointment:
    fields: dict[str, object] = {
        "appointment_id": "a1",
        "course_id": "c1",
        "business_id": "b1",
        "professional_id": "p1",
        "client_id": "u1",
        "start_date": _at(9),
        "end_date": _at(10),
    }
    fields.update(overrides)
    return Appointment(**fields)  # type: ignore[arg-type]


def _class(**overrides: object) -> ClassSession:
    fields: dict[str, object] = {
        "class_id": "k1",
        "course_id": "c1",
        "business_id": "b1",
        "instructor_id": "i1",
        "start_date": _at(9),
        "end_date": _at(10),
        "max_capacity": 2,
    }
    fields.update(overrides)
    return ClassSession(**fields)  # type: ignore[arg-type]


class TestClassSession:
    def test_current_capacity_tracks_roster(self) -> None:
        session = _class()

        assert session.current_capacity == 0
        assert session.with_student("s1").current_capacity == 1
        assert session.with_student("s1").without_student("s1").current_capacity == 0

    def test_roster_rejects_duplicates(self) -> None:
        with pytest.raises(pydantic.ValidationError):
            _class(enrolled_students=("s1", "s1"))

    def test_is_full(self) -> None:
        assert _class(enrolled_students=("s1", "s2")).is_full
        assert not _class(enrolled_students=("s1",)).is_full

    def test_dump_includes_derived_capacity(self) -> None:
        dumped = _class(enrolled_students=("s1",)).model_dump()

        assert dumped["current_capacity"] == 1


class TestRequests:
    def test_rejects_malformed_ids(self) -> None:
        with pytest.raises(pydantic.ValidationError):
            AppointmentRequest(
                course_id="not an id!",
                business_id="b1",
                professional_id="p1",
                client_id="u1",
                start_date=_at(9),
                end_date=_at(10),
            )

    def test_rejects_negative_price(self) -> None:
        with pytest.raises(pydantic.ValidationError):
            AppointmentRequest(
                course_id="c1",
                business_id="b1",
                professional_id="p1",
                client_id="u1",
                start_date=_at(9),
                end_date=_at(10),
                price=-1,
            )

    def test_class_patch_cannot_write_roster(self) -> None:
        with pytest.raises(pydantic.ValidationError):
            ClassPatch(enrolled_students=("s1",))  # type: ignore[call-arg]

    def test_class_patch_cannot_write_capacity_counter(self) -> None:
        with pytest.raises(pydantic.ValidationError):
            ClassPatch(current_capacity=3)  # type: ignore[call-arg]

    def test_patch_changes_skip_unset_fields(self) -> None:
        patch = AppointmentPatch(notes="bring towel", status=AppointmentStatus.CONFIRMED)

        assert patch.changes() == {"notes": "bring towel", "status": AppointmentStatus.CONFIRMED}
        assert not patch.moves_booking

    def test_patch_moves_booking_on_time_change(self) -> None:
        assert AppointmentPatch(end_date=_at(11)).moves_booking
        assert AppointmentPatch(professional_id="p2").moves_booking


class TestAppointmentFilter:
    def test_empty_filter_matches_everything(self) -> None:
        assert AppointmentFilter().matches(_appointment())

    def test_overlap_window(self) -> None:
        query = AppointmentFilter(overlaps=TimeInterval(_at(10), _at(11)))

        assert not query.matches(_appointment())
        assert query.matches(_appointment(end_date=_at(11)))

    def test_status_exclusion(self) -> None:
        query = AppointmentFilter(exclude_statuses=frozenset({AppointmentStatus.CANCELLED}))

        assert not query.matches(_appointment(status=AppointmentStatus.CANCELLED))
        assert query.matches(_appointment(status=AppointmentStatus.CONFIRMED))

    def test_combines_fields(self) -> None:
        query = AppointmentFilter(professional_id="p1", is_paid=True, exclude_id="other")

        assert query.matches(_appointment(is_paid=True))
        assert not query.matches(_appointment(is_paid=False))
        assert not query.matches(_appointment(is_paid=True, professional_id="p2"))

    def test_date_window(self) -> None:
        query = AppointmentFilter(start_from=_at(9), end_until=_at(10))

        assert query.matches(_appointment())
        assert not query.matches(_appointment(start_date=_at(8)))
        assert not query.matches(_appointment(end_date=_at(11)))


class TestClassFilter:
    def test_student_membership(self) -> None:
        query = ClassFilter(student_id="s1")

        assert query.matches(_class(enrolled_students=("s1",)))
        assert not query.matches(_class())
