import asyncio
import datetime as dt

import pytest

from agenda.domain.exceptions import NotFoundError
from agenda.domain.models import (
    Appointment,
    AppointmentFilter,
    AppointmentStatus,
    ClassFilter,
    ClassSession,
)
from agenda.scheduling.adapters.memory import (
    InMemoryAppointmentStore,
    InMemoryClassStore,
    InMemoryCourseRegistry,
    InMemoryUserRegistry,
)

UTC = dt.timezone.utc


def _appointment(appointment_id: str = "", hour: int = 9) -> Appointment:
    return Appointment(
        appointment_id=appointment_id,
        course_id="c1",
        business_id="b1",
        professional_id="p1",
        client_id="u1",
        start_date=dt.datetime(2023, 6, 15, hour, tzinfo=UTC),
        end_date=dt.datetime(2023, 6, 15, hour + 1, tzinfo=UTC),
    )


def _class(class_id: str = "k1", max_capacity: int = 1) -> ClassSession:
    return ClassSession(
        class_id=class_id,
        course_id="c1",
        business_id="b1",
        instructor_id="i1",
        start_date=dt.datetime(2023, 6, 15, 9, tzinfo=UTC),
        end_date=dt.datetime(2023, 6, 15, 10, tzinfo=UTC),
        max_capacity=max_capacity,
    )


class TestInMemoryAppointmentStore:
    @pytest.mark.asyncio
    async def test_assigns_id_when_empty(self) -> None:
        store = InMemoryAppointmentStore()

        created = await store.create(_appointment())

        assert created.appointment_id
        assert await store.find_by_id(created.appointment_id) == created

    @pytest.mark.asyncio
    async def test_find_many_sorted_by_start(self) -> None:
        store = InMemoryAppointmentStore([_appointment("late", 14), _appointment("early", 8)])

        result = await store.find_many(AppointmentFilter(professional_id="p1"))

        assert [a.appointment_id for a in result] == ["early", "late"]

    @pytest.mark.asyncio
    async def test_update_by_id_missing_returns_none(self) -> None:
        store = InMemoryAppointmentStore()

        assert await store.update_by_id("nope", {"notes": "x"}) is None

    @pytest.mark.asyncio
    async def test_update_if_respects_predicate(self) -> None:
        store = InMemoryAppointmentStore([_appointment("a1")])

        skipped = await store.update_if(
            "a1",
            lambda a: a.status == AppointmentStatus.CONFIRMED,
            lambda a: a.model_copy(update={"notes": "x"}),
        )
        applied = await store.update_if(
            "a1",
            lambda a: a.status == AppointmentStatus.SCHEDULED,
            lambda a: a.model_copy(update={"notes": "x"}),
        )

        assert skipped is None
        assert applied is not None
        assert applied.notes == "x"

    @pytest.mark.asyncio
    async def test_predicated_delete(self) -> None:
        store = InMemoryAppointmentStore([_appointment("a1")])

        kept = await store.delete_by_id("a1", lambda a: a.is_paid)
        removed = await store.delete_by_id("a1")

        assert kept is None
        assert removed is not None
        assert len(store) == 0


class TestInMemoryClassStore:
    @pytest.mark.asyncio
    async def test_update_if_is_atomic_under_contention(self) -> None:
        store = InMemoryClassStore([_class(max_capacity=1)])

        results = await asyncio.gather(
            *(
                store.update_if(
                    "k1",
                    lambda c, s=student: not c.is_full and not c.has_student(s),
                    lambda c, s=student: c.with_student(s),
                )
                for student in ("s1", "s2", "s3")
            )
        )

        assert sum(r is not None for r in results) == 1
        final = await store.find_by_id("k1")
        assert final is not None
        assert final.current_capacity == 1

    @pytest.mark.asyncio
    async def test_find_many_by_student(self) -> None:
        store = InMemoryClassStore([_class("k1").with_student("s1"), _class("k2")])

        result = await store.find_many(ClassFilter(student_id="s1"))

        assert [c.class_id for c in result] == ["k1"]


class TestInMemoryRegistries:
    @pytest.mark.asyncio
    async def test_missing_course_raises_not_found(self) -> None:
        with pytest.raises(NotFoundError, match="Course not found: c9"):
            await InMemoryCourseRegistry().get_course("c9")

    @pytest.mark.asyncio
    async def test_lookup_error_injection(self) -> None:
        registry = InMemoryUserRegistry()
        registry.lookup_error = RuntimeError("down")

        with pytest.raises(RuntimeError, match="down"):
            await registry.get_user("u1")
