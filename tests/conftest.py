import asyncio
import datetime as dt

import pytest

from agenda.config import SchedulingConfig
from agenda.domain.models import (
    Appointment,
    AppointmentFilter,
    ClassFilter,
    ClassSession,
    Course,
    User,
    UserRole,
)
from agenda.scheduling.adapters.memory import (
    InMemoryAppointmentStore,
    InMemoryBusinessRegistry,
    InMemoryClassStore,
    InMemoryCourseRegistry,
    InMemoryUserRegistry,
)
from agenda.scheduling.appointments import AppointmentScheduler
from agenda.scheduling.classes import ClassEnrollmentManager
from agenda.scheduling.guards import ReferenceGuard

BUSINESS = "biz-1"
OTHER_BUSINESS = "biz-2"
COURSE = "course-1"
GROUP_COURSE = "course-yoga"
FOREIGN_COURSE = "course-foreign"
NOW = dt.datetime(2023, 6, 14, 12, 0, tzinfo=dt.timezone.utc)


def at(hour: int, minute: int = 0, day: int = 15) -> dt.datetime:
    """A UTC instant on June ``day``, 2023."""
    return dt.datetime(2023, 6, day, hour, minute, tzinfo=dt.timezone.utc)


class SuspendingAppointmentStore(InMemoryAppointmentStore):
    """Yields to the event loop on every read, like a store behind real I/O.

    Concurrent callers therefore interleave between a conflict check and
    the write that follows it.
    """

    async def find_by_id(self, appointment_id: str) -> Appointment | None:
        await asyncio.sleep(0)
        return await super().find_by_id(appointment_id)

    async def find_many(self, query: AppointmentFilter) -> list[Appointment]:
        await asyncio.sleep(0)
        return await super().find_many(query)


class SuspendingClassStore(InMemoryClassStore):
    async def find_by_id(self, class_id: str) -> ClassSession | None:
        await asyncio.sleep(0)
        return await super().find_by_id(class_id)

    async def find_many(self, query: ClassFilter) -> list[ClassSession]:
        await asyncio.sleep(0)
        return await super().find_many(query)


@pytest.fixture
def courses() -> InMemoryCourseRegistry:
    return InMemoryCourseRegistry(
        [
            Course(
                course_id=COURSE,
                business_id=BUSINESS,
                name="Personal Training",
                type="appointment",
                base_price=75.0,
                max_capacity=1,
                instructor_ids=("pro-1", "inst-1", "recep-1"),
            ),
            Course(
                course_id=GROUP_COURSE,
                business_id=BUSINESS,
                name="Morning Yoga",
                type="class",
                base_price=20.0,
                max_capacity=12,
                instructor_ids=("inst-1",),
            ),
            Course(
                course_id=FOREIGN_COURSE,
                business_id=OTHER_BUSINESS,
                name="Pilates",
                type="class",
                base_price=30.0,
                max_capacity=8,
                instructor_ids=("pro-x",),
            ),
        ]
    )


@pytest.fixture
def users() -> InMemoryUserRegistry:
    return InMemoryUserRegistry(
        [
            User(user_id="pro-1", business_id=BUSINESS, role=UserRole.PROFESSIONAL, name="Ana Ruiz", email="ana@example.com"),
            User(user_id="pro-2", business_id=BUSINESS, role=UserRole.PROFESSIONAL, name="Leo Park"),
            User(user_id="inst-1", business_id=BUSINESS, role=UserRole.INSTRUCTOR, name="Kim Lee"),
            User(user_id="recep-1", business_id=BUSINESS, role=UserRole.RECEPTIONIST),
            User(user_id="client-1", business_id=BUSINESS, name="Sam Cole", email="sam@example.com"),
            User(user_id="client-2", business_id=BUSINESS, name="Jo Diaz"),
            User(user_id="client-3", business_id=BUSINESS),
            User(user_id="outsider", business_id=OTHER_BUSINESS),
            User(user_id="pro-x", business_id=OTHER_BUSINESS, role=UserRole.PROFESSIONAL),
        ]
    )


@pytest.fixture
def businesses() -> InMemoryBusinessRegistry:
    return InMemoryBusinessRegistry([BUSINESS, OTHER_BUSINESS])


@pytest.fixture
def guard(
    courses: InMemoryCourseRegistry,
    users: InMemoryUserRegistry,
    businesses: InMemoryBusinessRegistry,
) -> ReferenceGuard:
    return ReferenceGuard(courses=courses, users=users, businesses=businesses)


@pytest.fixture
def appointment_store() -> InMemoryAppointmentStore:
    return SuspendingAppointmentStore()


@pytest.fixture
def class_store() -> InMemoryClassStore:
    return SuspendingClassStore()


@pytest.fixture
def scheduler(appointment_store: InMemoryAppointmentStore, guard: ReferenceGuard) -> AppointmentScheduler:
    return AppointmentScheduler(
        appointment_store, guard, config=SchedulingConfig(), clock=lambda: NOW
    )


@pytest.fixture
def enrollment(class_store: InMemoryClassStore, guard: ReferenceGuard) -> ClassEnrollmentManager:
    return ClassEnrollmentManager(class_store, guard, config=SchedulingConfig(), clock=lambda: NOW)
