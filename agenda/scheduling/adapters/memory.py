import asyncio
import uuid
from collections.abc import Callable, Iterable
from typing import Any

from agenda.domain.exceptions import NotFoundError
from agenda.domain.models import (
    Appointment,
    AppointmentFilter,
    ClassFilter,
    ClassSession,
    Course,
    User,
)


def _new_id() -> str:
    return uuid.uuid4().hex


class InMemoryAppointmentStore:
    """Process-local ``AppointmentStore``.

    A single ``asyncio.Lock`` serializes every write, which makes
    ``update_if`` and predicated deletes atomic with respect to each other.
    """

    def __init__(self, appointments: Iterable[Appointment] = ()) -> None:
        self._records: dict[str, Appointment] = {a.appointment_id: a for a in appointments}
        self._lock = asyncio.Lock()

    async def create(self, appointment: Appointment) -> Appointment:
        async with self._lock:
            if not appointment.appointment_id:
                appointment = appointment.model_copy(update={"appointment_id": _new_id()})
            self._records[appointment.appointment_id] = appointment
            return appointment

    async def find_by_id(self, appointment_id: str) -> Appointment | None:
        return self._records.get(appointment_id)

    async def find_many(self, query: AppointmentFilter) -> list[Appointment]:
        matches = [a for a in self._records.values() if query.matches(a)]
        return sorted(matches, key=lambda a: a.start_date)

    async def update_by_id(self, appointment_id: str, changes: dict[str, Any]) -> Appointment | None:
        async with self._lock:
            current = self._records.get(appointment_id)
            if current is None:
                return None
            updated = current.model_copy(update=changes)
            self._records[appointment_id] = updated
            return updated

    async def update_if(
        self,
        appointment_id: str,
        predicate: Callable[[Appointment], bool],
        transform: Callable[[Appointment], Appointment],
    ) -> Appointment | None:
        async with self._lock:
            current = self._records.get(appointment_id)
            if current is None or not predicate(current):
                return None
            updated = transform(current)
            self._records[appointment_id] = updated
            return updated

    async def delete_by_id(
        self,
        appointment_id: str,
        predicate: Callable[[Appointment], bool] | None = None,
    ) -> Appointment | None:
        async with self._lock:
            current = self._records.get(appointment_id)
            if current is None or (predicate is not None and not predicate(current)):
                return None
            return self._records.pop(appointment_id)

    def __len__(self) -> int:
        return len(self._records)


class InMemoryClassStore:
    """Process-local ``ClassStore`` with the same locking as ``InMemoryAppointmentStore``."""

    def __init__(self, classes: Iterable[ClassSession] = ()) -> None:
        self._records: dict[str, ClassSession] = {c.class_id: c for c in classes}
        self._lock = asyncio.Lock()

    async def create(self, class_session: ClassSession) -> ClassSession:
        async with self._lock:
            if not class_session.class_id:
                class_session = class_session.model_copy(update={"class_id": _new_id()})
            self._records[class_session.class_id] = class_session
            return class_session

    async def find_by_id(self, class_id: str) -> ClassSession | None:
        return self._records.get(class_id)

    async def find_many(self, query: ClassFilter) -> list[ClassSession]:
        matches = [c for c in self._records.values() if query.matches(c)]
        return sorted(matches, key=lambda c: c.start_date)

    async def update_by_id(self, class_id: str, changes: dict[str, Any]) -> ClassSession | None:
        async with self._lock:
            current = self._records.get(class_id)
            if current is None:
                return None
            updated = current.model_copy(update=changes)
            self._records[class_id] = updated
            return updated

    async def update_if(
        self,
        class_id: str,
        predicate: Callable[[ClassSession], bool],
        transform: Callable[[ClassSession], ClassSession],
    ) -> ClassSession | None:
        async with self._lock:
            current = self._records.get(class_id)
            if current is None or not predicate(current):
                return None
            updated = transform(current)
            self._records[class_id] = updated
            return updated

    async def delete_by_id(
        self,
        class_id: str,
        predicate: Callable[[ClassSession], bool] | None = None,
    ) -> ClassSession | None:
        async with self._lock:
            current = self._records.get(class_id)
            if current is None or (predicate is not None and not predicate(current)):
                return None
            return self._records.pop(class_id)

    def __len__(self) -> int:
        return len(self._records)


class InMemoryCourseRegistry:
    """In-memory ``CourseRegistry``.

    Pre-load ``courses`` to control what the registry returns. Set
    ``lookup_error`` to make the next lookups raise it.
    """

    def __init__(self, courses: Iterable[Course] = ()) -> None:
        self.courses: dict[str, Course] = {c.course_id: c for c in courses}
        self.lookup_error: Exception | None = None

    def add(self, course: Course) -> Course:
        self.courses[course.course_id] = course
        return course

    async def get_course(self, course_id: str) -> Course:
        if self.lookup_error:
            raise self.lookup_error
        try:
            return self.courses[course_id]
        except KeyError:
            raise NotFoundError("course", course_id) from None


class InMemoryUserRegistry:
    """In-memory ``UserRegistry`` with the same knobs as ``InMemoryCourseRegistry``."""

    def __init__(self, users: Iterable[User] = ()) -> None:
        self.users: dict[str, User] = {u.user_id: u for u in users}
        self.lookup_error: Exception | None = None

    def add(self, user: User) -> User:
        self.users[user.user_id] = user
        return user

    async def get_user(self, user_id: str) -> User:
        if self.lookup_error:
            raise self.lookup_error
        try:
            return self.users[user_id]
        except KeyError:
            raise NotFoundError("user", user_id) from None


class InMemoryBusinessRegistry:
    def __init__(self, business_ids: Iterable[str] = ()) -> None:
        self.business_ids: set[str] = set(business_ids)
        self.lookup_error: Exception | None = None

    def add(self, business_id: str) -> str:
        self.business_ids.add(business_id)
        return business_id

    async def business_exists(self, business_id: str) -> bool:
        if self.lookup_error:
            raise self.lookup_error
        return business_id in self.business_ids
