from collections.abc import Callable
from typing import Any, Protocol

from agenda.domain.models import (
    Appointment,
    AppointmentFilter,
    ClassFilter,
    ClassSession,
    Course,
    User,
)


class CourseRegistry(Protocol):
    """Read-only source of course templates."""

    async def get_course(self, course_id: str) -> Course:
        """Return the course.

        Raises:
            NotFoundError: If no such course exists.
            RegistryUnavailableError: If the registry is unreachable.
        """
        ...


class UserRegistry(Protocol):
    """Read-only source of staff, clients and students."""

    async def get_user(self, user_id: str) -> User:
        """Return the user.

        Raises:
            NotFoundError: If no such user exists.
            RegistryUnavailableError: If the registry is unreachable.
        """
        ...


class BusinessRegistry(Protocol):
    """Read-only source of tenants."""

    async def business_exists(self, business_id: str) -> bool:
        ...


class AppointmentStore(Protocol):
    """Persistence for appointments.

    ``update_if`` and ``delete_by_id`` with a predicate must evaluate the
    predicate and apply the change as one atomic step relative to every other
    writer of the same record.
    """

    async def create(self, appointment: Appointment) -> Appointment:
        """Persist a new appointment. Its ``appointment_id`` is assigned if empty."""
        ...

    async def find_by_id(self, appointment_id: str) -> Appointment | None:
        ...

    async def find_many(self, query: AppointmentFilter) -> list[Appointment]:
        """Return matching appointments ordered by start date."""
        ...

    async def update_by_id(self, appointment_id: str, changes: dict[str, Any]) -> Appointment | None:
        ...

    async def update_if(
        self,
        appointment_id: str,
        predicate: Callable[[Appointment], bool],
        transform: Callable[[Appointment], Appointment],
    ) -> Appointment | None:
        """Replace the record with ``transform(record)`` if ``predicate(record)`` holds.

        Returns the new record, or None if the record is missing or the
        predicate failed.
        """
        ...

    async def delete_by_id(
        self,
        appointment_id: str,
        predicate: Callable[[Appointment], bool] | None = None,
    ) -> Appointment | None:
        """Delete and return the record, or None if missing or the predicate failed."""
        ...


class ClassStore(Protocol):
    """Persistence for classes, with the same atomicity contract as ``AppointmentStore``."""

    async def create(self, class_session: ClassSession) -> ClassSession:
        ...

    async def find_by_id(self, class_id: str) -> ClassSession | None:
        ...

    async def find_many(self, query: ClassFilter) -> list[ClassSession]:
        ...

    async def update_by_id(self, class_id: str, changes: dict[str, Any]) -> ClassSession | None:
        ...

    async def update_if(
        self,
        class_id: str,
        predicate: Callable[[ClassSession], bool],
        transform: Callable[[ClassSession], ClassSession],
    ) -> ClassSession | None:
        ...

    async def delete_by_id(
        self,
        class_id: str,
        predicate: Callable[[ClassSession], bool] | None = None,
    ) -> ClassSession | None:
        ...
