import asyncio

from pydantic import BaseModel, ConfigDict

from agenda.domain.exceptions import NotFoundError
from agenda.domain.models import Appointment, ClassSession
from agenda.scheduling.guards import ReferenceGuard


class PersonSummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    user_id: str
    name: str
    email: str


class CourseSummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    course_id: str
    name: str
    type: str


class AppointmentView(BaseModel):
    """An appointment with the names of the people and course it references."""

    model_config = ConfigDict(frozen=True)

    appointment: Appointment
    course: CourseSummary | None = None
    professional: PersonSummary | None = None
    client: PersonSummary | None = None


class ClassView(BaseModel):
    """A class with its course, instructor and roster resolved to summaries."""

    model_config = ConfigDict(frozen=True)

    class_session: ClassSession
    course: CourseSummary | None = None
    instructor: PersonSummary | None = None
    students: list[PersonSummary] = []


class ReadModel:
    """Builds denormalized views from the registries after a core operation.

    Views are never written back; a reference that no longer resolves is
    shown as ``None`` (or left out of a roster) instead of failing the read.
    """

    def __init__(self, guard: ReferenceGuard) -> None:
        self._guard = guard

    async def appointment_view(self, appointment: Appointment) -> AppointmentView:
        course, professional, client = await asyncio.gather(
            self._course(appointment.course_id),
            self._person(appointment.professional_id),
            self._person(appointment.client_id),
        )
        return AppointmentView(
            appointment=appointment,
            course=course,
            professional=professional,
            client=client,
        )

    async def class_view(self, class_session: ClassSession) -> ClassView:
        course, instructor, *students = await asyncio.gather(
            self._course(class_session.course_id),
            self._person(class_session.instructor_id),
            *(self._person(s) for s in class_session.enrolled_students),
        )
        return ClassView(
            class_session=class_session,
            course=course,
            instructor=instructor,
            students=[s for s in students if s is not None],
        )

    async def _course(self, course_id: str) -> CourseSummary | None:
        try:
            course = await self._guard.course(course_id)
        except NotFoundError:
            return None
        return CourseSummary(course_id=course.course_id, name=course.name, type=course.type)

    async def _person(self, user_id: str) -> PersonSummary | None:
        try:
            user = await self._guard.user(user_id)
        except NotFoundError:
            return None
        return PersonSummary(user_id=user.user_id, name=user.name, email=user.email)
