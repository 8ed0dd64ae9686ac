import datetime as dt
from enum import Enum
from typing import Annotated, Any

from pydantic import (
    AfterValidator,
    BaseModel,
    ConfigDict,
    Field,
    StringConstraints,
    computed_field,
    field_validator,
)

from agenda.domain.datetime_helpers import as_utc
from agenda.domain.intervals import TimeInterval

RECORD_ID_PATTERN = r"^[A-Za-z0-9_-]{1,64}$"

RecordId = Annotated[str, StringConstraints(pattern=RECORD_ID_PATTERN)]
UtcDatetime = Annotated[dt.datetime, AfterValidator(as_utc)]


class AppointmentStatus(str, Enum):
    """Possible states of a one-on-one appointment."""

    SCHEDULED = "scheduled"
    CONFIRMED = "confirmed"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no-show"


class ClassStatus(str, Enum):
    """Possible states of a group class."""

    SCHEDULED = "scheduled"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class UserRole(str, Enum):
    ADMIN = "admin"
    STUDENT = "student"
    INSTRUCTOR = "instructor"
    PROFESSIONAL = "professional"
    RECEPTIONIST = "receptionist"


STAFF_ROLES: frozenset[UserRole] = frozenset({UserRole.PROFESSIONAL, UserRole.INSTRUCTOR})


class Course(BaseModel):
    """A reusable service template from the course registry."""

    model_config = ConfigDict(frozen=True)

    course_id: str
    business_id: str
    name: str = ""
    type: str = ""
    base_price: float = Field(default=0, ge=0)
    duration_minutes: int = Field(default=60, ge=0)
    max_capacity: int = Field(default=0, ge=0)
    instructor_ids: tuple[str, ...] = ()
    is_active: bool = True

    def is_authorized(self, user_id: str) -> bool:
        return user_id in self.instructor_ids


class User(BaseModel):
    """A person from the user registry: staff member, client or student."""

    model_config = ConfigDict(frozen=True)

    user_id: str
    business_id: str
    role: UserRole = UserRole.STUDENT
    name: str = ""
    email: str = ""
    is_active: bool = True

    @property
    def is_staff(self) -> bool:
        return self.role in STAFF_ROLES


class Appointment(BaseModel):
    """A persisted one-on-one booking between a professional and a client."""

    model_config = ConfigDict(frozen=True)

    appointment_id: str
    course_id: str
    business_id: str
    professional_id: str
    client_id: str
    start_date: UtcDatetime
    end_date: UtcDatetime
    status: AppointmentStatus = AppointmentStatus.SCHEDULED
    price: float = 0
    payment_id: str | None = None
    is_paid: bool = False
    location: str | None = None
    notes: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def interval(self) -> TimeInterval:
        return TimeInterval(self.start_date, self.end_date)


class ClassSession(BaseModel):
    """A persisted group class instantiated from a course, with its roster.

    ``current_capacity`` is derived from ``enrolled_students`` and cannot be
    set independently.
    """

    model_config = ConfigDict(frozen=True)

    class_id: str
    course_id: str
    business_id: str
    instructor_id: str
    start_date: UtcDatetime
    end_date: UtcDatetime
    max_capacity: int = Field(ge=0)
    enrolled_students: tuple[str, ...] = ()
    status: ClassStatus = ClassStatus.SCHEDULED
    price: float = 0
    location: str | None = None
    notes: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)

    @field_validator("enrolled_students")
    @classmethod
    def _unique_roster(cls, value: tuple[str, ...]) -> tuple[str, ...]:
        if len(set(value)) != len(value):
            raise ValueError("enrolled_students must not contain duplicates")
        return value

    @computed_field  # type: ignore[prop-decorator]
    @property
    def current_capacity(self) -> int:
        return len(self.enrolled_students)

    @property
    def is_full(self) -> bool:
        return self.current_capacity >= self.max_capacity

    @property
    def interval(self) -> TimeInterval:
        return TimeInterval(self.start_date, self.end_date)

    def has_student(self, student_id: str) -> bool:
        return student_id in self.enrolled_students

    def with_student(self, student_id: str) -> "ClassSession":
        return self.model_copy(update={"enrolled_students": (*self.enrolled_students, student_id)})

    def without_student(self, student_id: str) -> "ClassSession":
        roster = tuple(s for s in self.enrolled_students if s != student_id)
        return self.model_copy(update={"enrolled_students": roster})


class _Patch(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    def changes(self) -> dict[str, Any]:
        """Fields the caller actually supplied; ``None`` means leave unchanged."""
        return self.model_dump(exclude_none=True)


class AppointmentRequest(BaseModel):
    """A request to book a professional for a client."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    course_id: RecordId
    business_id: RecordId
    professional_id: RecordId
    client_id: RecordId
    start_date: UtcDatetime
    end_date: UtcDatetime
    price: float | None = Field(default=None, ge=0)
    location: str | None = None
    notes: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class AppointmentPatch(_Patch):
    """Partial update of an appointment. Payment fields have their own operation."""

    professional_id: RecordId | None = None
    client_id: RecordId | None = None
    start_date: UtcDatetime | None = None
    end_date: UtcDatetime | None = None
    status: AppointmentStatus | None = None
    price: float | None = Field(default=None, ge=0)
    location: str | None = None
    notes: str | None = None
    metadata: dict[str, Any] | None = None

    @property
    def moves_booking(self) -> bool:
        return any(v is not None for v in (self.start_date, self.end_date, self.professional_id))


class ClassRequest(BaseModel):
    """A request to schedule a class from a course template."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    course_id: RecordId
    business_id: RecordId
    instructor_id: RecordId
    start_date: UtcDatetime
    end_date: UtcDatetime
    max_capacity: int | None = Field(default=None, ge=1)
    price: float | None = Field(default=None, ge=0)
    location: str | None = None
    notes: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class ClassPatch(_Patch):
    """Partial update of a class. The roster is changed only by enroll/unenroll."""

    instructor_id: RecordId | None = None
    start_date: UtcDatetime | None = None
    end_date: UtcDatetime | None = None
    max_capacity: int | None = Field(default=None, ge=1)
    status: ClassStatus | None = None
    price: float | None = Field(default=None, ge=0)
    location: str | None = None
    notes: str | None = None
    metadata: dict[str, Any] | None = None


class AppointmentFilter(BaseModel):
    """Typed query over appointments. Unset fields do not constrain the result."""

    model_config = ConfigDict(frozen=True)

    business_id: RecordId | None = None
    professional_id: RecordId | None = None
    client_id: RecordId | None = None
    course_id: RecordId | None = None
    start_from: UtcDatetime | None = None
    starts_before: UtcDatetime | None = None
    end_until: UtcDatetime | None = None
    overlaps: TimeInterval | None = None
    statuses: frozenset[AppointmentStatus] | None = None
    exclude_statuses: frozenset[AppointmentStatus] | None = None
    is_paid: bool | None = None
    exclude_id: str | None = None

    def matches(self, appointment: Appointment) -> bool:
        checks = (
            self.business_id is None or appointment.business_id == self.business_id,
            self.professional_id is None or appointment.professional_id == self.professional_id,
            self.client_id is None or appointment.client_id == self.client_id,
            self.course_id is None or appointment.course_id == self.course_id,
            self.start_from is None or appointment.start_date >= self.start_from,
            self.starts_before is None or appointment.start_date <= self.starts_before,
            self.end_until is None or appointment.end_date <= self.end_until,
            self.overlaps is None or self.overlaps.overlaps(appointment.interval),
            self.statuses is None or appointment.status in self.statuses,
            self.exclude_statuses is None or appointment.status not in self.exclude_statuses,
            self.is_paid is None or appointment.is_paid == self.is_paid,
            self.exclude_id is None or appointment.appointment_id != self.exclude_id,
        )
        return all(checks)


class ClassFilter(BaseModel):
    """Typed query over classes. Unset fields do not constrain the result."""

    model_config = ConfigDict(frozen=True)

    business_id: RecordId | None = None
    instructor_id: RecordId | None = None
    course_id: RecordId | None = None
    student_id: RecordId | None = None
    start_from: UtcDatetime | None = None
    starts_before: UtcDatetime | None = None
    end_until: UtcDatetime | None = None
    status: ClassStatus | None = None

    def matches(self, class_session: ClassSession) -> bool:
        checks = (
            self.business_id is None or class_session.business_id == self.business_id,
            self.instructor_id is None or class_session.instructor_id == self.instructor_id,
            self.course_id is None or class_session.course_id == self.course_id,
            self.student_id is None or class_session.has_student(self.student_id),
            self.start_from is None or class_session.start_date >= self.start_from,
            self.starts_before is None or class_session.start_date <= self.starts_before,
            self.end_until is None or class_session.end_date <= self.end_until,
            self.status is None or class_session.status == self.status,
        )
        return all(checks)


class AvailabilitySlot(BaseModel):
    """A candidate window within a professional's workday."""

    model_config = ConfigDict(frozen=True)

    start_time: UtcDatetime
    end_time: UtcDatetime
    available: bool


class Availability(BaseModel):
    model_config = ConfigDict(frozen=True)

    professional_id: str
    date: dt.date
    available: bool
    slots: list[AvailabilitySlot]
