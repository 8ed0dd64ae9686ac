import datetime as dt
from collections.abc import Callable

from loguru import logger

from agenda.config import SchedulingConfig
from agenda.domain.datetime_helpers import utc_now
from agenda.domain.exceptions import (
    CapacityExceededError,
    ConflictError,
    DuplicateEnrollmentError,
    NotEnrolledError,
    NotFoundError,
)
from agenda.domain.intervals import TimeInterval
from agenda.domain.models import (
    ClassFilter,
    ClassPatch,
    ClassRequest,
    ClassSession,
    ClassStatus,
)
from agenda.domain.status import coerce_status
from agenda.scheduling.guards import ReferenceGuard, ensure_id
from agenda.scheduling.locks import KeyedLocks
from agenda.scheduling.ports import ClassStore


def _class_key(class_id: str) -> str:
    return f"class:{class_id}"


class ClassEnrollmentManager:
    """Schedules group classes and owns their rosters.

    This is the only writer of ``enrolled_students``. Capacity is derived from
    the roster, so an enrollment is a single conditional replace of the roster
    tuple and can never leave the two out of step.
    """

    def __init__(
        self,
        store: ClassStore,
        guard: ReferenceGuard,
        *,
        config: SchedulingConfig | None = None,
        locks: KeyedLocks | None = None,
        clock: Callable[[], dt.datetime] = utc_now,
    ) -> None:
        self._store = store
        self._guard = guard
        self._config = SchedulingConfig() if config is None else config
        self._locks = KeyedLocks() if locks is None else locks
        self._clock = clock

    @property
    def locks(self) -> KeyedLocks:
        return self._locks

    async def create(self, request: ClassRequest) -> ClassSession:
        logger.info(
            "Creating class: course={}, instructor={}, start={}",
            request.course_id,
            request.instructor_id,
            request.start_date,
        )

        course = await self._guard.course_for_business(
            request.course_id, request.business_id, "class"
        )
        await self._guard.staff_member(
            request.instructor_id, request.business_id, course, "Instructor"
        )
        interval = TimeInterval(request.start_date, request.end_date)

        created = await self._store.create(
            ClassSession(
                class_id="",
                course_id=request.course_id,
                business_id=request.business_id,
                instructor_id=request.instructor_id,
                start_date=interval.start,
                end_date=interval.end,
                max_capacity=course.max_capacity if request.max_capacity is None else request.max_capacity,
                price=course.base_price if request.price is None else request.price,
                location=request.location,
                notes=request.notes,
                metadata=dict(request.metadata),
            )
        )
        logger.info("Class created: id={}, capacity={}", created.class_id, created.max_capacity)
        return created

    async def find_by_id(self, class_id: str) -> ClassSession:
        ensure_id(class_id, "class")
        class_session = await self._store.find_by_id(class_id)
        if class_session is None:
            raise NotFoundError("class", class_id)
        return class_session

    async def find_all(self, query: ClassFilter | None = None) -> list[ClassSession]:
        query = query or ClassFilter()
        logger.debug("Listing classes: {}", query.model_dump(exclude_none=True))
        return await self._store.find_many(query)

    async def find_upcoming(self, business_id: str, days: int | None = None) -> list[ClassSession]:
        ensure_id(business_id, "business")
        now = self._clock()
        horizon = now + dt.timedelta(days=self._config.upcoming_days if days is None else days)
        return await self._store.find_many(
            ClassFilter(
                business_id=business_id,
                start_from=now,
                starts_before=horizon,
                status=ClassStatus.SCHEDULED,
            )
        )

    async def find_by_student(self, student_id: str) -> list[ClassSession]:
        ensure_id(student_id, "student")
        return await self._store.find_many(ClassFilter(student_id=student_id))

    async def find_by_instructor(
        self,
        instructor_id: str,
        start_date: dt.datetime | None = None,
        end_date: dt.datetime | None = None,
    ) -> list[ClassSession]:
        ensure_id(instructor_id, "instructor")
        return await self._store.find_many(
            ClassFilter(instructor_id=instructor_id, start_from=start_date, end_until=end_date)
        )

    async def update(self, class_id: str, patch: ClassPatch) -> ClassSession:
        existing = await self.find_by_id(class_id)
        changes = patch.changes()
        if not changes:
            return existing

        logger.info("Updating class {}: fields={}", class_id, sorted(changes))

        interval = TimeInterval(
            patch.start_date or existing.start_date,
            patch.end_date or existing.end_date,
        )
        if patch.instructor_id:
            course = await self._guard.course(existing.course_id)
            await self._guard.staff_member(
                patch.instructor_id, existing.business_id, course, "Instructor"
            )

        def fits(current: ClassSession) -> bool:
            return patch.max_capacity is None or patch.max_capacity >= current.current_capacity

        async with self._locks.hold(_class_key(class_id)):
            updated = await self._store.update_if(
                class_id,
                fits,
                lambda current: current.model_copy(
                    update={**changes, "start_date": interval.start, "end_date": interval.end}
                ),
            )

        if updated is None:
            current = await self.find_by_id(class_id)
            raise CapacityExceededError(
                f"New max capacity cannot be less than current enrollment ({current.current_capacity})",
                class_id=class_id,
            )

        logger.info("Class updated: id={}", class_id)
        return updated

    async def update_status(self, class_id: str, status: object) -> ClassSession:
        new_status = coerce_status(ClassStatus, status)
        ensure_id(class_id, "class")
        updated = await self._store.update_by_id(class_id, {"status": new_status})
        if updated is None:
            raise NotFoundError("class", class_id)
        logger.info("Class {} status set to {}", class_id, new_status.value)
        return updated

    async def enroll_student(self, class_id: str, student_id: str) -> ClassSession:
        """Add a student to the roster.

        Raises:
            CapacityExceededError: The class is full.
            CrossTenantError: The student belongs to another business.
            DuplicateEnrollmentError: The student is already enrolled.
        """
        ensure_id(student_id, "student")
        existing = await self.find_by_id(class_id)
        if existing.is_full:
            raise CapacityExceededError("Class is already at maximum capacity", class_id=class_id)
        await self._guard.member(student_id, existing.business_id, "Student")
        self._check_can_enroll(existing, student_id)

        async with self._locks.hold(_class_key(class_id)):
            updated = await self._store.update_if(
                class_id,
                lambda current: not current.is_full and not current.has_student(student_id),
                lambda current: current.with_student(student_id),
            )

        if updated is None:
            logger.warning("Enrollment of {} in class {} lost a race", student_id, class_id)
            self._check_can_enroll(await self.find_by_id(class_id), student_id)
            raise ConflictError("Class was modified concurrently; reload and retry", record_id=class_id)

        logger.info(
            "Student {} enrolled in class {} ({}/{})",
            student_id,
            class_id,
            updated.current_capacity,
            updated.max_capacity,
        )
        return updated

    async def remove_student(self, class_id: str, student_id: str) -> ClassSession:
        ensure_id(student_id, "student")
        existing = await self.find_by_id(class_id)
        if not existing.has_student(student_id):
            raise NotEnrolledError(class_id, student_id)

        async with self._locks.hold(_class_key(class_id)):
            updated = await self._store.update_if(
                class_id,
                lambda current: current.has_student(student_id),
                lambda current: current.without_student(student_id),
            )

        if updated is None:
            await self.find_by_id(class_id)
            raise NotEnrolledError(class_id, student_id)

        logger.info("Student {} removed from class {}", student_id, class_id)
        return updated

    async def remove(self, class_id: str) -> ClassSession:
        """Delete a class that has nobody enrolled."""
        existing = await self.find_by_id(class_id)
        if existing.enrolled_students:
            raise ConflictError("Cannot delete class with enrolled students", record_id=class_id)

        deleted = await self._store.delete_by_id(
            class_id, lambda current: not current.enrolled_students
        )
        if deleted is None:
            await self.find_by_id(class_id)
            raise ConflictError("Cannot delete class with enrolled students", record_id=class_id)

        logger.info("Class deleted: id={}", class_id)
        return deleted

    @staticmethod
    def _check_can_enroll(class_session: ClassSession, student_id: str) -> None:
        if class_session.is_full:
            raise CapacityExceededError(
                "Class is already at maximum capacity", class_id=class_session.class_id
            )
        if class_session.has_student(student_id):
            raise DuplicateEnrollmentError(class_session.class_id, student_id)
