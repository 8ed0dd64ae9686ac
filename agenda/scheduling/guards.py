import re
from collections.abc import Awaitable
from typing import TypeVar

from loguru import logger

from agenda.domain.exceptions import (
    CrossTenantError,
    InvalidRoleError,
    MismatchError,
    NotAssignedError,
    NotFoundError,
    RegistryUnavailableError,
    SchedulingError,
    ValidationError,
)
from agenda.domain.models import RECORD_ID_PATTERN, Course, User
from agenda.scheduling.ports import BusinessRegistry, CourseRegistry, UserRegistry

T = TypeVar("T")

_RECORD_ID = re.compile(RECORD_ID_PATTERN)


def ensure_id(value: object, label: str) -> str:
    """Return ``value`` if it is a well-formed record id, else raise ``ValidationError``."""
    if not isinstance(value, str) or not _RECORD_ID.match(value):
        raise ValidationError(f"Invalid {label} ID")
    return value


async def _lookup(what: str, call: Awaitable[T]) -> T:
    try:
        return await call
    except SchedulingError:
        raise
    except Exception as exc:
        raise RegistryUnavailableError(f"{what} lookup failed: {exc}") from exc


class ReferenceGuard:
    """Referential and tenant checks shared by the scheduler and the enrollment manager."""

    def __init__(
        self,
        courses: CourseRegistry,
        users: UserRegistry,
        businesses: BusinessRegistry,
    ) -> None:
        self._courses = courses
        self._users = users
        self._businesses = businesses

    @property
    def course_registry(self) -> CourseRegistry:
        return self._courses

    @property
    def user_registry(self) -> UserRegistry:
        return self._users

    @property
    def business_registry(self) -> BusinessRegistry:
        return self._businesses

    async def course(self, course_id: str) -> Course:
        return await _lookup("Course", self._courses.get_course(course_id))

    async def user(self, user_id: str) -> User:
        return await _lookup("User", self._users.get_user(user_id))

    async def course_for_business(self, course_id: str, business_id: str, entity: str) -> Course:
        course = await self.course(course_id)
        if course.business_id != business_id:
            raise MismatchError(
                f"Business ID mismatch between course and {entity}", course_id=course_id
            )
        if not await _lookup("Business", self._businesses.business_exists(business_id)):
            raise NotFoundError("business", business_id)
        return course

    async def staff_member(self, user_id: str, business_id: str, course: Course, label: str) -> User:
        """Check that ``user_id`` is staff of ``business_id`` authorized for ``course``."""
        user = await self.user(user_id)
        if user.business_id != business_id:
            raise CrossTenantError(f"{label} does not belong to this business", user_id=user_id)
        if not user.is_staff:
            raise InvalidRoleError("User is not a professional or instructor", user_id=user_id)
        if not course.is_authorized(user_id):
            logger.debug("{} {} not listed on course {}", label, user_id, course.course_id)
            raise NotAssignedError(
                f"{label} is not assigned to this course",
                user_id=user_id,
                course_id=course.course_id,
            )
        return user

    async def member(self, user_id: str, business_id: str, label: str) -> User:
        user = await self.user(user_id)
        if user.business_id != business_id:
            raise CrossTenantError(f"{label} does not belong to this business", user_id=user_id)
        return user
