class SchedulingError(Exception):
    """Base exception for all scheduling and enrollment errors."""

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(reason)


class ValidationError(SchedulingError):
    """Raised when input is malformed (bad id, unknown status, empty range)."""


class InvalidRangeError(ValidationError):
    """Raised when a start instant is not strictly before its end instant."""

    def __init__(self, start: object, end: object) -> None:
        self.start = start
        self.end = end
        super().__init__("Start date must be before end date")


class NotFoundError(SchedulingError):
    """Raised when a referenced course, user, business or record does not exist."""

    def __init__(self, entity: str, entity_id: str) -> None:
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity.capitalize()} not found: {entity_id}")


class CrossTenantError(SchedulingError):
    """Raised when a referenced user belongs to a different business."""

    def __init__(self, reason: str, user_id: str | None = None) -> None:
        self.user_id = user_id
        super().__init__(reason)


class MismatchError(CrossTenantError):
    """Raised when a course belongs to a different business than the request."""

    def __init__(self, reason: str, course_id: str | None = None) -> None:
        self.course_id = course_id
        super().__init__(reason)


class InvalidRoleError(SchedulingError):
    """Raised when a user lacks the staff role an operation requires."""

    def __init__(self, reason: str, user_id: str | None = None) -> None:
        self.user_id = user_id
        super().__init__(reason)


class NotAssignedError(SchedulingError):
    """Raised when a staff member is not authorized to deliver a course."""

    def __init__(self, reason: str, user_id: str | None = None, course_id: str | None = None) -> None:
        self.user_id = user_id
        self.course_id = course_id
        super().__init__(reason)


class ConflictError(SchedulingError):
    """Raised on a time overlap or when a record cannot be deleted in its current state."""

    def __init__(self, reason: str, record_id: str | None = None) -> None:
        self.record_id = record_id
        super().__init__(reason)


class CapacityExceededError(SchedulingError):
    """Raised when a class roster would exceed, or a new ceiling would undercut, capacity."""

    def __init__(self, reason: str, class_id: str | None = None) -> None:
        self.class_id = class_id
        super().__init__(reason)


class DuplicateEnrollmentError(SchedulingError):
    """Raised when a student is already on a class roster."""

    def __init__(self, class_id: str, student_id: str) -> None:
        self.class_id = class_id
        self.student_id = student_id
        super().__init__("Student is already enrolled in this class")


class NotEnrolledError(SchedulingError):
    """Raised when a student is not on a class roster."""

    def __init__(self, class_id: str, student_id: str) -> None:
        self.class_id = class_id
        self.student_id = student_id
        super().__init__("Student is not enrolled in this class")


class RegistryUnavailableError(SchedulingError):
    """Raised when a course, user or business registry is unreachable or not responding."""
