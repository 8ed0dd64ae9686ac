from enum import Enum
from typing import TypeVar

from agenda.domain.exceptions import ValidationError
from agenda.domain.models import AppointmentStatus, ClassStatus

S = TypeVar("S", bound=Enum)

# Appointments in these states no longer hold the professional's time.
INACTIVE_APPOINTMENT_STATUSES: frozenset[AppointmentStatus] = frozenset(
    {AppointmentStatus.CANCELLED, AppointmentStatus.NO_SHOW}
)


def allowed_values(kind: type[S]) -> list[str]:
    return [member.value for member in kind]


def coerce_status(kind: type[S], value: object) -> S:
    """Return the ``kind`` member for ``value`` or raise ``ValidationError``.

    Any member may follow any other; only membership in the closed set is
    checked.
    """
    if isinstance(value, kind):
        return value
    try:
        return kind(value)
    except ValueError:
        raise ValidationError(
            f"Invalid status. Must be one of: {', '.join(allowed_values(kind))}"
        ) from None


def occupies_time(status: AppointmentStatus) -> bool:
    return status not in INACTIVE_APPOINTMENT_STATUSES
