import datetime as dt
from collections.abc import Callable

from loguru import logger

from agenda.config import SchedulingConfig
from agenda.domain.datetime_helpers import at_hour, day_bounds, utc_now
from agenda.domain.exceptions import ConflictError, NotFoundError
from agenda.domain.intervals import TimeInterval
from agenda.domain.models import (
    Appointment,
    AppointmentFilter,
    AppointmentPatch,
    AppointmentRequest,
    AppointmentStatus,
    Availability,
    AvailabilitySlot,
)
from agenda.domain.status import INACTIVE_APPOINTMENT_STATUSES, coerce_status, occupies_time
from agenda.scheduling.guards import ReferenceGuard, ensure_id
from agenda.scheduling.locks import KeyedLocks
from agenda.scheduling.ports import AppointmentStore

UPCOMING_STATUSES = frozenset({AppointmentStatus.SCHEDULED, AppointmentStatus.CONFIRMED})


def _professional_key(professional_id: str) -> str:
    return f"professional:{professional_id}"


def _same_booking(a: Appointment, b: Appointment) -> bool:
    return (
        a.professional_id == b.professional_id
        and a.start_date == b.start_date
        and a.end_date == b.end_date
        and a.status == b.status
    )


class AppointmentScheduler:
    """Books one-on-one appointments without ever double-booking a professional.

    Every check-then-write on a professional's calendar runs while holding
    that professional's key in ``locks``; record-level writes additionally go
    through the store's conditional update so a writer that lost a race fails
    instead of overwriting.
    """

    def __init__(
        self,
        store: AppointmentStore,
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

    async def create(self, request: AppointmentRequest) -> Appointment:
        """Validate references, check the professional's calendar, then persist.

        Raises:
            MismatchError: The course belongs to another business.
            NotFoundError: The course, business, professional or client does not exist.
            CrossTenantError: The professional or client belongs to another business.
            InvalidRoleError: The professional is not staff.
            NotAssignedError: The professional is not authorized for the course.
            InvalidRangeError: ``start_date`` is not before ``end_date``.
            ConflictError: The professional is already booked in that range.
        """
        logger.info(
            "Creating appointment: professional={}, start={}, end={}",
            request.professional_id,
            request.start_date,
            request.end_date,
        )

        course = await self._guard.course_for_business(
            request.course_id, request.business_id, "appointment"
        )
        await self._guard.staff_member(
            request.professional_id, request.business_id, course, "Professional"
        )
        await self._guard.member(request.client_id, request.business_id, "Client")
        interval = TimeInterval(request.start_date, request.end_date)

        async with self._locks.hold(_professional_key(request.professional_id)):
            await self._ensure_free(request.professional_id, interval)
            created = await self._store.create(
                Appointment(
                    appointment_id="",
                    course_id=request.course_id,
                    business_id=request.business_id,
                    professional_id=request.professional_id,
                    client_id=request.client_id,
                    start_date=interval.start,
                    end_date=interval.end,
                    price=course.base_price if request.price is None else request.price,
                    location=request.location,
                    notes=request.notes,
                    metadata=dict(request.metadata),
                )
            )

        logger.info("Appointment created: id={}", created.appointment_id)
        return created

    async def find_by_id(self, appointment_id: str) -> Appointment:
        ensure_id(appointment_id, "appointment")
        appointment = await self._store.find_by_id(appointment_id)
        if appointment is None:
            raise NotFoundError("appointment", appointment_id)
        return appointment

    async def find_all(self, query: AppointmentFilter | None = None) -> list[Appointment]:
        query = query or AppointmentFilter()
        logger.debug("Listing appointments: {}", query.model_dump(exclude_none=True))
        return await self._store.find_many(query)

    async def find_upcoming(self, professional_id: str, days: int | None = None) -> list[Appointment]:
        """Scheduled or confirmed appointments starting within the next ``days`` days."""
        ensure_id(professional_id, "professional")
        now = self._clock()
        horizon = now + dt.timedelta(days=self._config.upcoming_days if days is None else days)
        return await self._store.find_many(
            AppointmentFilter(
                professional_id=professional_id,
                start_from=now,
                starts_before=horizon,
                statuses=UPCOMING_STATUSES,
            )
        )

    async def find_by_client(self, client_id: str) -> list[Appointment]:
        ensure_id(client_id, "client")
        return await self._store.find_many(AppointmentFilter(client_id=client_id))

    async def update(self, appointment_id: str, patch: AppointmentPatch) -> Appointment:
        """Apply ``patch``, re-running every check the changed fields affect."""
        existing = await self.find_by_id(appointment_id)
        changes = patch.changes()
        if not changes:
            return existing

        logger.info("Updating appointment {}: fields={}", appointment_id, sorted(changes))

        professional_id = patch.professional_id or existing.professional_id
        interval = TimeInterval(
            patch.start_date or existing.start_date,
            patch.end_date or existing.end_date,
        )
        if patch.professional_id:
            course = await self._guard.course(existing.course_id)
            await self._guard.staff_member(
                patch.professional_id, existing.business_id, course, "Professional"
            )
        if patch.client_id:
            await self._guard.member(patch.client_id, existing.business_id, "Client")

        status = patch.status or existing.status
        reactivating = not occupies_time(existing.status) and occupies_time(status)
        needs_overlap_check = occupies_time(status) and (patch.moves_booking or reactivating)

        keys = {_professional_key(existing.professional_id), _professional_key(professional_id)}
        async with self._locks.hold(*keys):
            if needs_overlap_check:
                await self._ensure_free(professional_id, interval, exclude_id=appointment_id)
            updated = await self._store.update_if(
                appointment_id,
                lambda current: _same_booking(current, existing),
                lambda current: current.model_copy(
                    update={**changes, "start_date": interval.start, "end_date": interval.end}
                ),
            )

        if updated is None:
            await self.find_by_id(appointment_id)
            logger.warning("Appointment {} changed during update; rejecting", appointment_id)
            raise ConflictError(
                "Appointment was modified concurrently; reload and retry",
                record_id=appointment_id,
            )

        logger.info("Appointment updated: id={}", appointment_id)
        return updated

    async def update_status(self, appointment_id: str, status: object) -> Appointment:
        """Set the status to any member of ``AppointmentStatus``.

        Raises:
            ValidationError: ``status`` is not a valid appointment status.
            ConflictError: Reactivating a cancelled or no-show booking would overlap.
        """
        new_status = coerce_status(AppointmentStatus, status)
        logger.info("Setting appointment {} status to {}", appointment_id, new_status.value)
        return await self.update(appointment_id, AppointmentPatch(status=new_status))

    async def update_payment_info(
        self, appointment_id: str, payment_id: str, is_paid: bool
    ) -> Appointment:
        ensure_id(appointment_id, "appointment")
        ensure_id(payment_id, "payment")
        updated = await self._store.update_by_id(
            appointment_id, {"payment_id": payment_id, "is_paid": is_paid}
        )
        if updated is None:
            raise NotFoundError("appointment", appointment_id)
        logger.info("Appointment {} payment recorded: paid={}", appointment_id, is_paid)
        return updated

    async def remove(self, appointment_id: str) -> Appointment:
        """Delete an unpaid appointment. Paid ones must be cancelled instead."""
        existing = await self.find_by_id(appointment_id)
        if existing.is_paid:
            raise ConflictError(
                "Cannot delete a paid appointment. Cancel it instead.", record_id=appointment_id
            )

        deleted = await self._store.delete_by_id(appointment_id, lambda current: not current.is_paid)
        if deleted is None:
            await self.find_by_id(appointment_id)
            raise ConflictError(
                "Cannot delete a paid appointment. Cancel it instead.", record_id=appointment_id
            )

        logger.info("Appointment deleted: id={}", appointment_id)
        return deleted

    async def get_appointment_availability(
        self, professional_id: str, date: dt.date
    ) -> Availability:
        """Split the workday into fixed slots and mark the ones the professional is booked in."""
        ensure_id(professional_id, "professional")
        await self._guard.user(professional_id)

        day = TimeInterval(*day_bounds(date))
        booked = await self._store.find_many(
            AppointmentFilter(
                professional_id=professional_id,
                overlaps=day,
                exclude_statuses=INACTIVE_APPOINTMENT_STATUSES,
            )
        )
        workday = TimeInterval(
            at_hour(date, self._config.workday_start_hour),
            at_hour(date, self._config.workday_end_hour),
        )

        slots = [
            AvailabilitySlot(
                start_time=slot.start,
                end_time=slot.end,
                available=not any(slot.overlaps(a.interval) for a in booked),
            )
            for slot in workday.split(dt.timedelta(minutes=self._config.slot_minutes))
        ]
        logger.debug(
            "Availability for {} on {}: {} of {} slots free",
            professional_id,
            date,
            sum(s.available for s in slots),
            len(slots),
        )
        return Availability(
            professional_id=professional_id,
            date=date,
            available=any(s.available for s in slots),
            slots=slots,
        )

    async def _ensure_free(
        self, professional_id: str, interval: TimeInterval, exclude_id: str | None = None
    ) -> None:
        conflicts = await self._store.find_many(
            AppointmentFilter(
                professional_id=professional_id,
                overlaps=interval,
                exclude_statuses=INACTIVE_APPOINTMENT_STATUSES,
                exclude_id=exclude_id,
            )
        )
        if conflicts:
            raise ConflictError(
                "Professional already has an appointment during this time slot",
                record_id=conflicts[0].appointment_id,
            )
