from collections.abc import Callable
from dataclasses import dataclass

from loguru import logger

from agenda.config import AppConfig, RegistryAdapter
from agenda.scheduling.adapters.http_registry import HttpRegistryClient
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
from agenda.scheduling.locks import KeyedLocks
from agenda.scheduling.ports import AppointmentStore, ClassStore
from agenda.scheduling.projections import ReadModel


@dataclass
class SchedulingServices:
    appointments: AppointmentScheduler
    classes: ClassEnrollmentManager
    read_model: ReadModel
    guard: ReferenceGuard
    locks: KeyedLocks
    registry_client: HttpRegistryClient | None = None

    async def close(self) -> None:
        if self.registry_client is not None:
            await self.registry_client.close()


def _build_memory_guard(config: AppConfig) -> tuple[ReferenceGuard, HttpRegistryClient | None]:
    guard = ReferenceGuard(
        courses=InMemoryCourseRegistry(),
        users=InMemoryUserRegistry(),
        businesses=InMemoryBusinessRegistry(),
    )
    return guard, None


def _build_http_guard(config: AppConfig) -> tuple[ReferenceGuard, HttpRegistryClient | None]:
    client = HttpRegistryClient(
        base_url=config.registry.base_url,
        token=config.registry.api_token,
        timeout=config.registry.timeout_seconds,
    )
    return ReferenceGuard(courses=client, users=client, businesses=client), client


_BUILDERS: dict[
    RegistryAdapter, Callable[[AppConfig], tuple[ReferenceGuard, HttpRegistryClient | None]]
] = {
    RegistryAdapter.MEMORY: _build_memory_guard,
    RegistryAdapter.HTTP: _build_http_guard,
}


def build_scheduling_services(
    config: AppConfig,
    *,
    appointment_store: AppointmentStore | None = None,
    class_store: ClassStore | None = None,
) -> SchedulingServices:
    """Wire the scheduler, enrollment manager and read model for ``config``.

    Stores default to in-memory ones; pass real stores to persist elsewhere.
    """
    adapter = config.registry.adapter
    logger.info("Building scheduling services with registry adapter: {}", adapter.value)
    guard, client = _BUILDERS[adapter](config)
    locks = KeyedLocks()
    return SchedulingServices(
        appointments=AppointmentScheduler(
            InMemoryAppointmentStore() if appointment_store is None else appointment_store,
            guard,
            config=config.scheduling,
            locks=locks,
        ),
        classes=ClassEnrollmentManager(
            InMemoryClassStore() if class_store is None else class_store,
            guard,
            config=config.scheduling,
            locks=locks,
        ),
        read_model=ReadModel(guard),
        guard=guard,
        locks=locks,
        registry_client=client,
    )
