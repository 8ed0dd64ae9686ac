from typing import Any

import httpx
from loguru import logger

from agenda.domain.exceptions import NotFoundError, RegistryUnavailableError
from agenda.domain.models import Course, User, UserRole
from agenda.scheduling.guards import ensure_id


def _record_id(data: dict[str, Any], fallback: str) -> str:
    return str(data.get("id") or data.get("_id") or fallback)


def _parse_course(data: dict[str, Any], course_id: str) -> Course:
    try:
        return Course(
            course_id=_record_id(data, course_id),
            business_id=str(data["businessId"]),
            name=data.get("name", ""),
            type=data.get("type", ""),
            base_price=data.get("basePrice", 0),
            duration_minutes=data.get("durationMinutes", 60),
            max_capacity=data.get("maxCapacity", 0),
            instructor_ids=tuple(str(i) for i in data.get("instructors") or []),
            is_active=data.get("isActive", True),
        )
    except (KeyError, TypeError, ValueError) as exc:
        raise RegistryUnavailableError(f"Malformed course record {course_id}: {exc}") from exc


def _parse_user(data: dict[str, Any], user_id: str) -> User:
    try:
        return User(
            user_id=_record_id(data, user_id),
            business_id=str(data["businessId"]),
            role=UserRole(data.get("role", UserRole.STUDENT.value)),
            name=data.get("name", ""),
            email=data.get("email", ""),
            is_active=data.get("isActive", True),
        )
    except (KeyError, TypeError, ValueError) as exc:
        raise RegistryUnavailableError(f"Malformed user record {user_id}: {exc}") from exc


class HttpRegistryClient:
    """Course, user and business registries served over a JSON REST API.

    Implements ``CourseRegistry``, ``UserRegistry`` and ``BusinessRegistry``.
    Records use the registry's camelCase field names (``businessId``,
    ``basePrice``, ``instructors`` ...).
    """

    def __init__(
        self,
        base_url: str,
        *,
        token: str = "",
        timeout: float = 10.0,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._token = token
        self._client = httpx.AsyncClient(timeout=timeout)

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        return headers

    async def _get(self, path: str) -> httpx.Response:
        try:
            return await self._client.get(f"{self._base_url}{path}", headers=self._headers())
        except httpx.HTTPError as exc:
            raise RegistryUnavailableError(f"Registry request failed: {exc}") from exc

    async def _get_record(self, path: str, entity: str, entity_id: str) -> dict[str, Any]:
        resp = await self._get(path)
        if resp.status_code == 404:
            raise NotFoundError(entity, entity_id)
        try:
            resp.raise_for_status()
            data: dict[str, Any] = resp.json()
        except httpx.HTTPStatusError as exc:
            raise RegistryUnavailableError(f"Registry request failed: {exc}") from exc
        except ValueError as exc:
            raise RegistryUnavailableError(f"Registry returned invalid JSON for {path}") from exc
        if not isinstance(data, dict):
            raise RegistryUnavailableError(f"Registry returned unexpected payload for {path}")
        return data

    async def get_course(self, course_id: str) -> Course:
        ensure_id(course_id, "course")
        data = await self._get_record(f"/courses/{course_id}", "course", course_id)
        return _parse_course(data, course_id)

    async def get_user(self, user_id: str) -> User:
        ensure_id(user_id, "user")
        data = await self._get_record(f"/users/{user_id}", "user", user_id)
        return _parse_user(data, user_id)

    async def business_exists(self, business_id: str) -> bool:
        ensure_id(business_id, "business")
        try:
            await self._get_record(f"/businesses/{business_id}", "business", business_id)
        except NotFoundError:
            return False
        return True

    async def health_check(self) -> bool:
        try:
            resp = await self._get("/health")
            resp.raise_for_status()
            return True
        except Exception as exc:
            logger.warning("Registry health check failed: {}", exc)
            return False

    async def close(self) -> None:
        await self._client.aclose()
        logger.info("Registry HTTP client closed")
