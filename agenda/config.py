from enum import Enum
from typing import Self

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class RegistryAdapter(Enum):
    MEMORY = "memory"
    HTTP = "http"


class SchedulingConfig(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="AGENDA_SCHEDULING_", env_file=".env", extra="ignore"
    )

    workday_start_hour: int = Field(default=9, ge=0, le=23)
    workday_end_hour: int = Field(default=17, ge=1, le=24)
    slot_minutes: int = Field(default=60, gt=0)
    upcoming_days: int = Field(default=7, ge=0)

    @model_validator(mode="after")
    def _check_workday(self) -> Self:
        if self.workday_start_hour >= self.workday_end_hour:
            raise ValueError("workday_start_hour must be before workday_end_hour")
        return self


class RegistryConfig(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="AGENDA_REGISTRY_", env_file=".env", extra="ignore")

    adapter: RegistryAdapter = RegistryAdapter.MEMORY
    base_url: str = "http://localhost:8000/api"
    api_token: str = ""
    timeout_seconds: float = 10.0


class AppConfig(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    scheduling: SchedulingConfig = Field(default_factory=lambda: SchedulingConfig())
    registry: RegistryConfig = Field(default_factory=lambda: RegistryConfig())
