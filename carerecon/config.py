import os
from zoneinfo import ZoneInfo

from pydantic import BaseModel, Field

ENV_PREFIX = "CARERECON_"


class Settings(BaseModel):
    timezone: str = "Europe/Amsterdam"
    missed_tasks_lookback_days: int = Field(default=60, ge=1, le=366)
    medication_lookback_days: int = Field(default=90, ge=1, le=366)
    nutrition_lookback_days: int = Field(default=90, ge=1, le=366)
    reports_lookback_days: int = Field(default=90, ge=1, le=366)
    fluid_tolerance_minutes: int = Field(default=60, ge=0, le=720)
    log_level: str = "INFO"
    log_file: str | None = None

    @property
    def tz(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> "Settings":
        env = os.environ if environ is None else environ
        values: dict[str, str] = {}
        for name in cls.model_fields:
            raw = env.get(f"{ENV_PREFIX}{name.upper()}")
            if raw is not None and raw.strip():
                values[name] = raw.strip()
        return cls.model_validate(values)


_settings: Settings | None = None


def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings.from_env()
    return _settings


def reset_settings() -> None:
    global _settings
    _settings = None


def configure_settings(settings: Settings) -> Settings:
    """Install ``settings`` as the process settings, used by store-boundary parsing."""
    global _settings
    _settings = settings
    return settings
