from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

LogFormat = Literal["json", "console"]
LockMode = Literal["reject", "block"]

BUILD_GOALS_DEFAULT = ("clean", "package")


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="RELEASE_ORCHESTRATOR_",
        env_file=".env",
        extra="ignore",
    )

    run_root: Path = Field(default=Path("_runs"))
    lock_root: Path = Field(default=Path("_runs/.locks"))
    config_dir: Path | None = Field(default=None)
    log_level: str = Field(default="INFO")
    log_format: LogFormat = Field(default="console")

    build_command: str = Field(default="mvn")
    build_timeout_s: float = Field(default=1800.0, gt=0)

    health_timeout_s: float = Field(default=5.0, gt=0)
    http_connect_timeout_s: float = Field(default=5.0, gt=0)
    http_read_timeout_s: float = Field(default=60.0, gt=0)
    http_max_attempts: int = Field(default=3, ge=1)

    # None -> ~/.m2/settings.xml when it exists
    maven_settings: Path | None = Field(default=None)

    lock_mode: LockMode = Field(default="reject")
    lock_timeout_s: float = Field(default=0.0, ge=0)


@lru_cache(maxsize=1)
def load_settings() -> Settings:
    return Settings()
