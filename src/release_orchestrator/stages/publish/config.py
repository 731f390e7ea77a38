from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class PublishConfig:
    staging_prefix: str = ".staging"
    upload_checksum_files: bool = True

    health_timeout_s: float = 5.0
    max_attempts: int = 3
    backoff_base_s: float = 0.5
    backoff_cap_s: float = 4.0
