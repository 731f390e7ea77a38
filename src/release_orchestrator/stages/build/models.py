from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional

from release_orchestrator.core.config import BUILD_GOALS_DEFAULT


@dataclass(frozen=True, slots=True)
class BuildProfile:
    goals: tuple[str, ...] = BUILD_GOALS_DEFAULT
    profiles: tuple[str, ...] = ()
    properties: Mapping[str, str] = field(default_factory=dict)
    skip_tests: bool = False
    offline: bool = False
    settings_file: Optional[Path] = None
    extra_args: tuple[str, ...] = ()
    timeout_s: Optional[float] = None
    require_clean_checkout: bool = False

    def to_args(self) -> list[str]:
        args = ["-B"]
        if self.settings_file is not None:
            args += ["-s", str(self.settings_file)]
        if self.offline:
            args.append("-o")
        if self.profiles:
            args.append("-P" + ",".join(self.profiles))
        for k in sorted(self.properties):
            args.append(f"-D{k}={self.properties[k]}")
        if self.skip_tests:
            args.append("-DskipTests")
        args += list(self.extra_args)
        args += list(self.goals)
        return args

    def to_dict(self) -> dict[str, object]:
        return {
            "goals": list(self.goals),
            "profiles": list(self.profiles),
            "properties": dict(self.properties),
            "skip_tests": self.skip_tests,
            "offline": self.offline,
            "settings_file": str(self.settings_file) if self.settings_file else None,
            "extra_args": list(self.extra_args),
            "timeout_s": self.timeout_s,
            "require_clean_checkout": self.require_clean_checkout,
        }


@dataclass(frozen=True, slots=True)
class BuildResult:
    success: bool
    artifact_path: Path
    log_excerpt: str
    duration_ms: int
    exit_code: Optional[int] = None
    command: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, object]:
        return {
            "success": self.success,
            "artifact_path": str(self.artifact_path),
            "log_excerpt": self.log_excerpt,
            "duration_ms": self.duration_ms,
            "exit_code": self.exit_code,
            "command": list(self.command),
        }
