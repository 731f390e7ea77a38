from __future__ import annotations

import re
import subprocess
from pathlib import Path
from typing import Sequence

import structlog

from release_orchestrator.core import BuildFailure, ConfigError, Timer, safe_unlink
from release_orchestrator.pipeline.types import ProjectCoordinates

from .models import BuildProfile, BuildResult

log = structlog.get_logger(__name__)

# packaging -> file extension of the main artifact
_EXTENSIONS: dict[str, str] = {
    "jar": "jar",
    "war": "war",
    "ear": "ear",
    "rar": "rar",
    "ejb": "jar",
    "bundle": "jar",
    "maven-plugin": "jar",
    "pom": "pom",
}

_property_re = re.compile(r"\$\{([^}]+)\}")


def tail(text: str, *, lines: int = 40) -> str:
    return "\n".join(text.splitlines()[-lines:])


def _resolve_final_name(coords: ProjectCoordinates) -> str:
    if not coords.final_name:
        return f"{coords.artifact_id}-{coords.version}"

    known = {
        "project.artifactId": coords.artifact_id,
        "artifactId": coords.artifact_id,
        "project.version": coords.version,
        "version": coords.version,
        "project.groupId": coords.group_id,
    }

    def _sub(m: re.Match[str]) -> str:
        key = m.group(1)
        if key not in known:
            raise ConfigError(f"Cannot resolve ${{{key}}} in <finalName>")
        return known[key]

    return _property_re.sub(_sub, coords.final_name)


def artifact_extension(packaging: str) -> str:
    ext = _EXTENSIONS.get(packaging)
    if ext is None:
        raise ConfigError(f"Unsupported packaging {packaging!r}")
    return ext


def artifact_path_for(project_dir: Path, coords: ProjectCoordinates) -> Path:
    """
    Deterministic location of the main artifact the build produces.
    """
    if coords.packaging == "pom":
        return Path(project_dir) / "pom.xml"
    ext = artifact_extension(coords.packaging)
    return Path(project_dir) / "target" / f"{_resolve_final_name(coords)}.{ext}"


class BuildRunner:
    """
    Runs the build tool in the project directory and locates its artifact.
    """

    def __init__(
        self,
        *,
        command: Sequence[str] = ("mvn",),
        timeout_s: float = 1800.0,
        tail_lines: int = 40,
    ) -> None:
        self.command = tuple(command)
        self.timeout_s = timeout_s
        self.tail_lines = tail_lines

    def run(
        self,
        profile: BuildProfile,
        *,
        project_dir: Path,
        coordinates: ProjectCoordinates,
    ) -> BuildResult:
        project_dir = Path(project_dir)
        artifact = artifact_path_for(project_dir, coordinates)
        cmd = self.command + tuple(profile.to_args())
        timeout = profile.timeout_s or self.timeout_s

        # leftovers from an earlier run must never be published
        if coordinates.packaging != "pom" and artifact.exists():
            log.info("build.stale_artifact_removed", path=str(artifact))
            safe_unlink(artifact)

        log.info("build.exec", cmd=list(cmd), cwd=str(project_dir), timeout_s=timeout)

        with Timer() as t:
            try:
                proc = subprocess.run(
                    cmd,
                    cwd=project_dir,
                    stdout=subprocess.PIPE,
                    stderr=subprocess.STDOUT,
                    text=True,
                    errors="replace",
                    timeout=timeout,
                    check=False,
                )
            except FileNotFoundError as e:
                raise BuildFailure(f"Build tool not found: {cmd[0]}") from e
            except subprocess.TimeoutExpired as e:
                out = e.output or ""
                if isinstance(out, bytes):
                    out = out.decode("utf-8", errors="replace")
                raise BuildFailure(
                    f"Build timed out after {timeout:g}s",
                    output_tail=tail(out, lines=self.tail_lines),
                ) from e

        output_tail = tail(proc.stdout or "", lines=self.tail_lines)

        if proc.returncode != 0:
            raise BuildFailure(
                f"Build failed with exit code {proc.returncode}",
                exit_code=proc.returncode,
                output_tail=output_tail,
            )

        if not artifact.is_file():
            raise BuildFailure(
                f"Build succeeded but produced no artifact at {artifact}",
                exit_code=proc.returncode,
                output_tail=output_tail,
            )

        return BuildResult(
            success=True,
            artifact_path=artifact,
            log_excerpt=output_tail,
            duration_ms=int(t.duration_ms or 0),
            exit_code=proc.returncode,
            command=cmd,
        )
