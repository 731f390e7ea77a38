from __future__ import annotations

from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import TYPE_CHECKING, Any, Optional

if TYPE_CHECKING:
    from release_orchestrator.stages.build.models import BuildProfile
    from release_orchestrator.stages.version.policy import VersionPolicy


@dataclass(frozen=True, slots=True)
class ArtifactRef:
    """
    A reference to a file produced or consumed by a stage.
    """

    path: str
    bytes: int
    sha256: str
    content_type: Optional[str] = None


@dataclass(frozen=True, slots=True)
class Event:
    """
    Structured event emitted by the pipeline.
    """

    type: str
    ts_utc: str
    run_id: str
    stage: Optional[str] = None
    data: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class ProjectCoordinates:
    group_id: str
    artifact_id: str
    version: str
    packaging: str = "jar"
    final_name: Optional[str] = None

    @property
    def project_key(self) -> str:
        return f"{self.group_id}:{self.artifact_id}"

    def to_dict(self) -> dict[str, object]:
        return {
            "group_id": self.group_id,
            "artifact_id": self.artifact_id,
            "version": self.version,
            "packaging": self.packaging,
            "final_name": self.final_name,
        }


@dataclass(frozen=True, slots=True)
class ReleaseDescriptor:
    """
    What one pipeline run releases.

    `target_version` stays None until the version stage has computed and
    validated it against `coordinates.version`.
    """

    coordinates: ProjectCoordinates
    policy: VersionPolicy
    build_profile: BuildProfile
    project_dir: Path
    descriptor_path: Path
    commit_ref: Optional[str] = None
    target_version: Optional[str] = None

    def with_target(self, version: str) -> "ReleaseDescriptor":
        return replace(self, target_version=version)

    @property
    def effective_version(self) -> str:
        return self.target_version or self.coordinates.version

    def to_dict(self) -> dict[str, object]:
        return {
            "coordinates": self.coordinates.to_dict(),
            "policy": self.policy.describe(),
            "build_profile": self.build_profile.to_dict(),
            "project_dir": str(self.project_dir),
            "descriptor_path": str(self.descriptor_path),
            "commit_ref": self.commit_ref,
            "target_version": self.target_version,
        }
