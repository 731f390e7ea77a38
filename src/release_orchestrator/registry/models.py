from __future__ import annotations

from enum import StrEnum
from functools import cached_property
from typing import Annotated, Literal, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    HttpUrl,
    StringConstraints,
    model_validator,
)

IdPattern = r"^[a-z0-9][a-z0-9_\-\.]*[a-z0-9]$"

TargetId = Annotated[
    str,
    StringConstraints(min_length=2, max_length=120, pattern=IdPattern),
]
RepositoryKey = Annotated[
    str,
    StringConstraints(min_length=1, max_length=200, pattern=r"^[A-Za-z0-9._\-]+$"),
]
ProjectKey = Annotated[
    str,
    StringConstraints(pattern=r"^[A-Za-z0-9._\-]+:[A-Za-z0-9._\-]+$"),
]

UploadMode = Literal["staged", "direct"]


class RepositoryKind(StrEnum):
    release = "release"
    snapshot = "snapshot"


class RepositoryTarget(BaseModel):
    """
    A remote repository artifacts are deployed to.

    `base_url` is the repository manager root (the ping and move APIs hang off
    it); `repository` is the repository key under that root.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    id: TargetId
    base_url: HttpUrl
    repository: RepositoryKey
    kind: RepositoryKind
    credentials_ref: Optional[str] = None
    upload_mode: UploadMode = "staged"
    allow_delete: bool = True
    description: Optional[str] = None

    def root(self) -> str:
        return str(self.base_url).rstrip("/")

    def ping_url(self) -> str:
        return f"{self.root()}/api/system/ping"

    def artifact_url(self, path: str) -> str:
        return f"{self.root()}/{self.repository}/{path.lstrip('/')}"

    def storage_url(self, path: str) -> str:
        return f"{self.root()}/api/storage/{self.repository}/{path.lstrip('/')}"

    def move_url(self, src_path: str, dst_path: str) -> str:
        return (
            f"{self.root()}/api/move/{self.repository}/{src_path.lstrip('/')}"
            f"?to=/{self.repository}/{dst_path.lstrip('/')}"
        )


class ProjectOverride(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    release_repository: Optional[TargetId] = None
    snapshot_repository: Optional[TargetId] = None
    profiles: list[str] = Field(default_factory=list)


class RegistryFile(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    spec_version: int = Field(..., ge=1)
    repositories: list[RepositoryTarget] = Field(..., min_length=1)
    release_repository: TargetId
    snapshot_repository: TargetId
    projects: dict[ProjectKey, ProjectOverride] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _validate(self) -> "RegistryFile":
        ids = [r.id for r in self.repositories]
        if len(ids) != len(set(ids)):
            dupes = sorted({x for x in ids if ids.count(x) > 1})
            raise ValueError(f"Duplicate repository ids: {dupes}")

        known = set(ids)
        refs: list[tuple[str, str | None, RepositoryKind]] = [
            ("release_repository", self.release_repository, RepositoryKind.release),
            ("snapshot_repository", self.snapshot_repository, RepositoryKind.snapshot),
        ]
        for key, ov in self.projects.items():
            refs.append(
                (f"projects[{key}].release_repository", ov.release_repository, RepositoryKind.release)
            )
            refs.append(
                (f"projects[{key}].snapshot_repository", ov.snapshot_repository, RepositoryKind.snapshot)
            )

        by_id = {r.id: r for r in self.repositories}
        for field_name, ref, kind in refs:
            if ref is None:
                continue
            if ref not in known:
                raise ValueError(f"{field_name} references unknown repository {ref!r}")
            if by_id[ref].kind != kind:
                raise ValueError(
                    f"{field_name} must reference a {kind.value} repository, "
                    f"{ref!r} is {by_id[ref].kind.value}"
                )
        return self

    @cached_property
    def repository_map(self) -> dict[str, RepositoryTarget]:
        return {r.id: r for r in self.repositories}

    def targets_for(self, project_key: str) -> dict[RepositoryKind, RepositoryTarget]:
        ov = self.projects.get(project_key)
        release_id = (ov.release_repository if ov else None) or self.release_repository
        snapshot_id = (
            ov.snapshot_repository if ov else None
        ) or self.snapshot_repository
        return {
            RepositoryKind.release: self.repository_map[release_id],
            RepositoryKind.snapshot: self.repository_map[snapshot_id],
        }

    def profiles_for(self, project_key: str) -> list[str]:
        ov = self.projects.get(project_key)
        return list(ov.profiles) if ov else []
