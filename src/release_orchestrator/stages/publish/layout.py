from __future__ import annotations

from pathlib import PurePosixPath

from release_orchestrator.pipeline.types import ProjectCoordinates
from release_orchestrator.stages.build.runner import artifact_extension


def maven_path(coords: ProjectCoordinates, version: str) -> str:
    """
    Maven repository layout:

      {group/as/dirs}/{artifactId}/{version}/{artifactId}-{version}.{ext}
    """
    ext = artifact_extension(coords.packaging)
    p = PurePosixPath(
        *coords.group_id.split("."), coords.artifact_id, version,
        f"{coords.artifact_id}-{version}.{ext}",
    )
    return p.as_posix()


def staging_path(prefix: str, run_id: str, remote_path: str) -> str:
    return PurePosixPath(prefix, run_id, remote_path).as_posix()
