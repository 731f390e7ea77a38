from __future__ import annotations

from typing import Mapping

from release_orchestrator.core import ConfigError, InternalError
from release_orchestrator.registry import RepositoryKind, RepositoryTarget
from release_orchestrator.stages.version.semver import is_snapshot


def kind_for_version(version: str) -> RepositoryKind:
    return RepositoryKind.snapshot if is_snapshot(version) else RepositoryKind.release


def select_target(
    version: str, targets: Mapping[RepositoryKind, RepositoryTarget]
) -> RepositoryTarget:
    """
    Snapshot versions go to the snapshot target, everything else to the
    release target. There is no fallback to the other kind.
    """
    kind = kind_for_version(version)
    target = targets.get(kind)
    if target is None:
        raise ConfigError(f"No {kind.value} repository configured for version {version}")
    if target.kind != kind:
        raise InternalError(
            f"Refusing to route {kind.value} version {version} to "
            f"{target.kind.value} repository {target.id}"
        )
    return target
