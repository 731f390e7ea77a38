from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import structlog

from release_orchestrator.core import (
    ConfigError,
    InternalError,
    atomic_write_text,
    backup_file,
    restore_file,
    safe_unlink,
    utc_now_iso,
)
from release_orchestrator.pipeline.types import ReleaseDescriptor

from .descriptor import parse_coordinates, read_coordinates, replace_project_version
from .policy import VersionPolicy, check_transition, parse_version

log = structlog.get_logger(__name__)


@dataclass(frozen=True, slots=True)
class VersionChange:
    descriptor_path: Path
    previous: str
    new: str
    backup_path: Optional[Path]
    applied_at_utc: str

    @property
    def changed(self) -> bool:
        return self.backup_path is not None

    def to_dict(self) -> dict[str, object]:
        return {
            "descriptor_path": str(self.descriptor_path),
            "previous": self.previous,
            "new": self.new,
            "backup_path": str(self.backup_path) if self.backup_path else None,
            "applied_at_utc": self.applied_at_utc,
        }


class VersionManager:
    """
    Computes the next version and rewrites the project descriptor.

    Every rewrite is preceded by a backup in `backup_dir`; the backup is either
    restored (rollback) or discarded once the run is over.
    """

    def __init__(self, backup_dir: Path) -> None:
        self.backup_dir = Path(backup_dir)

    def bump(self, current: str, policy: VersionPolicy) -> str:
        return str(policy.next_version(parse_version(current)))

    def apply(self, descriptor: ReleaseDescriptor, new_version: str) -> VersionChange:
        path = Path(descriptor.descriptor_path)
        on_disk = read_coordinates(path)
        expected = descriptor.coordinates.version
        if on_disk.version != expected:
            raise ConfigError(
                f"{path} version changed since the run started: {expected} -> {on_disk.version}"
            )

        check_transition(on_disk.version, new_version, descriptor.policy)

        if on_disk.version == new_version:
            # identical snapshot re-publish: nothing to write
            log.info("version.unchanged", path=str(path), version=new_version)
            return VersionChange(
                descriptor_path=path,
                previous=on_disk.version,
                new=new_version,
                backup_path=None,
                applied_at_utc=utc_now_iso(),
            )

        text = path.read_text(encoding="utf-8")
        updated = replace_project_version(text, new_version)
        if parse_coordinates(updated, source=str(path)).version != new_version:
            raise InternalError(f"Version rewrite of {path} did not take effect")

        backup = backup_file(path, self.backup_dir)
        atomic_write_text(path, updated)

        persisted = read_coordinates(path).version
        if persisted != new_version:
            restore_file(backup, path)
            raise InternalError(
                f"{path} reads back version {persisted} after writing {new_version}"
            )

        log.info(
            "version.applied",
            path=str(path),
            previous=on_disk.version,
            new=new_version,
            backup=str(backup),
        )
        return VersionChange(
            descriptor_path=path,
            previous=on_disk.version,
            new=new_version,
            backup_path=backup,
            applied_at_utc=utc_now_iso(),
        )

    def restore(self, change: VersionChange) -> None:
        if change.backup_path is None:
            return
        if not change.backup_path.is_file():
            raise InternalError(f"Backup missing, cannot restore {change.descriptor_path}")
        restore_file(change.backup_path, change.descriptor_path)
        log.info(
            "version.restored", path=str(change.descriptor_path), version=change.previous
        )

    def discard(self, change: VersionChange) -> None:
        if change.backup_path is not None:
            safe_unlink(change.backup_path)
