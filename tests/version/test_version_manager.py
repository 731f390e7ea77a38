from __future__ import annotations

from pathlib import Path
from typing import Callable

import pytest

from release_orchestrator.core import ConfigError, InvalidVersionTransition
from release_orchestrator.pipeline.types import ReleaseDescriptor
from release_orchestrator.stages.build.models import BuildProfile
from release_orchestrator.stages.version import (
    Explicit,
    IncrementPatch,
    VersionManager,
    VersionPolicy,
    read_coordinates,
)


def _descriptor(pom: Path, policy: VersionPolicy) -> ReleaseDescriptor:
    return ReleaseDescriptor(
        coordinates=read_coordinates(pom),
        policy=policy,
        build_profile=BuildProfile(),
        project_dir=pom.parent,
        descriptor_path=pom,
    )


def test_valid_transition_persists_new_version(
    tmp_path: Path, write_pom: Callable[..., Path]
) -> None:
    pom = write_pom(tmp_path / "project", "1.0.0")
    mgr = VersionManager(backup_dir=tmp_path / "backup")
    desc = _descriptor(pom, IncrementPatch())

    new = mgr.bump(desc.coordinates.version, desc.policy)
    assert new == "1.0.1"

    change = mgr.apply(desc, new)
    assert change.changed
    assert change.previous == "1.0.0"
    assert read_coordinates(pom).version == "1.0.1"
    assert change.backup_path is not None
    assert read_coordinates(change.backup_path).version == "1.0.0"

    mgr.discard(change)
    assert not change.backup_path.exists()


def test_explicit_release_alias_is_written_as_given(
    tmp_path: Path, write_pom: Callable[..., Path]
) -> None:
    pom = write_pom(tmp_path / "project", "1.0.0")
    mgr = VersionManager(backup_dir=tmp_path / "backup")
    desc = _descriptor(pom, Explicit(version="1.0.1-final"))

    new = mgr.bump(desc.coordinates.version, desc.policy)
    assert new == "1.0.1-final"
    mgr.apply(desc, new)
    assert read_coordinates(pom).version == "1.0.1-final"

    # same release as 1.0.1, so it cannot follow it
    released = write_pom(tmp_path / "released", "1.0.1")
    with pytest.raises(InvalidVersionTransition):
        mgr.apply(_descriptor(released, Explicit(version="1.0.1-final")), "1.0.1-final")


def test_invalid_transition_leaves_descriptor_untouched(
    tmp_path: Path, write_pom: Callable[..., Path]
) -> None:
    pom = write_pom(tmp_path / "project", "1.0.1")
    before = pom.read_bytes()
    mgr = VersionManager(backup_dir=tmp_path / "backup")

    with pytest.raises(InvalidVersionTransition):
        mgr.apply(_descriptor(pom, Explicit(version="1.0.0")), "1.0.0")

    assert pom.read_bytes() == before
    assert not (tmp_path / "backup").exists()


def test_restore_puts_previous_version_back(
    tmp_path: Path, write_pom: Callable[..., Path]
) -> None:
    pom = write_pom(tmp_path / "project", "2.3.0-SNAPSHOT")
    before = pom.read_bytes()
    mgr = VersionManager(backup_dir=tmp_path / "backup")

    change = mgr.apply(_descriptor(pom, IncrementPatch()), "2.3.1-SNAPSHOT")
    assert read_coordinates(pom).version == "2.3.1-SNAPSHOT"

    mgr.restore(change)
    assert pom.read_bytes() == before


def test_identical_snapshot_republish_writes_nothing(
    tmp_path: Path, write_pom: Callable[..., Path]
) -> None:
    pom = write_pom(tmp_path / "project", "1.1.0-SNAPSHOT")
    mgr = VersionManager(backup_dir=tmp_path / "backup")
    policy = Explicit(version="1.1.0-SNAPSHOT", allow_snapshot_republish=True)

    change = mgr.apply(_descriptor(pom, policy), "1.1.0-SNAPSHOT")
    assert not change.changed
    assert change.backup_path is None
    mgr.restore(change)
    assert read_coordinates(pom).version == "1.1.0-SNAPSHOT"


def test_descriptor_edited_since_run_start_is_rejected(
    tmp_path: Path, write_pom: Callable[..., Path]
) -> None:
    pom = write_pom(tmp_path / "project", "1.0.0")
    desc = _descriptor(pom, IncrementPatch())
    write_pom(tmp_path / "project", "1.5.0")

    with pytest.raises(ConfigError, match="changed since"):
        VersionManager(backup_dir=tmp_path / "backup").apply(desc, "1.0.1")
