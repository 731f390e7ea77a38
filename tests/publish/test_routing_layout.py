from __future__ import annotations

import pytest

from release_orchestrator.core import ConfigError, InternalError
from release_orchestrator.pipeline.types import ProjectCoordinates
from release_orchestrator.registry import RepositoryKind, RepositoryTarget
from release_orchestrator.stages.publish import maven_path, select_target, staging_path


def test_snapshot_and_release_routing(
    targets: dict[RepositoryKind, RepositoryTarget],
) -> None:
    assert select_target("1.0.1", targets).kind == RepositoryKind.release
    assert select_target("1.0.1-rc1", targets).kind == RepositoryKind.release
    assert select_target("1.0.1-SNAPSHOT", targets).kind == RepositoryKind.snapshot


def test_missing_or_misconfigured_target(
    release_target: RepositoryTarget, snapshot_target: RepositoryTarget
) -> None:
    with pytest.raises(ConfigError):
        select_target("1.0.0-SNAPSHOT", {RepositoryKind.release: release_target})

    # never silently publish a release into a snapshot repository
    with pytest.raises(InternalError):
        select_target("1.0.0", {RepositoryKind.release: snapshot_target})


def test_maven_layout() -> None:
    coords = ProjectCoordinates(group_id="com.example.tools", artifact_id="demo", version="1.0.0")
    assert maven_path(coords, "1.0.1") == "com/example/tools/demo/1.0.1/demo-1.0.1.jar"
    war = ProjectCoordinates(group_id="org.acme", artifact_id="site", version="2.0.0", packaging="war")
    assert maven_path(war, "2.0.1") == "org/acme/site/2.0.1/site-2.0.1.war"
    assert staging_path(".staging", "run1", "com/x/a.jar") == ".staging/run1/com/x/a.jar"
