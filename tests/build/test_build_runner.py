from __future__ import annotations

import sys
from pathlib import Path
from typing import Callable

import pytest

from release_orchestrator.core import BuildFailure, ConfigError
from release_orchestrator.pipeline.types import ProjectCoordinates
from release_orchestrator.stages.build import BuildProfile, BuildRunner, artifact_path_for

COORDS = ProjectCoordinates(group_id="com.example", artifact_id="demo", version="1.0.0")


def test_profile_args() -> None:
    profile = BuildProfile(
        profiles=("release", "sign"),
        properties={"b": "2", "a": "1"},
        skip_tests=True,
        offline=True,
        settings_file=Path("/ci/settings.xml"),
    )
    assert profile.to_args() == [
        "-B",
        "-s",
        "/ci/settings.xml",
        "-o",
        "-Prelease,sign",
        "-Da=1",
        "-Db=2",
        "-DskipTests",
        "clean",
        "package",
    ]


def test_artifact_path_for(tmp_path: Path) -> None:
    assert artifact_path_for(tmp_path, COORDS) == tmp_path / "target" / "demo-1.0.0.jar"

    named = ProjectCoordinates(
        group_id="g", artifact_id="svc", version="2.1", packaging="war",
        final_name="${project.artifactId}-app",
    )
    assert artifact_path_for(tmp_path, named) == tmp_path / "target" / "svc-app.war"

    with pytest.raises(ConfigError):
        artifact_path_for(tmp_path, ProjectCoordinates("g", "a", "1", packaging="zip"))


def test_successful_build_returns_artifact(
    tmp_path: Path, fake_build: Callable[[Path], list[str]]
) -> None:
    artifact = tmp_path / "target" / "demo-1.0.0.jar"
    runner = BuildRunner(command=fake_build(artifact), timeout_s=60)

    result = runner.run(
        BuildProfile(profiles=("release",), skip_tests=True),
        project_dir=tmp_path,
        coordinates=COORDS,
    )

    assert result.success
    assert result.artifact_path == artifact
    assert result.exit_code == 0
    assert "fake build" in result.log_excerpt
    assert artifact.read_bytes() == b"jar-bytes"

    argv = (tmp_path / "target" / "argv.txt").read_text().splitlines()
    assert argv == ["-B", "-Prelease", "-DskipTests", "clean", "package"]


def test_stale_artifact_is_removed_before_build(
    tmp_path: Path, fake_build: Callable[[Path], list[str]], monkeypatch: pytest.MonkeyPatch
) -> None:
    artifact = tmp_path / "target" / "demo-1.0.0.jar"
    artifact.parent.mkdir(parents=True)
    artifact.write_bytes(b"stale")
    monkeypatch.setenv("FAKE_BUILD_NO_ARTIFACT", "1")

    runner = BuildRunner(command=fake_build(artifact), timeout_s=60)
    with pytest.raises(BuildFailure, match="no artifact"):
        runner.run(BuildProfile(), project_dir=tmp_path, coordinates=COORDS)
    assert not artifact.exists()


def test_non_zero_exit_is_build_failure(
    tmp_path: Path, fake_build: Callable[[Path], list[str]], monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setenv("FAKE_BUILD_EXIT", "3")
    runner = BuildRunner(command=fake_build(tmp_path / "target" / "demo-1.0.0.jar"))

    with pytest.raises(BuildFailure) as ei:
        runner.run(BuildProfile(), project_dir=tmp_path, coordinates=COORDS)
    assert ei.value.exit_code == 3
    assert "BUILD FAILURE" in ei.value.output_tail
    assert ei.value.kind == "build_failure"


def test_missing_tool_and_timeout(tmp_path: Path) -> None:
    missing = BuildRunner(command=[str(tmp_path / "no-such-mvn")])
    with pytest.raises(BuildFailure, match="not found"):
        missing.run(BuildProfile(), project_dir=tmp_path, coordinates=COORDS)

    slow = BuildRunner(command=[sys.executable, "-c", "import time; time.sleep(10)"])
    with pytest.raises(BuildFailure, match="timed out"):
        slow.run(BuildProfile(timeout_s=0.5), project_dir=tmp_path, coordinates=COORDS)
