from __future__ import annotations

from pathlib import Path
from typing import Callable, Iterator

import pytest

from release_orchestrator.cli import main
from release_orchestrator.core import load_settings
from release_orchestrator.stages.version import read_coordinates


@pytest.fixture(autouse=True)
def _isolated_settings(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("RELEASE_ORCHESTRATOR_RUN_ROOT", str(tmp_path / "runs"))
    monkeypatch.setenv("RELEASE_ORCHESTRATOR_LOCK_ROOT", str(tmp_path / "locks"))
    load_settings.cache_clear()
    yield
    load_settings.cache_clear()


def test_version_command_rewrites_pom(tmp_path: Path, write_pom: Callable[..., Path]) -> None:
    pom = write_pom(tmp_path / "project", "1.0.0")

    assert main(["version", "--project-dir", str(pom.parent), "--version", "1.0.1"]) == 0
    assert read_coordinates(pom).version == "1.0.1"

    # going backwards fails and leaves the file alone
    assert main(["version", "--project-dir", str(pom.parent), "--version", "1.0.0"]) == 1
    assert read_coordinates(pom).version == "1.0.1"

    assert main(["version", "--project-dir", str(pom.parent), "--policy", "minor"]) == 0
    assert read_coordinates(pom).version == "1.1.0"


def test_setup_errors_exit_non_zero(tmp_path: Path, write_pom: Callable[..., Path]) -> None:
    assert main(["build", "--project-dir", str(tmp_path / "missing")]) == 1

    pom = write_pom(tmp_path / "project", "1.0.0")
    # publish needs a registry; none is configured here
    assert main(["publish", "--project-dir", str(pom.parent)]) == 1
    assert main(["version", "--project-dir", str(pom.parent), "--policy", "patch", "--version", "2.0.0"]) == 1
