from __future__ import annotations

from pathlib import Path
from typing import Callable

import pytest

from release_orchestrator.core import ConfigError
from release_orchestrator.stages.version import (
    parse_coordinates,
    read_coordinates,
    replace_project_version,
)


def test_read_coordinates(tmp_path: Path, write_pom: Callable[..., Path]) -> None:
    coords = read_coordinates(write_pom(tmp_path, "1.4.0-SNAPSHOT"))
    assert coords.group_id == "com.example"
    assert coords.artifact_id == "demo"
    assert coords.version == "1.4.0-SNAPSHOT"
    assert coords.packaging == "jar"
    assert coords.project_key == "com.example:demo"


def test_group_id_falls_back_to_parent() -> None:
    text = """<project>
      <parent><groupId>org.acme</groupId><artifactId>p</artifactId><version>1</version></parent>
      <artifactId>child</artifactId>
      <version>0.1.0</version>
      <build><finalName>child-app</finalName></build>
    </project>"""
    coords = parse_coordinates(text)
    assert coords.group_id == "org.acme"
    assert coords.final_name == "child-app"


@pytest.mark.parametrize(
    "text",
    [
        "<project><groupId>a</groupId><artifactId>b</artifactId></project>",
        "<project><groupId>a</groupId><artifactId>b</artifactId><version>${revision}</version></project>",
        "<settings/>",
        "<project>",
    ],
)
def test_unsupported_descriptors(text: str) -> None:
    with pytest.raises(ConfigError):
        parse_coordinates(text)


def test_replace_only_touches_project_version(
    tmp_path: Path, write_pom: Callable[..., Path]
) -> None:
    original = write_pom(tmp_path, "1.0.0").read_text()
    updated = replace_project_version(original, "1.0.1")

    assert parse_coordinates(updated).version == "1.0.1"
    # parent, dependency and commented-out versions stay as they were
    assert "<version>7</version>" in updated
    assert "<version>2.0.9</version>" in updated
    assert "<!-- <version>0.0.0-commented</version> -->" in updated
    assert updated.replace("1.0.1", "1.0.0") == original
