from __future__ import annotations

import re
import xml.etree.ElementTree as ET
from pathlib import Path

from release_orchestrator.core import ConfigError
from release_orchestrator.pipeline.types import ProjectCoordinates

POM_FILENAME = "pom.xml"

# Comments, CDATA, PIs and DOCTYPE are matched first so tags inside them are skipped.
_token_re = re.compile(
    r"<!--.*?-->"
    r"|<!\[CDATA\[.*?\]\]>"
    r"|<\?.*?\?>"
    r"|<!DOCTYPE[^>]*>"
    r"|<(?P<close>/?)(?P<name>[A-Za-z_][\w.\-:]*)(?P<attrs>[^>]*?)(?P<empty>/?)>",
    re.S,
)


def _local(tag: str) -> str:
    tag = tag.rsplit("}", 1)[-1]
    return tag.rsplit(":", 1)[-1]


def _child(el: ET.Element, name: str) -> ET.Element | None:
    for c in el:
        if isinstance(c.tag, str) and _local(c.tag) == name:
            return c
    return None


def _child_text(el: ET.Element | None, name: str) -> str | None:
    if el is None:
        return None
    c = _child(el, name)
    if c is None or c.text is None:
        return None
    return c.text.strip() or None


def parse_coordinates(text: str, *, source: str = POM_FILENAME) -> ProjectCoordinates:
    try:
        root = ET.fromstring(text)
    except ET.ParseError as e:
        raise ConfigError(f"Malformed {source}: {e}") from e

    if _local(root.tag) != "project":
        raise ConfigError(f"{source} root element is <{_local(root.tag)}>, expected <project>")

    parent = _child(root, "parent")
    group_id = _child_text(root, "groupId") or _child_text(parent, "groupId")
    artifact_id = _child_text(root, "artifactId")
    version = _child_text(root, "version")
    packaging = _child_text(root, "packaging") or "jar"
    final_name = _child_text(_child(root, "build"), "finalName")

    if not group_id or not artifact_id:
        raise ConfigError(f"{source} must declare groupId and artifactId")
    if not version:
        raise ConfigError(
            f"{source} inherits its version from the parent; declare <version> explicitly"
        )
    if "${" in version:
        raise ConfigError(f"{source} uses a property-based version ({version}); not supported")

    return ProjectCoordinates(
        group_id=group_id,
        artifact_id=artifact_id,
        version=version,
        packaging=packaging,
        final_name=final_name,
    )


def read_coordinates(path: Path) -> ProjectCoordinates:
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e
    return parse_coordinates(text, source=str(path))


def _project_version_span(text: str) -> tuple[int, int]:
    """
    Character span of the text inside the project's own <version>, i.e. the
    <version> whose parent is the root <project> (not <parent>, not a
    dependency or plugin).
    """
    stack: list[str] = []
    start: int | None = None

    for m in _token_re.finditer(text):
        name = m.group("name")
        if name is None:
            continue
        local = _local(name)

        if m.group("close"):
            if not stack or stack[-1] != local:
                raise ConfigError(f"Unbalanced </{name}> at offset {m.start()}")
            stack.pop()
            if start is not None and local == "version" and stack == ["project"]:
                return start, m.start()
            continue

        if m.group("empty"):
            continue

        if local == "version" and stack == ["project"]:
            start = m.end()
        stack.append(local)

    raise ConfigError("No <version> element directly under <project>")


def replace_project_version(text: str, new_version: str) -> str:
    start, end = _project_version_span(text)
    return text[:start] + new_version + text[end:]
