from __future__ import annotations

import os
import stat
from pathlib import Path

from release_orchestrator.core import fs


def test_atomic_write_text_and_bytes_roundtrip(tmp_path: Path) -> None:
    text_path = tmp_path / "d1" / "sample.txt"
    fs.atomic_write_text(text_path, "hello\n")
    assert text_path.read_text() == "hello\n"

    fs.atomic_write_text(text_path, "updated")
    assert text_path.read_text() == "updated"

    bytes_path = tmp_path / "d2" / "sample.bin"
    fs.atomic_write_bytes(bytes_path, b"\x00\x01")
    assert bytes_path.read_bytes() == b"\x00\x01"

    # no temp files left next to the target
    assert sorted(p.name for p in text_path.parent.iterdir()) == ["sample.txt"]


def test_atomic_write_preserves_existing_mode(tmp_path: Path) -> None:
    p = tmp_path / "pom.xml"
    p.write_text("old")
    os.chmod(p, 0o600)

    fs.atomic_write_text(p, "new")
    assert p.read_text() == "new"
    assert stat.S_IMODE(p.stat().st_mode) == 0o600


def test_backup_restore_and_unlink(tmp_path: Path) -> None:
    src = tmp_path / "project" / "pom.xml"
    fs.ensure_parent(src)
    src.write_text("v1")

    backup = fs.backup_file(src, tmp_path / "backup")
    assert backup == tmp_path / "backup" / "pom.xml"
    assert backup.read_text() == "v1"
    assert backup.stat().st_size == 2

    src.write_text("v2")
    fs.restore_file(backup, src)
    assert src.read_text() == "v1"

    fs.safe_unlink(backup)
    fs.safe_unlink(backup)
    assert not backup.exists()
