from __future__ import annotations

import os
import sys
from pathlib import Path

import pytest

from release_orchestrator.core import SourceMismatch
from release_orchestrator.stages.build import verify_checkout

HEAD = "3f2a9c1d7e4b5a6f8091a2b3c4d5e6f708192a3b"


def _fake_git(tmp_path: Path, *, dirty: str = "") -> str:
    script = tmp_path / "git"
    script.write_text(
        f"#!{sys.executable}\n"
        "import sys\n"
        "if sys.argv[1:] == ['rev-parse', 'HEAD']:\n"
        f"    print({HEAD!r})\n"
        "elif sys.argv[1:] == ['status', '--porcelain']:\n"
        f"    sys.stdout.write({dirty!r})\n"
        "else:\n"
        "    sys.exit(2)\n",
        encoding="utf-8",
    )
    os.chmod(script, 0o755)
    return str(script)


def test_matching_full_and_abbreviated_sha(tmp_path: Path) -> None:
    git = _fake_git(tmp_path)
    assert verify_checkout(tmp_path, HEAD, git=git) == HEAD
    assert verify_checkout(tmp_path, HEAD[:7].upper(), git=git) == HEAD


def test_mismatch_and_short_ref(tmp_path: Path) -> None:
    git = _fake_git(tmp_path)
    with pytest.raises(SourceMismatch, match="expected"):
        verify_checkout(tmp_path, "deadbeef", git=git)
    with pytest.raises(SourceMismatch, match="too short"):
        verify_checkout(tmp_path, HEAD[:4], git=git)


def test_dirty_checkout_rejected_when_clean_required(tmp_path: Path) -> None:
    git = _fake_git(tmp_path, dirty=" M pom.xml\n?? notes.txt\n")
    assert verify_checkout(tmp_path, HEAD, git=git) == HEAD
    with pytest.raises(SourceMismatch, match="2 uncommitted"):
        verify_checkout(tmp_path, HEAD, require_clean=True, git=git)
