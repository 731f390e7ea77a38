from __future__ import annotations

import subprocess
from pathlib import Path
from typing import Sequence

from release_orchestrator.core import SourceMismatch


def _git(args: Sequence[str], *, cwd: Path, git: str = "git") -> str:
    try:
        proc = subprocess.run(
            [git, *args],
            cwd=cwd,
            capture_output=True,
            text=True,
            timeout=30,
            check=False,
        )
    except (FileNotFoundError, subprocess.TimeoutExpired) as e:
        raise SourceMismatch(f"Cannot query git in {cwd}: {e}") from e
    if proc.returncode != 0:
        raise SourceMismatch(
            f"git {' '.join(args)} failed in {cwd}: {proc.stderr.strip() or proc.returncode}"
        )
    return proc.stdout.strip()


def verify_checkout(
    project_dir: Path,
    expected_ref: str,
    *,
    require_clean: bool = False,
    git: str = "git",
) -> str:
    """
    Confirm HEAD of the checkout is `expected_ref` (full or abbreviated sha).
    Returns the full HEAD sha.
    """
    ref = expected_ref.strip().lower()
    if len(ref) < 7:
        raise SourceMismatch(f"Commit reference too short to be unambiguous: {expected_ref!r}")

    head = _git(["rev-parse", "HEAD"], cwd=Path(project_dir), git=git).lower()
    if not head.startswith(ref):
        raise SourceMismatch(f"Checkout is at {head}, expected {expected_ref}")

    if require_clean:
        dirty = _git(["status", "--porcelain"], cwd=Path(project_dir), git=git)
        if dirty:
            n = len(dirty.splitlines())
            raise SourceMismatch(f"Checkout has {n} uncommitted change(s)")
    return head
