from __future__ import annotations

import json
import os
import platform
import threading
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator

import structlog

from .errors import ConcurrentReleaseConflict
from .fs import ensure_parent, safe_unlink
from .json import stable_json_dumps
from .paths import lock_path

log = structlog.get_logger(__name__)

_POLL_S = 0.1


def _pid_alive(pid: int) -> bool:
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        return True
    return True


class ReleaseLockRegistry:
    """
    Serializes releases of the same project.

    Two layers:
      - an in-process lock per key (threads of this process)
      - an O_EXCL lock file under `lock_root` (other processes on the host)

    `timeout_s=0` rejects immediately when the key is held. A lock file
    whose owner process is gone from this host is removed and re-taken.
    """

    def __init__(self, lock_root: Path) -> None:
        self.lock_root = Path(lock_root)
        self._guard = threading.Lock()
        self._locks: dict[str, threading.Lock] = {}

    def _thread_lock(self, key: str) -> threading.Lock:
        with self._guard:
            lk = self._locks.get(key)
            if lk is None:
                lk = threading.Lock()
                self._locks[key] = lk
            return lk

    def _try_lock_file(self, path: Path, owner: str) -> bool:
        ensure_parent(path)
        try:
            fd = os.open(path, os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
        except FileExistsError:
            return False
        info = {"owner": owner, "pid": os.getpid(), "host": platform.node()}
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(stable_json_dumps(info, indent=None) + "\n")
        return True

    @staticmethod
    def _read_holder(path: Path) -> dict[str, Any] | None:
        try:
            info = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            return None
        return info if isinstance(info, dict) else None

    def _clear_stale(self, path: Path) -> bool:
        """
        Remove a lock file left by a process on this host that no longer runs.
        Locks of other hosts are never judged stale.
        """
        info = self._read_holder(path)
        if info is None or info.get("host") != platform.node():
            return False
        pid = info.get("pid")
        if not isinstance(pid, int) or _pid_alive(pid):
            return False
        log.warning("lock.stale_removed", path=str(path), owner=info.get("owner"), pid=pid)
        safe_unlink(path)
        return True

    @contextmanager
    def hold(self, key: str, *, owner: str, timeout_s: float = 0.0) -> Iterator[None]:
        deadline = time.monotonic() + timeout_s
        tlock = self._thread_lock(key)

        acquired = (
            tlock.acquire(timeout=timeout_s) if timeout_s > 0 else tlock.acquire(False)
        )
        if not acquired:
            raise ConcurrentReleaseConflict(key)

        path = lock_path(self.lock_root, key)
        try:
            while not self._try_lock_file(path, owner):
                if self._clear_stale(path):
                    continue
                if time.monotonic() >= deadline:
                    info = self._read_holder(path) or {}
                    raise ConcurrentReleaseConflict(
                        key, holder=info.get("owner"), lock_file=path
                    )
                time.sleep(_POLL_S)
        except BaseException:
            tlock.release()
            raise

        log.debug("lock.acquired", key=key, owner=owner, path=str(path))
        try:
            yield
        finally:
            safe_unlink(path)
            tlock.release()
            log.debug("lock.released", key=key, owner=owner)


_REGISTRIES: dict[Path, ReleaseLockRegistry] = {}
_REGISTRIES_GUARD = threading.Lock()


def get_lock_registry(lock_root: Path) -> ReleaseLockRegistry:
    """Process-wide registry per lock root."""
    root = Path(lock_root).resolve()
    with _REGISTRIES_GUARD:
        reg = _REGISTRIES.get(root)
        if reg is None:
            reg = ReleaseLockRegistry(root)
            _REGISTRIES[root] = reg
        return reg
