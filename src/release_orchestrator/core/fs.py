import os
import shutil
import tempfile
from pathlib import Path


def ensure_parent(path: Path) -> None:
    Path(path).parent.mkdir(parents=True, exist_ok=True)


def safe_unlink(path: os.PathLike[str] | str) -> None:
    try:
        Path(path).unlink(missing_ok=True)
    except OSError:
        return


def fsync_dir(parent: Path) -> None:
    """
    Ensure directory entry durability after atomic rename.
    """
    fd: int | None = None
    try:
        fd = os.open(parent, os.O_RDONLY)
        os.fsync(fd)
    finally:
        if fd is not None:
            os.close(fd)


def atomic_write_bytes(path: Path, data: bytes, *, mode: int | None = None) -> None:
    """
    Atomically write bytes to `path`.

    Guarantees:
      - readers either see the old complete file or the new complete file
      - no partial/truncated file on crash
      - temp file written in the same directory (atomic replace works)
      - file contents are fsync()'d before replace

    When `mode` is None the permissions of an existing file are preserved.
    """
    path = Path(path)
    ensure_parent(path)

    if mode is None:
        mode = path.stat().st_mode & 0o777 if path.exists() else 0o644

    fd: int | None = None
    tmp_path: Path | None = None
    try:
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{path.name}.",
            suffix=".tmp",
            dir=str(path.parent),
        )
        tmp_path = Path(tmp_name)

        with os.fdopen(fd, "wb") as f:
            fd = None
            f.write(data)
            f.flush()
            os.fsync(f.fileno())

        os.chmod(tmp_path, mode)
        os.replace(tmp_path, path)
        fsync_dir(path.parent)
    finally:
        if fd is not None:
            os.close(fd)
        if tmp_path is not None and tmp_path.exists():
            safe_unlink(tmp_path)


def atomic_write_text(
    path: Path,
    text: str,
    *,
    encoding: str = "utf-8",
    mode: int | None = None,
) -> None:
    atomic_write_bytes(path, text.encode(encoding), mode=mode)


def backup_file(src: Path, backup_dir: Path) -> Path:
    """
    Copy `src` into `backup_dir` (metadata preserved) and fsync the copy.
    """
    src = Path(src)
    backup_dir = Path(backup_dir)
    backup_dir.mkdir(parents=True, exist_ok=True)

    dst = backup_dir / src.name
    shutil.copy2(src, dst)
    with dst.open("rb") as f:
        os.fsync(f.fileno())
    fsync_dir(backup_dir)
    return dst


def restore_file(backup: Path, dst: Path) -> None:
    """
    Atomically put the backup contents back at `dst`.
    """
    atomic_write_bytes(Path(dst), Path(backup).read_bytes())
