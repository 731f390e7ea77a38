import hashlib
from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class FileDigest:
    """
    Digests repository managers expect alongside an uploaded file.
    """

    sha256: str
    sha1: str
    md5: str
    bytes: int


def sha256_bytes(b: bytes) -> str:
    h = hashlib.sha256()
    h.update(b)
    return h.hexdigest()


def digest_file(path: Path, *, chunk_bytes: int = 1024 * 1024) -> FileDigest:
    h256 = hashlib.sha256()
    h1 = hashlib.sha1()
    h5 = hashlib.md5()
    total = 0
    with Path(path).open("rb") as f:
        while True:
            b = f.read(chunk_bytes)
            if not b:
                break
            h256.update(b)
            h1.update(b)
            h5.update(b)
            total += len(b)

    return FileDigest(
        sha256=h256.hexdigest(), sha1=h1.hexdigest(), md5=h5.hexdigest(), bytes=total
    )
