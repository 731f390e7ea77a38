from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from release_orchestrator.core import atomic_write_json
from release_orchestrator.registry import RepositoryTarget


@dataclass(frozen=True, slots=True)
class PublishReceipt:
    """
    Audit record of one upload. Only created once the remote copy has been
    checked (or, with verified=False, when a corrupt copy could not be removed).
    """

    target: RepositoryTarget
    artifact_path: Path
    remote_path: str
    remote_url: str
    checksum: str
    sha1: str
    md5: str
    bytes: int
    http_status: int
    timestamp: str
    verified: bool = True
    reused: bool = False
    sidecars: tuple[str, ...] = ()

    @property
    def idempotency_key(self) -> str:
        return f"{self.target.id}:{self.remote_path}@sha256:{self.checksum}"

    def to_dict(self) -> dict[str, object]:
        return {
            "target": {
                "id": self.target.id,
                "kind": self.target.kind.value,
                "repository": self.target.repository,
                "base_url": self.target.root(),
            },
            "artifact_path": str(self.artifact_path),
            "remote_path": self.remote_path,
            "remote_url": self.remote_url,
            "checksum": self.checksum,
            "sha1": self.sha1,
            "md5": self.md5,
            "bytes": self.bytes,
            "http_status": self.http_status,
            "timestamp": self.timestamp,
            "verified": self.verified,
            "reused": self.reused,
            "sidecars": list(self.sidecars),
            "idempotency_key": self.idempotency_key,
        }


def write_receipt(path: Path, receipt: PublishReceipt) -> None:
    atomic_write_json(Path(path), receipt.to_dict())

