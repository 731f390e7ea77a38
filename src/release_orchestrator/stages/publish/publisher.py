from __future__ import annotations

from pathlib import Path
from typing import Any, Callable, Optional

import httpx
import structlog

from release_orchestrator.core import (
    FileDigest,
    PublishVerificationFailed,
    ReleaseError,
    TargetUnavailable,
    digest_file,
    sha256_bytes,
    utc_now_iso,
)
from release_orchestrator.pipeline.events import EventType
from release_orchestrator.pipeline.types import ProjectCoordinates
from release_orchestrator.registry import RepositoryTarget
from release_orchestrator.stages.build.models import BuildResult
from release_orchestrator.stages.version.semver import is_snapshot

from .config import PublishConfig
from .http import request_with_retries
from .layout import maven_path, staging_path
from .receipts import PublishReceipt

Emit = Callable[..., None]

_OK_PUT = (200, 201)
_OK_DELETE = (200, 202, 204, 404)


def _noop_emit(event: str, **kw: Any) -> None:
    return None


class ArtifactPublisher:
    """
    Deploys one build artifact to an Artifactory-style repository.

    Sequence per artifact:
      1) health probe (single attempt)
      2) idempotency check against existing remote metadata
      3) upload (staged PUT + move, or direct PUT)
      4) checksum verification of the committed object
      5) optional .sha1/.md5 sidecars
    """

    def __init__(
        self,
        client: httpx.Client,
        *,
        run_id: str,
        config: PublishConfig | None = None,
        logger: Any = None,
        emit: Emit | None = None,
    ) -> None:
        self.client = client
        self.run_id = run_id
        self.config = config or PublishConfig()
        self.log = logger or structlog.get_logger(__name__)
        self._emit = emit or _noop_emit

    def _request(
        self,
        method: str,
        url: str,
        *,
        auth: httpx.Auth | None,
        allowed: tuple[int, ...],
        body: Path | bytes | None = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        return request_with_retries(
            self.client,
            method=method,
            url=url,
            body=body,
            headers=headers,
            auth=auth,
            allowed_statuses=allowed,
            max_attempts=self.config.max_attempts,
            backoff_base=self.config.backoff_base_s,
            backoff_cap=self.config.backoff_cap_s,
        )

    def health_check(self, target: RepositoryTarget, *, auth: httpx.Auth | None = None) -> None:
        url = target.ping_url()
        kw: dict[str, Any] = {"timeout": self.config.health_timeout_s}
        if auth is not None:
            kw["auth"] = auth
        try:
            resp = self.client.get(url, **kw)
        except httpx.TimeoutException as e:
            raise TargetUnavailable(
                target.id, f"ping timed out after {self.config.health_timeout_s:g}s"
            ) from e
        except httpx.TransportError as e:
            raise TargetUnavailable(target.id, f"ping failed: {e!r}") from e

        body = resp.text.strip()
        if resp.status_code != 200 or body != "OK":
            raise TargetUnavailable(
                target.id, f"ping returned HTTP {resp.status_code} {body[:80]!r}"
            )

    def remote_sha256(
        self, target: RepositoryTarget, remote_path: str, *, auth: httpx.Auth | None = None
    ) -> Optional[str]:
        """
        sha256 of the object at `remote_path`, or None when nothing is there.

        Storage metadata is preferred; servers that do not report a sha256
        there get the file downloaded and hashed.
        """
        resp = self._request("GET", target.storage_url(remote_path), auth=auth, allowed=(200, 404))
        if resp.status_code == 200:
            try:
                info = resp.json()
            except ValueError:
                info = {}
            checksums = info.get("checksums") if isinstance(info, dict) else None
            if isinstance(checksums, dict) and checksums.get("sha256"):
                return str(checksums["sha256"]).lower()

        resp = self._request("GET", target.artifact_url(remote_path), auth=auth, allowed=(200, 404))
        if resp.status_code == 404:
            return None
        return sha256_bytes(resp.content)

    def _delete(self, target: RepositoryTarget, path: str, *, auth: httpx.Auth | None) -> bool:
        try:
            self._request("DELETE", target.artifact_url(path), auth=auth, allowed=_OK_DELETE)
        except (ReleaseError, httpx.HTTPError) as e:
            self.log.warning("publish.delete_failed", target=target.id, path=path, error=repr(e))
            return False
        return True

    def _upload(
        self,
        artifact: Path,
        target: RepositoryTarget,
        remote_path: str,
        digest: FileDigest,
        *,
        auth: httpx.Auth | None,
    ) -> int:
        headers = {
            "Content-Type": "application/octet-stream",
            "X-Checksum-Sha256": digest.sha256,
            "X-Checksum-Sha1": digest.sha1,
            "X-Checksum-Md5": digest.md5,
        }

        if target.upload_mode == "direct":
            resp = self._request(
                "PUT", target.artifact_url(remote_path), auth=auth, allowed=_OK_PUT,
                body=artifact, headers=headers,
            )
            return resp.status_code

        staged = staging_path(self.config.staging_prefix, self.run_id, remote_path)
        # nothing may be left behind under the staging prefix, even a partial PUT
        try:
            resp = self._request(
                "PUT", target.artifact_url(staged), auth=auth, allowed=_OK_PUT,
                body=artifact, headers=headers,
            )
            self._request("POST", target.move_url(staged, remote_path), auth=auth, allowed=(200,))
        except (ReleaseError, httpx.HTTPError):
            self._delete(target, staged, auth=auth)
            raise
        return resp.status_code

    def _upload_sidecars(
        self,
        target: RepositoryTarget,
        remote_path: str,
        digest: FileDigest,
        *,
        auth: httpx.Auth | None,
    ) -> tuple[str, ...]:
        done: list[str] = []
        for ext, value in (("sha1", digest.sha1), ("md5", digest.md5)):
            path = f"{remote_path}.{ext}"
            try:
                self._request(
                    "PUT", target.artifact_url(path), auth=auth, allowed=_OK_PUT,
                    body=value.encode("ascii"), headers={"Content-Type": "text/plain"},
                )
            except (ReleaseError, httpx.HTTPError) as e:
                self.log.warning("publish.sidecar_failed", path=path, error=repr(e))
                continue
            done.append(path)
        return tuple(done)

    def publish(
        self,
        build_result: BuildResult,
        target: RepositoryTarget,
        *,
        coordinates: ProjectCoordinates,
        version: str,
        auth: httpx.Auth | None = None,
    ) -> PublishReceipt:
        artifact = Path(build_result.artifact_path)
        remote_path = maven_path(coordinates, version)
        remote_url = target.artifact_url(remote_path)
        digest = digest_file(artifact)
        snapshot = is_snapshot(version)

        def _receipt(**kw: Any) -> PublishReceipt:
            return PublishReceipt(
                target=target,
                artifact_path=artifact,
                remote_path=remote_path,
                remote_url=remote_url,
                checksum=digest.sha256,
                sha1=digest.sha1,
                md5=digest.md5,
                bytes=digest.bytes,
                timestamp=utc_now_iso(),
                **kw,
            )

        self.health_check(target, auth=auth)
        self._emit(EventType.PUBLISH_HEALTH, target=target.id, ok=True)

        existing = self.remote_sha256(target, remote_path, auth=auth)
        if existing == digest.sha256:
            self.log.info("publish.reused", target=target.id, path=remote_path)
            return _receipt(http_status=200, reused=True)
        if existing is not None and not snapshot:
            raise PublishVerificationFailed(
                f"Release {remote_path} already exists in {target.id} with different "
                f"content (remote sha256 {existing}, local {digest.sha256})"
            )

        status = self._upload(artifact, target, remote_path, digest, auth=auth)
        self._emit(
            EventType.PUBLISH_UPLOAD,
            target=target.id,
            path=remote_path,
            mode=target.upload_mode,
            http_status=status,
            bytes=digest.bytes,
            overwrite=existing is not None,
        )

        try:
            remote = self.remote_sha256(target, remote_path, auth=auth)
            reason = f"remote sha256 {remote}, local {digest.sha256}"
        except (ReleaseError, httpx.HTTPError) as e:
            remote = None
            reason = f"verification request failed: {e}"

        if remote != digest.sha256:
            deleted = target.allow_delete and self._delete(target, remote_path, auth=auth)
            self._emit(
                EventType.PUBLISH_VERIFY, target=target.id, path=remote_path, ok=False, deleted=deleted
            )
            raise PublishVerificationFailed(
                f"Checksum verification failed for {remote_url} ({reason})",
                receipt=None if deleted else _receipt(http_status=status, verified=False),
                deleted=deleted,
            )
        self._emit(EventType.PUBLISH_VERIFY, target=target.id, path=remote_path, ok=True)

        sidecars: tuple[str, ...] = ()
        if self.config.upload_checksum_files:
            sidecars = self._upload_sidecars(target, remote_path, digest, auth=auth)

        return _receipt(http_status=status, sidecars=sidecars)
