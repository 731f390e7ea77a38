from __future__ import annotations

from pathlib import Path, PurePosixPath
from typing import Any

import httpx

from release_orchestrator.core import (
    ConfigError,
    CredentialsNotFound,
    PublishVerificationFailed,
)
from release_orchestrator.pipeline.context import RunContext
from release_orchestrator.pipeline.events import EventType
from release_orchestrator.pipeline.stage import StageFn
from release_orchestrator.registry import RepositoryTarget
from release_orchestrator.stages.build.models import BuildResult
from release_orchestrator.stages.version.policy import parse_version

from .config import PublishConfig
from .http import make_http_client
from .publisher import ArtifactPublisher
from .receipts import PublishReceipt, write_receipt
from .routing import select_target


def publish_config_from_ctx(ctx: RunContext) -> PublishConfig:
    cfg = ctx.meta.get("publish_config")
    if isinstance(cfg, PublishConfig):
        return cfg
    return PublishConfig(
        health_timeout_s=ctx.settings.health_timeout_s,
        max_attempts=ctx.settings.http_max_attempts,
    )


def _auth_for(ctx: RunContext, target: RepositoryTarget) -> httpx.Auth | None:
    ref = target.credentials_ref
    if not ref:
        return None
    if ctx.credentials is None:
        raise CredentialsNotFound(f"No credential store configured for {ref!r}")
    return ctx.credentials.lookup(ref).auth()


def _build_result_for(ctx: RunContext) -> BuildResult:
    if ctx.run.build_result is not None:
        return ctx.run.build_result
    # publish-only runs point at an existing file
    path = ctx.meta.get("artifact_path")
    if not path:
        raise ConfigError(
            "Nothing to publish: no build result and no artifact_path given"
        )
    if not Path(path).is_file():
        raise ConfigError(f"Artifact to publish does not exist: {path}")
    return BuildResult(success=True, artifact_path=Path(path), log_excerpt="", duration_ms=0)


def _persist(ctx: RunContext, receipt: PublishReceipt) -> Path:
    path = ctx.layout.receipt_json(ctx.run_id, PurePosixPath(receipt.remote_path).name)
    write_receipt(path, receipt)
    ctx.run.update(receipt=receipt)
    return path


def _client(ctx: RunContext) -> httpx.Client:
    return make_http_client(
        connect_timeout_s=ctx.settings.http_connect_timeout_s,
        read_timeout_s=ctx.settings.http_read_timeout_s,
        transport=ctx.http_transport,
    )


def _publisher(ctx: RunContext, client: httpx.Client, stage: str) -> ArtifactPublisher:
    def _emit(event: str, **kw: Any) -> None:
        ctx.emit(event, stage=stage, **kw)

    return ArtifactPublisher(
        client,
        run_id=ctx.run_id,
        config=publish_config_from_ctx(ctx),
        logger=ctx.stage_logger(stage),
        emit=_emit,
    )


def make_publish_preflight(*, with_version: bool) -> StageFn:
    """
    Probe the repository the release will be routed to before anything is
    built or rewritten. With `with_version` the planned version (policy
    applied to the current one) decides the route.
    """

    def stage_preflight(ctx: RunContext) -> dict[str, Any]:
        desc = ctx.run.descriptor
        current = desc.effective_version
        version = (
            str(desc.policy.next_version(parse_version(current))) if with_version else current
        )
        target = select_target(version, ctx.targets)
        auth = _auth_for(ctx, target)
        with _client(ctx) as client:
            _publisher(ctx, client, "preflight").health_check(target, auth=auth)
        ctx.emit(EventType.PUBLISH_HEALTH, stage="preflight", target=target.id, ok=True)
        return {"planned_version": version, "target": target.id}

    return stage_preflight


def stage_publish(ctx: RunContext) -> dict[str, Any]:
    desc = ctx.run.descriptor
    version = desc.effective_version
    build_result = _build_result_for(ctx)

    target = select_target(version, ctx.targets)
    ctx.emit(
        EventType.PUBLISH_ROUTE,
        stage="publish",
        version=version,
        target=target.id,
        kind=target.kind.value,
        repository=target.repository,
    )
    auth = _auth_for(ctx, target)

    with _client(ctx) as client:
        publisher = _publisher(ctx, client, "publish")
        try:
            receipt = publisher.publish(
                build_result,
                target,
                coordinates=desc.coordinates,
                version=version,
                auth=auth,
            )
        except PublishVerificationFailed as e:
            # a corrupt object that could not be deleted still needs an audit record
            if e.receipt is not None:
                _persist(ctx, e.receipt)
            raise

    receipt_path = _persist(ctx, receipt)
    ctx.emit(
        EventType.PUBLISH_FINISH,
        stage="publish",
        target=target.id,
        remote_url=receipt.remote_url,
        checksum=receipt.checksum,
        reused=receipt.reused,
    )

    return {
        "target": target.id,
        "remote_url": receipt.remote_url,
        "checksum": receipt.checksum,
        "reused": receipt.reused,
        "receipt_path": str(receipt_path),
        "_metrics": {"bytes": receipt.bytes, "http_status": receipt.http_status},
    }
