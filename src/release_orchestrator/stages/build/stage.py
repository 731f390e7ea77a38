from __future__ import annotations

import shlex
from typing import Any

from release_orchestrator.pipeline.context import RunContext
from release_orchestrator.pipeline.events import EventType

from .runner import BuildRunner
from .scm import verify_checkout


def build_runner_from_ctx(ctx: RunContext) -> BuildRunner:
    # tests and embedders may pass an argv list instead of the configured command
    command = ctx.meta.get("build_command") or shlex.split(ctx.settings.build_command)
    return BuildRunner(command=command, timeout_s=ctx.settings.build_timeout_s)


def stage_build(ctx: RunContext) -> dict[str, Any]:
    desc = ctx.run.descriptor
    out: dict[str, Any] = {}

    if desc.commit_ref:
        head = verify_checkout(
            desc.project_dir,
            desc.commit_ref,
            require_clean=desc.build_profile.require_clean_checkout,
        )
        ctx.emit(EventType.SOURCE_VERIFIED, stage="build", head=head)
        out["commit"] = head

    runner = build_runner_from_ctx(ctx)
    ctx.emit(
        EventType.BUILD_START,
        stage="build",
        project=desc.coordinates.project_key,
        goals=list(desc.build_profile.goals),
        profiles=list(desc.build_profile.profiles),
    )

    result = runner.run(
        desc.build_profile,
        project_dir=desc.project_dir,
        coordinates=desc.coordinates,
    )
    ctx.run.update(build_result=result)

    art = ctx.record_artifact(stage="build", path=result.artifact_path)
    ctx.emit(
        EventType.BUILD_FINISH,
        stage="build",
        artifact=str(result.artifact_path),
        duration_ms=result.duration_ms,
    )

    out.update(
        {
            "artifact_path": str(result.artifact_path),
            "sha256": art.sha256,
            "_metrics": {"duration_ms": result.duration_ms, "bytes": art.bytes},
            "_artifacts": [art],
        }
    )
    return out
