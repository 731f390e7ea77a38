from __future__ import annotations

from typing import TypedDict

from release_orchestrator.pipeline.context import RunContext
from release_orchestrator.pipeline.events import EventType

from .manager import VersionChange, VersionManager


class StageVersionResult(TypedDict):
    previous: str
    new: str
    descriptor_path: str
    changed: bool


def stage_version(ctx: RunContext) -> StageVersionResult:
    desc = ctx.run.descriptor
    mgr = VersionManager(backup_dir=ctx.layout.backup_dir(ctx.run_id))

    current = desc.coordinates.version
    new = mgr.bump(current, desc.policy)
    ctx.emit(
        EventType.VERSION_PLAN,
        stage="version",
        current=current,
        new=new,
        policy=desc.policy.name,
    )

    change = mgr.apply(desc, new)

    if change.changed:

        def _restore(change: VersionChange = change) -> None:
            mgr.restore(change)
            ctx.emit(
                EventType.VERSION_RESTORED,
                stage="version",
                path=str(change.descriptor_path),
                version=change.previous,
            )

        ctx.on_failure("restore_descriptor", _restore)
        ctx.on_success("discard_backup", lambda: mgr.discard(change))

    ctx.run.update(descriptor=desc.with_target(new), version_change=change)
    ctx.emit(
        EventType.VERSION_APPLIED,
        stage="version",
        previous=change.previous,
        new=change.new,
        changed=change.changed,
    )

    return {
        "previous": change.previous,
        "new": change.new,
        "descriptor_path": str(change.descriptor_path),
        "changed": change.changed,
    }
