from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING, Any, Optional

from release_orchestrator.core import InternalError, StageError

from .types import ReleaseDescriptor

if TYPE_CHECKING:
    from release_orchestrator.stages.build.models import BuildResult
    from release_orchestrator.stages.publish.receipts import PublishReceipt
    from release_orchestrator.stages.version.manager import VersionChange


class RunStatus(StrEnum):
    init = "init"
    building = "building"
    versioning = "versioning"
    publishing = "publishing"
    succeeded = "succeeded"
    failed = "failed"
    rolled_back = "rolled_back"
    rollback_failed = "rollback_failed"


RUNNING_ORDER: tuple[RunStatus, ...] = (
    RunStatus.init,
    RunStatus.building,
    RunStatus.versioning,
    RunStatus.publishing,
)

TERMINAL: frozenset[RunStatus] = frozenset(
    {
        RunStatus.succeeded,
        RunStatus.failed,
        RunStatus.rolled_back,
        RunStatus.rollback_failed,
    }
)


def can_transition(src: RunStatus, dst: RunStatus) -> bool:
    """
    Forward-only moves through the running stages (partial runs may skip
    stages), any running state -> succeeded | failed, failed -> rolled_back |
    rollback_failed.
    """
    if src in RUNNING_ORDER:
        if dst in RUNNING_ORDER:
            return RUNNING_ORDER.index(dst) > RUNNING_ORDER.index(src)
        return dst in (RunStatus.succeeded, RunStatus.failed)
    if src == RunStatus.failed:
        return dst in (RunStatus.rolled_back, RunStatus.rollback_failed)
    return False


@dataclass(slots=True)
class PipelineRun:
    """
    Aggregate for one release transaction. Mutable while running, sealed once
    a terminal status has been reached and recorded.
    """

    run_id: str
    descriptor: ReleaseDescriptor
    status: RunStatus = RunStatus.init
    stage_reached: Optional[str] = None
    build_result: Optional[BuildResult] = None
    version_change: Optional[VersionChange] = None
    receipt: Optional[PublishReceipt] = None
    error: Optional[StageError] = None
    rollback_error: Optional[StageError] = None
    history: list[str] = field(default_factory=list)
    _sealed: bool = False

    @property
    def sealed(self) -> bool:
        return self._sealed

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL

    def _check_open(self) -> None:
        if self._sealed:
            raise InternalError(f"PipelineRun {self.run_id} is sealed ({self.status})")

    def transition(self, dst: RunStatus) -> None:
        self._check_open()
        if not can_transition(self.status, dst):
            raise InternalError(f"Illegal run transition {self.status} -> {dst}")
        self.status = dst
        self.history.append(dst.value)

    def update(self, **fields: Any) -> None:
        self._check_open()
        for name, value in fields.items():
            if name.startswith("_") or name in ("status", "history", "run_id"):
                raise InternalError(f"PipelineRun.{name} cannot be set via update()")
            setattr(self, name, value)

    def seal(self) -> None:
        if not self.is_terminal:
            raise InternalError(f"Cannot seal non-terminal run ({self.status})")
        self._sealed = True
