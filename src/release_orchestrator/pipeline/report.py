from __future__ import annotations

from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Optional

from release_orchestrator.core import StageError, atomic_write_json

from .stage import StageResult
from .state import PipelineRun, RunStatus


@dataclass(slots=True)
class RollbackRecord:
    action: str
    status: str  # "success" | "failed"
    error: Optional[str] = None


@dataclass(slots=True)
class RunReport:
    """
    Structured outcome of one run, written whatever the outcome.
    """

    run_id: str
    started_at_utc: str
    finished_at_utc: str
    status: str
    stage_reached: Optional[str]
    error_kind: Optional[str]
    requires_operator: bool
    duration_ms: int

    descriptor: dict[str, Any] = field(default_factory=dict)
    build: Optional[dict[str, Any]] = None
    version: Optional[dict[str, Any]] = None
    receipts: list[dict[str, Any]] = field(default_factory=list)
    stages: list[StageResult] = field(default_factory=list)
    rollback: list[RollbackRecord] = field(default_factory=list)
    error: Optional[StageError] = None
    rollback_error: Optional[StageError] = None
    events_jsonl: Optional[str] = None
    provenance: dict[str, Any] = field(default_factory=dict)
    meta: dict[str, Any] = field(default_factory=dict)

    @property
    def succeeded(self) -> bool:
        return self.status == RunStatus.succeeded.value

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    def write_json(self, path: Path) -> None:
        atomic_write_json(Path(path), self.to_dict())


def build_run_report(
    *,
    run: PipelineRun,
    started_at_utc: str,
    finished_at_utc: str,
    duration_ms: int,
    stage_results: list[StageResult],
    rollback: list[RollbackRecord],
    events_jsonl: str | None,
    provenance: dict[str, Any] | None = None,
    meta: dict[str, Any] | None = None,
) -> RunReport:
    err = run.rollback_error or run.error
    receipts: list[dict[str, Any]] = []
    if run.receipt is not None:
        receipts.append(run.receipt.to_dict())

    return RunReport(
        run_id=run.run_id,
        started_at_utc=started_at_utc,
        finished_at_utc=finished_at_utc,
        status=run.status.value,
        stage_reached=run.stage_reached,
        error_kind=err.kind if err else None,
        requires_operator=run.status == RunStatus.rollback_failed,
        duration_ms=duration_ms,
        descriptor=run.descriptor.to_dict(),
        build=run.build_result.to_dict() if run.build_result else None,
        version=run.version_change.to_dict() if run.version_change else None,
        receipts=receipts,
        stages=stage_results,
        rollback=rollback,
        error=run.error,
        rollback_error=run.rollback_error,
        events_jsonl=events_jsonl,
        provenance=provenance or {},
        meta=meta or {},
    )
