from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any, Sequence

from release_orchestrator.core import (
    ConcurrentReleaseConflict,
    ILogger,
    RollbackFailure,
    RunLayout,
    RunProvenance,
    Settings,
    configure_logging,
    get_lock_registry,
    get_logger,
    load_settings,
    monotonic_ms,
    new_run_id,
    stage_error_from_exc,
    utc_now_iso,
)

from .context import RunContext
from .events import EventSink, EventType
from .report import RollbackRecord, RunReport, build_run_report
from .stage import (
    FunctionStage,
    Stage,
    StageFn,
    StageResult,
    format_duration_ms,
    run_stage,
)
from .state import RUNNING_ORDER, PipelineRun, RunStatus
from .types import ReleaseDescriptor

if TYPE_CHECKING:
    import httpx

    from release_orchestrator.registry import (
        CredentialStore,
        RepositoryKind,
        RepositoryTarget,
    )


@dataclass(slots=True)
class RunnerConfig:
    # Hold the per-project release lock for the whole run.
    use_release_lock: bool = True


def default_logger() -> ILogger:
    configure_logging()
    return get_logger("pipeline")


def exit_code_for(report: RunReport) -> int:
    if report.status == RunStatus.succeeded.value:
        return 0
    if report.requires_operator:
        return 2
    return 1


class PipelineRunner:
    """
    Sequences stages as a single release transaction.

    One attempt per invocation: a failed stage ends the run, registered undo
    actions run once in reverse order, and the outcome is reported. Retrying
    is the caller's decision.
    """

    def __init__(
        self,
        *,
        stages: Sequence[Stage],
        settings: Settings | None = None,
        cfg: RunnerConfig | None = None,
        logger: ILogger | None = None,
        preflight: Sequence[Stage] = (),
    ) -> None:
        self.stages = list(stages)
        # checks that run before any stage may mutate state
        self.preflight = list(preflight)
        self.settings = settings or load_settings()
        self.cfg = cfg or RunnerConfig()
        self.logger: ILogger = logger or default_logger()

        ids = [s.stage_id for s in self.stages]
        if len(ids) != len(set(ids)):
            dupes = sorted({x for x in ids if ids.count(x) > 1})
            raise ValueError(f"Duplicate stage_id(s): {dupes}")

        order = [RUNNING_ORDER.index(s.status) for s in self.stages]
        if any(a >= b for a, b in zip(order, order[1:])) or 0 in order:
            raise ValueError(f"Stages out of order: {ids}")

    @staticmethod
    def fn(stage_id: str, status: RunStatus, fn: StageFn) -> Stage:
        return FunctionStage(stage_id=stage_id, status=status, fn=fn)

    def run(
        self,
        descriptor: ReleaseDescriptor,
        *,
        run_id: str | None = None,
        targets: dict[RepositoryKind, RepositoryTarget] | None = None,
        credentials: CredentialStore | None = None,
        http_transport: httpx.BaseTransport | None = None,
        meta: dict[str, Any] | None = None,
    ) -> tuple[RunReport, Path]:
        """
        Execute the pipeline and write:
          - events.jsonl
          - run_report.json

        Returns: (report, report_path)
        """
        meta = meta or {}
        rid = run_id or new_run_id()
        layout = RunLayout(run_root=Path(self.settings.run_root))
        layout.ensure_dirs(rid)

        events_path = layout.events_jsonl(rid)
        sink = EventSink(events_path, run_id=rid)
        run = PipelineRun(run_id=rid, descriptor=descriptor)

        ctx = RunContext(
            run_id=rid,
            layout=layout,
            settings=self.settings,
            logger=self.logger.bind(run_id=rid),
            events=sink,
            run=run,
            targets=dict(targets or {}),
            credentials=credentials,
            http_transport=http_transport,
            meta=meta,
        )

        started_at = utc_now_iso()
        t0 = monotonic_ms()
        project_key = descriptor.coordinates.project_key

        ctx.logger.info(
            "Pipeline starting",
            project=project_key,
            current_version=descriptor.coordinates.version,
            stages=[s.stage_id for s in self.stages],
            run_dir=str(ctx.run_dir),
        )
        ctx.emit(EventType.RUN_START, project=project_key, **meta)

        results: list[StageResult] = []
        rollback: list[RollbackRecord] = []

        try:
            if self.cfg.use_release_lock:
                registry = get_lock_registry(self.settings.lock_root)
                timeout = (
                    self.settings.lock_timeout_s
                    if self.settings.lock_mode == "block"
                    else 0.0
                )
                with registry.hold(project_key, owner=rid, timeout_s=timeout):
                    ctx.emit(EventType.LOCK_ACQUIRED, key=project_key)
                    results, rollback = self._execute(ctx)
            else:
                results, rollback = self._execute(ctx)
        except ConcurrentReleaseConflict as e:
            ctx.logger.error("Release lock not acquired", key=project_key, error=str(e))
            run.update(error=stage_error_from_exc(e), stage_reached="lock")
            self._transition(ctx, RunStatus.failed)
        except Exception as e:
            ctx.logger.exception("Pipeline aborted", error=str(e))
            rollback = self._abort(ctx, e, rollback)

        run.seal()

        duration = monotonic_ms() - t0
        report = build_run_report(
            run=run,
            started_at_utc=started_at,
            finished_at_utc=utc_now_iso(),
            duration_ms=duration,
            stage_results=results,
            rollback=rollback,
            events_jsonl=str(events_path),
            provenance=RunProvenance(run_id=rid, started_at_utc=started_at).to_dict(),
            meta=meta,
        )
        report_json = layout.run_report_json(rid)
        report.write_json(report_json)

        ctx.emit(
            EventType.RUN_FINISH,
            status=report.status,
            error_kind=report.error_kind,
            duration_ms=duration,
            report_json=str(report_json),
        )

        log_fields: dict[str, object] = {
            "status": report.status,
            "stage_reached": report.stage_reached,
            "duration": format_duration_ms(duration),
            "report": str(report_json),
        }
        if report.error_kind:
            log_fields["error_kind"] = report.error_kind
        if report.requires_operator:
            ctx.logger.error("Run needs operator intervention", **log_fields)
        else:
            ctx.logger.info("Run complete", **log_fields)

        return report, report_json

    def _transition(self, ctx: RunContext, dst: RunStatus) -> None:
        src = ctx.run.status
        ctx.run.transition(dst)
        ctx.emit(EventType.RUN_STATUS, src=src.value, dst=dst.value)

    def _execute(self, ctx: RunContext) -> tuple[list[StageResult], list[RollbackRecord]]:
        # undo actions run while the release lock is still held
        results = self._run_preflight(ctx)
        if ctx.run.status != RunStatus.failed:
            results += self._run_stages(ctx)
        if ctx.run.status == RunStatus.failed:
            return results, self._rollback(ctx)
        self._transition(ctx, RunStatus.succeeded)
        self._run_success_actions(ctx)
        return results, []

    def _run_preflight(self, ctx: RunContext) -> list[StageResult]:
        results: list[StageResult] = []
        for st in self.preflight:
            ctx.run.update(stage_reached=st.stage_id)
            res = run_stage(ctx=ctx, stage=st)
            results.append(res)
            if res.status == "failed":
                ctx.run.update(error=res.error)
                self._transition(ctx, RunStatus.failed)
                break
        return results

    def _run_stages(self, ctx: RunContext) -> list[StageResult]:
        results: list[StageResult] = []
        total = len(self.stages)
        for idx, st in enumerate(self.stages, start=1):
            self._transition(ctx, st.status)
            ctx.run.update(stage_reached=st.stage_id)

            res = run_stage(ctx=ctx, stage=st, index=idx, total=total)
            results.append(res)

            if res.status == "failed":
                ctx.run.update(error=res.error)
                self._transition(ctx, RunStatus.failed)
                ctx.logger.error("Stopping on first failure", stage=st.stage_id)
                break
        return results

    def _rollback(self, ctx: RunContext) -> list[RollbackRecord]:
        if not ctx.undo_actions:
            return []

        records: list[RollbackRecord] = []
        failures: list[str] = []
        ctx.emit(EventType.ROLLBACK_START, actions=[n for n, _ in ctx.undo_actions])
        ctx.logger.warning("Rolling back", actions=len(ctx.undo_actions))

        for name, action in reversed(ctx.undo_actions):
            try:
                action()
            except Exception as e:
                failures.append(f"{name}: {e}")
                records.append(RollbackRecord(action=name, status="failed", error=str(e)))
                ctx.emit(EventType.ROLLBACK_ACTION, action=name, status="failed", error=str(e))
                ctx.logger.error("Rollback action failed", action=name, error=str(e))
                continue
            records.append(RollbackRecord(action=name, status="success"))
            ctx.emit(EventType.ROLLBACK_ACTION, action=name, status="success")

        if failures:
            rf = RollbackFailure(
                f"Rollback incomplete ({len(failures)} action(s) failed); "
                "manual intervention required",
                failures=failures,
            )
            ctx.run.update(rollback_error=stage_error_from_exc(rf))
            self._transition(ctx, RunStatus.rollback_failed)
        else:
            self._transition(ctx, RunStatus.rolled_back)

        ctx.emit(EventType.ROLLBACK_FINISH, status=ctx.run.status.value)
        return records

    def _run_success_actions(self, ctx: RunContext) -> None:
        # cleanup only; a failure here cannot change the release outcome
        for name, action in ctx.success_actions:
            try:
                action()
            except Exception as e:
                ctx.logger.warning("Cleanup action failed", action=name, error=str(e))

    def _abort(
        self, ctx: RunContext, exc: Exception, done: list[RollbackRecord]
    ) -> list[RollbackRecord]:
        """Bring a run interrupted by an unexpected error to a terminal status."""
        run = ctx.run
        err = stage_error_from_exc(exc)
        if run.status in RUNNING_ORDER:
            run.update(error=run.error or err, stage_reached=run.stage_reached or "lock")
            self._transition(ctx, RunStatus.failed)
            return self._rollback(ctx)
        if run.status == RunStatus.failed and ctx.undo_actions:
            # the rollback itself broke off; undo actions are not re-run
            run.update(rollback_error=err)
            self._transition(ctx, RunStatus.rollback_failed)
        elif run.error is None:
            run.update(error=err)
        return done
