from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any, Callable

from release_orchestrator.core import ILogger, RunLayout, Settings, digest_file

from .events import EventSink, EventType, make_event
from .state import PipelineRun
from .types import ArtifactRef

if TYPE_CHECKING:
    import httpx

    from release_orchestrator.registry import (
        CredentialStore,
        RepositoryKind,
        RepositoryTarget,
    )

Action = Callable[[], None]


@dataclass(slots=True)
class RunContext:
    """
    Context shared across stages for a single pipeline run.
    """

    run_id: str
    layout: RunLayout
    settings: Settings
    logger: ILogger
    events: EventSink
    run: PipelineRun

    targets: dict[RepositoryKind, RepositoryTarget] = field(default_factory=dict)
    credentials: CredentialStore | None = None
    # injected for tests / custom networking
    http_transport: httpx.BaseTransport | None = None

    # optional free-form metadata
    meta: dict[str, Any] = field(default_factory=dict)

    undo_actions: list[tuple[str, Action]] = field(default_factory=list)
    success_actions: list[tuple[str, Action]] = field(default_factory=list)

    @property
    def run_dir(self) -> Path:
        return self.layout.run_dir(self.run_id)

    def stage_logger(self, stage: str) -> ILogger:
        return self.logger.bind(stage=stage)

    def emit(self, event: EventType | str, *, stage: str | None = None, **kw: Any) -> None:
        ev = make_event(event_type=event, run_id=self.run_id, stage=stage, **kw)
        self.events.emit(ev)
        # Keep event chatter at debug level to leave console logs readable.
        self.logger.debug(ev.type, event_type=ev.type, stage=stage, **kw)

    def on_failure(self, name: str, action: Action) -> None:
        """Register an undo action; run in reverse order if the run fails."""
        self.undo_actions.append((name, action))

    def on_success(self, name: str, action: Action) -> None:
        """Register a cleanup action for a successful run."""
        self.success_actions.append((name, action))

    def record_artifact(
        self,
        *,
        stage: str,
        path: Path,
        content_type: str | None = None,
    ) -> ArtifactRef:
        p = Path(path)
        digest = digest_file(p)
        art = ArtifactRef(
            path=str(p), bytes=digest.bytes, sha256=digest.sha256, content_type=content_type
        )
        self.emit(
            EventType.ARTIFACT_WRITTEN,
            stage=stage,
            path=art.path,
            bytes=art.bytes,
            sha256=art.sha256,
            content_type=art.content_type,
        )
        return art
