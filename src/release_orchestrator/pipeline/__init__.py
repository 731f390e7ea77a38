from .context import RunContext
from .events import EventSink, EventType, make_event
from .report import RollbackRecord, RunReport
from .runner import PipelineRunner, RunnerConfig, exit_code_for
from .stage import FunctionStage, Stage, StageResult, run_stage
from .state import PipelineRun, RunStatus
from .types import ArtifactRef, Event, ProjectCoordinates, ReleaseDescriptor

__all__ = [
    "RunContext",
    "EventSink",
    "EventType",
    "make_event",
    "RollbackRecord",
    "RunReport",
    "PipelineRunner",
    "RunnerConfig",
    "exit_code_for",
    "FunctionStage",
    "Stage",
    "StageResult",
    "run_stage",
    "PipelineRun",
    "RunStatus",
    "ArtifactRef",
    "Event",
    "ProjectCoordinates",
    "ReleaseDescriptor",
]
