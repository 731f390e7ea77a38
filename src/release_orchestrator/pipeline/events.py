from __future__ import annotations

import json
import os
import socket
import threading
from dataclasses import asdict
from enum import Enum
from pathlib import Path
from typing import Any, Optional

from release_orchestrator.core import utc_now_iso

from .types import Event


class EventType(str, Enum):
    RUN_ENV = "run.env"
    RUN_START = "run.start"
    RUN_FINISH = "run.finish"
    RUN_STATUS = "run.status"

    STAGE_START = "stage.start"
    STAGE_WARN = "stage.warn"
    STAGE_METRICS = "stage.metrics"
    STAGE_SUCCESS = "stage.success"
    STAGE_FAILED = "stage.failed"

    ARTIFACT_WRITTEN = "artifact.written"

    LOCK_ACQUIRED = "lock.acquired"

    SOURCE_VERIFIED = "source.verified"
    BUILD_START = "build.start"
    BUILD_FINISH = "build.finish"

    VERSION_PLAN = "version.plan"
    VERSION_APPLIED = "version.applied"
    VERSION_RESTORED = "version.restored"

    PUBLISH_ROUTE = "publish.route"
    PUBLISH_HEALTH = "publish.health"
    PUBLISH_UPLOAD = "publish.upload"
    PUBLISH_VERIFY = "publish.verify"
    PUBLISH_FINISH = "publish.finish"

    ROLLBACK_START = "rollback.start"
    ROLLBACK_ACTION = "rollback.action"
    ROLLBACK_FINISH = "rollback.finish"


class EventSink:
    """
    Append-only JSONL event log for one run.
    """

    def __init__(self, path: Path, *, run_id: str) -> None:
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()

        self.emit(
            Event(
                type=EventType.RUN_ENV.value,
                ts_utc=utc_now_iso(),
                run_id=run_id,
                data={
                    "hostname": socket.gethostname(),
                    "pid": os.getpid(),
                    "cwd": str(Path.cwd()),
                },
            )
        )

    def emit(self, event: Event) -> None:
        line = json.dumps(asdict(event), ensure_ascii=False, default=str)
        with self._lock:
            with self.path.open("a", encoding="utf-8") as f:
                f.write(line)
                f.write("\n")


def make_event(
    *,
    event_type: EventType | str,
    run_id: str,
    stage: Optional[str] = None,
    **data: Any,
) -> Event:
    type_value = (
        event_type.value if isinstance(event_type, EventType) else str(event_type)
    )
    return Event(
        type=type_value,
        ts_utc=utc_now_iso(),
        run_id=run_id,
        stage=stage,
        data=dict(data),
    )
