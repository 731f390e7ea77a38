from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path

_unsafe_re = re.compile(r"[^a-zA-Z0-9._\-]+")


def safe_name(name: str) -> str:
    name = _unsafe_re.sub("_", name.strip().strip("/"))
    return name or "unnamed"


@dataclass(frozen=True, slots=True)
class RunLayout:
    """
    Canonical path layout for run artifacts:

      {run_root}/{run_id}/events.jsonl
      {run_root}/{run_id}/run_report.json
      {run_root}/{run_id}/backup/
      {run_root}/{run_id}/receipts/{artifact}.json
    """

    run_root: Path

    def run_dir(self, run_id: str) -> Path:
        return self.run_root / run_id

    def events_jsonl(self, run_id: str) -> Path:
        return self.run_dir(run_id) / "events.jsonl"

    def run_report_json(self, run_id: str) -> Path:
        return self.run_dir(run_id) / "run_report.json"

    def backup_dir(self, run_id: str) -> Path:
        return self.run_dir(run_id) / "backup"

    def receipts_dir(self, run_id: str) -> Path:
        return self.run_dir(run_id) / "receipts"

    def receipt_json(self, run_id: str, artifact_name: str) -> Path:
        return self.receipts_dir(run_id) / f"{safe_name(artifact_name)}.json"

    def ensure_dirs(self, run_id: str) -> None:
        for p in (self.run_dir(run_id), self.backup_dir(run_id)):
            p.mkdir(parents=True, exist_ok=True)


def lock_path(lock_root: Path, key: str) -> Path:
    return Path(lock_root) / f"{safe_name(key)}.lock"
