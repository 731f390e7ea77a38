from __future__ import annotations

from pathlib import Path

from release_orchestrator.core import errors, paths, provenance, time


def test_run_layout_paths_and_dirs(tmp_path: Path) -> None:
    layout = paths.RunLayout(run_root=tmp_path)
    assert layout.run_report_json("r1") == tmp_path / "r1" / "run_report.json"
    assert layout.events_jsonl("r1") == tmp_path / "r1" / "events.jsonl"
    assert layout.receipt_json("r1", "demo-1.0.1.jar") == (
        tmp_path / "r1" / "receipts" / "demo-1.0.1.jar.json"
    )

    layout.ensure_dirs("r1")
    assert (tmp_path / "r1" / "backup").is_dir()

    assert paths.safe_name("com.example:demo") == "com.example_demo"
    assert paths.lock_path(tmp_path, "com.example:demo") == tmp_path / "com.example_demo.lock"


def test_stage_error_and_run_id() -> None:
    try:
        raise ValueError("boom")
    except Exception as exc:
        err = errors.stage_error_from_exc(exc)
    assert err.exc_type == "ValueError"
    assert err.kind == "unexpected"
    assert "boom" in err.message
    assert "ValueError" in err.traceback

    rid1, rid2 = provenance.new_run_id(), provenance.new_run_id()
    assert rid1 != rid2 and len(rid1) == 32


def test_error_kinds_are_stable() -> None:
    assert errors.error_kind(errors.TargetUnavailable("releases", "down")) == "target_unavailable"
    assert errors.error_kind(errors.CredentialsNotFound("x")) == "credentials_not_found"
    assert isinstance(errors.TargetUnavailable("r", "x"), errors.TransientError)

    rf = errors.RollbackFailure("incomplete", failures=["restore_descriptor: gone"])
    assert rf.kind == "rollback_failure"
    assert rf.failures == ["restore_descriptor: gone"]


def test_timer_records_duration() -> None:
    with provenance.Timer() as t:
        pass
    assert t.duration_ms is not None and t.duration_ms >= 0


def test_time_helpers_format() -> None:
    assert time.utc_now_iso().endswith("Z")
