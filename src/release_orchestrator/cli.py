from __future__ import annotations

import argparse
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from release_orchestrator.core import (
    ReleaseError,
    Settings,
    bind,
    clear_bindings,
    configure_logging,
    get_logger,
    load_settings,
    new_run_id,
)
from release_orchestrator.pipeline import (
    PipelineRunner,
    ReleaseDescriptor,
    RunStatus,
    Stage,
    exit_code_for,
)
from release_orchestrator.pipeline.stage import StageFn
from release_orchestrator.registry import (
    RegistryFile,
    default_credential_store,
    get_registry,
)
from release_orchestrator.stages import stage_build, stage_publish, stage_version
from release_orchestrator.stages.build import BuildProfile, artifact_path_for
from release_orchestrator.stages.publish import (
    ArtifactPublisher,
    PublishConfig,
    make_http_client,
    make_publish_preflight,
)
from release_orchestrator.stages.version import make_policy, read_coordinates
from release_orchestrator.stages.version.descriptor import POM_FILENAME
from release_orchestrator.stages.version.policy import POLICIES

console = Console()


@dataclass(frozen=True, slots=True)
class _CommonArgs:
    cmd: str
    project_dir: Path
    config_dir: Path | None
    policy: str | None
    version: str | None
    allow_snapshot_republish: bool
    profiles: list[str]
    properties: dict[str, str]
    skip_tests: bool
    commit: str | None
    require_clean: bool
    artifact: Path | None


def _parse_property(raw: str) -> tuple[str, str]:
    key, sep, value = raw.partition("=")
    if not key:
        raise argparse.ArgumentTypeError(f"Expected -Dkey=value, got {raw!r}")
    return key, value if sep else "true"


def _add_common_args(p: argparse.ArgumentParser) -> None:
    p.add_argument(
        "--project-dir",
        default=".",
        help="Directory containing the project's pom.xml (default: current directory).",
    )
    p.add_argument(
        "--config-dir",
        default=None,
        help=(
            "Directory containing registry.json. "
            "If omitted: uses RELEASE_ORCHESTRATOR_CONFIG_DIR or ./config."
        ),
    )
    p.add_argument(
        "--policy",
        choices=sorted(POLICIES),
        default=None,
        help="Version policy (default: explicit when --version is given, else patch).",
    )
    p.add_argument("--version", default=None, help="Target version for the explicit policy")
    p.add_argument(
        "--allow-snapshot-republish",
        action="store_true",
        help="Accept re-publishing an identical -SNAPSHOT version.",
    )
    p.add_argument(
        "--profile",
        action="append",
        dest="profiles",
        default=[],
        help="Maven profile to activate (repeatable).",
    )
    p.add_argument(
        "-D",
        action="append",
        dest="properties",
        type=_parse_property,
        default=[],
        metavar="KEY=VALUE",
        help="System property passed to the build (repeatable).",
    )
    p.add_argument("--skip-tests", action="store_true", help="Pass -DskipTests to the build")
    p.add_argument("--commit", default=None, help="Expected HEAD commit of the checkout")
    p.add_argument(
        "--require-clean",
        action="store_true",
        help="Refuse to build from a checkout with uncommitted changes.",
    )
    p.add_argument(
        "--artifact",
        default=None,
        help="Publish this existing file instead of the build output (publish only).",
    )


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="release-orchestrator")
    sub = p.add_subparsers(dest="cmd", required=True)

    commands: dict[str, str] = {
        "build": "Build the project and locate its artifact",
        "version": "Compute and write the next version into pom.xml",
        "publish": "Publish an existing artifact to the routed repository",
        "run": "Build, version and publish as one release transaction",
    }
    for cmd, help_text in commands.items():
        sp = sub.add_parser(cmd, help=help_text)
        _add_common_args(sp)

    ping = sub.add_parser("ping", help="Health-check the configured repositories")
    ping.add_argument("--config-dir", default=None)

    return p


def _common(args: argparse.Namespace) -> _CommonArgs:
    return _CommonArgs(
        cmd=str(args.cmd),
        project_dir=Path(args.project_dir).resolve(),
        config_dir=(Path(args.config_dir) if args.config_dir else None),
        policy=args.policy,
        version=args.version,
        allow_snapshot_republish=bool(args.allow_snapshot_republish),
        profiles=list(args.profiles),
        properties=dict(args.properties),
        skip_tests=bool(args.skip_tests),
        commit=args.commit,
        require_clean=bool(args.require_clean),
        artifact=(Path(args.artifact).resolve() if args.artifact else None),
    )


_STAGES: dict[str, tuple[RunStatus, StageFn]] = {
    "build": (RunStatus.building, stage_build),
    "version": (RunStatus.versioning, stage_version),
    "publish": (RunStatus.publishing, stage_publish),
}

_PIPELINES: dict[str, tuple[str, ...]] = {
    "build": ("build",),
    "version": ("version",),
    "publish": ("publish",),
    "run": ("build", "version", "publish"),
}


def _with_status(stage_id: str, fn: StageFn) -> StageFn:
    def _run_with_status(ctx):
        with console.status(f"[bold]{stage_id}[/]", spinner="dots"):
            return fn(ctx)

    return _run_with_status


def _build_stages(cmd: str) -> list[Stage]:
    stages: list[Stage] = []
    for sid in _PIPELINES[cmd]:
        status, fn = _STAGES[sid]
        stages.append(PipelineRunner.fn(stage_id=sid, status=status, fn=_with_status(sid, fn)))
    return stages


def _build_preflight(cmd: str) -> list[Stage]:
    stage_ids = _PIPELINES[cmd]
    if "publish" not in stage_ids:
        return []
    check = make_publish_preflight(with_version="version" in stage_ids)
    return [
        PipelineRunner.fn(
            stage_id="preflight",
            status=RunStatus.init,
            fn=_with_status("preflight", check),
        )
    ]


def _registry(common_config_dir: Path | None, s: Settings) -> RegistryFile:
    return get_registry(common_config_dir or s.config_dir)


def _descriptor(common: _CommonArgs, registry: RegistryFile | None) -> ReleaseDescriptor:
    pom = common.project_dir / POM_FILENAME
    coords = read_coordinates(pom)

    policy_name = common.policy or ("explicit" if common.version else "patch")
    policy = make_policy(
        policy_name,
        version=common.version,
        allow_snapshot_republish=common.allow_snapshot_republish,
    )

    profiles = list(common.profiles)
    if registry is not None:
        profiles += [p for p in registry.profiles_for(coords.project_key) if p not in profiles]

    profile = BuildProfile(
        profiles=tuple(profiles),
        properties=common.properties,
        skip_tests=common.skip_tests,
        require_clean_checkout=common.require_clean,
    )
    return ReleaseDescriptor(
        coordinates=coords,
        policy=policy,
        build_profile=profile,
        project_dir=common.project_dir,
        descriptor_path=pom,
        commit_ref=common.commit,
    )


def _ping(args: argparse.Namespace, s: Settings) -> int:
    config_dir = Path(args.config_dir) if args.config_dir else None
    registry = _registry(config_dir, s)
    cfg = PublishConfig(health_timeout_s=s.health_timeout_s)

    tbl = Table(title="Repositories", show_header=True, box=None)
    tbl.add_column("id")
    tbl.add_column("kind")
    tbl.add_column("url")
    tbl.add_column("status")

    failed = 0
    with make_http_client(
        connect_timeout_s=s.http_connect_timeout_s, read_timeout_s=s.http_read_timeout_s
    ) as client:
        publisher = ArtifactPublisher(client, run_id="ping", config=cfg)
        for target in registry.repositories:
            try:
                publisher.health_check(target)
                status = "[green]ok[/green]"
            except ReleaseError as e:
                failed += 1
                status = f"[red]{e}[/red]"
            tbl.add_row(target.id, target.kind.value, target.ping_url(), status)

    console.print(tbl)
    return 1 if failed else 0


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)

    s = load_settings()
    configure_logging(level=s.log_level, fmt=s.log_format)
    log = get_logger("release_orchestrator")

    if args.cmd == "ping":
        try:
            return _ping(args, s)
        except ReleaseError as e:
            console.print(f"[red]{e}[/red]")
            return 1

    common = _common(args)
    needs_registry = "publish" in _PIPELINES[common.cmd]

    try:
        registry = _registry(common.config_dir, s) if needs_registry else None
        descriptor = _descriptor(common, registry)
        targets = registry.targets_for(descriptor.coordinates.project_key) if registry else {}
        credentials = default_credential_store(s.maven_settings) if needs_registry else None
    except ReleaseError as e:
        console.print(f"[red]{e}[/red]")
        return 1

    meta: dict[str, Any] = {"command": common.cmd}
    if common.cmd == "publish":
        artifact = common.artifact or artifact_path_for(
            common.project_dir, descriptor.coordinates
        )
        meta["artifact_path"] = str(artifact)

    run_id = new_run_id()
    clear_bindings()
    bind(run_id=run_id, command=common.cmd, project=descriptor.coordinates.project_key)

    runner = PipelineRunner(
        stages=_build_stages(common.cmd),
        preflight=_build_preflight(common.cmd),
        settings=s,
        logger=log,
    )

    console.print(
        Panel.fit(
            Text(
                f"release-orchestrator - {common.cmd}\nrun_id={run_id}\n"
                f"project={descriptor.coordinates.project_key}\n"
                f"version={descriptor.coordinates.version}",
                style="bold",
            ),
            title="Run",
        )
    )

    report, report_path = runner.run(
        descriptor,
        run_id=run_id,
        targets=targets,
        credentials=credentials,
        meta=meta,
    )
    exit_code = exit_code_for(report)

    styles = {0: "green", 1: "red", 2: "bold red"}
    tbl = Table(title="Result", show_header=True, box=None)
    tbl.add_row("status", f"[{styles[exit_code]}]{report.status}[/]")
    tbl.add_row("stage", str(report.stage_reached))
    if report.version:
        tbl.add_row("version", f"{report.version['previous']} -> {report.version['new']}")
    for r in report.receipts:
        tbl.add_row("published", str(r["remote_url"]))
    if report.error_kind:
        tbl.add_row("error", report.error_kind)
    if report.requires_operator:
        tbl.add_row("action", "[bold red]rollback incomplete, manual intervention required[/]")
    tbl.add_row("report", str(report_path))
    console.print(tbl)

    return exit_code


if __name__ == "__main__":
    raise SystemExit(main())
