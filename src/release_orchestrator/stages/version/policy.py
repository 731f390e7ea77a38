from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar

from release_orchestrator.core import ConfigError, InvalidVersionTransition

from .semver import Version


def parse_version(text: str) -> Version:
    try:
        return Version.parse(text)
    except ValueError as e:
        raise ConfigError(str(e)) from e


@dataclass(frozen=True, slots=True, kw_only=True)
class VersionPolicy:
    """
    How the next version is derived from the current one.

    `allow_snapshot_republish` lets a run re-publish an identical snapshot
    version; releases never allow it.
    """

    name: ClassVar[str] = "policy"

    allow_snapshot_republish: bool = False

    def next_version(self, current: Version) -> Version:
        raise NotImplementedError

    def describe(self) -> dict[str, object]:
        return {
            "name": self.name,
            "allow_snapshot_republish": self.allow_snapshot_republish,
        }


@dataclass(frozen=True, slots=True, kw_only=True)
class Explicit(VersionPolicy):
    name: ClassVar[str] = "explicit"

    version: str

    def next_version(self, current: Version) -> Version:
        return parse_version(self.version)

    def describe(self) -> dict[str, object]:
        return {**VersionPolicy.describe(self), "version": self.version}


@dataclass(frozen=True, slots=True, kw_only=True)
class IncrementPatch(VersionPolicy):
    name: ClassVar[str] = "patch"

    def next_version(self, current: Version) -> Version:
        return current.next_patch()


@dataclass(frozen=True, slots=True, kw_only=True)
class IncrementMinor(VersionPolicy):
    name: ClassVar[str] = "minor"

    def next_version(self, current: Version) -> Version:
        return current.next_minor()


@dataclass(frozen=True, slots=True, kw_only=True)
class IncrementMajor(VersionPolicy):
    name: ClassVar[str] = "major"

    def next_version(self, current: Version) -> Version:
        return current.next_major()


@dataclass(frozen=True, slots=True, kw_only=True)
class PromoteSnapshotToRelease(VersionPolicy):
    name: ClassVar[str] = "promote"

    def next_version(self, current: Version) -> Version:
        if not current.snapshot:
            raise InvalidVersionTransition(
                str(current), str(current), "promote requires a snapshot version"
            )
        return current.as_release()


POLICIES: dict[str, type[VersionPolicy]] = {
    p.name: p
    for p in (Explicit, IncrementPatch, IncrementMinor, IncrementMajor, PromoteSnapshotToRelease)
}


def make_policy(
    name: str,
    *,
    version: str | None = None,
    allow_snapshot_republish: bool = False,
) -> VersionPolicy:
    if name not in POLICIES:
        raise ConfigError(f"Unknown version policy {name!r}; expected one of {sorted(POLICIES)}")
    if name == Explicit.name:
        if not version:
            raise ConfigError("Policy 'explicit' requires a version")
        return Explicit(version=version, allow_snapshot_republish=allow_snapshot_republish)
    if version:
        raise ConfigError(f"Policy {name!r} does not take an explicit version")
    return POLICIES[name](allow_snapshot_republish=allow_snapshot_republish)


def check_transition(current: str, new: str, policy: VersionPolicy) -> None:
    """
    new must sort strictly after current; an identical snapshot is accepted
    only when the policy allows snapshot re-publish.
    """
    cur = parse_version(current)
    nxt = parse_version(new)

    c = nxt.compare(cur)
    if c > 0:
        return
    if c == 0 and nxt.snapshot and policy.allow_snapshot_republish:
        return
    if c == 0:
        reason = (
            "identical snapshot re-publish not allowed by policy"
            if nxt.snapshot
            else "release versions are immutable"
        )
    else:
        reason = "new version sorts before the current one"
    raise InvalidVersionTransition(current, new, reason)
