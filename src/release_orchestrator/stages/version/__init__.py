from .descriptor import parse_coordinates, read_coordinates, replace_project_version
from .manager import VersionChange, VersionManager
from .policy import (
    Explicit,
    IncrementMajor,
    IncrementMinor,
    IncrementPatch,
    PromoteSnapshotToRelease,
    VersionPolicy,
    check_transition,
    make_policy,
)
from .semver import Version, is_snapshot
from .stage import stage_version

__all__ = [
    "parse_coordinates",
    "read_coordinates",
    "replace_project_version",
    "VersionChange",
    "VersionManager",
    "Explicit",
    "IncrementMajor",
    "IncrementMinor",
    "IncrementPatch",
    "PromoteSnapshotToRelease",
    "VersionPolicy",
    "check_transition",
    "make_policy",
    "Version",
    "is_snapshot",
    "stage_version",
]
