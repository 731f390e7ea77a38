from .config import Settings, load_settings
from .errors import (
    BuildFailure,
    ConcurrentReleaseConflict,
    ConfigError,
    CredentialsNotFound,
    InternalError,
    InvalidVersionTransition,
    PublishError,
    PublishVerificationFailed,
    ReleaseError,
    RollbackFailure,
    SourceMismatch,
    StageError,
    TargetUnavailable,
    TransientError,
    error_kind,
    stage_error_from_exc,
)
from .fs import (
    atomic_write_bytes,
    atomic_write_text,
    backup_file,
    ensure_parent,
    restore_file,
    safe_unlink,
)
from .hashing import FileDigest, digest_file, sha256_bytes
from .json import atomic_write_json, read_json, stable_json_dumps
from .locks import ReleaseLockRegistry, get_lock_registry
from .logging import ILogger, bind, clear_bindings, configure_logging, get_logger
from .paths import RunLayout, safe_name
from .provenance import RunProvenance, Timer, new_run_id
from .time import monotonic_ms, utc_now_iso

__all__ = [
    "Settings",
    "load_settings",
    "ReleaseError",
    "TransientError",
    "ConfigError",
    "CredentialsNotFound",
    "InternalError",
    "BuildFailure",
    "SourceMismatch",
    "InvalidVersionTransition",
    "TargetUnavailable",
    "PublishError",
    "PublishVerificationFailed",
    "ConcurrentReleaseConflict",
    "RollbackFailure",
    "StageError",
    "error_kind",
    "stage_error_from_exc",
    "atomic_write_bytes",
    "atomic_write_text",
    "backup_file",
    "ensure_parent",
    "restore_file",
    "safe_unlink",
    "FileDigest",
    "digest_file",
    "sha256_bytes",
    "atomic_write_json",
    "read_json",
    "stable_json_dumps",
    "ReleaseLockRegistry",
    "get_lock_registry",
    "ILogger",
    "bind",
    "clear_bindings",
    "configure_logging",
    "get_logger",
    "RunLayout",
    "safe_name",
    "RunProvenance",
    "Timer",
    "new_run_id",
    "monotonic_ms",
    "utc_now_iso",
]
