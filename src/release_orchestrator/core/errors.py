from __future__ import annotations

import traceback
from dataclasses import dataclass
from typing import TYPE_CHECKING, ClassVar

if TYPE_CHECKING:
    from pathlib import Path

    from release_orchestrator.stages.publish.receipts import PublishReceipt


class ReleaseError(RuntimeError):
    """Base error"""

    kind: ClassVar[str] = "release_error"


@dataclass(frozen=True, slots=True)
class StageError:
    """
    A normalized error record for stage failures.
    """

    exc_type: str
    kind: str
    message: str
    traceback: str


def error_kind(exc: BaseException) -> str:
    return exc.kind if isinstance(exc, ReleaseError) else "unexpected"


def stage_error_from_exc(exc: BaseException) -> StageError:
    return StageError(
        exc_type=type(exc).__name__,
        kind=error_kind(exc),
        message=str(exc),
        traceback="".join(
            traceback.format_exception(type(exc), exc, exc.__traceback__)
        ),
    )


class TransientError(ReleaseError):
    """
    Retryable failures such as network timeouts, temporary upstream 5xx
    """

    kind = "transient"


class ConfigError(ReleaseError):
    """Invalid or missing configuration (registry, settings, descriptor)"""

    kind = "config_error"


class CredentialsNotFound(ConfigError):
    """No credentials for the requested reference"""

    kind = "credentials_not_found"


class InternalError(ReleaseError):
    """Bugs or invariant violation in our code"""

    kind = "internal_error"


class BuildFailure(ReleaseError):
    """Build tool failed, timed out, or did not produce the artifact"""

    kind = "build_failure"

    def __init__(
        self,
        message: str,
        *,
        exit_code: int | None = None,
        output_tail: str = "",
    ) -> None:
        super().__init__(message)
        self.exit_code = exit_code
        self.output_tail = output_tail


class SourceMismatch(ReleaseError):
    """Checkout does not match the expected commit reference"""

    kind = "source_mismatch"


class InvalidVersionTransition(ReleaseError):
    kind = "invalid_version_transition"

    def __init__(self, current: str, new: str, reason: str) -> None:
        super().__init__(f"Invalid version transition {current} -> {new}: {reason}")
        self.current = current
        self.new = new


class TargetUnavailable(TransientError):
    """Repository health probe failed or timed out"""

    kind = "target_unavailable"

    def __init__(self, target_id: str, reason: str) -> None:
        super().__init__(f"Repository target {target_id} unavailable: {reason}")
        self.target_id = target_id


class PublishError(ReleaseError):
    """Publish-stage error"""

    kind = "publish_error"


class PublishVerificationFailed(PublishError):
    """
    Remote content does not match the local artifact.

    `receipt` is set (with verified=False) when the corrupt upload could not be
    deleted and is still visible on the remote.
    """

    kind = "publish_verification_failed"

    def __init__(
        self,
        message: str,
        *,
        receipt: PublishReceipt | None = None,
        deleted: bool = False,
    ) -> None:
        super().__init__(message)
        self.receipt = receipt
        self.deleted = deleted


class ConcurrentReleaseConflict(ReleaseError):
    kind = "concurrent_release_conflict"

    def __init__(
        self, key: str, holder: str | None = None, lock_file: Path | None = None
    ) -> None:
        msg = f"Another release is in progress for {key}"
        if holder:
            msg += f" (held by {holder})"
        if lock_file is not None:
            msg += f"; if no release is running, remove {lock_file}"
        super().__init__(msg)
        self.key = key
        self.holder = holder
        self.lock_file = lock_file


class RollbackFailure(ReleaseError):
    """
    Undo actions failed after a stage failure. Requires operator intervention.
    """

    kind = "rollback_failure"

    def __init__(self, message: str, *, failures: list[str]) -> None:
        super().__init__(message)
        self.failures = failures
