from .models import BuildProfile, BuildResult
from .runner import BuildRunner, artifact_path_for
from .scm import verify_checkout
from .stage import stage_build

__all__ = [
    "BuildProfile",
    "BuildResult",
    "BuildRunner",
    "artifact_path_for",
    "verify_checkout",
    "stage_build",
]
