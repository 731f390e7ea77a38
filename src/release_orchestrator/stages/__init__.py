from .build import stage_build
from .publish import stage_publish
from .version import stage_version

__all__ = ["stage_build", "stage_version", "stage_publish"]
