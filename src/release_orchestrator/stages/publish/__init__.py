from .config import PublishConfig
from .http import HttpRetriesExceeded, HttpStatusError, make_http_client, request_with_retries
from .layout import maven_path, staging_path
from .publisher import ArtifactPublisher
from .receipts import PublishReceipt, write_receipt
from .routing import kind_for_version, select_target
from .stage import make_publish_preflight, stage_publish

__all__ = [
    "PublishConfig",
    "HttpRetriesExceeded",
    "HttpStatusError",
    "make_http_client",
    "request_with_retries",
    "maven_path",
    "staging_path",
    "ArtifactPublisher",
    "PublishReceipt",
    "write_receipt",
    "kind_for_version",
    "select_target",
    "make_publish_preflight",
    "stage_publish",
]
