from __future__ import annotations

import hashlib
import sys
from pathlib import Path
from typing import Callable

import httpx
import pytest

from release_orchestrator.core import Settings
from release_orchestrator.registry import RepositoryKind, RepositoryTarget

BASE_URL = "https://repo.example.test/artifactory"

POM_TEMPLATE = """<?xml version="1.0" encoding="UTF-8"?>
<project xmlns="http://maven.apache.org/POM/4.0.0">
  <modelVersion>4.0.0</modelVersion>
  <parent>
    <groupId>com.example</groupId>
    <artifactId>example-parent</artifactId>
    <version>7</version>
  </parent>
  <!-- <version>0.0.0-commented</version> -->
  <groupId>com.example</groupId>
  <artifactId>demo</artifactId>
  <version>{version}</version>
  <packaging>jar</packaging>
  <dependencies>
    <dependency>
      <groupId>org.slf4j</groupId>
      <artifactId>slf4j-api</artifactId>
      <version>2.0.9</version>
    </dependency>
  </dependencies>
</project>
"""

# Writes its first argument as the artifact, records the remaining argv next
# to it and exits with FAKE_BUILD_EXIT (default 0).
FAKE_BUILD_SCRIPT = """
import os
import sys
from pathlib import Path

out = Path(sys.argv[1])
print("[INFO] fake build", " ".join(sys.argv[2:]))
code = int(os.environ.get("FAKE_BUILD_EXIT", "0"))
if code == 0 and os.environ.get("FAKE_BUILD_NO_ARTIFACT") != "1":
    out.parent.mkdir(parents=True, exist_ok=True)
    out.write_bytes(os.environ.get("FAKE_BUILD_CONTENT", "jar-bytes").encode())
    (out.parent / "argv.txt").write_text("\\n".join(sys.argv[2:]))
else:
    print("[ERROR] BUILD FAILURE")
sys.exit(code)
"""


class FakeRepository:
    """
    In-memory Artifactory: ping, PUT, move, storage API, GET, DELETE.

    Keys in `files` are "{repository}/{path}".
    """

    def __init__(self) -> None:
        self.files: dict[str, bytes] = {}
        self.requests: list[tuple[str, str]] = []
        self.ping_timeout = False
        self.ping_body = "OK"
        self.corrupt_uploads = False
        self.fail_move = False
        self.storage_api = True
        # staging PUTs keep the first bytes, then time out
        self.truncate_staging_puts = False
        # method -> number of 503 responses still to hand out
        self.transient_failures: dict[str, int] = {}

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    def calls(self, method: str) -> list[str]:
        return [p for m, p in self.requests if m == method]

    def handle(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path.removeprefix("/artifactory/")
        method = request.method
        self.requests.append((method, path))

        if self.transient_failures.get(method, 0) > 0:
            self.transient_failures[method] -= 1
            return httpx.Response(503, text="busy")

        if path == "api/system/ping":
            if self.ping_timeout:
                raise httpx.ConnectTimeout("timed out", request=request)
            return httpx.Response(200, text=self.ping_body)

        if path.startswith("api/storage/"):
            data = self.files.get(path.removeprefix("api/storage/"))
            if data is None or not self.storage_api:
                return httpx.Response(404)
            return httpx.Response(
                200,
                json={
                    "checksums": {
                        "sha256": hashlib.sha256(data).hexdigest(),
                        "sha1": hashlib.sha1(data).hexdigest(),
                        "md5": hashlib.md5(data).hexdigest(),
                    }
                },
            )

        if path.startswith("api/move/") and method == "POST":
            src = path.removeprefix("api/move/")
            dst = request.url.params["to"].lstrip("/")
            if self.fail_move or src not in self.files:
                return httpx.Response(409, text="move refused")
            self.files[dst] = self.files.pop(src)
            return httpx.Response(200, json={"messages": []})

        if method == "PUT":
            data = request.content
            if self.truncate_staging_puts and "/.staging/" in f"/{path}":
                self.files[path] = data[:3]
                raise httpx.ReadTimeout("timed out mid-upload", request=request)
            if self.corrupt_uploads and not path.endswith((".sha1", ".md5")):
                data = data + b"!"
            self.files[path] = data
            return httpx.Response(201)

        if method == "GET":
            if path not in self.files:
                return httpx.Response(404)
            return httpx.Response(200, content=self.files[path])

        if method == "DELETE":
            self.files.pop(path, None)
            return httpx.Response(204)

        return httpx.Response(405)


@pytest.fixture
def repo() -> FakeRepository:
    return FakeRepository()


@pytest.fixture
def release_target() -> RepositoryTarget:
    return RepositoryTarget(
        id="releases",
        base_url=BASE_URL,
        repository="libs-release-local",
        kind=RepositoryKind.release,
    )


@pytest.fixture
def snapshot_target() -> RepositoryTarget:
    return RepositoryTarget(
        id="snapshots",
        base_url=BASE_URL,
        repository="libs-snapshot-local",
        kind=RepositoryKind.snapshot,
    )


@pytest.fixture
def targets(
    release_target: RepositoryTarget, snapshot_target: RepositoryTarget
) -> dict[RepositoryKind, RepositoryTarget]:
    return {RepositoryKind.release: release_target, RepositoryKind.snapshot: snapshot_target}


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        run_root=tmp_path / "runs",
        lock_root=tmp_path / "locks",
        health_timeout_s=1.0,
        http_max_attempts=2,
    )


@pytest.fixture
def write_pom() -> Callable[..., Path]:
    def _write(project_dir: Path, version: str = "1.0.0") -> Path:
        project_dir.mkdir(parents=True, exist_ok=True)
        pom = project_dir / "pom.xml"
        pom.write_text(POM_TEMPLATE.format(version=version), encoding="utf-8")
        return pom

    return _write


@pytest.fixture
def fake_build(tmp_path: Path) -> Callable[[Path], list[str]]:
    """argv prefix of a build command that produces `artifact`."""
    script = tmp_path / "fake_build.py"
    script.write_text(FAKE_BUILD_SCRIPT, encoding="utf-8")

    def _command(artifact: Path) -> list[str]:
        return [sys.executable, str(script), str(artifact)]

    return _command
