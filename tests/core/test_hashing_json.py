from __future__ import annotations

from pathlib import Path

from release_orchestrator.core import hashing, json


def test_digest_helpers(tmp_path: Path) -> None:
    assert (
        hashing.sha256_bytes(b"abc")
        == "ba7816bf8f01cfea414140de5dae2223b00361a396177a9cb410ff61f20015ad"
    )

    f = tmp_path / "data.bin"
    f.write_bytes(b"abc")
    digest = hashing.digest_file(f)
    assert digest.sha256 == hashing.sha256_bytes(b"abc")
    assert digest.sha1 == "a9993e364706816aba3e25717850c26c9cd0d89d"
    assert digest.md5 == "900150983cd24fb0d6963f7d28e17f72"
    assert digest.bytes == 3


def test_json_helpers(tmp_path: Path) -> None:
    obj = {"b": 1, "a": 2, "path": Path("x/y")}
    out = tmp_path / "sample.json"
    json.atomic_write_json(out, obj)
    assert json.read_json(out) == {"a": 2, "b": 1, "path": "x/y"}

    compact = json.stable_json_dumps({"b": 1, "a": 2}, indent=None)
    assert compact == '{"a":2,"b":1}'
