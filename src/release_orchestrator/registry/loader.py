from __future__ import annotations

import os
import threading
from pathlib import Path

import jsonschema
from pydantic import TypeAdapter, ValidationError

from release_orchestrator.core import ConfigError, read_json

from .models import RegistryFile

CONFIG_DIR_ENV = "RELEASE_ORCHESTRATOR_CONFIG_DIR"
REGISTRY_FILENAME = "registry.json"

_CACHE: dict[Path, RegistryFile] = {}
_CACHE_LOCK = threading.Lock()


def resolve_config_dir(explicit: Path | None = None) -> Path:
    """
    Resolve the directory containing registry.json.

    Priority:
      1) explicit argument
      2) env RELEASE_ORCHESTRATOR_CONFIG_DIR
      3) ./config
    """

    def _is_config_dir(p: Path) -> bool:
        return (p / REGISTRY_FILENAME).is_file()

    if explicit is not None:
        p = Path(explicit).expanduser().resolve()
        if _is_config_dir(p):
            return p
        raise ConfigError(f"--config-dir does not look like a config directory: {p}")

    env = os.environ.get(CONFIG_DIR_ENV)
    if env:
        p = Path(env).expanduser().resolve()
        if _is_config_dir(p):
            return p
        raise ConfigError(f"{CONFIG_DIR_ENV} does not look like a config directory: {p}")

    cand = Path.cwd() / "config"
    if _is_config_dir(cand):
        return cand.resolve()

    raise ConfigError(
        "Could not resolve config directory. "
        f"Pass --config-dir or set {CONFIG_DIR_ENV}."
    )


def schema_for_registry_file() -> dict:
    return TypeAdapter(RegistryFile).json_schema()


def load_registry(config_dir: Path) -> RegistryFile:
    """
    Load and validate {config_dir}/registry.json.

    The raw document is checked against the JSON schema first so operators get
    schema-level messages, then parsed by pydantic for cross-field rules.
    """
    reg_path = Path(config_dir) / REGISTRY_FILENAME
    try:
        raw = read_json(reg_path)
    except (OSError, ValueError) as e:
        raise ConfigError(f"Cannot read registry {reg_path}: {e}") from e

    try:
        jsonschema.validate(instance=raw, schema=schema_for_registry_file())
    except jsonschema.ValidationError as e:
        raise ConfigError(f"Invalid registry {reg_path}: {e.message}") from e

    try:
        return RegistryFile.model_validate(raw)
    except ValidationError as e:
        raise ConfigError(f"Invalid registry {reg_path}: {e}") from e


def get_registry(config_dir: Path | None = None) -> RegistryFile:
    """
    Process-wide, read-only registry per config directory. Loaded once.
    """
    cfg = resolve_config_dir(config_dir)
    with _CACHE_LOCK:
        reg = _CACHE.get(cfg)
        if reg is None:
            reg = load_registry(cfg)
            _CACHE[cfg] = reg
        return reg


def clear_registry_cache() -> None:
    with _CACHE_LOCK:
        _CACHE.clear()
