from __future__ import annotations

import os
import re
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Mapping, Protocol, runtime_checkable

import httpx
from pydantic import SecretStr

from release_orchestrator.core import ConfigError, CredentialsNotFound

ENV_CREDENTIALS_PREFIX = "RELEASE_ORCHESTRATOR_CRED_"

_env_ref_re = re.compile(r"\$\{env\.([A-Za-z_][A-Za-z0-9_]*)\}")


@dataclass(frozen=True, slots=True)
class Credentials:
    username: str
    secret: SecretStr

    def auth(self) -> httpx.BasicAuth:
        return httpx.BasicAuth(self.username, self.secret.get_secret_value())


@runtime_checkable
class CredentialStore(Protocol):
    def lookup(self, ref: str) -> Credentials: ...


def _local(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def _child_text(el: ET.Element, name: str) -> str | None:
    for c in el:
        if _local(c.tag) == name:
            return (c.text or "").strip()
    return None


def _interpolate_env(value: str, environ: Mapping[str, str]) -> str:
    def _sub(m: re.Match[str]) -> str:
        name = m.group(1)
        if name not in environ:
            raise ConfigError(f"settings.xml references unset environment variable {name}")
        return environ[name]

    return _env_ref_re.sub(_sub, value)


class MavenSettingsCredentialStore:
    """
    Reads <servers><server><id/><username/><password/></server></servers> from a
    Maven settings.xml. Any settings namespace version is accepted.
    """

    def __init__(
        self, path: Path, *, environ: Mapping[str, str] | None = None
    ) -> None:
        self.path = Path(path)
        self._environ = environ if environ is not None else os.environ
        self._servers: dict[str, tuple[str, str]] | None = None

    def _load(self) -> dict[str, tuple[str, str]]:
        if self._servers is not None:
            return self._servers

        try:
            root = ET.parse(self.path).getroot()
        except (OSError, ET.ParseError) as e:
            raise ConfigError(f"Cannot read Maven settings {self.path}: {e}") from e

        servers: dict[str, tuple[str, str]] = {}
        for el in root.iter():
            if _local(el.tag) != "server":
                continue
            sid = _child_text(el, "id")
            if not sid:
                continue
            username = _child_text(el, "username") or ""
            password = _child_text(el, "password") or ""
            servers[sid] = (username, password)

        self._servers = servers
        return servers

    def lookup(self, ref: str) -> Credentials:
        servers = self._load()
        if ref not in servers:
            raise CredentialsNotFound(f"No <server> with id {ref!r} in {self.path}")

        username, password = servers[ref]
        username = _interpolate_env(username, self._environ)
        password = _interpolate_env(password, self._environ)
        if password.startswith("{") and password.endswith("}"):
            raise ConfigError(
                f"Server {ref!r} uses a Maven-encrypted password; "
                "provide it through the environment instead"
            )
        return Credentials(username=username, secret=SecretStr(password))


class EnvCredentialStore:
    """
    RELEASE_ORCHESTRATOR_CRED_<REF>_USERNAME / _PASSWORD, where <REF> is the
    reference upper-cased with non-alphanumerics replaced by underscores.
    """

    def __init__(self, environ: Mapping[str, str] | None = None) -> None:
        self._environ = environ if environ is not None else os.environ

    @staticmethod
    def env_key(ref: str) -> str:
        return ENV_CREDENTIALS_PREFIX + re.sub(r"[^A-Za-z0-9]", "_", ref).upper()

    def lookup(self, ref: str) -> Credentials:
        key = self.env_key(ref)
        username = self._environ.get(f"{key}_USERNAME")
        password = self._environ.get(f"{key}_PASSWORD")
        if username is None or password is None:
            raise CredentialsNotFound(
                f"Missing {key}_USERNAME/{key}_PASSWORD for credentials {ref!r}"
            )
        return Credentials(username=username, secret=SecretStr(password))


class ChainCredentialStore:
    """First store that knows the reference wins."""

    def __init__(self, stores: Iterable[CredentialStore]) -> None:
        self.stores = list(stores)

    def lookup(self, ref: str) -> Credentials:
        for store in self.stores:
            try:
                return store.lookup(ref)
            except CredentialsNotFound:
                continue
        raise CredentialsNotFound(f"No credential store provides {ref!r}")


def default_credential_store(maven_settings: Path | None = None) -> CredentialStore:
    stores: list[CredentialStore] = [EnvCredentialStore()]
    path = maven_settings or (Path.home() / ".m2" / "settings.xml")
    if path.is_file():
        stores.append(MavenSettingsCredentialStore(path))
    elif maven_settings is not None:
        raise ConfigError(f"Maven settings file not found: {maven_settings}")
    return ChainCredentialStore(stores)
