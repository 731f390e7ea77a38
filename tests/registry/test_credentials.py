from __future__ import annotations

from pathlib import Path

import httpx
import pytest

from release_orchestrator.core import ConfigError, CredentialsNotFound
from release_orchestrator.registry import (
    ChainCredentialStore,
    EnvCredentialStore,
    MavenSettingsCredentialStore,
)

SETTINGS_XML = """<?xml version="1.0"?>
<settings xmlns="http://maven.apache.org/SETTINGS/1.2.0">
  <servers>
    <server>
      <id>artifactory</id>
      <username>deployer</username>
      <password>${env.ARTIFACTORY_TOKEN}</password>
    </server>
    <server>
      <id>legacy</id>
      <username>old</username>
      <password>{COQLCE6DU6GtcS5P=}</password>
    </server>
  </servers>
</settings>
"""


def _settings(tmp_path: Path) -> Path:
    p = tmp_path / "settings.xml"
    p.write_text(SETTINGS_XML, encoding="utf-8")
    return p


def test_maven_settings_lookup_interpolates_env(tmp_path: Path) -> None:
    store = MavenSettingsCredentialStore(
        _settings(tmp_path), environ={"ARTIFACTORY_TOKEN": "s3cret"}
    )
    creds = store.lookup("artifactory")
    assert creds.username == "deployer"
    assert creds.secret.get_secret_value() == "s3cret"
    assert "s3cret" not in repr(creds)

    auth = creds.auth()
    assert isinstance(auth, httpx.BasicAuth)


def test_maven_settings_errors(tmp_path: Path) -> None:
    store = MavenSettingsCredentialStore(_settings(tmp_path), environ={})
    with pytest.raises(CredentialsNotFound):
        store.lookup("unknown")
    with pytest.raises(ConfigError, match="ARTIFACTORY_TOKEN"):
        store.lookup("artifactory")
    with pytest.raises(ConfigError, match="encrypted"):
        store.lookup("legacy")


def test_env_store_and_chain(tmp_path: Path) -> None:
    env = {
        "RELEASE_ORCHESTRATOR_CRED_TEAM_REPO_USERNAME": "ci",
        "RELEASE_ORCHESTRATOR_CRED_TEAM_REPO_PASSWORD": "pw",
    }
    env_store = EnvCredentialStore(env)
    assert EnvCredentialStore.env_key("team-repo") == "RELEASE_ORCHESTRATOR_CRED_TEAM_REPO"
    assert env_store.lookup("team-repo").username == "ci"

    chain = ChainCredentialStore(
        [
            env_store,
            MavenSettingsCredentialStore(
                _settings(tmp_path), environ={"ARTIFACTORY_TOKEN": "t"}
            ),
        ]
    )
    assert chain.lookup("team-repo").username == "ci"
    assert chain.lookup("artifactory").username == "deployer"
    with pytest.raises(CredentialsNotFound):
        chain.lookup("nobody")
