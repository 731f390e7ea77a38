from .credentials import (
    ChainCredentialStore,
    Credentials,
    CredentialStore,
    EnvCredentialStore,
    MavenSettingsCredentialStore,
    default_credential_store,
)
from .loader import get_registry, load_registry, resolve_config_dir
from .models import ProjectOverride, RegistryFile, RepositoryKind, RepositoryTarget

__all__ = [
    "ChainCredentialStore",
    "Credentials",
    "CredentialStore",
    "EnvCredentialStore",
    "MavenSettingsCredentialStore",
    "default_credential_store",
    "get_registry",
    "load_registry",
    "resolve_config_dir",
    "ProjectOverride",
    "RegistryFile",
    "RepositoryKind",
    "RepositoryTarget",
]
