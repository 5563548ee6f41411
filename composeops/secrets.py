"""Secrets taken from environment variables and copied into containers."""

from __future__ import annotations

import io
import tarfile
import time
from dataclasses import dataclass
from typing import Iterable, Mapping

from composeops.engine import EngineClient

_SECRETS_DIR = "/run/secrets/"
_DEFAULT_MODE = 0o400


@dataclass(frozen=True)
class ServiceSecretConfig:
    """A secret as referenced by a service."""

    source: str
    target: str = ""
    mode: int | None = None


@dataclass(frozen=True)
class SecretConfig:
    """A secret declared by the project; ``environment`` names its variable."""

    name: str
    environment: str = ""


class SecretEnvironmentError(LookupError):
    """Raised when the variable a secret is read from is not set."""

    def __init__(self, variable: str, secret: str):
        super().__init__(
            f'environment variable "{variable}" required by secret "{secret}" is not set'
        )
        self.variable = variable
        self.secret = secret


def is_unix_abs(path: str) -> bool:
    return path.startswith("/")


def secret_target(config: ServiceSecretConfig) -> str:
    """Path of the secret inside the container."""
    if not config.target:
        return _SECRETS_DIR + config.source
    if not is_unix_abs(config.target):
        return _SECRETS_DIR + config.target
    return config.target


def create_tar(env: str, config: ServiceSecretConfig) -> bytes:
    """A tar archive holding the secret value at its target path."""
    value = env.encode("utf-8")
    info = tarfile.TarInfo(secret_target(config))
    info.size = len(value)
    info.mode = _DEFAULT_MODE if config.mode is None else config.mode
    info.mtime = int(time.time())
    buffer = io.BytesIO()
    with tarfile.open(fileobj=buffer, mode="w") as archive:
        archive.addfile(info, io.BytesIO(value))
    return buffer.getvalue()


def inject_secrets(
    client: EngineClient,
    secret_configs: Iterable[ServiceSecretConfig],
    secrets: Mapping[str, SecretConfig],
    environment: Mapping[str, str],
    container_id: str,
) -> None:
    """Copy every environment-backed secret of a service into its container."""
    for config in secret_configs:
        secret = secrets.get(config.source)
        if secret is None or not secret.environment:
            continue
        if secret.environment not in environment:
            raise SecretEnvironmentError(secret.environment, secret.name)
        archive = create_tar(environment[secret.environment], config)
        client.copy_to_container(container_id, "/", archive, copy_uid_gid=True)