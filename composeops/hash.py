"""Configuration hash of a service, used to detect changes."""

from __future__ import annotations

import dataclasses
import hashlib
import json

from composeops.dependencies import ServiceConfig


def service_hash(service: ServiceConfig) -> str:
    """SHA-256 hex digest of the service configuration.

    Build settings, pull policy and scale do not take part in the hash.
    """
    normalised = dataclasses.replace(service, build=None, pull_policy="", scale=1)
    payload = json.dumps(
        dataclasses.asdict(normalised), sort_keys=True, separators=(",", ":"), default=str
    )
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()