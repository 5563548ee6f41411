"""Summaries of the containers of a project."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Sequence

from composeops.engine import (
    PROJECT_LABEL,
    SERVICE_LABEL,
    Container,
    EngineClient,
    OneOff,
    canonical_container_name,
    list_containers,
)


@dataclass(frozen=True)
class PortPublisher:
    """A container port and where it is published."""

    url: str = ""
    target_port: int = 0
    published_port: int = 0
    protocol: str = ""


@dataclass
class ContainerSummary:
    """State of one project container."""

    id: str
    name: str
    project: str = ""
    service: str = ""
    command: str = ""
    state: str = ""
    health: str = ""
    exit_code: int = 0
    publishers: list[PortPublisher] = field(default_factory=list)


def ps(
    client: EngineClient,
    project_name: str,
    services: Sequence[str] = (),
    all_containers: bool = False,
) -> list[ContainerSummary]:
    """Summaries of the project's containers, one-off ones only with ``all_containers``."""
    one_off = OneOff.INCLUDE if all_containers else OneOff.EXCLUDE
    containers = list_containers(client, project_name.lower(), one_off, True, *services)

    def summarise(container: Container) -> ContainerSummary:
        publishers = [
            PortPublisher(
                url=p.ip,
                target_port=int(p.private_port),
                published_port=int(p.public_port),
                protocol=p.type,
            )
            for p in sorted(container.ports, key=lambda p: p.private_port)
        ]
        state = client.container_inspect(container.id).get("State") or {}
        health = ""
        exit_code = 0
        status = state.get("Status", "")
        if status == "running":
            health = (state.get("Health") or {}).get("Status", "") or ""
        elif status in ("exited", "dead"):
            exit_code = int(state.get("ExitCode", 0) or 0)
        return ContainerSummary(
            id=container.id,
            name=canonical_container_name(container),
            project=container.labels.get(PROJECT_LABEL, ""),
            service=container.labels.get(SERVICE_LABEL, ""),
            command=container.command,
            state=container.state,
            health=health,
            exit_code=exit_code,
            publishers=publishers,
        )

    if not containers:
        return []
    with ThreadPoolExecutor(max_workers=len(containers)) as pool:
        return list(pool.map(summarise, containers))