"""Processes running in the containers of a project."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Sequence

from composeops.engine import (
    SERVICE_LABEL,
    Container,
    EngineClient,
    OneOff,
    canonical_container_name,
    list_containers,
)


@dataclass
class ContainerProcSummary:
    """Process table of one container."""

    id: str
    name: str
    processes: list[list[str]] = field(default_factory=list)
    titles: list[str] = field(default_factory=list)


def top(
    client: EngineClient, project_name: str, services: Sequence[str] = ()
) -> list[ContainerProcSummary]:
    """Process tables of the project's running containers, in listing order."""
    containers = list_containers(client, project_name.lower(), OneOff.INCLUDE, False)
    if services:
        wanted = set(services)
        containers = [c for c in containers if c.labels.get(SERVICE_LABEL) in wanted]

    def summarise(container: Container) -> ContainerProcSummary:
        titles, processes = client.container_top(container.id)
        return ContainerProcSummary(
            id=container.id,
            name=canonical_container_name(container),
            processes=list(processes),
            titles=list(titles),
        )

    if not containers:
        return []
    with ThreadPoolExecutor(max_workers=len(containers)) as pool:
        return list(pool.map(summarise, containers))