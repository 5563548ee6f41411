"""Stopping the containers of a project in reverse dependency order."""

from __future__ import annotations

from typing import Callable, Sequence

from composeops.dependencies import Project, in_reverse_dependency_order
from composeops.down import stop_containers
from composeops.engine import (
    ONEOFF_LABEL,
    SERVICE_LABEL,
    EngineClient,
    OneOff,
    ProgressEvent,
    list_containers,
)


def stop(
    client: EngineClient,
    project: Project,
    services: Sequence[str] = (),
    timeout: float | None = None,
    on_event: Callable[[ProgressEvent], object] | None = None,
) -> None:
    """Stop the project's containers, dependents before their dependencies.

    One-off containers are left running; ``services`` restricts the stop.
    """
    containers = list_containers(client, project.name.lower(), OneOff.INCLUDE, True, *services)

    def stop_service(service: str) -> None:
        targets = [
            c
            for c in containers
            if c.labels.get(SERVICE_LABEL, "") == service
            and c.labels.get(ONEOFF_LABEL) != "True"
        ]
        stop_containers(client, targets, timeout, on_event)

    in_reverse_dependency_order(project, stop_service)