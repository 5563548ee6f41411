"""Restarting the containers of a project in dependency order."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Sequence

from composeops.dependencies import Project, in_dependency_order
from composeops.engine import (
    SERVICE_LABEL,
    Container,
    EngineClient,
    EventStatus,
    OneOff,
    ProgressEvent,
    canonical_container_name,
    list_containers,
)


def restart(
    client: EngineClient,
    project: Project,
    services: Sequence[str] = (),
    timeout: float | None = None,
    on_event: Callable[[ProgressEvent], object] | None = None,
) -> None:
    """Restart the project's service containers, dependencies first.

    ``services`` restricts the restart; one-off containers are left alone.
    """
    notify = on_event or (lambda event: None)
    observed = list_containers(client, project.name.lower(), OneOff.EXCLUDE, True)
    selected = set(services) if services else set(project.service_names())

    def restart_one(container: Container) -> None:
        event_name = f"Container {canonical_container_name(container)}"
        notify(ProgressEvent(event_name, EventStatus.WORKING, "Restarting"))
        client.container_restart(container.id, timeout)
        notify(ProgressEvent(event_name, EventStatus.DONE, "Started"))

    def restart_service(service: str) -> None:
        if service not in selected:
            return
        targets = [c for c in observed if c.labels.get(SERVICE_LABEL, "") == service]
        if not targets:
            return
        with ThreadPoolExecutor(max_workers=len(targets)) as pool:
            futures = [pool.submit(restart_one, c) for c in targets]
        for future in futures:
            future.result()

    in_dependency_order(project, restart_service)