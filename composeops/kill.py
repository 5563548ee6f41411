"""Sending a signal to the containers of a project."""

from __future__ import annotations

import sys
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Sequence

from composeops.engine import (
    Container,
    EngineClient,
    EventStatus,
    OneOff,
    ProgressEvent,
    canonical_container_name,
    list_containers,
)


def kill(
    client: EngineClient,
    project_name: str,
    services: Sequence[str] = (),
    signal: str = "",
    on_event: Callable[[ProgressEvent], object] | None = None,
) -> None:
    """Send ``signal`` (the engine default when empty) to the project's running containers."""
    notify = on_event or (lambda event: None)
    containers = list_containers(client, project_name.lower(), OneOff.INCLUDE, False, *services)
    if not containers:
        print("no container to kill", end="", file=sys.stderr)
        return

    def kill_one(container: Container) -> None:
        event_name = f"Container {canonical_container_name(container)}"
        notify(ProgressEvent(event_name, EventStatus.WORKING, "Killing"))
        try:
            client.container_kill(container.id, signal)
        except Exception:
            notify(ProgressEvent(event_name, EventStatus.ERROR, "Error while Killing"))
            raise
        notify(ProgressEvent(event_name, EventStatus.DONE, "Killed"))

    with ThreadPoolExecutor(max_workers=len(containers)) as pool:
        futures = [pool.submit(kill_one, c) for c in containers]
    for future in futures:
        future.result()