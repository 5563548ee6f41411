"""Pausing and unpausing the containers of a project."""

from __future__ import annotations

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

EventHandler = Callable[[ProgressEvent], object]


def _apply(
    client: EngineClient,
    project_name: str,
    services: Sequence[str],
    action: Callable[[str], object],
    done_text: str,
    on_event: EventHandler | None,
) -> None:
    containers = list_containers(client, project_name.lower(), OneOff.EXCLUDE, False, *services)
    if not containers:
        return

    def apply_one(container: Container) -> None:
        action(container.id)
        if on_event is not None:
            event_name = f"Container {canonical_container_name(container)}"
            on_event(ProgressEvent(event_name, EventStatus.DONE, done_text))

    with ThreadPoolExecutor(max_workers=len(containers)) as pool:
        futures = [pool.submit(apply_one, c) for c in containers]
    for future in futures:
        future.result()


def pause(
    client: EngineClient,
    project_name: str,
    services: Sequence[str] = (),
    on_event: EventHandler | None = None,
) -> None:
    """Pause the project's running service containers."""
    _apply(client, project_name, services, client.container_pause, "Paused", on_event)


def unpause(
    client: EngineClient,
    project_name: str,
    services: Sequence[str] = (),
    on_event: EventHandler | None = None,
) -> None:
    """Unpause the project's paused service containers."""
    _apply(client, project_name, services, client.container_unpause, "Unpaused", on_event)