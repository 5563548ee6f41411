"""Removing the stopped containers of a project."""

from __future__ import annotations

import sys
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Iterable, Sequence

from composeops.engine import (
    Container,
    EngineClient,
    EventStatus,
    NotFoundError,
    OneOff,
    ProgressEvent,
    canonical_container_name,
    list_containers,
)

CONTAINER_RUNNING = "running"
_NOTHING_TO_REMOVE = "No stopped containers"


def stopped_containers(containers: Iterable[Container]) -> list[Container]:
    """Containers that are not running."""
    return [c for c in containers if c.state != CONTAINER_RUNNING]


def _ask(message: str) -> bool:
    answer = input(f"{message} [y/N] ")
    return answer.strip().lower() in ("y", "yes")


def remove(
    client: EngineClient,
    project_name: str,
    services: Sequence[str] = (),
    force: bool = False,
    volumes: bool = False,
    confirm: Callable[[str], bool] | None = None,
    on_event: Callable[[ProgressEvent], object] | None = None,
) -> list[str]:
    """Remove the project's stopped service containers.

    Unless ``force`` is set, ``confirm`` (a terminal prompt by default) is
    asked first. Returns the names of the containers removed.
    """
    notify = on_event or (lambda event: None)
    try:
        containers = list_containers(
            client, project_name.lower(), OneOff.EXCLUDE, True, *services
        )
    except NotFoundError:
        print(_NOTHING_TO_REMOVE, file=sys.stderr)
        return []

    stopped = stopped_containers(containers)
    names = [canonical_container_name(c) for c in stopped]
    if not names:
        print(_NOTHING_TO_REMOVE, file=sys.stderr)
        return []

    message = f"Going to remove {', '.join(names)}"
    if force:
        print(message)
    elif not (confirm or _ask)(message):
        return []

    def remove_one(container: Container) -> None:
        event_name = f"Container {canonical_container_name(container)}"
        notify(ProgressEvent(event_name, EventStatus.WORKING, "Removing"))
        client.container_remove(container.id, force=force, remove_volumes=volumes)
        notify(ProgressEvent(event_name, EventStatus.DONE, "Removed"))

    with ThreadPoolExecutor(max_workers=len(stopped)) as pool:
        futures = [pool.submit(remove_one, c) for c in stopped]
    for future in futures:
        future.result()
    return names