"""Tearing a project down: containers, networks, images and volumes."""

from __future__ import annotations

import sys
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from functools import partial
from typing import Any, Callable, Iterable, Mapping, Sequence

from composeops.dependencies import Project, ServiceConfig, in_reverse_dependency_order
from composeops.engine import (
    ONEOFF_LABEL,
    SERVICE_LABEL,
    Container,
    EngineClient,
    EventStatus,
    NotFoundError,
    OneOff,
    ProgressEvent,
    canonical_container_name,
    list_containers,
    project_filter,
)

EventHandler = Callable[[ProgressEvent], object]

_NOTHING_REMOVED = "Warning: No resource found to remove"


@dataclass
class DownOptions:
    """What ``down`` removes besides the project's containers and networks.

    ``images`` is ``""`` to keep images, ``"local"`` to remove only images
    without a custom name, or ``"all"`` to remove every service image.
    """

    remove_orphans: bool = False
    images: str = ""
    volumes: bool = False
    timeout: float | None = None


def _emit(handler: EventHandler | None, event: ProgressEvent) -> None:
    """Pass the event to the handler, if there is one."""
    if handler is not None:
        handler(event)


def _progress_name(container: Container) -> str:
    return f"Container {canonical_container_name(container)}"


def _run_concurrently(tasks: Sequence[Callable[[], object]]) -> None:
    """Run every task in its own thread and raise the first failure."""
    if not tasks:
        return
    with ThreadPoolExecutor(max_workers=len(tasks)) as pool:
        futures = [pool.submit(task) for task in tasks]
    for future in futures:
        future.result()


def _is_external(resource: Mapping[str, Any]) -> bool:
    external = resource.get("external", False)
    if isinstance(external, Mapping):
        return bool(external.get("external", False))
    return bool(external)


def _project_with_resources(
    client: EngineClient, containers: Iterable[Container], project_name: str
) -> Project:
    service_names: dict[str, None] = {}
    for container in containers:
        if container.labels.get(ONEOFF_LABEL) == "True":
            continue
        service = container.labels.get(SERVICE_LABEL)
        if service:
            service_names[service] = None
    volumes = {
        name: {"name": name} for name in client.volume_list([project_filter(project_name)])
    }
    networks = {
        network["name"]: {"name": network["name"]}
        for network in client.network_list([project_filter(project_name)])
    }
    return Project(
        name=project_name,
        services=[ServiceConfig(name) for name in service_names],
        networks=networks,
        volumes=volumes,
    )


def down(
    client: EngineClient,
    project_name: str,
    project: Project | None = None,
    options: DownOptions | None = None,
    on_event: EventHandler | None = None,
) -> None:
    """Stop and remove the project's containers and the resources it created.

    Without ``project`` the project is worked out from what runs on the engine.
    """
    options = options or DownOptions()
    notify = partial(_emit, on_event)
    name = project_name.lower()

    containers = list_containers(client, name, OneOff.INCLUDE, True)
    if project is None:
        project = _project_with_resources(client, containers, name)
    resource_to_remove = bool(containers)

    def remove_service(service: str) -> None:
        members = [c for c in containers if c.labels.get(SERVICE_LABEL, "") == service]
        remove_containers(client, members, options.timeout, options.volumes, notify)

    in_reverse_dependency_order(project, remove_service)

    known = set(project.service_names())
    orphans = [c for c in containers if c.labels.get(SERVICE_LABEL, "") not in known]
    if options.remove_orphans and orphans:
        remove_containers(client, orphans, options.timeout, False, notify)

    ops: list[Callable[[], object]] = [
        partial(remove_network, client, network["name"], notify)
        for network in project.networks.values()
        if not _is_external(network)
    ]
    if options.images:
        ops.extend(
            partial(remove_image, client, image, notify)
            for image in service_images(project, options.images)
        )
    if options.volumes:
        ops.extend(
            partial(remove_volume, client, volume["name"], notify)
            for volume in project.volumes.values()
            if not _is_external(volume)
        )

    if not resource_to_remove and not ops:
        print(f'Warning: No resource found to remove for project "{name}".', file=sys.stderr)

    _run_concurrently(ops)


def service_images(project: Project, images_mode: str) -> list[str]:
    """Images of the project's services, without repeats.

    In ``"local"`` mode services with an explicit image are left out; a
    service without one uses the image name built for it.
    """
    images: dict[str, None] = {}
    for service in project.services:
        image = service.image
        if images_mode == "local" and image:
            continue
        if not image:
            image = f"{project.name}_{service.name}"
        images[image] = None
    return list(images)


def stop_containers(
    client: EngineClient,
    containers: Iterable[Container],
    timeout: float | None = None,
    on_event: EventHandler | None = None,
) -> None:
    """Stop containers concurrently."""
    notify = partial(_emit, on_event)

    def stop_one(container: Container) -> None:
        event_name = _progress_name(container)
        notify(ProgressEvent(event_name, EventStatus.WORKING, "Stopping"))
        try:
            client.container_stop(container.id, timeout)
        except Exception:
            notify(ProgressEvent(event_name, EventStatus.ERROR, "Error while Stopping"))
            raise
        notify(ProgressEvent(event_name, EventStatus.DONE, "Stopped"))

    _run_concurrently([partial(stop_one, c) for c in containers])


def remove_containers(
    client: EngineClient,
    containers: Iterable[Container],
    timeout: float | None = None,
    volumes: bool = False,
    on_event: EventHandler | None = None,
) -> None:
    """Stop then force-remove containers concurrently."""
    notify = partial(_emit, on_event)

    def remove_one(container: Container) -> None:
        event_name = _progress_name(container)
        notify(ProgressEvent(event_name, EventStatus.WORKING, "Stopping"))
        try:
            stop_containers(client, [container], timeout, on_event)
        except Exception:
            notify(ProgressEvent(event_name, EventStatus.ERROR, "Error while Stopping"))
            raise
        notify(ProgressEvent(event_name, EventStatus.WORKING, "Removing"))
        try:
            client.container_remove(container.id, force=True, remove_volumes=volumes)
        except Exception:
            notify(ProgressEvent(event_name, EventStatus.ERROR, "Error while Removing"))
            raise
        notify(ProgressEvent(event_name, EventStatus.DONE, "Removed"))

    _run_concurrently([partial(remove_one, c) for c in containers])


def remove_network(
    client: EngineClient, name: str, on_event: EventHandler | None = None
) -> None:
    """Remove every network with this name, by id, since names are not unique."""
    notify = partial(_emit, on_event)
    try:
        networks = client.network_list([("name", name)])
    except Exception as exc:
        raise RuntimeError(f"failed to inspect network {name}: {exc}") from exc
    if not networks:
        return

    event_name = f"Network {name}"
    notify(ProgressEvent(event_name, EventStatus.WORKING, "Removing"))
    removed = 0
    for network in networks:
        try:
            client.network_remove(network["id"])
        except NotFoundError:
            continue
        except Exception as exc:
            notify(ProgressEvent(event_name, EventStatus.ERROR, "Error"))
            raise RuntimeError(f"failed to remove network {name}: {exc}") from exc
        removed += 1

    if removed == 0:
        notify(ProgressEvent(event_name, EventStatus.DONE, _NOTHING_REMOVED))
        return
    notify(ProgressEvent(event_name, EventStatus.DONE, "Removed"))


def remove_image(client: EngineClient, image: str, on_event: EventHandler | None = None) -> None:
    """Remove an image; a missing one only gives a warning event."""
    notify = partial(_emit, on_event)
    event_name = f"Image {image}"
    notify(ProgressEvent(event_name, EventStatus.WORKING, "Removing"))
    try:
        client.image_remove(image)
    except NotFoundError:
        notify(ProgressEvent(event_name, EventStatus.DONE, _NOTHING_REMOVED))
        return
    notify(ProgressEvent(event_name, EventStatus.DONE, "Removed"))


def remove_volume(client: EngineClient, name: str, on_event: EventHandler | None = None) -> None:
    """Force-remove a volume; a missing one only gives a warning event."""
    notify = partial(_emit, on_event)
    event_name = f"Volume {name}"
    notify(ProgressEvent(event_name, EventStatus.WORKING, "Removing"))
    try:
        client.volume_remove(name, force=True)
    except NotFoundError:
        notify(ProgressEvent(event_name, EventStatus.DONE, _NOTHING_REMOVED))
        return
    notify(ProgressEvent(event_name, EventStatus.DONE, "Removed"))