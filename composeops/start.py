"""Starting project services and following what happens to their containers."""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Mapping, Protocol, Sequence

from composeops.dependencies import Project, ServiceConfig, in_dependency_order
from composeops.engine import (
    SERVICE_LABEL,
    Container,
    EngineClient,
    EventStatus,
    NotFoundError,
    OneOff,
    ProgressEvent,
    canonical_container_name,
    container_name_without_project,
    list_containers,
)
from composeops.events import Event, stream_events
from composeops.printer import ContainerEvent, ContainerEventType

SERVICE_CONDITION_COMPLETED_SUCCESSFULLY = "service_completed_successfully"
SERVICE_CONDITION_RUNNING_OR_HEALTHY = "running_or_healthy"
CONTAINER_RUNNING = "running"

Listener = Callable[[ContainerEvent], object]


class _StartingClient(EngineClient, Protocol):
    def container_start(self, container_id: str) -> None:
        """Start a created or stopped container."""


@dataclass(frozen=True)
class RestartPolicy:
    """Restart policy of a container as the engine reports it."""

    name: str = ""
    maximum_retry_count: int = 0

    def is_always(self) -> bool:
        return self.name == "always"

    def is_unless_stopped(self) -> bool:
        return self.name == "unless-stopped"

    def is_on_failure(self) -> bool:
        return self.name == "on-failure"


@dataclass
class StartOptions:
    """How ``start`` behaves.

    With a ``listener`` the containers of ``attach_to`` (all when empty) are
    followed and ``start`` returns once they have all stopped. With ``wait``
    it returns only once every service is running, healthy or completed.
    """

    attach_to: list[str] = field(default_factory=list)
    wait: bool = False
    listener: Listener | None = None
    wait_interval: float = 0.5


def will_container_restart(policy: RestartPolicy, exit_code: int, restarted: int) -> bool:
    """Whether the engine restarts a container that exited with ``exit_code``."""
    if policy.is_always() or policy.is_unless_stopped():
        return True
    if policy.is_on_failure():
        return exit_code != 0 and policy.maximum_retry_count > restarted
    return False


def get_dependency_condition(service: ServiceConfig, project: Project) -> str:
    """Condition to wait for on ``service``.

    A service another one waits on to complete successfully is waited on that
    way too, since a one-shot container never stays running.
    """
    for other in project.services:
        for name, dependency in other.depends_on.items():
            if (
                name == service.name
                and dependency.condition == SERVICE_CONDITION_COMPLETED_SUCCESSFULLY
            ):
                return SERVICE_CONDITION_COMPLETED_SUCCESSFULLY
    return SERVICE_CONDITION_RUNNING_OR_HEALTHY


class _StopWatching(Exception):
    """Ends the event stream once no watched container is left."""


def _restart_policy(inspected: Mapping[str, Any]) -> RestartPolicy:
    raw = (inspected.get("HostConfig") or {}).get("RestartPolicy") or {}
    return RestartPolicy(raw.get("Name", ""), int(raw.get("MaximumRetryCount", 0) or 0))


def _container_from_inspect(inspected: Mapping[str, Any]) -> Container:
    return Container(
        id=inspected.get("Id", ""),
        names=[inspected.get("Name", "")],
        labels=dict((inspected.get("Config") or {}).get("Labels") or {}),
    )


def watch_containers(
    client: EngineClient,
    project_name: str,
    services: Sequence[str],
    listener: Listener,
    containers: Iterable[Container],
    on_start: Callable[[Container], object],
) -> None:
    """Report container stops and exits to ``listener`` from engine events.

    ``on_start`` is called for containers that restart or that appear while
    watching. Returns when every watched container is gone for good, or when
    the event stream ends.
    """
    watched = {container.id: 0 for container in containers}

    def consume(event: Event) -> None:
        if event.status == "destroy":
            # a destroyed container cannot be inspected; it was already dropped
            return
        inspected = client.container_inspect(event.container)
        container = _container_from_inspect(inspected)
        name = container_name_without_project(container)
        service = container.labels.get(SERVICE_LABEL, "")

        if event.status == "stop":
            listener(ContainerEvent(ContainerEventType.STOPPED, name, service))
            watched.pop(container.id, None)
            if not watched:
                raise _StopWatching
            return

        if event.status == "die":
            restarted = watched.get(container.id, 0)
            watched[container.id] = restarted + 1
            exit_code = int((inspected.get("State") or {}).get("ExitCode", 0) or 0)
            restarting = will_container_restart(
                _restart_policy(inspected), exit_code, restarted
            )
            listener(
                ContainerEvent(
                    ContainerEventType.EXIT,
                    name,
                    service,
                    exit_code=exit_code,
                    restarting=restarting,
                )
            )
            if not restarting:
                watched.pop(container.id, None)
            if not watched:
                raise _StopWatching
            return

        if event.status == "start":
            count = watched.get(container.id)
            must_attach = count is not None and count > 0
            if count is None:
                # a container added to a service by scaling
                watched[container.id] = 0
                must_attach = True
            if must_attach:
                on_start(container)

    try:
        stream_events(client, project_name, services, consume)
    except _StopWatching:
        return


def _start_service(
    client: _StartingClient,
    project_name: str,
    service: ServiceConfig,
    notify: Callable[[ProgressEvent], object],
) -> None:
    containers = list_containers(client, project_name, OneOff.EXCLUDE, True, service.name)
    if not containers:
        if service.scale > 0:
            raise NotFoundError(f"service {service.name!r} has no container to start")
        return
    for container in containers:
        if container.state == CONTAINER_RUNNING:
            continue
        event_name = f"Container {canonical_container_name(container)}"
        notify(ProgressEvent(event_name, EventStatus.WORKING, "Starting"))
        client.container_start(container.id)
        notify(ProgressEvent(event_name, EventStatus.DONE, "Started"))


def _service_ready(
    client: EngineClient, project_name: str, service: str, condition: str
) -> bool:
    ready = True
    for container in list_containers(client, project_name, OneOff.EXCLUDE, True, service):
        name = canonical_container_name(container)
        state = client.container_inspect(container.id).get("State") or {}
        status = state.get("Status", "")
        exit_code = int(state.get("ExitCode", 0) or 0)
        if condition == SERVICE_CONDITION_COMPLETED_SUCCESSFULLY:
            if status == "exited":
                if exit_code != 0:
                    raise RuntimeError(
                        f"service {service!r} didn't complete successfully: exit {exit_code}"
                    )
                continue
            ready = False
            continue
        health = (state.get("Health") or {}).get("Status", "")
        if health == "unhealthy":
            raise RuntimeError(f"container {name} is unhealthy")
        if status in ("exited", "dead"):
            raise RuntimeError(f"container {name} exited ({exit_code})")
        if health:
            ready = ready and health == "healthy"
        else:
            ready = ready and status == CONTAINER_RUNNING
    return ready


def _wait_for_services(
    client: EngineClient, project: Project, project_name: str, interval: float
) -> None:
    pending = {
        service.name: get_dependency_condition(service, project)
        for service in project.services
    }
    while pending:
        for service, condition in list(pending.items()):
            if _service_ready(client, project_name, service, condition):
                del pending[service]
        if pending:
            time.sleep(interval)


def start(
    client: _StartingClient,
    project: Project,
    options: StartOptions | None = None,
    on_event: Callable[[ProgressEvent], object] | None = None,
) -> None:
    """Start the project's service containers, dependencies first."""
    options = options or StartOptions()
    notify = on_event or (lambda event: None)
    name = project.name.lower()

    watcher: threading.Thread | None = None
    watch_errors: list[Exception] = []
    listener = options.listener
    if listener is not None:
        attached = list_containers(client, name, OneOff.EXCLUDE, True, *options.attach_to)

        def attach(container: Container) -> None:
            listener(
                ContainerEvent(
                    ContainerEventType.ATTACH,
                    container_name_without_project(container),
                    container.labels.get(SERVICE_LABEL, ""),
                )
            )

        for container in attached:
            attach(container)

        def watch() -> None:
            try:
                watch_containers(client, name, options.attach_to, listener, attached, attach)
            except Exception as exc:
                watch_errors.append(exc)

        watcher = threading.Thread(target=watch, daemon=True)
        watcher.start()

    in_dependency_order(
        project,
        lambda service: _start_service(client, name, project.get_service(service), notify),
    )

    if options.wait:
        _wait_for_services(client, project, name, options.wait_interval)

    if watcher is not None:
        watcher.join()
        if watch_errors:
            raise watch_errors[0]