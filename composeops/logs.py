"""Collecting the output of a project's containers."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Any, Callable

from composeops.engine import (
    SERVICE_LABEL,
    Container,
    EngineClient,
    OneOff,
    container_name_without_project,
    list_containers,
)
from composeops.printer import ContainerEvent, ContainerEventType, LogConsumer, LogPrinter
from composeops.start import watch_containers


@dataclass
class LogOptions:
    """Which containers to read and how much of their output."""

    services: list[str] = field(default_factory=list)
    follow: bool = False
    since: str = ""
    until: str = ""
    tail: str = "all"
    timestamps: bool = False


class _Tasks:
    """Threads whose first failure ends the wait."""

    def __init__(self) -> None:
        self._cond = threading.Condition()
        self._pending = 0
        self._error: Exception | None = None

    def spawn(self, fn: Callable[..., Any], *args: Any) -> None:
        with self._cond:
            self._pending += 1
        threading.Thread(target=self._run, args=(fn, args), daemon=True).start()

    def _run(self, fn: Callable[..., Any], args: tuple[Any, ...]) -> None:
        try:
            fn(*args)
        except Exception as exc:
            with self._cond:
                if self._error is None:
                    self._error = exc
        finally:
            with self._cond:
                self._pending -= 1
                self._cond.notify_all()

    def wait(self) -> None:
        with self._cond:
            self._cond.wait_for(lambda: self._pending == 0 or self._error is not None)
            error = self._error
        if error is not None:
            raise error


def _attach_event(container: Container) -> ContainerEvent:
    return ContainerEvent(
        ContainerEventType.ATTACH,
        container_name_without_project(container),
        container.labels.get(SERVICE_LABEL, ""),
    )


def log_container(
    client: EngineClient, consumer: LogConsumer, container: Container, options: LogOptions
) -> None:
    """Pass a container's output to ``consumer`` line by line."""
    name = container_name_without_project(container)
    service = container.labels.get(SERVICE_LABEL, "")
    chunks = client.container_logs(
        container.id,
        follow=options.follow,
        since=options.since,
        until=options.until,
        tail=options.tail,
        timestamps=options.timestamps,
    )
    pending = ""
    for chunk in chunks:
        pending += chunk
        *lines, pending = pending.split("\n")
        for line in lines:
            consumer.log(name, service, line)
    if pending:
        consumer.log(name, service, pending)


def logs(
    client: EngineClient,
    project_name: str,
    consumer: LogConsumer,
    options: LogOptions | None = None,
) -> None:
    """Show the output of the project's service containers.

    When following, containers that start later are picked up too and the
    call returns once every followed container has exited.
    """
    options = options or LogOptions()
    name = project_name.lower()
    containers = list_containers(client, name, OneOff.EXCLUDE, True, *options.services)

    tasks = _Tasks()
    for container in containers:
        tasks.spawn(log_container, client, consumer, container, options)

    if options.follow:
        printer = LogPrinter(consumer)
        for container in containers:
            printer.handle_event(_attach_event(container))

        def on_start(container: Container) -> None:
            printer.handle_event(_attach_event(container))
            tasks.spawn(log_container, client, consumer, container, options)

        tasks.spawn(
            watch_containers,
            client,
            name,
            list(options.services),
            printer.handle_event,
            containers,
            on_start,
        )
        tasks.spawn(printer.run)

    tasks.wait()