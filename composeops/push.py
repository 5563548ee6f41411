"""Pushing built service images to their registries."""

from __future__ import annotations

import sys
from concurrent.futures import ThreadPoolExecutor
from functools import partial
from typing import Any, Callable, Iterable, Mapping, Protocol

from composeops.dependencies import Project, ServiceConfig
from composeops.engine import EngineClient, EventStatus, ProgressEvent

EventHandler = Callable[[ProgressEvent], object]

_DONE_STATUSES = ("Pull complete", "Already exists")


class _PushingClient(EngineClient, Protocol):
    def image_push(self, image: str) -> Iterable[Mapping[str, Any]]:
        """Start a push and yield the engine's JSON progress messages."""


class PushError(RuntimeError):
    """A push that the engine reported as failed."""


def _emit(handler: EventHandler | None, event: ProgressEvent) -> None:
    """Pass the event to the handler, if there is one."""
    if handler is not None:
        handler(event)


def _error_message(message: Mapping[str, Any]) -> str | None:
    detail = message.get("errorDetail") or {}
    text = detail.get("message") or message.get("error")
    return text or None


def to_push_progress_event(prefix: str, message: Mapping[str, Any]) -> ProgressEvent | None:
    """Progress event for one layer message of a push, or None to skip it."""
    layer = message.get("id", "")
    if not layer:
        return None
    status_line = message.get("status", "")
    status = EventStatus.DONE if status_line in _DONE_STATUSES else EventStatus.WORKING
    text = ""
    error = _error_message(message)
    if error is not None:
        status = EventStatus.ERROR
        text = error
    if "progressDetail" in message:
        text = message.get("progress", "")
    return ProgressEvent(f"Pushing {prefix}: {layer}", status, status_line, status_text=text)


def push_service_image(
    client: _PushingClient, service: ServiceConfig, on_event: EventHandler | None = None
) -> None:
    """Push the image of a service, reporting layer progress."""
    for message in client.image_push(service.image):
        error = _error_message(message)
        if error is not None:
            raise PushError(error)
        event = to_push_progress_event(service.name, message)
        if event is not None:
            _emit(on_event, event)


def push(
    client: _PushingClient,
    project: Project,
    ignore_failures: bool = False,
    on_event: EventHandler | None = None,
) -> None:
    """Push the images of services that are built and have an image name."""

    def push_one(service: ServiceConfig) -> None:
        try:
            push_service_image(client, service, on_event)
        except Exception as exc:
            if not ignore_failures:
                raise
            print(f"Pushing {service.name}: {exc}", file=sys.stderr)

    tasks: list[Callable[[], None]] = []
    for service in project.services:
        if service.build is None or not service.image:
            _emit(on_event, ProgressEvent(service.name, EventStatus.DONE, "Skipped"))
            continue
        tasks.append(partial(push_one, service))
    if not tasks:
        return

    with ThreadPoolExecutor(max_workers=len(tasks)) as pool:
        futures = [pool.submit(task) for task in tasks]
    for future in futures:
        future.result()