"""Pulling service images from their registries."""

from __future__ import annotations

import sys
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from functools import partial
from typing import Any, Callable, Iterable, Mapping, MutableMapping, Protocol, Sequence

from composeops.dependencies import Project, ServiceConfig
from composeops.engine import EngineClient, EventStatus, NotFoundError, ProgressEvent
from composeops.metrics import PULL_FAILURE, ComposeError

PULL_POLICY_ALWAYS = "always"
PULL_POLICY_NEVER = "never"
PULL_POLICY_BUILD = "build"
PULL_POLICY_MISSING = "missing"
PULL_POLICY_IF_NOT_PRESENT = "if_not_present"

_DONE_STATUSES = ("Pull complete", "Already exists")
_DONE_FRAGMENTS = ("Image is up to date", "Downloaded newer image")

EventHandler = Callable[[ProgressEvent], object]


class _PullingClient(EngineClient, Protocol):
    def image_pull(self, image: str, platform: str = "") -> Iterable[Mapping[str, Any]]:
        """Start a pull and yield the engine's JSON progress messages."""

    def image_inspect(self, image: str) -> Mapping[str, Any]:
        """Inspect a local image; raises NotFoundError when it is absent."""


@dataclass
class PullOptions:
    """``quiet`` sends no progress events; ``ignore_failures`` only reports errors."""

    quiet: bool = False
    ignore_failures: bool = False


class PullError(ComposeError):
    """A pull that failed, categorised as a pull failure for metrics."""

    def __init__(self, err: BaseException | str):
        if isinstance(err, str):
            err = RuntimeError(err)
        super().__init__(err, PULL_FAILURE)


def _ignore(event: ProgressEvent) -> None:
    return None


def _error_message(message: Mapping[str, Any]) -> str | None:
    detail = message.get("errorDetail") or {}
    text = detail.get("message") or message.get("error")
    return text or None


def _run_all(tasks: Sequence[Callable[[], object]]) -> Exception | None:
    """Run tasks concurrently and return the first failure, if any."""
    if not tasks:
        return None
    with ThreadPoolExecutor(max_workers=len(tasks)) as pool:
        futures = [pool.submit(task) for task in tasks]
    for future in futures:
        error = future.exception()
        if error is not None:
            return error  # type: ignore[return-value]
    return None


def _image_present(client: _PullingClient, image: str) -> bool:
    try:
        client.image_inspect(image)
    except NotFoundError:
        return False
    return True


def to_pull_progress_event(parent: str, message: Mapping[str, Any]) -> ProgressEvent | None:
    """Progress event for one layer message of a pull, or None to skip it."""
    layer = message.get("id", "")
    if not layer or "progressDetail" not in message:
        return None
    status_line = message.get("status", "")
    text = message.get("progress", "")
    status = EventStatus.WORKING
    if status_line in _DONE_STATUSES or any(f in status_line for f in _DONE_FRAGMENTS):
        status = EventStatus.DONE
    error = _error_message(message)
    if error is not None:
        status = EventStatus.ERROR
        text = error
    return ProgressEvent(layer, status, status_line, parent_id=parent, status_text=text)


def pull_service_image(
    client: _PullingClient,
    service: ServiceConfig,
    on_event: EventHandler | None = None,
    quiet: bool = False,
) -> str:
    """Pull the image of a service and return the id of the pulled image.

    With ``quiet`` the per-layer progress events are left out.
    """
    notify = on_event or _ignore
    notify(ProgressEvent(service.name, EventStatus.WORKING, "Pulling"))
    try:
        stream = client.image_pull(service.image, platform=getattr(service, "platform", "") or "")
    except Exception as exc:
        notify(ProgressEvent(service.name, EventStatus.ERROR, "Error"))
        raise PullError(exc) from exc

    try:
        for message in stream:
            error = _error_message(message)
            if error is not None:
                raise PullError(error)
            if not quiet:
                event = to_pull_progress_event(service.name, message)
                if event is not None:
                    notify(event)
    except PullError:
        raise
    except Exception as exc:
        raise PullError(exc) from exc

    notify(ProgressEvent(service.name, EventStatus.DONE, "Pulled"))
    return client.image_inspect(service.image).get("Id", "")


def pull(
    client: _PullingClient,
    project: Project,
    options: PullOptions | None = None,
    on_event: EventHandler | None = None,
) -> None:
    """Pull the images of the project's services, following their pull policy."""
    options = options or PullOptions()
    notify = _ignore if options.quiet or on_event is None else on_event
    must_build: set[str] = set()
    lock = threading.Lock()

    def pull_one(service: ServiceConfig) -> None:
        try:
            pull_service_image(client, service, notify, False)
        except Exception as exc:
            if not options.ignore_failures:
                if service.build is not None:
                    with lock:
                        must_build.add(service.name)
                raise
            print(f"Pulling {service.name}: {exc}", file=sys.stderr)

    tasks: list[Callable[[], object]] = []
    for service in project.services:
        if not service.image or service.pull_policy in (PULL_POLICY_NEVER, PULL_POLICY_BUILD):
            notify(ProgressEvent(service.name, EventStatus.DONE, "Skipped"))
            continue
        if service.pull_policy in (PULL_POLICY_MISSING, PULL_POLICY_IF_NOT_PRESENT):
            if _image_present(client, service.image):
                notify(ProgressEvent(service.name, EventStatus.DONE, "Exists"))
                continue
        tasks.append(partial(pull_one, service))

    error = _run_all(tasks)

    if not options.ignore_failures and must_build:
        names = " ".join(s.name for s in project.services if s.name in must_build)
        print(
            "WARNING: Some service image(s) must be built from source by running:\n"
            f"    docker compose build {names}",
            file=sys.stderr,
        )
    if error is not None:
        raise error


def pull_required_images(
    client: _PullingClient,
    project: Project,
    images: MutableMapping[str, str],
    quiet: bool = False,
) -> None:
    """Pull the service images that are missing from ``images`` or always pulled.

    ``images`` maps local image names to ids and receives the pulled ones. A
    failed pull is ignored for services that can build their image.
    """
    need_pull: list[ServiceConfig] = []
    for service in project.services:
        if not service.image:
            continue
        policy = service.pull_policy
        if policy in ("", PULL_POLICY_MISSING, PULL_POLICY_IF_NOT_PRESENT):
            if service.image in images:
                continue
        elif policy in (PULL_POLICY_NEVER, PULL_POLICY_BUILD):
            continue
        need_pull.append(service)
    if not need_pull:
        return

    pulled: dict[str, str] = {}
    lock = threading.Lock()

    def pull_one(service: ServiceConfig) -> None:
        try:
            image_id = pull_service_image(client, service, None, quiet)
        except Exception:
            if service.build is not None:
                return
            raise
        if image_id:
            with lock:
                pulled[service.image] = image_id

    error = _run_all([partial(pull_one, s) for s in need_pull])
    images.update(pulled)
    if error is not None:
        raise error