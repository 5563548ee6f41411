"""Collect container events and hand logs and statuses to a consumer."""

from __future__ import annotations

import enum
import logging
import queue
from dataclasses import dataclass
from typing import Callable, Protocol

_log = logging.getLogger(__name__)


class ContainerEventType(enum.Enum):
    """Kind of event about a project container."""

    ATTACH = "attach"
    EXIT = "exit"
    STOPPED = "stopped"
    LOG = "log"
    USER_CANCEL = "user_cancel"


@dataclass(frozen=True)
class ContainerEvent:
    """Something that happened to a container."""

    type: ContainerEventType
    container: str = ""
    service: str = ""
    line: str = ""
    exit_code: int = 0
    restarting: bool = False


class LogConsumer(Protocol):
    """Receiver of container output and status lines."""

    def log(self, container: str, service: str, message: str) -> None:
        """Handle one line of output from a container."""

    def status(self, container: str, message: str) -> None:
        """Handle a status message about a container."""

    def register(self, container: str) -> None:
        """Announce a container whose output will follow."""


class LogPrinter:
    """Watches application containers and passes their logs to a consumer."""

    def __init__(self, consumer: LogConsumer):
        self._consumer = consumer
        self._queue: queue.Queue[ContainerEvent] = queue.Queue()

    def handle_event(self, event: ContainerEvent) -> None:
        self._queue.put(event)

    def cancel(self) -> None:
        self._queue.put(ContainerEvent(ContainerEventType.USER_CANCEL))

    def run(
        self,
        cascade_stop: bool = False,
        exit_code_from: str = "",
        stop_fn: Callable[[], object] | None = None,
    ) -> int:
        """Process events until the last attached container has exited.

        Returns the exit code chosen for the run; errors from ``stop_fn``
        propagate.
        """
        aborting = False
        exit_code = 0
        containers: set[str] = set()
        while True:
            event = self._queue.get()
            name = event.container
            if event.type is ContainerEventType.USER_CANCEL:
                aborting = True
            elif event.type is ContainerEventType.ATTACH:
                if name in containers:
                    continue
                containers.add(name)
                self._consumer.register(name)
            elif event.type in (ContainerEventType.EXIT, ContainerEventType.STOPPED):
                if not event.restarting:
                    containers.discard(name)
                if not aborting:
                    self._consumer.status(name, f"exited with code {event.exit_code}")
                if cascade_stop:
                    if not aborting:
                        aborting = True
                        print("Aborting on container exit...")
                        if stop_fn is not None:
                            stop_fn()
                    if not exit_code_from:
                        exit_code_from = event.service
                    if exit_code_from == event.service:
                        _log.error(event.exit_code)
                        exit_code = event.exit_code
                if not containers:
                    return exit_code
            elif event.type is ContainerEventType.LOG:
                if not aborting:
                    self._consumer.log(name, event.service, event.line)