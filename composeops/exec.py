"""Running a command inside a running service container."""

from __future__ import annotations

from dataclasses import dataclass, field

from composeops.engine import (
    CONTAINER_NUMBER_LABEL,
    Container,
    EngineClient,
    NotFoundError,
    OneOff,
    list_containers,
)


@dataclass
class ExecOptions:
    """What to run, in which service container and how."""

    service: str
    command: list[str] = field(default_factory=list)
    index: int = 0
    environment: list[str] = field(default_factory=list)
    interactive: bool = False
    tty: bool = False
    detach: bool = False
    user: str = ""
    privileged: bool = False
    working_dir: str = ""


def _container_number(container: Container) -> int:
    try:
        return int(container.labels.get(CONTAINER_NUMBER_LABEL, "0"))
    except ValueError:
        return 0


def _exec_target(client: EngineClient, project_name: str, options: ExecOptions) -> Container:
    containers = list_containers(client, project_name, OneOff.INCLUDE, False, options.service)
    if options.index:
        containers = [c for c in containers if _container_number(c) == options.index]
    if not containers:
        if options.index:
            raise NotFoundError(
                f"service {options.service!r} is not running container #{options.index}"
            )
        raise NotFoundError(f"service {options.service!r} is not running")
    return min(containers, key=_container_number)


def exec_in_container(client: EngineClient, project_name: str, options: ExecOptions) -> int:
    """Run the command in the service container and return its exit code."""
    target = _exec_target(client, project_name.lower(), options)
    return client.container_exec(target.id, options)