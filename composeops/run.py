"""Preparing the configuration of a one-off service container."""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field

from composeops.dependencies import Project, ServiceConfig


@dataclass
class RunOptions:
    """Overrides that a one-off run applies to a service."""

    service: str
    name: str = ""
    command: list[str] = field(default_factory=list)
    entrypoint: list[str] | None = None
    environment: list[str] = field(default_factory=list)
    labels: dict[str, str] = field(default_factory=dict)
    user: str = ""
    working_dir: str = ""
    tty: bool = False
    interactive: bool = False


def _resolved_environment(
    project: Project, service: ServiceConfig, entries: list[str]
) -> dict[str, str | None]:
    overrides: dict[str, str | None] = {}
    for entry in entries:
        key, sep, value = entry.partition("=")
        overrides[key] = value if sep else None
    resolved: dict[str, str | None] = {}
    for key, value in overrides.items():
        if value is None and key not in service.environment:
            value = project.environment.get(key)
        if value is not None:
            resolved[key] = value
    return resolved


def apply_run_options(
    project: Project, service: ServiceConfig, options: RunOptions
) -> ServiceConfig:
    """A copy of ``service`` with the run options applied.

    Variables given without a value take it from the project environment,
    unless the service already defines them.
    """
    environment = dict(service.environment)
    if options.environment:
        environment.update(_resolved_environment(project, service, options.environment))
    return dataclasses.replace(
        service,
        tty=options.tty,
        stdin_open=options.interactive,
        container_name=options.name,
        command=list(options.command) if options.command else list(service.command),
        user=options.user or service.user,
        working_dir=options.working_dir or service.working_dir,
        entrypoint=(
            list(options.entrypoint) if options.entrypoint is not None else service.entrypoint
        ),
        environment=environment,
        labels={**service.labels, **options.labels},
    )


def one_off_container_name(project_name: str, service_name: str, slug: str) -> str:
    """Default name of a one-off container, using the slug's short form."""
    return f"{project_name}_{service_name}_run_{slug[:12]}"