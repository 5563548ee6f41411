"""Container engine model, label filters and container lookup helpers."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any, Iterable, Protocol, Sequence

PROJECT_LABEL = "com.docker.compose.project"
SERVICE_LABEL = "com.docker.compose.service"
ONEOFF_LABEL = "com.docker.compose.oneoff"
CONTAINER_NUMBER_LABEL = "com.docker.compose.container-number"
CONFIG_FILES_LABEL = "com.docker.compose.project.config_files"
WORKING_DIR_LABEL = "com.docker.compose.project.working_dir"
SLUG_LABEL = "com.docker.compose.slug"
LABEL_PREFIX = "com.docker.compose."

Filter = tuple[str, str]


@dataclass
class Port:
    """A port exposed by a container."""

    private_port: int
    public_port: int = 0
    ip: str = ""
    type: str = "tcp"


@dataclass
class Container:
    """A container as listed by the engine."""

    id: str
    names: list[str] = field(default_factory=list)
    labels: dict[str, str] = field(default_factory=dict)
    state: str = ""
    image_id: str = ""
    command: str = ""
    ports: list[Port] = field(default_factory=list)


class OneOff(enum.Enum):
    """Which one-off containers a listing includes."""

    INCLUDE = "include"
    EXCLUDE = "exclude"
    ONLY = "only"


class EventStatus(enum.Enum):
    """Status of a progress event."""

    WORKING = "working"
    DONE = "done"
    WARNING = "warning"
    ERROR = "error"


@dataclass(frozen=True)
class ProgressEvent:
    """A step of progress on one resource."""

    id: str
    status: EventStatus
    text: str = ""
    status_text: str = ""
    parent_id: str = ""


class NotFoundError(LookupError):
    """Raised by an engine client when the requested object does not exist."""


class EngineClient(Protocol):
    """Operations the package needs from a container engine."""

    def container_list(
        self, filters: Sequence[Filter], all_containers: bool = False
    ) -> list[Container]:
        """Containers matching every filter; stopped ones too when all_containers."""

    def container_inspect(self, container_id: str) -> dict[str, Any]:
        """Engine inspection document of a container."""

    def container_stop(self, container_id: str, timeout: float | None = None) -> None:
        """Stop a container, waiting at most ``timeout`` seconds before killing."""

    def container_remove(
        self, container_id: str, force: bool = False, remove_volumes: bool = False
    ) -> None:
        """Remove a container."""

    def container_kill(self, container_id: str, signal: str = "") -> None:
        """Send a signal to a container."""

    def container_pause(self, container_id: str) -> None:
        """Pause a container."""

    def container_unpause(self, container_id: str) -> None:
        """Unpause a container."""

    def container_restart(self, container_id: str, timeout: float | None = None) -> None:
        """Restart a container."""

    def container_top(self, container_id: str) -> tuple[list[str], list[list[str]]]:
        """Titles and process rows of the processes running in a container."""

    def container_logs(self, container_id: str, **options: Any) -> Iterable[str]:
        """Log lines of a container."""

    def container_exec(self, container_id: str, options: Any) -> int:
        """Run a command in a container and return its exit code."""

    def copy_to_container(
        self, container_id: str, path: str, archive: bytes, copy_uid_gid: bool = False
    ) -> None:
        """Extract a tar archive into a container at ``path``."""

    def network_list(self, filters: Sequence[Filter]) -> list[dict[str, Any]]:
        """Networks matching the filters, each with ``id`` and ``name``."""

    def network_remove(self, network_id: str) -> None:
        """Remove a network by id."""

    def volume_list(self, filters: Sequence[Filter]) -> list[str]:
        """Names of the volumes matching the filters."""

    def volume_remove(self, name: str, force: bool = False) -> None:
        """Remove a volume."""

    def image_inspect(self, image: str) -> dict[str, Any]:
        """Engine inspection document of an image."""

    def image_remove(self, image: str) -> None:
        """Remove an image."""

    def image_pull(self, image: str, platform: str = "") -> Iterable[dict[str, Any]]:
        """Pull an image, yielding the engine's progress messages."""

    def image_push(self, image: str) -> Iterable[dict[str, Any]]:
        """Push an image, yielding the engine's progress messages."""

    def events(self, filters: Sequence[Filter]) -> Iterable[dict[str, Any]]:
        """Engine events matching the filters, as they happen."""


def project_filter(project_name: str) -> Filter:
    return ("label", f"{PROJECT_LABEL}={project_name}")


def service_filter(service_name: str) -> Filter:
    return ("label", f"{SERVICE_LABEL}={service_name}")


def one_off_filter(one_off: bool) -> Filter:
    return ("label", f"{ONEOFF_LABEL}={'True' if one_off else 'False'}")


def container_number_filter(index: int) -> Filter:
    return ("label", f"{CONTAINER_NUMBER_LABEL}={index}")


def has_project_label_filter() -> Filter:
    return ("label", PROJECT_LABEL)


def list_containers(
    client: EngineClient,
    project_name: str,
    one_off: OneOff,
    all_containers: bool,
    *services: str,
) -> list[Container]:
    """Containers of a project, optionally restricted to some services."""
    filters = [project_filter(project_name)]
    if one_off is OneOff.EXCLUDE:
        filters.append(one_off_filter(False))
    elif one_off is OneOff.ONLY:
        filters.append(one_off_filter(True))
    if len(services) == 1:
        filters.append(service_filter(services[0]))
    containers = client.container_list(filters, all_containers=all_containers)
    if len(services) > 1:
        wanted = set(services)
        containers = [c for c in containers if c.labels.get(SERVICE_LABEL) in wanted]
    return containers


def canonical_container_name(container: Container) -> str:
    """The container's own name, not a link alias, without the leading slash."""
    if not container.names:
        return container.id[:12]
    stripped = [name[1:] if name.startswith("/") else name for name in container.names]
    return next((name for name in stripped if "/" not in name), stripped[0])


def container_name_without_project(container: Container) -> str:
    """The container name with the project prefix removed when it carries one."""
    name = canonical_container_name(container)
    project = container.labels.get(PROJECT_LABEL, "")
    service = container.labels.get(SERVICE_LABEL, "")
    for separator in ("-", "_"):
        prefix = f"{project}{separator}{service}{separator}"
        if project and name.startswith(prefix):
            return name[len(project) + 1:]
    return name