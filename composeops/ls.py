"""Listing of compose projects (stacks) from the containers they run."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from typing import Iterable, Sequence

from composeops.engine import (
    CONFIG_FILES_LABEL,
    PROJECT_LABEL,
    Container,
    EngineClient,
    has_project_label_filter,
)


@dataclass(frozen=True)
class Stack:
    """A compose project as seen from its containers."""

    id: str
    name: str
    status: str
    config_files: str


class MissingLabelError(LookupError):
    """Raised when a project container lacks a label compose relies on."""

    def __init__(self, label: str, container_id: str):
        super().__init__(
            f'No label "{label}" set on container "{container_id}" of compose project'
        )
        self.label = label
        self.container_id = container_id


def list_stacks(client: EngineClient, all_containers: bool = False) -> list[Stack]:
    """Every project with containers on the engine, sorted by name."""
    containers = client.container_list(
        [has_project_label_filter()], all_containers=all_containers
    )
    return containers_to_stacks(containers)


def containers_to_stacks(containers: Iterable[Container]) -> list[Stack]:
    """Group containers by project and summarise each project."""
    grouped = group_containers_by_label(containers, PROJECT_LABEL)
    return [
        Stack(
            id=project,
            name=project,
            status=combined_status(container_to_state(members)),
            config_files=combined_config_files(members),
        )
        for project, members in grouped.items()
    ]


def combined_config_files(containers: Iterable[Container]) -> str:
    """Comma separated config files of the containers, first seen first, no repeats."""
    files: dict[str, None] = {}
    for container in containers:
        label = container.labels.get(CONFIG_FILES_LABEL)
        if label is None:
            raise MissingLabelError(CONFIG_FILES_LABEL, container.id)
        files.update(dict.fromkeys(label.split(",")))
    return ",".join(files)


def container_to_state(containers: Iterable[Container]) -> list[str]:
    return [container.state for container in containers]


def combined_status(statuses: Sequence[str]) -> str:
    """Status counts such as ``exited(1), running(2)``, sorted by status."""
    counts = Counter(statuses)
    return ", ".join(f"{status}({counts[status]})" for status in sorted(counts))


def group_containers_by_label(
    containers: Iterable[Container], label_name: str
) -> dict[str, list[Container]]:
    """Containers grouped by the value of a label, keys in sorted order."""
    groups: dict[str, list[Container]] = {}
    for container in containers:
        value = container.labels.get(label_name)
        if value is None:
            raise MissingLabelError(label_name, container.id)
        groups.setdefault(value, []).append(container)
    return {key: groups[key] for key in sorted(groups)}