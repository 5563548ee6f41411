"""Images used by the containers of a project."""

from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Mapping, Protocol, Sequence

from composeops.engine import (
    SERVICE_LABEL,
    EngineClient,
    NotFoundError,
    canonical_container_name,
    project_filter,
)


class _ImageClient(EngineClient, Protocol):
    def image_inspect(self, image: str) -> Mapping[str, Any]:
        """Inspect a local image; raises NotFoundError when it is absent."""


@dataclass(frozen=True)
class ImageSummary:
    """An image and the container that runs it."""

    id: str
    repository: str
    tag: str
    size: int
    container_name: str = ""


def _inspect_images(client: _ImageClient, image_ids: Sequence[str]) -> dict[str, ImageSummary]:
    summary: dict[str, ImageSummary] = {}
    lock = threading.Lock()

    def inspect(image_id: str) -> None:
        try:
            inspected = client.image_inspect(image_id)
        except NotFoundError:
            return
        repository, tag = "", ""
        repo_tags = inspected.get("RepoTags") or []
        if repo_tags:
            parts = repo_tags[0].split(":")
            repository = parts[0]
            if len(parts) > 1:
                tag = parts[1]
        with lock:
            summary[image_id] = ImageSummary(
                id=inspected.get("Id", ""),
                repository=repository,
                tag=tag,
                size=int(inspected.get("Size", 0) or 0),
            )

    if image_ids:
        with ThreadPoolExecutor(max_workers=len(image_ids)) as pool:
            futures = [pool.submit(inspect, image_id) for image_id in image_ids]
        for future in futures:
            future.result()
    return summary


def images(
    client: _ImageClient, project_name: str, services: Sequence[str] = ()
) -> list[ImageSummary]:
    """One summary per project container, in listing order."""
    containers = client.container_list(
        [project_filter(project_name.lower())], all_containers=True
    )
    if services:
        containers = [c for c in containers if c.labels.get(SERVICE_LABEL) in services]

    image_ids = list(dict.fromkeys(c.image_id for c in containers))
    by_id = _inspect_images(client, image_ids)

    result = []
    for container in containers:
        name = canonical_container_name(container)
        image = by_id.get(container.image_id)
        if image is None:
            raise RuntimeError(f"failed to retrieve image for container {name}")
        result.append(
            ImageSummary(image.id, image.repository, image.tag, image.size, container_name=name)
        )
    return result