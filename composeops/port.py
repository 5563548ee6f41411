"""Looking up the public address bound to a service container port."""

from __future__ import annotations

from composeops.engine import (
    EngineClient,
    NotFoundError,
    container_number_filter,
    project_filter,
    service_filter,
)


def port(
    client: EngineClient,
    project_name: str,
    service: str,
    private_port: int,
    index: int = 1,
    protocol: str = "tcp",
) -> tuple[str, int]:
    """Public IP and port for a private port of a service container.

    Returns ``("", 0)`` when the port is not published.
    """
    containers = client.container_list(
        [
            project_filter(project_name.lower()),
            service_filter(service),
            container_number_filter(index),
        ]
    )
    if not containers:
        raise NotFoundError(f"no container found for {service}_{index}")
    for published in containers[0].ports:
        if published.private_port == private_port and published.type == protocol:
            return published.ip, published.public_port
    return "", 0