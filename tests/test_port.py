import pytest

from composeops.engine import (
    CONTAINER_NUMBER_LABEL,
    PROJECT_LABEL,
    SERVICE_LABEL,
    Container,
    NotFoundError,
    Port,
)
from composeops.port import port


class _FakeClient:
    def __init__(self, containers):
        self.containers = containers
        self.filters = None

    def container_list(self, filters, all_containers=False):
        self.filters = list(filters)
        return self.containers


def _web():
    return Container(
        id="c1",
        ports=[
            Port(private_port=80, public_port=8080, ip="127.0.0.1", type="tcp"),
            Port(private_port=53, public_port=5353, ip="0.0.0.0", type="udp"),
        ],
    )


def test_port_found():
    client = _FakeClient([_web()])
    assert port(client, "Proj", "web", 80, 1, "tcp") == ("127.0.0.1", 8080)
    assert client.filters == [
        ("label", f"{PROJECT_LABEL}=proj"),
        ("label", f"{SERVICE_LABEL}=web"),
        ("label", f"{CONTAINER_NUMBER_LABEL}=1"),
    ]


def test_port_protocol_must_match():
    client = _FakeClient([_web()])
    assert port(client, "proj", "web", 53, 1, "udp") == ("0.0.0.0", 5353)
    assert port(client, "proj", "web", 53, 1, "tcp") == ("", 0)


def test_port_no_container():
    with pytest.raises(NotFoundError, match="no container found for web_2"):
        port(_FakeClient([]), "proj", "web", 80, 2, "tcp")