import pytest

from composeops.engine import (
    CONFIG_FILES_LABEL,
    PROJECT_LABEL,
    SERVICE_LABEL,
    Container,
    Port,
)
from composeops.ps import ContainerSummary, PortPublisher, ps

TEST_PROJECT = "testProject"


class FakeClient:
    def __init__(self, containers, inspected):
        self.containers = containers
        self.inspected = inspected
        self.list_calls = []

    def container_list(self, filters=(), all_containers=False, **kwargs):
        self.list_calls.append((list(filters), all_containers))
        return list(self.containers)

    def container_inspect(self, container_id):
        result = self.inspected[container_id]
        if isinstance(result, Exception):
            raise result
        return result


def container_details(service, cid, status, health, exit_code, ports=()):
    container = Container(
        id=cid,
        names=["/" + cid],
        labels={
            SERVICE_LABEL: service,
            CONFIG_FILES_LABEL: "/testdata/compose.yaml",
            PROJECT_LABEL: TEST_PROJECT.lower(),
        },
        state=status,
        ports=list(ports),
    )
    inspect = {"State": {"Status": status, "Health": {"Status": health}, "ExitCode": exit_code}}
    return container, inspect


def test_ps():
    c1, i1 = container_details("service1", "123", "running", "healthy", 0)
    c2, i2 = container_details(
        "service1",
        "456",
        "running",
        "",
        0,
        [Port(ip="localhost", private_port=90, public_port=80, type="")],
    )
    c3, i3 = container_details("service2", "789", "exited", "", 130)
    client = FakeClient([c1, c2, c3], {"123": i1, "456": i2, "789": i3})

    containers = ps(client, TEST_PROJECT.lower())

    project = TEST_PROJECT.lower()
    assert containers == [
        ContainerSummary(id="123", name="123", project=project, service="service1",
                         state="running", health="healthy", publishers=[]),
        ContainerSummary(id="456", name="456", project=project, service="service1",
                         state="running", health="",
                         publishers=[PortPublisher(url="localhost", target_port=90, published_port=80)]),
        ContainerSummary(id="789", name="789", project=project, service="service2",
                         state="exited", health="", exit_code=130, publishers=[]),
    ]
    assert client.list_calls[0][1] is True


def test_ps_sorts_publishers_by_target_port():
    ports = [
        Port(ip="0.0.0.0", private_port=443, public_port=8443, type="tcp"),
        Port(ip="0.0.0.0", private_port=80, public_port=8080, type="tcp"),
    ]
    c, i = container_details("web", "1", "running", "", 0, ports)
    summary = ps(FakeClient([c], {"1": i}), TEST_PROJECT)[0]
    assert [p.target_port for p in summary.publishers] == [80, 443]
    assert [p.published_port for p in summary.publishers] == [8080, 8443]


def test_ps_health_only_for_running_and_exit_code_only_for_stopped():
    c, i = container_details("web", "1", "exited", "healthy", 3)
    summary = ps(FakeClient([c], {"1": i}), TEST_PROJECT)[0]
    assert (summary.health, summary.exit_code) == ("", 3)
    c, i = container_details("web", "2", "running", "starting", 7)
    summary = ps(FakeClient([c], {"2": i}), TEST_PROJECT)[0]
    assert (summary.health, summary.exit_code) == ("starting", 0)


def test_ps_inspect_error_propagates():
    c, _ = container_details("web", "1", "running", "", 0)
    with pytest.raises(ConnectionError):
        ps(FakeClient([c], {"1": ConnectionError("engine gone")}), TEST_PROJECT)