import threading

import pytest

from composeops.dependencies import CycleError, Project, ServiceConfig, ServiceDependency
from composeops.engine import (
    ONEOFF_LABEL,
    PROJECT_LABEL,
    SERVICE_LABEL,
    Container,
    EventStatus,
    project_filter,
)
from composeops.stop import stop

PROJECT = "testproject"


def make_container(service, container_id, one_off=False):
    labels = {SERVICE_LABEL: service, PROJECT_LABEL: PROJECT}
    if one_off:
        labels[ONEOFF_LABEL] = "True"
    return Container(id=container_id, names=[container_id], labels=labels)


class FakeEngine:
    def __init__(self, containers=()):
        self.containers = list(containers)
        self.calls = []
        self._lock = threading.Lock()

    def named(self, op):
        return [call[1:] for call in self.calls if call[0] == op]

    def container_list(self, filters, all_containers=False):
        with self._lock:
            self.calls.append(("container_list", tuple(filters), all_containers))
        result = list(self.containers)
        for key, value in filters:
            name, sep, expected = value.partition("=")
            if key == "label" and sep:
                result = [c for c in result if c.labels.get(name) == expected]
        return result

    def container_stop(self, container_id, timeout=None):
        with self._lock:
            self.calls.append(("container_stop", container_id, timeout))


def make_project(*services):
    return Project(name="testProject", services=list(services))


def test_stop_timeout():
    engine = FakeEngine(
        [
            make_container("service1", "123"),
            make_container("service1", "456"),
            make_container("service2", "789"),
        ]
    )
    stop(engine, make_project(ServiceConfig("service1"), ServiceConfig("service2")), timeout=2.0)
    assert engine.named("container_list") == [((project_filter(PROJECT),), True)]
    assert set(engine.named("container_stop")) == {("123", 2.0), ("456", 2.0), ("789", 2.0)}


def test_stop_skips_one_off_containers():
    engine = FakeEngine([make_container("service1", "123"), make_container("service1", "run1", True)])
    stop(engine, make_project(ServiceConfig("service1")))
    assert engine.named("container_stop") == [("123", None)]


def test_stop_reverse_dependency_order():
    project = make_project(
        ServiceConfig("web", depends_on={"db": ServiceDependency()}), ServiceConfig("db")
    )
    engine = FakeEngine([make_container("db", "d1"), make_container("web", "w1")])
    events = []
    stop(engine, project, on_event=events.append)
    assert [call[0] for call in engine.named("container_stop")] == ["w1", "d1"]
    assert [e.status for e in events].count(EventStatus.DONE) == 2


def test_stop_restricted_to_services():
    engine = FakeEngine([make_container("service1", "123"), make_container("service2", "789")])
    stop(engine, make_project(ServiceConfig("service1"), ServiceConfig("service2")), ["service2"])
    assert engine.named("container_stop") == [("789", None)]


def test_stop_rejects_cycles():
    project = make_project(
        ServiceConfig("a", depends_on={"b": ServiceDependency()}),
        ServiceConfig("b", depends_on={"a": ServiceDependency()}),
    )
    engine = FakeEngine([make_container("a", "1")])
    with pytest.raises(CycleError):
        stop(engine, project)
    assert engine.named("container_stop") == []