import threading

import pytest

from composeops.engine import (
    CONFIG_FILES_LABEL,
    ONEOFF_LABEL,
    PROJECT_LABEL,
    SERVICE_LABEL,
    WORKING_DIR_LABEL,
    Container,
    EventStatus,
    project_filter,
    service_filter,
)
from composeops.kill import kill

PROJECT = "testproject"


def make_container(service, container_id, one_off):
    labels = {
        SERVICE_LABEL: service,
        CONFIG_FILES_LABEL: "/work/testdata/compose.yaml",
        WORKING_DIR_LABEL: "/work/testdata",
        PROJECT_LABEL: PROJECT,
    }
    if one_off:
        labels[ONEOFF_LABEL] = "True"
    return Container(id=container_id, names=[container_id], labels=labels)


def _matches(container, filters):
    for key, value in filters:
        name, sep, expected = value.partition("=")
        if key == "label" and sep and container.labels.get(name) != expected:
            return False
    return True


class FakeEngine:
    def __init__(self, containers=(), failing=()):
        self.containers = list(containers)
        self.failing = set(failing)
        self.calls = []
        self._lock = threading.Lock()

    def named(self, op):
        return [call[1:] for call in self.calls if call[0] == op]

    def container_list(self, filters, all_containers=False):
        with self._lock:
            self.calls.append(("container_list", tuple(filters), all_containers))
        return [c for c in self.containers if _matches(c, filters)]

    def container_kill(self, container_id, signal=""):
        with self._lock:
            self.calls.append(("container_kill", container_id, signal))
        if container_id in self.failing:
            raise RuntimeError(f"cannot kill {container_id}")


def test_kill_all():
    engine = FakeEngine(
        [
            make_container("service1", "123", False),
            make_container("service1", "456", False),
            make_container("service2", "789", False),
        ]
    )
    kill(engine, "testProject")
    assert engine.named("container_list") == [((project_filter(PROJECT),), False)]
    assert set(engine.named("container_kill")) == {("123", ""), ("456", ""), ("789", "")}


def test_kill_signal():
    engine = FakeEngine(
        [make_container("service1", "123", False), make_container("service2", "456", False)]
    )
    kill(engine, PROJECT, services=["service1"], signal="SIGTERM")
    assert engine.named("container_list") == [
        ((project_filter(PROJECT), service_filter("service1")), False)
    ]
    assert engine.named("container_kill") == [("123", "SIGTERM")]


def test_kill_reports_events():
    engine = FakeEngine([make_container("service1", "123", False)])
    events = []
    kill(engine, PROJECT, on_event=events.append)
    assert [(e.status, e.text) for e in events] == [
        (EventStatus.WORKING, "Killing"),
        (EventStatus.DONE, "Killed"),
    ]


def test_kill_without_containers(capsys):
    engine = FakeEngine()
    kill(engine, PROJECT)
    assert capsys.readouterr().err == "no container to kill"
    assert engine.named("container_kill") == []


def test_kill_failure():
    engine = FakeEngine([make_container("service1", "123", False)], failing={"123"})
    events = []
    with pytest.raises(RuntimeError, match="cannot kill 123"):
        kill(engine, PROJECT, on_event=events.append)
    assert events[-1].status is EventStatus.ERROR
    assert events[-1].text == "Error while Killing"