import threading

import pytest

from composeops.engine import (
    ONEOFF_LABEL,
    PROJECT_LABEL,
    SERVICE_LABEL,
    Container,
    EventStatus,
    one_off_filter,
    project_filter,
    service_filter,
)
from composeops.pause import pause, unpause

PROJECT = "testproject"


def make_container(service, container_id):
    labels = {SERVICE_LABEL: service, PROJECT_LABEL: PROJECT, ONEOFF_LABEL: "False"}
    return Container(id=container_id, names=[container_id], labels=labels)


class FakeEngine:
    def __init__(self, containers=(), failing=()):
        self.containers = list(containers)
        self.failing = set(failing)
        self.calls = []
        self._lock = threading.Lock()

    def named(self, op):
        return [call[1:] for call in self.calls if call[0] == op]

    def _record(self, op, container_id):
        with self._lock:
            self.calls.append((op, container_id))
        if container_id in self.failing:
            raise RuntimeError(f"{op} failed")

    def container_list(self, filters, all_containers=False):
        with self._lock:
            self.calls.append(("container_list", tuple(filters), all_containers))
        result = list(self.containers)
        for key, value in filters:
            name, sep, expected = value.partition("=")
            if key == "label" and sep:
                result = [c for c in result if c.labels.get(name) == expected]
        return result

    def container_pause(self, container_id):
        self._record("container_pause", container_id)

    def container_unpause(self, container_id):
        self._record("container_unpause", container_id)


def test_pause_all_service_containers():
    engine = FakeEngine([make_container("s1", "a"), make_container("s2", "b")])
    events = []
    pause(engine, "TestProject", on_event=events.append)
    assert engine.named("container_list") == [
        ((project_filter(PROJECT), one_off_filter(False)), False)
    ]
    assert set(engine.named("container_pause")) == {("a",), ("b",)}
    assert {e.text for e in events} == {"Paused"}
    assert all(e.status is EventStatus.DONE for e in events)
    assert len(events) == 2


def test_unpause_single_service():
    engine = FakeEngine([make_container("s1", "a"), make_container("s2", "b")])
    events = []
    unpause(engine, PROJECT, services=["s2"], on_event=events.append)
    assert engine.named("container_list") == [
        ((project_filter(PROJECT), one_off_filter(False), service_filter("s2")), False)
    ]
    assert engine.named("container_unpause") == [("b",)]
    assert [e.text for e in events] == ["Unpaused"]
    assert events[0].id.endswith("b")


def test_pause_failure_propagates_without_event():
    engine = FakeEngine([make_container("s1", "a")], failing={"a"})
    events = []
    with pytest.raises(RuntimeError, match="container_pause failed"):
        pause(engine, PROJECT, on_event=events.append)
    assert events == []


def test_pause_nothing_to_do():
    engine = FakeEngine()
    pause(engine, PROJECT)
    assert engine.named("container_pause") == []
    assert len(engine.named("container_list")) == 1