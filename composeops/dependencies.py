"""Service dependency graph and ordered, concurrent traversal of a project."""

from __future__ import annotations

import enum
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Mapping


class ServiceStatus(enum.IntEnum):
    """Status of a service while the dependency graph is walked."""

    STOPPED = 0
    STARTED = 1


@dataclass(frozen=True)
class ServiceDependency:
    """How a service depends on another one."""

    condition: str = ""


@dataclass
class ServiceConfig:
    """Configuration of a single service of a project."""

    name: str
    image: str = ""
    build: Mapping[str, Any] | None = None
    pull_policy: str = ""
    platform: str = ""
    scale: int = 1
    depends_on: dict[str, ServiceDependency] = field(default_factory=dict)
    command: list[str] = field(default_factory=list)
    entrypoint: list[str] | None = None
    environment: dict[str, str | None] = field(default_factory=dict)
    labels: dict[str, str] = field(default_factory=dict)
    custom_labels: dict[str, str] = field(default_factory=dict)
    user: str = ""
    working_dir: str = ""
    tty: bool = False
    stdin_open: bool = False
    container_name: str = ""
    restart: str = ""

    def dependencies(self) -> list[str]:
        """Names of the services this one depends on."""
        return list(self.depends_on)


@dataclass
class Project:
    """A compose project: its services and the resources it owns.

    ``networks`` and ``volumes`` map a key to a mapping holding at least
    ``name`` and optionally ``external``.
    """

    name: str = ""
    services: list[ServiceConfig] = field(default_factory=list)
    environment: dict[str, str] = field(default_factory=dict)
    networks: dict[str, Mapping[str, Any]] = field(default_factory=dict)
    volumes: dict[str, Mapping[str, Any]] = field(default_factory=dict)

    def service_names(self) -> list[str]:
        return [service.name for service in self.services]

    def get_service(self, name: str) -> ServiceConfig:
        for service in self.services:
            if service.name == name:
                return service
        raise KeyError(f"no such service: {name}")


class CycleError(Exception):
    """Raised when the service dependencies form a cycle."""

    def __init__(self, path: list[str]):
        super().__init__(f"cycle found: {' -> '.join(path)}")
        self.path = path


@dataclass(eq=False)
class Vertex:
    """A service in the dependency graph."""

    key: str
    service: str
    status: ServiceStatus
    children: dict[str, Vertex] = field(default_factory=dict)
    parents: dict[str, Vertex] = field(default_factory=dict)

    def get_parents(self) -> list[Vertex]:
        return list(self.parents.values())

    def get_children(self) -> list[Vertex]:
        return list(self.children.values())


class Graph:
    """Dependency graph: an edge goes from a service to one it depends on."""

    def __init__(self) -> None:
        self.vertices: dict[str, Vertex] = {}
        self._lock = threading.RLock()

    @classmethod
    def from_services(
        cls, services: Iterable[ServiceConfig], initial_status: ServiceStatus
    ) -> Graph:
        services = list(services)
        graph = cls()
        for service in services:
            graph.add_vertex(service.name, service.name, initial_status)
        for service in services:
            for name in service.dependencies():
                try:
                    graph.add_edge(service.name, name)
                except KeyError:
                    pass
        return graph

    def add_vertex(self, key: str, service: str, initial_status: ServiceStatus) -> None:
        with self._lock:
            self.vertices[key] = Vertex(key, service, initial_status)

    def add_edge(self, source: str, destination: str) -> None:
        """Record that ``source`` depends on ``destination``."""
        with self._lock:
            source_vertex = self.vertices.get(source)
            destination_vertex = self.vertices.get(destination)
            if source_vertex is None:
                raise KeyError(f"could not find {source}")
            if destination_vertex is None:
                raise KeyError(f"could not find {destination}")
            if destination in source_vertex.children:
                return
            source_vertex.children[destination] = destination_vertex
            destination_vertex.parents[source] = source_vertex

    def leaves(self) -> list[Vertex]:
        """Vertices that depend on nothing."""
        with self._lock:
            return [v for v in self.vertices.values() if not v.children]

    def roots(self) -> list[Vertex]:
        """Vertices nothing depends on."""
        with self._lock:
            return [v for v in self.vertices.values() if not v.parents]

    def update_status(self, key: str, status: ServiceStatus) -> None:
        with self._lock:
            self.vertices[key].status = status

    def filter_children(self, key: str, status: ServiceStatus) -> list[Vertex]:
        with self._lock:
            return [c for c in self.vertices[key].children.values() if c.status == status]

    def filter_parents(self, key: str, status: ServiceStatus) -> list[Vertex]:
        with self._lock:
            return [p for p in self.vertices[key].parents.values() if p.status == status]

    def check_cycles(self) -> None:
        """Raise CycleError if the graph holds a cycle."""
        with self._lock:
            discovered: set[str] = set()
            finished: set[str] = set()
            for key in self.vertices:
                if key not in discovered and key not in finished:
                    self._visit(key, [key], discovered, finished)

    def has_cycles(self) -> bool:
        try:
            self.check_cycles()
        except CycleError:
            return True
        return False

    def _visit(self, key: str, path: list[str], discovered: set[str], finished: set[str]) -> None:
        discovered.add(key)
        for child in self.vertices[key].children:
            child_path = [*path, child]
            if child in discovered:
                raise CycleError(child_path)
            if child not in finished:
                self._visit(child, child_path, discovered, finished)
        discovered.discard(key)
        finished.add(key)


@dataclass(frozen=True)
class _Traversal:
    extremities: Callable[[Graph], list[Vertex]]
    adjacent: Callable[[Vertex], list[Vertex]]
    neighbours_in_status: Callable[[Graph, str, ServiceStatus], list[Vertex]]
    status_to_wait_for: ServiceStatus
    target_status: ServiceStatus


_UP = _Traversal(
    extremities=Graph.leaves,
    adjacent=Vertex.get_parents,
    neighbours_in_status=Graph.filter_children,
    status_to_wait_for=ServiceStatus.STOPPED,
    target_status=ServiceStatus.STARTED,
)

_DOWN = _Traversal(
    extremities=Graph.roots,
    adjacent=Vertex.get_children,
    neighbours_in_status=Graph.filter_parents,
    status_to_wait_for=ServiceStatus.STARTED,
    target_status=ServiceStatus.STOPPED,
)


class _Walk:
    """Runs a function on each vertex in its own thread once its neighbours are done."""

    def __init__(self, graph: Graph, traversal: _Traversal, fn: Callable[[str], Any]):
        self._graph = graph
        self._traversal = traversal
        self._fn = fn
        self._cond = threading.Condition()
        self._pending = 0
        self._scheduled: set[str] = set()
        self._error: Exception | None = None

    def schedule(self, nodes: Iterable[Vertex]) -> None:
        for node in nodes:
            waiting = self._traversal.neighbours_in_status(
                self._graph, node.key, self._traversal.status_to_wait_for
            )
            if waiting:
                continue
            with self._cond:
                if node.key in self._scheduled:
                    continue
                self._scheduled.add(node.key)
                self._pending += 1
            threading.Thread(target=self._run, args=(node,), daemon=True).start()

    def _run(self, node: Vertex) -> None:
        try:
            self._fn(node.service)
            self._graph.update_status(node.key, self._traversal.target_status)
            self.schedule(self._traversal.adjacent(node))
        except Exception as exc:  # first failure is reported by wait()
            with self._cond:
                if self._error is None:
                    self._error = exc
        finally:
            with self._cond:
                self._pending -= 1
                if self._pending == 0:
                    self._cond.notify_all()

    def wait(self) -> None:
        with self._cond:
            self._cond.wait_for(lambda: self._pending == 0)
            error = self._error
        if error is not None:
            raise error


def _walk(
    project: Project,
    traversal: _Traversal,
    fn: Callable[[str], Any],
    initial_status: ServiceStatus,
) -> None:
    graph = Graph.from_services(project.services, initial_status)
    graph.check_cycles()
    walk = _Walk(graph, traversal, fn)
    walk.schedule(traversal.extremities(graph))
    walk.wait()


def in_dependency_order(project: Project, fn: Callable[[str], Any]) -> None:
    """Call ``fn`` on every service name, dependencies before dependents."""
    _walk(project, _UP, fn, ServiceStatus.STOPPED)


def in_reverse_dependency_order(project: Project, fn: Callable[[str], Any]) -> None:
    """Call ``fn`` on every service name, dependents before dependencies."""
    _walk(project, _DOWN, fn, ServiceStatus.STARTED)