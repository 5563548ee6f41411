# composeops

`composeops` runs lifecycle operations on a multi-container application
project: start, stop, restart, kill, pause and unpause, down, remove, logs,
ps, top, images, port, exec, pull and push. It needs no third-party
libraries. Every operation talks to the container engine through a client
object that you supply. That object must provide the methods of the
`EngineClient` protocol in `composeops.engine`.

## Installation

```
pip install composeops
```

To run the test suite:

```
pip install "composeops[test]"
pytest
```

## Concepts

- A `Project` (from `composeops.dependencies`) holds `ServiceConfig` entries.
  A service lists the services it depends on in `depends_on`, a mapping from
  service name to `ServiceDependency`.
- `in_dependency_order(project, fn)` calls `fn(service_name)` for a service
  once every service it depends on is done. It runs independent services in
  parallel threads. `in_reverse_dependency_order(project, fn)` works the
  other way round. Both raise `CycleError` when the dependencies form a loop.
  A failure in `fn` is raised again once the walk has finished.
- `Graph` is the dependency graph behind these functions. Call
  `Graph.from_services(...)` to build one, then use `leaves()`, `roots()` and
  `has_cycles()`.
- Containers belong to a project through labels. `composeops.engine` builds
  the label filters (`project_filter`, `service_filter`, `one_off_filter`,
  `container_number_filter`, `has_project_label_filter`), and
  `list_containers` runs them through the client.

## Example

```python
from composeops.dependencies import Project, ServiceConfig, ServiceDependency, in_dependency_order

project = Project(
    name="shop",
    services=[
        ServiceConfig(name="web", depends_on={"db": ServiceDependency()}),
        ServiceConfig(name="db"),
    ],
)

in_dependency_order(project, lambda name: print("starting", name))
# starting db
# starting web
```

Every operation takes the engine client as its first argument. `down`,
`stop`, `start`, `restart`, `kill`, `pause`, `unpause`, `remove`, `pull` and
`push` report progress through an optional `on_event` callback. The callback
receives `ProgressEvent` values.

```python
from composeops.down import DownOptions, down
from composeops.ps import ps

for summary in ps(client, "shop"):
    print(summary.name, summary.state, summary.health, summary.exit_code)

down(client, "shop", options=DownOptions(remove_orphans=True, volumes=True), on_event=print)
```

To list every project that has containers on the engine:

```python
from composeops.ls import list_stacks

for stack in list_stacks(client, all_containers=True):
    print(stack.name, stack.status, stack.config_files)
```

## Modules

- `composeops.down`: `down` stops and removes the containers of a project,
  in reverse dependency order. It then removes the project's non-external
  networks, removes images when `DownOptions.images` is `"local"` or
  `"all"`, and removes volumes when `DownOptions.volumes` is set.
- `composeops.stop`, `composeops.restart`, `composeops.kill`,
  `composeops.pause`: stop, restart, signal, or pause and unpause containers.
- `composeops.start`: `start` starts containers that already exist, in
  dependency order. The client must also provide `container_start`.
  - With `StartOptions.listener`, `start` follows container exits through
    engine events (`watch_containers`).
  - With `StartOptions.wait`, it waits until every service is running,
    healthy or completed.
- `composeops.remove`: `remove` deletes stopped containers. It asks
  `confirm` (a terminal prompt by default) unless `force` is set.
- `composeops.logs`: `logs` passes container output to a `LogConsumer`.
  With `LogOptions.follow` it keeps following the containers until they exit.
- `composeops.printer`: `LogPrinter` sends container events and log lines to
  a `LogConsumer`. It supports cascade stop and choosing the exit code by
  service.
- `composeops.events`: `stream_events` turns engine events into project
  `Event` values.
- `composeops.ps`, `composeops.top`, `composeops.images`, `composeops.port`:
  container summaries, process tables, image summaries, and the public
  address of a published port.
- `composeops.exec`: `exec_in_container` runs a command in a service
  container through the client's `container_exec`.
- `composeops.pull` and `composeops.push`:
  - `pull` fetches service images according to each service's pull policy.
  - `pull_required_images` pulls only the missing ones.
  - `push` uploads the images of services that have a build section.
- `composeops.secrets`: `inject_secrets` copies secrets read from
  environment variables into a container as a tar archive (`create_tar`).
- `composeops.run`: `apply_run_options` returns a service configuration with
  the overrides for a one-off run. `one_off_container_name` gives the default
  name of such a container.
- `composeops.hash`: `service_hash` is a SHA-256 digest of a service
  configuration. Build settings, pull policy and scale are left out.
- `composeops.metrics`: `by_exit_code` maps an exit code to a
  `FailureCategory`, for example 14 for a missing file or 18 for a pull
  failure. `ComposeError.metrics_failure_category()` gives the category an
  error carries.

## What the package does not do

- It has no command-line program. It is a library to call from Python.
- It does not read or parse compose files. You build `Project` and
  `ServiceConfig` objects yourself.
- It ships no engine client. You provide the object that talks to the
  container engine.
- It does not create containers, build images, or do "up". `start` works only
  on containers that already exist, and `composeops.run` only prepares the
  configuration of a one-off container; it does not create or start one.