from composeops.dependencies import Project, ServiceConfig
from composeops.run import RunOptions, apply_run_options, one_off_container_name


def _service():
    return ServiceConfig(
        "web",
        command=["serve"],
        entrypoint=["/bin/sh"],
        environment={"C": "service-c", "D": "service-d"},
        labels={"keep": "yes"},
        user="app",
        working_dir="/srv",
    )


def test_apply_run_options_overrides():
    project = Project(name="proj", services=[_service()])
    options = RunOptions(
        service="web",
        name="custom",
        command=["echo", "hi"],
        entrypoint=["/entry"],
        user="root",
        working_dir="/tmp",
        tty=True,
        interactive=True,
        labels={"extra": "1"},
    )
    result = apply_run_options(project, project.services[0], options)
    assert result.command == ["echo", "hi"]
    assert result.entrypoint == ["/entry"]
    assert result.user == "root"
    assert result.working_dir == "/tmp"
    assert result.tty is True
    assert result.stdin_open is True
    assert result.container_name == "custom"
    assert result.labels == {"keep": "yes", "extra": "1"}


def test_apply_run_options_keeps_service_values_when_unset():
    service = _service()
    project = Project(name="proj", services=[service])
    result = apply_run_options(project, service, RunOptions(service="web"))
    assert result.command == ["serve"]
    assert result.entrypoint == ["/bin/sh"]
    assert result.user == "app"
    assert result.working_dir == "/srv"
    assert result.container_name == ""
    assert result.environment == service.environment


def test_apply_run_options_environment_resolution():
    service = _service()
    project = Project(
        name="proj",
        services=[service],
        environment={"B": "project-b", "C": "project-c"},
    )
    options = RunOptions(service="web", environment=["A=1", "B", "C", "E", "D="])
    result = apply_run_options(project, service, options)
    assert result.environment == {"A": "1", "B": "project-b", "C": "service-c", "D": ""}


def test_apply_run_options_leaves_original_untouched():
    service = _service()
    project = Project(name="proj", services=[service], environment={"B": "x"})
    apply_run_options(
        project, service, RunOptions(service="web", environment=["B"], labels={"l": "v"})
    )
    assert service.environment == {"C": "service-c", "D": "service-d"}
    assert service.labels == {"keep": "yes"}


def test_one_off_container_name_truncates_slug():
    name = one_off_container_name("proj", "web", "0123456789abcdef")
    assert name == "proj_web_run_0123456789ab"
    assert name.startswith("proj_web_run_")