"""Unit tests for containers.py with scripted distrobox/podman output."""

from __future__ import annotations

import json
from pathlib import Path
from typing import TYPE_CHECKING

import pytest
from distrobear._callbacks import CREATION_FEED, CallbackRegistry
from distrobear.autostart import AutostartManager
from distrobear.containers import ContainerService, create_args, terminal_argv
from distrobear.errors import (
    CommandFailed,
    InvalidName,
    NoRuntimeFound,
    OperationFailed,
    TerminalNotFound,
)
from distrobear.resolver import DependencyResolver
from distrobear.types import CommandResult, CommandSpec, CreateOptions, VolumeMapping

from .conftest import messages

if TYPE_CHECKING:
    from collections.abc import Callable

    from distrobear._diagnostics import DiagnosticLog

    from .conftest import FakeExecutor

_LIST = (
    "ID           | NAME        | STATUS                | IMAGE\n"
    "0a1b2c3d4e5f | fedora-dev  | Up 2 hours            | registry.fedoraproject.org/fedora:39\n"
    "9f8e7d6c5b4a | ubuntu-lts  | Exited (0) 1 day ago  | docker.io/library/ubuntu:22.04\n"
)


@pytest.fixture
def callbacks() -> CallbackRegistry:
    return CallbackRegistry()


@pytest.fixture
def service(
    fake: FakeExecutor,
    log: DiagnosticLog,
    callbacks: CallbackRegistry,
    tools: Callable[..., None],
    tmp_path: Path,
) -> ContainerService:
    tools("podman")
    resolver = DependencyResolver(fake, environ={})  # type: ignore[arg-type]
    units = tmp_path / "units"
    autostart = AutostartManager(fake, resolver, log, unit_dir=units)  # type: ignore[arg-type]
    return ContainerService(fake, resolver, autostart, log, callbacks)  # type: ignore[arg-type]


def _inspect_with_home(home: Path, isolated: set[str]) -> Callable[[CommandSpec], CommandResult]:
    def respond(spec: CommandSpec) -> CommandResult:
        name = spec.args[-1]
        source = "/srv/elsewhere" if name in isolated else str(home)
        mounts = [{"Type": "bind", "Source": source, "Destination": str(home)}]
        return CommandResult(0, stdout=json.dumps([{"Id": f"{name}-id", "Mounts": mounts}]))

    return respond


# --- Helpers ---


@pytest.mark.parametrize(
    ("terminal", "expected"),
    [
        ("ptyxis", ["ptyxis", "--new-window", "--", "bash", "-l", "-c", "distrobox enter a"]),
        (
            "gnome-terminal",
            ["gnome-terminal", "--window", "--", "bash", "-l", "-c", "distrobox enter a"],
        ),
        ("konsole", ["konsole", "--separate", "-e", "bash", "-l", "-c", "distrobox enter a"]),
        ("kitty", ["kitty", "-e", 'bash -l -c "distrobox enter a"']),
    ],
)
def test_terminal_argv(terminal: str, expected: list[str]) -> None:
    assert terminal_argv(terminal, "distrobox enter a") == expected


def test_create_args_minimal() -> None:
    options = CreateOptions(name="dev", image="fedora:39")
    assert create_args(options) == ["create", "--name", "dev", "--image", "fedora:39"]


def test_create_args_all_flags(home: Path) -> None:
    options = CreateOptions(
        name="dev",
        image="fedora:39",
        init=True,
        nvidia=True,
        isolated=True,
        volumes=(VolumeMapping("/data", "/mnt/data"), VolumeMapping("", "/ignored")),
    )
    expected_home = home / ".local" / "share" / "distrobox" / "homes" / "dev"
    assert create_args(options) == [
        "create", "--name", "dev", "--image", "fedora:39", "--init", "--nvidia",
        "--home", str(expected_home), "--volume", "/data:/mnt/data",
    ]  # fmt: skip


def test_create_args_custom_home_sanitized() -> None:
    options = CreateOptions(name="dev", image="alpine", isolated=True, custom_home="/srv/$(id)h")
    assert create_args(options)[-2:] == ["--home", "/srv/idh"]


def test_create_args_invalid_name() -> None:
    with pytest.raises(InvalidName):
        create_args(CreateOptions(name="$$$", image="alpine"))


# --- list_containers ---


async def test_list_joins_autostart_and_isolation(
    service: ContainerService, fake: FakeExecutor, home: Path
) -> None:
    fake.on("distrobox", "list", stdout=_LIST)
    fake.on("podman", "inspect", respond=_inspect_with_home(home, isolated={"ubuntu-lts"}))
    fake.on("systemctl", "--user", "is-enabled", exit_code=1)
    fake.on("systemctl", "--user", "is-enabled", "--quiet", "container-fedora-dev.service")

    items = await service.list_containers()

    assert not items.degraded
    assert [(c.name, c.status, c.image) for c in items] == [
        ("fedora-dev", "Up 2 hours", "registry.fedoraproject.org/fedora:39"),
        ("ubuntu-lts", "Exited (0) 1 day ago", "docker.io/library/ubuntu:22.04"),
    ]
    assert [c.is_autostart_enabled for c in items] == [True, False]
    assert [c.is_isolated for c in items] == [False, True]
    assert ("distrobox", "list", "--no-color") in fake.commands()


async def test_list_degraded_header(
    service: ContainerService, fake: FakeExecutor, log: DiagnosticLog
) -> None:
    fake.on("distrobox", "list", stdout="NAME   STATE\nbox    up\n")
    items = await service.list_containers()
    assert items.degraded
    assert list(items) == []
    (warning,) = [e for e in log.snapshot() if e.message.startswith("ParseDegraded")]
    assert warning.details == "NAME   STATE"


async def test_list_inspect_failure_assumes_isolated(
    service: ContainerService, fake: FakeExecutor, log: DiagnosticLog, home: Path
) -> None:
    fake.on("distrobox", "list", stdout=_LIST)
    fake.on("podman", "inspect", exit_code=125, stderr="no such container")
    items = await service.list_containers()
    assert all(c.is_isolated for c in items)
    assert any("Assuming isolated" in m for m in messages(log, "WARN"))


async def test_list_command_failure(service: ContainerService, fake: FakeExecutor) -> None:
    fake.on("distrobox", "list", exit_code=1, stderr="distrobox: command not found")
    with pytest.raises(OperationFailed, match="Failed to list containers: distrobox"):
        await service.list_containers()


async def test_list_without_runtime(
    fake: FakeExecutor, log: DiagnosticLog, callbacks: CallbackRegistry, tmp_path: Path
) -> None:
    resolver = DependencyResolver(fake, environ={})  # type: ignore[arg-type]
    autostart = AutostartManager(fake, resolver, log, unit_dir=tmp_path)  # type: ignore[arg-type]
    service = ContainerService(fake, resolver, autostart, log, callbacks)  # type: ignore[arg-type]
    with pytest.raises(NoRuntimeFound):
        await service.list_containers()
    assert fake.calls == []


# --- info ---


async def test_info(service: ContainerService, fake: FakeExecutor, home: Path) -> None:
    inspect = {
        "Id": "abcdef0123456789",
        "Name": "dev",
        "State": {"Status": "running", "Pid": 10},
        "Config": {"Image": "fedora:39", "User": "me"},
        "Mounts": [{"Type": "bind", "Source": str(home), "Destination": str(home)}],
    }
    fake.on("podman", "inspect", stdout=json.dumps([inspect]))
    fake.on("podman", "ps", stdout="12.3MB (virtual 400MB)")

    detail = await service.info("dev")

    assert detail.id == "abcdef012345"
    assert detail.backend == "podman"
    assert detail.size == "12.3MB (virtual 400MB)"
    assert detail.home_dir.endswith("(from Host)")
    assert (
        "podman", "ps", "-a", "--filter", "id=abcdef0123456789", "--format", "{{.Size}}"
    ) in fake.commands()  # fmt: skip


async def test_info_not_found(service: ContainerService, fake: FakeExecutor) -> None:
    fake.on("podman", "inspect", stdout="")
    with pytest.raises(OperationFailed, match='Failed to get info for container "ghost"'):
        await service.info("ghost")


# --- Lifecycle ---


async def test_start(service: ContainerService, fake: FakeExecutor) -> None:
    await service.start("dev")
    assert fake.commands() == [("distrobox", "enter", "dev", "--", "/bin/true")]


async def test_stop(service: ContainerService, fake: FakeExecutor) -> None:
    await service.stop("dev")
    assert fake.commands() == [("distrobox", "stop", "--yes", "dev")]


async def test_delete_logs_destructive_action(
    service: ContainerService, fake: FakeExecutor, log: DiagnosticLog
) -> None:
    await service.delete("dev")
    assert fake.commands() == [("distrobox", "rm", "--yes", "dev")]
    assert any(m.startswith("DESTRUCTIVE ACTION") for m in messages(log, "WARN"))


async def test_delete_failure_message(service: ContainerService, fake: FakeExecutor) -> None:
    fake.on("distrobox", "rm", exit_code=1, stderr="container is running")
    with pytest.raises(OperationFailed) as exc_info:
        await service.delete("dev")
    assert str(exc_info.value) == 'Failed to delete container "dev": container is running'


async def test_lifecycle_sanitizes_name(service: ContainerService, fake: FakeExecutor) -> None:
    await service.stop("dev; reboot")
    assert fake.commands() == [("distrobox", "stop", "--yes", "devreboot")]


async def test_lifecycle_rejects_empty_name(service: ContainerService, fake: FakeExecutor) -> None:
    with pytest.raises(InvalidName, match="Invalid container name provided."):
        await service.start("&&")
    assert fake.calls == []


async def test_commit(service: ContainerService, fake: FakeExecutor) -> None:
    reference = await service.commit("dev", "my/snapshot", "v1")
    assert reference == "my/snapshot:v1"
    assert fake.commands() == [("podman", "commit", "dev", "my/snapshot:v1")]


# --- enter ---


async def test_enter_opens_terminal(
    service: ContainerService, fake: FakeExecutor, tools: Callable[..., None]
) -> None:
    tools("konsole")
    assert await service.enter("dev") == "konsole"
    assert fake.detached == [
        ["konsole", "--separate", "-e", "bash", "-l", "-c", "distrobox enter dev"]
    ]


async def test_enter_without_terminal(service: ContainerService, fake: FakeExecutor) -> None:
    with pytest.raises(TerminalNotFound):
        await service.enter("dev")
    assert fake.detached == []


# --- create ---


async def test_create_streams_to_feed(
    service: ContainerService, fake: FakeExecutor, callbacks: CallbackRegistry
) -> None:
    received: list[object] = []
    callbacks.subscribe(CREATION_FEED, received.append)
    fake.on("distrobox", "create", stdout="Creating 'dev' using image alpine\n")

    await service.create(CreateOptions(name="dev", image="alpine", init=True))

    assert fake.streamed[0].args == ("create", "--name", "dev", "--image", "alpine", "--init")
    assert received[0] == '--- Starting creation of container "dev" ---\n'
    assert "Creating 'dev' using image alpine\n" in received
    assert received[-1] == '\n--- Container "dev" created successfully! ---\n'


async def test_create_failure(
    service: ContainerService,
    fake: FakeExecutor,
    callbacks: CallbackRegistry,
    log: DiagnosticLog,
) -> None:
    received: list[object] = []
    callbacks.subscribe(CREATION_FEED, received.append)
    fake.on("distrobox", "create", exit_code=1, stderr="Error: image not known")

    with pytest.raises(CommandFailed):
        await service.create(CreateOptions(name="dev", image="nope"))

    assert "Error: image not known" in received
    assert str(received[-1]).startswith("\n--- ERROR: Failed to create container")
    assert any('creation failed for "dev"' in m for m in messages(log, "ERROR"))
