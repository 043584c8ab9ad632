"""Unit tests for system.py."""

from __future__ import annotations

from typing import TYPE_CHECKING

from distrobear.resolver import DependencyResolver
from distrobear.system import NOT_FOUND, SystemService, os_info
from distrobear.types import DependencyStatus

from .conftest import messages

if TYPE_CHECKING:
    from collections.abc import Callable

    from distrobear._diagnostics import DiagnosticLog

    from .conftest import FakeExecutor


def _service(fake: FakeExecutor, log: DiagnosticLog) -> SystemService:
    resolver = DependencyResolver(fake, environ={})  # type: ignore[arg-type]
    return SystemService(fake, resolver, log)  # type: ignore[arg-type]


# --- check_dependencies ---


async def test_all_dependencies_present(
    fake: FakeExecutor, log: DiagnosticLog, tools: Callable[..., None]
) -> None:
    tools("distrobox", "podman")
    report = await _service(fake, log).check_dependencies()
    assert report.needs_setup is False
    assert report.dependencies == (
        DependencyStatus("distrobox", is_installed=True),
        DependencyStatus("podman", is_installed=True),
    )


async def test_runtime_missing_needs_setup(
    fake: FakeExecutor, log: DiagnosticLog, tools: Callable[..., None]
) -> None:
    tools("distrobox")
    report = await _service(fake, log).check_dependencies()
    assert report.needs_setup is True
    assert DependencyStatus("podman", is_installed=False) in report.dependencies
    assert DependencyStatus("distrobox", is_installed=True) in report.dependencies


async def test_nothing_installed(fake: FakeExecutor, log: DiagnosticLog) -> None:
    report = await _service(fake, log).check_dependencies()
    assert report.needs_setup is True
    assert not any(d.is_installed for d in report.dependencies)


# --- versions ---


async def test_versions(fake: FakeExecutor, log: DiagnosticLog) -> None:
    fake.on("distrobox", "--version", stdout="distrobox version: 1.8.0")
    fake.on("podman", "--version", stdout="podman version 5.2.2")
    versions = await _service(fake, log).versions()
    assert versions.distrobox == "1.8.0"
    assert versions.podman == "5.2.2"


async def test_version_not_found(fake: FakeExecutor, log: DiagnosticLog) -> None:
    fake.on("distrobox", "--version", exit_code=127, stderr="distrobox: command not found")
    fake.on("podman", "--version", stdout="podman version 4.9.3")
    versions = await _service(fake, log).versions()
    assert versions.distrobox == NOT_FOUND
    assert versions.podman == "4.9.3"
    assert any("distrobox" in m for m in messages(log, "WARN"))


# --- os_info / terminal ---


def test_os_info() -> None:
    info = os_info()
    assert info.hostname
    assert info.arch
    assert info.totalmem >= info.freemem >= 0


async def test_terminal(
    fake: FakeExecutor, log: DiagnosticLog, tools: Callable[..., None]
) -> None:
    assert await _service(fake, log).terminal() is None
    tools("xfce4-terminal")
    assert await _service(fake, log).terminal() == "xfce4-terminal"
