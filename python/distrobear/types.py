# SPDX-License-Identifier: BSD-2-Clause
# Copyright (c) deftio llc

from __future__ import annotations

import dataclasses
import enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import datetime
    from collections.abc import Iterable, Mapping


@dataclasses.dataclass(frozen=True)
class CommandSpec:
    """A program and its arguments, quoted per-argument before reaching the shell."""

    program: str
    args: tuple[str, ...] = ()
    env: Mapping[str, str] = dataclasses.field(default_factory=dict)
    cwd: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "args", tuple(str(a) for a in self.args))


@dataclasses.dataclass(frozen=True)
class CommandResult:
    """Result of a buffered command invocation."""

    exit_code: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        """Return True if the command exited successfully (exit code 0)."""
        return self.exit_code == 0


@dataclasses.dataclass(frozen=True)
class StreamChunk:
    """A fragment of streamed output."""

    text: str
    is_error: bool = False


class LogLevel(str, enum.Enum):
    INFO = "INFO"
    WARN = "WARN"
    ERROR = "ERROR"


@dataclasses.dataclass(frozen=True)
class LogEntry:
    """One entry of the diagnostic log."""

    timestamp: datetime.datetime
    level: LogLevel
    message: str
    details: str | None = None


@dataclasses.dataclass(frozen=True)
class ContainerRecord:
    """A sandbox container as shown in the container list."""

    name: str
    status: str
    image: str
    is_autostart_enabled: bool = False
    is_isolated: bool = True


class ContainerList(list):  # type: ignore[type-arg]
    """Ordered container records, flagged when the list output could not be parsed."""

    def __init__(self, items: Iterable[ContainerRecord] = (), *, degraded: bool = False) -> None:
        super().__init__(items)
        self.degraded = degraded


@dataclasses.dataclass(frozen=True)
class ContainerDetail:
    """Detailed view of a single container, built from ``inspect``."""

    id: str
    name: str
    image: str
    status: str
    created: str
    pid: int
    entrypoint: str
    backend: str
    size: str
    home_dir: str
    user_name: str
    hostname: str
    init: bool = False
    nvidia: bool = False
    root: bool = False
    volumes: tuple[str, ...] = ()


@dataclasses.dataclass(frozen=True)
class VolumeMapping:
    host_path: str
    container_path: str


@dataclasses.dataclass(frozen=True)
class CreateOptions:
    """Options for creating a new sandbox container."""

    name: str
    image: str
    init: bool = False
    nvidia: bool = False
    isolated: bool = False
    custom_home: str = ""
    volumes: tuple[VolumeMapping, ...] = ()


@dataclasses.dataclass(frozen=True)
class DependencyStatus:
    name: str
    is_installed: bool


@dataclasses.dataclass(frozen=True)
class DependencyReport:
    """Result of a dependency check."""

    dependencies: tuple[DependencyStatus, ...]
    needs_setup: bool


@dataclasses.dataclass(frozen=True)
class LocalImage:
    repository: str
    tag: str
    id: str
    size: str
    created: str


@dataclasses.dataclass(frozen=True)
class ExportableApplication:
    """A ``.desktop`` application found inside a container."""

    name: str
    app_name: str
    container_name: str
    is_exported: bool = False


@dataclasses.dataclass(frozen=True)
class ApplicationList:
    applications: tuple[ExportableApplication, ...] = ()
    unscanned_containers: tuple[str, ...] = ()


@dataclasses.dataclass(frozen=True)
class OperationResult:
    """Outcome of a user action that may legitimately do nothing."""

    success: bool
    message: str = ""


@dataclasses.dataclass(frozen=True)
class OSInfo:
    arch: str
    hostname: str
    platform: str
    release: str
    totalmem: int
    freemem: int


@dataclasses.dataclass(frozen=True)
class VersionInfo:
    distrobox: str
    podman: str
