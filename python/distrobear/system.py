# SPDX-License-Identifier: BSD-2-Clause
# Copyright (c) deftio llc

"""Host facts: required-dependency status, tool versions and OS information."""

from __future__ import annotations

import asyncio
import os
import platform
import socket
import sys
from typing import TYPE_CHECKING

from distrobear._parser import parse_version
from distrobear.errors import CommandError
from distrobear.types import CommandSpec, DependencyReport, DependencyStatus, OSInfo, VersionInfo

if TYPE_CHECKING:
    from distrobear._diagnostics import DiagnosticLog
    from distrobear._executor import CommandExecutor
    from distrobear.resolver import DependencyResolver

NOT_FOUND = "Not Found"


def _memory() -> tuple[int, int]:
    """Return ``(total, available)`` physical memory in bytes, 0 when unknown."""
    try:
        page = os.sysconf("SC_PAGE_SIZE")
        return page * os.sysconf("SC_PHYS_PAGES"), page * os.sysconf("SC_AVPHYS_PAGES")
    except (ValueError, OSError, AttributeError):
        return 0, 0


def os_info() -> OSInfo:
    total, free = _memory()
    return OSInfo(
        arch=platform.machine(),
        hostname=socket.gethostname(),
        platform=sys.platform,
        release=platform.release(),
        totalmem=total,
        freemem=free,
    )


class SystemService:
    """Dependency checks and version reporting."""

    def __init__(
        self,
        executor: CommandExecutor,
        resolver: DependencyResolver,
        log: DiagnosticLog,
        *,
        manager: str = "distrobox",
        runtime: str = "podman",
    ) -> None:
        self._executor = executor
        self._resolver = resolver
        self._log = log
        self._manager = manager
        self._runtime = runtime

    async def check_dependencies(self) -> DependencyReport:
        """Report which required tools are installed.

        ``needs_setup`` is True when the sandbox manager or the runtime is missing.
        """
        names = (self._manager, self._runtime)
        found = await asyncio.gather(*(self._resolver.command_exists(n) for n in names))
        statuses = tuple(
            DependencyStatus(name=name, is_installed=ok)
            for name, ok in zip(names, found, strict=True)
        )
        return DependencyReport(dependencies=statuses, needs_setup=not all(found))

    async def _version(self, program: str, pattern: str) -> str:
        try:
            result = await self._executor.run(CommandSpec(program, ("--version",)))
        except CommandError as exc:
            self._log.warn(f"Could not get version for {program}.", str(exc))
            return NOT_FOUND
        return parse_version(result.stdout, pattern)

    async def versions(self) -> VersionInfo:
        manager, runtime = await asyncio.gather(
            self._version(self._manager, r"distrobox version: (\S+)"),
            self._version(self._runtime, r"version (\S+)"),
        )
        return VersionInfo(distrobox=manager, podman=runtime)

    def os_info(self) -> OSInfo:
        return os_info()

    async def terminal(self) -> str | None:
        """Return the terminal emulator that ``enter`` would use, if any."""
        return await self._resolver.detect_terminal_emulator()
