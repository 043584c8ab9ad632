# SPDX-License-Identifier: BSD-2-Clause
# Copyright (c) deftio llc

"""Discover ``.desktop`` applications inside containers and export them to the host."""

from __future__ import annotations

import asyncio
import contextlib
from pathlib import PurePosixPath
from typing import TYPE_CHECKING

from distrobear._executor import quote_arg
from distrobear._helpers import host_applications_dir, sanitize_app, sanitize_name
from distrobear._parser import desktop_entry_value, split_tab_rows
from distrobear.errors import CommandError, DistroBearError, OperationFailed
from distrobear.types import ApplicationList, CommandSpec, ExportableApplication

if TYPE_CHECKING:
    from collections.abc import Collection
    from pathlib import Path

    from distrobear._diagnostics import DiagnosticLog
    from distrobear._executor import CommandExecutor
    from distrobear.resolver import DependencyResolver

CONTAINER_MARKER = "X-Distrobox-Container"

_PS_ARGS = (
    "ps", "-a", "--filter", "label=manager=distrobox", "--format", "{{.Names}}\t{{.Status}}"
)

_FIND_DESKTOP_FILES = (
    "find /usr/share/applications /usr/local/share/applications ~/.local/share/applications "
    "-path '*/.local/share/applications' -prune -o -name '*.desktop' -type f -print 2>/dev/null"
)


class ApplicationService:
    """Lists and (un)exports container applications through ``distrobox-export``."""

    def __init__(  # noqa: PLR0913
        self,
        executor: CommandExecutor,
        resolver: DependencyResolver,
        log: DiagnosticLog,
        *,
        manager: str = "distrobox",
        applications_dir: Path | None = None,
        poll_attempts: int = 20,
        poll_interval: float = 0.05,
    ) -> None:
        self._executor = executor
        self._resolver = resolver
        self._log = log
        self._manager = manager
        self._applications_dir = (
            applications_dir if applications_dir is not None else host_applications_dir()
        )
        self._poll_attempts = poll_attempts
        self._poll_interval = poll_interval

    @property
    def applications_dir(self) -> Path:
        return self._applications_dir

    def host_exported(self) -> dict[str, set[str]]:
        """Map container name to the launcher file names exported from it."""
        exported: dict[str, set[str]] = {}
        try:
            files = sorted(self._applications_dir.glob("*.desktop"))
        except OSError as exc:
            self._log.error(
                f"Could not read host application directory: {self._applications_dir}", str(exc)
            )
            return exported
        for path in files:
            try:
                content = path.read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError):
                self._log.warn(f"Could not read or parse host app file: {path}")
                continue
            container = desktop_entry_value(content, CONTAINER_MARKER)
            if container:
                exported.setdefault(container, set()).add(path.name)
        return exported

    async def list_applications(self) -> ApplicationList:
        """List exportable applications of every running container.

        Stopped containers are not scanned; their names are reported in
        ``unscanned_containers``.
        """
        runtime = await self._resolver.get_container_runtime()
        try:
            result = await self._executor.run(CommandSpec(runtime, _PS_ARGS))
            rows = split_tab_rows(result.stdout, 2)
        except CommandError as exc:
            self._log.warn("Could not list containers for application scan.", str(exc))
            rows = []

        running = [name for name, status in rows if status.lower().startswith("up")]
        unscanned = tuple(name for name, status in rows if not status.lower().startswith("up"))
        if not running:
            return ApplicationList(unscanned_containers=unscanned)

        exported = self.host_exported()
        nested = await asyncio.gather(
            *(self._container_apps(name, exported.get(name, set())) for name in running)
        )
        apps = sorted((app for group in nested for app in group), key=lambda a: a.name.casefold())
        return ApplicationList(applications=tuple(apps), unscanned_containers=unscanned)

    async def _in_container(
        self, container: str, script: str, *, expected_exit_codes: Collection[int] = ()
    ) -> str:
        spec = CommandSpec(self._manager, ("enter", container, "--", "sh", "-c", script))
        result = await self._executor.run(spec, expected_exit_codes=expected_exit_codes)
        return result.stdout

    async def _container_apps(
        self, container: str, exported: set[str]
    ) -> list[ExportableApplication]:
        try:
            output = await self._in_container(container, _FIND_DESKTOP_FILES)
        except CommandError as exc:
            self._log.warn(f"Could not list applications for container {container}.", str(exc))
            return []
        files = [line.strip() for line in output.splitlines() if line.strip()]
        found = await asyncio.gather(*(self._describe(container, f, exported) for f in files))
        return [app for app in found if app is not None]

    async def _describe(
        self, container: str, desktop_file: str, exported: set[str]
    ) -> ExportableApplication | None:
        app_name = PurePosixPath(desktop_file).name
        quoted = quote_arg(desktop_file)
        try:
            display = await self._in_container(
                container, f"grep -m 1 '^Name' {quoted} | cut -d'=' -f2-"
            )
        except CommandError as exc:
            self._log.warn(f"Error processing {desktop_file} in {container}.", str(exc))
            return None
        try:
            await self._in_container(
                container, f"grep -q '^NoDisplay=true' {quoted}", expected_exit_codes=(1,)
            )
            hidden = True
        except DistroBearError:
            hidden = False

        display = display.strip()
        if not display or hidden or "wayland" in display.lower():
            return None
        return ExportableApplication(
            name=display,
            app_name=app_name,
            container_name=container,
            is_exported=app_name in exported,
        )

    async def export(self, container: str, app_name: str) -> None:
        """Export *app_name* from *container* and wait for the host launcher to appear."""
        name, app = sanitize_name(container), sanitize_app(app_name)
        await self._export_app(name, app, delete=False)
        marker = f"{CONTAINER_MARKER}={name}"
        launcher = self._applications_dir / app
        for _ in range(self._poll_attempts):
            with contextlib.suppress(OSError, UnicodeDecodeError):
                if marker in launcher.read_text(encoding="utf-8"):
                    return
            await asyncio.sleep(self._poll_interval)
        self._log.warn(f"Polling for {app} consistency timed out after export.")

    async def unexport(self, container: str, app_name: str) -> None:
        """Remove the host launcher of *app_name* and wait for it to disappear."""
        name, app = sanitize_name(container), sanitize_app(app_name)
        await self._export_app(name, app, delete=True)
        launcher = self._applications_dir / app
        for _ in range(self._poll_attempts):
            if not launcher.exists():
                return
            await asyncio.sleep(self._poll_interval)
        self._log.warn(f"Polling for {app} deletion timed out after unexport.")

    async def _export_app(self, container: str, app: str, *, delete: bool) -> None:
        identifier = app.removesuffix(".desktop")
        args = ["enter", container, "--", "distrobox-export", "--app", identifier]
        if delete:
            args.append("--delete")
        verb = "unexport" if delete else "export"
        try:
            await self._executor.run(CommandSpec(self._manager, tuple(args)))
        except CommandError as exc:
            msg = f'Failed to {verb} "{identifier}" from container "{container}"'
            raise OperationFailed(msg, str(exc)) from exc
