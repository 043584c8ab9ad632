# SPDX-License-Identifier: BSD-2-Clause
# Copyright (c) deftio llc

"""Sandbox container listing, inspection and lifecycle actions."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

from distrobear._callbacks import CREATION_FEED
from distrobear._helpers import (
    host_home,
    isolated_home,
    sanitize_name,
    sanitize_ref,
    strip_metachars,
)
from distrobear._parser import (
    ColumnTableParser,
    build_container_detail,
    decode_inspect,
    has_host_home_mount,
)
from distrobear.errors import CommandError, OperationFailed, TerminalNotFound
from distrobear.types import CommandSpec, ContainerList, ContainerRecord

if TYPE_CHECKING:
    from distrobear._callbacks import CallbackRegistry
    from distrobear._diagnostics import DiagnosticLog
    from distrobear._executor import CommandExecutor
    from distrobear._parser import ListParser, ListRow
    from distrobear.autostart import AutostartManager
    from distrobear.resolver import DependencyResolver
    from distrobear.types import ContainerDetail, CreateOptions, StreamChunk


def terminal_argv(terminal: str, command: str) -> list[str]:
    """Build the argv that opens *terminal* running *command* in a login shell."""
    if terminal == "ptyxis":
        return [terminal, "--new-window", "--", "bash", "-l", "-c", command]
    if terminal == "gnome-terminal":
        return [terminal, "--window", "--", "bash", "-l", "-c", command]
    if terminal == "konsole":
        return [terminal, "--separate", "-e", "bash", "-l", "-c", command]
    return [terminal, "-e", f'bash -l -c "{command}"']


def create_args(options: CreateOptions) -> list[str]:
    """Translate :class:`CreateOptions` into ``distrobox create`` arguments."""
    name = sanitize_name(options.name)
    image = sanitize_ref(options.image, "image")
    args = ["create", "--name", name, "--image", image]
    if options.init:
        args.append("--init")
    if options.nvidia:
        args.append("--nvidia")
    if options.isolated:
        home = strip_metachars(options.custom_home)
        args += ["--home", home or str(isolated_home(name))]
    for volume in options.volumes:
        host = strip_metachars(volume.host_path)
        target = strip_metachars(volume.container_path)
        if host and target:
            args += ["--volume", f"{host}:{target}"]
    return args


class ContainerService:
    """Operations on distrobox-managed containers."""

    def __init__(  # noqa: PLR0913
        self,
        executor: CommandExecutor,
        resolver: DependencyResolver,
        autostart: AutostartManager,
        log: DiagnosticLog,
        callbacks: CallbackRegistry,
        *,
        manager: str = "distrobox",
        parser: ListParser | None = None,
    ) -> None:
        self._executor = executor
        self._resolver = resolver
        self._autostart = autostart
        self._log = log
        self._callbacks = callbacks
        self._manager = manager
        self._parser = parser if parser is not None else ColumnTableParser()

    # --- Queries ---

    async def list_containers(self) -> ContainerList:
        """List containers, joined with autostart and home-isolation state.

        Raises:
            NoRuntimeFound: If neither podman nor docker is installed.
            OperationFailed: If the listing command fails.

        """
        self._log.info("Listing containers...")
        runtime = await self._resolver.get_container_runtime()
        try:
            result = await self._executor.run(CommandSpec(self._manager, ("list", "--no-color")))
        except CommandError as exc:
            raise OperationFailed("Failed to list containers", str(exc)) from exc

        parsed = self._parser.parse(result.stdout)
        if parsed.degraded:
            self._log.warn(
                "ParseDegraded: container list header is missing "
                f"{', '.join(parsed.missing)}; showing no containers.",
                parsed.header,
            )
            return ContainerList(degraded=True)

        home = host_home()
        records = await asyncio.gather(*(self._record(runtime, row, home) for row in parsed.rows))
        return ContainerList(records)

    async def _record(self, runtime: str, row: ListRow, home: str) -> ContainerRecord:
        enabled, isolated = await asyncio.gather(
            self._autostart.is_enabled(row.name),
            self._is_isolated(runtime, row.name, home),
        )
        return ContainerRecord(
            name=row.name,
            status=row.status,
            image=row.image,
            is_autostart_enabled=enabled,
            is_isolated=isolated,
        )

    async def _is_isolated(self, runtime: str, name: str, home: str) -> bool:
        try:
            result = await self._executor.run(
                CommandSpec(runtime, ("inspect", name)), log_stdout=False
            )
            inspect = decode_inspect(result.stdout)
        except (CommandError, ValueError) as exc:
            self._log.warn(
                f'Could not inspect container "{name}" to check for isolation. Assuming isolated.',
                str(exc),
            )
            return True
        return not has_host_home_mount(inspect, home)

    async def info(self, name: str) -> ContainerDetail:
        """Return a detailed view of one container from ``inspect`` and a size lookup."""
        sanitized = sanitize_name(name)
        runtime = await self._resolver.get_container_runtime()
        context = f'Failed to get info for container "{sanitized}"'
        try:
            result = await self._executor.run(
                CommandSpec(runtime, ("inspect", sanitized)), log_stdout=False
            )
            if not result.stdout:
                msg = f'Container "{sanitized}" not found by {runtime}.'
                raise ValueError(msg)
            inspect = decode_inspect(result.stdout)
            id_filter = f"id={inspect.get('Id', '')}"
            size = await self._executor.run(
                CommandSpec(runtime, ("ps", "-a", "--filter", id_filter, "--format", "{{.Size}}"))
            )
        except (CommandError, ValueError) as exc:
            raise OperationFailed(context, str(exc)) from exc
        return build_container_detail(
            inspect, size=size.stdout, backend=runtime, host_home=host_home()
        )

    # --- Lifecycle ---

    async def _manager_action(self, context: str, *args: str) -> None:
        try:
            await self._executor.run(CommandSpec(self._manager, args))
        except CommandError as exc:
            raise OperationFailed(context, str(exc)) from exc

    async def start(self, name: str) -> None:
        sanitized = sanitize_name(name)
        await self._manager_action(
            f'Failed to start container "{sanitized}"', "enter", sanitized, "--", "/bin/true"
        )

    async def stop(self, name: str) -> None:
        sanitized = sanitize_name(name)
        await self._manager_action(
            f'Failed to stop container "{sanitized}"', "stop", "--yes", sanitized
        )

    async def delete(self, name: str) -> None:
        """Remove a container.  Logged as a destructive action."""
        sanitized = sanitize_name(name)
        self._log.warn(f'DESTRUCTIVE ACTION: User initiated deletion of container "{sanitized}".')
        await self._manager_action(
            f'Failed to delete container "{sanitized}"', "rm", "--yes", sanitized
        )

    async def commit(self, name: str, image: str, tag: str) -> str:
        """Save a container's filesystem as ``image:tag`` and return that reference."""
        sanitized = sanitize_name(name)
        reference = f"{sanitize_ref(image, 'image name')}:{sanitize_ref(tag, 'image tag')}"
        try:
            await self._executor.run(CommandSpec("podman", ("commit", sanitized, reference)))
        except CommandError as exc:
            msg = f'Failed to save container "{sanitized}" as image'
            raise OperationFailed(msg, str(exc)) from exc
        return reference

    async def enter(self, name: str) -> str:
        """Open the container in a new terminal window; return the terminal used.

        Raises:
            TerminalNotFound: If no supported terminal emulator is installed.

        """
        sanitized = sanitize_name(name)
        terminal = await self._resolver.detect_terminal_emulator()
        if terminal is None:
            raise TerminalNotFound
        self._executor.spawn_detached(terminal_argv(terminal, f"{self._manager} enter {sanitized}"))
        return terminal

    async def create(self, options: CreateOptions) -> None:
        """Create a container, streaming progress to the ``creation-log`` feed."""
        args = create_args(options)
        name = args[2]
        feed = self._callbacks.feed(CREATION_FEED)

        def relay(chunk: StreamChunk) -> None:
            feed(chunk.text)

        feed(f'--- Starting creation of container "{name}" ---\n')
        try:
            await self._executor.run_streamed(CommandSpec(self._manager, tuple(args)), relay)
        except CommandError as exc:
            feed(f"\n--- ERROR: Failed to create container: {exc} ---\n")
            self._log.error(f'Container creation failed for "{name}"', str(exc))
            raise
        feed(f'\n--- Container "{name}" created successfully! ---\n')
