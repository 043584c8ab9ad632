# SPDX-License-Identifier: BSD-2-Clause
# Copyright (c) deftio llc

"""Run external programs through a login shell, buffered or streamed.

Every invocation is rendered to a single shell command line in which each
argument is wrapped in single quotes (embedded single quotes become ``'\\''``).
That command line is handed to ``bash -l -c`` so that PATH additions and
shell functions from the user's profile are available to the tools we drive.
Each call owns its own output accumulators, so any number of buffered
commands may run concurrently.
"""

from __future__ import annotations

import asyncio
import codecs
import contextlib
import os
import shlex
import signal
import subprocess  # nosec B404
from pathlib import Path
from typing import TYPE_CHECKING

from distrobear.errors import Canceled, CommandFailed, CommandSpawnError
from distrobear.types import CommandResult, CommandSpec, StreamChunk

if TYPE_CHECKING:
    from collections.abc import Callable, Collection, Mapping

    from distrobear._diagnostics import DiagnosticLog

ANY_FAILURE: range = range(1, 256)
_CHUNK_SIZE = 4096
_CANCEL_EXIT_CODES = frozenset({-signal.SIGTERM, 128 + signal.SIGTERM})
_SCRUBBED_ENV = ("npm_config_prefix",)


def quote_arg(arg: str) -> str:
    """Wrap *arg* in single quotes so the shell treats it as one literal word."""
    return "'" + str(arg).replace("'", "'\\''") + "'"


def build_command_line(spec: CommandSpec) -> str:
    """Render *spec* as a shell command line with every argument quoted."""
    return " ".join([shlex.quote(spec.program), *(quote_arg(a) for a in spec.args)])


class CommandExecutor:
    """Spawns commands in a (login) shell and mirrors activity into the diagnostic log."""

    def __init__(
        self,
        log: DiagnosticLog,
        *,
        shell: str = "/bin/bash",
        login: bool = True,
        extra_path: tuple[str, ...] = ("~/.local/bin",),
    ) -> None:
        self._log = log
        self._shell = shell
        self._login = login
        self._extra_path = extra_path

    @property
    def log(self) -> DiagnosticLog:
        return self._log

    def shell_argv(self, command_line: str) -> list[str]:
        """Return the argv that runs *command_line* in the configured shell."""
        if self._login:
            return [self._shell, "-l", "-c", command_line]
        return [self._shell, "-c", command_line]

    def environment(self, overrides: Mapping[str, str] | None = None) -> dict[str, str]:
        """Build the child environment: scrubbed, PATH extended, *overrides* applied."""
        env = dict(os.environ)
        for key in _SCRUBBED_ENV:
            env.pop(key, None)
        parts = [p for p in env.get("PATH", "").split(os.pathsep) if p]
        for extra in self._extra_path:
            expanded = str(Path(extra).expanduser())
            if expanded not in parts:
                parts.append(expanded)
        env["PATH"] = os.pathsep.join(parts)
        if overrides:
            env.update(overrides)
        return env

    @property
    def search_path(self) -> str:
        """PATH value used for executable lookups."""
        return self.environment()["PATH"]

    async def _spawn(
        self, spec: CommandSpec, command_line: str, *, new_session: bool = False
    ) -> asyncio.subprocess.Process:
        try:
            return await asyncio.create_subprocess_exec(
                *self.shell_argv(command_line),
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=self.environment(spec.env),
                cwd=spec.cwd,
                start_new_session=new_session,
            )
        except OSError as exc:
            self._log.error(f'Failed to start subprocess for "{command_line}"', str(exc))
            raise CommandSpawnError(command_line, str(exc)) from exc

    async def run(
        self,
        spec: CommandSpec,
        *,
        expected_exit_codes: Collection[int] = (),
        log_stdout: bool = True,
    ) -> CommandResult:
        """Run *spec* to completion and return its trimmed output.

        Raises:
            CommandFailed: On a non-zero exit.  Codes listed in
                *expected_exit_codes* are logged at INFO instead of ERROR.
            CommandSpawnError: If the shell could not be started.

        """
        command_line = build_command_line(spec)
        self._log.info(f"Spawning: {command_line}")
        proc = await self._spawn(spec, command_line)
        try:
            out, err = await proc.communicate()
        except asyncio.CancelledError:
            with contextlib.suppress(ProcessLookupError):
                proc.kill()
            raise

        stdout = out.decode("utf-8", errors="replace").strip()
        stderr = err.decode("utf-8", errors="replace").strip()
        code = proc.returncode if proc.returncode is not None else -1

        if code != 0:
            if code in expected_exit_codes:
                self._log.info(f'Command "{command_line}" exited with expected code {code}')
            else:
                self._log.error(
                    f'Command "{command_line}" failed with code {code}', stderr or None
                )
            raise CommandFailed(command_line, code, stderr)

        self._log.info(
            f'Command "{command_line}" finished with code 0',
            stdout if log_stdout and stdout else None,
        )
        return CommandResult(exit_code=0, stdout=stdout, stderr=stderr)

    async def run_streamed(
        self,
        spec: CommandSpec,
        on_chunk: Callable[[StreamChunk], object],
        *,
        on_process: Callable[[asyncio.subprocess.Process], object] | None = None,
    ) -> CommandResult:
        """Run *spec*, delivering every stdout/stderr fragment to *on_chunk*.

        The child gets its own session so that a cancel request can signal the
        whole process group.

        Raises:
            Canceled: If the process ended because of SIGTERM.
            CommandFailed: On any other non-zero exit.
            CommandSpawnError: If the shell could not be started.

        """
        command_line = build_command_line(spec)
        self._log.info(f"Streaming: {command_line}")
        proc = await self._spawn(spec, command_line, new_session=True)
        if on_process is not None:
            on_process(proc)

        stdout_parts: list[str] = []
        stderr_parts: list[str] = []
        try:
            await asyncio.gather(
                _pump(proc.stdout, stdout_parts, on_chunk, is_error=False),
                _pump(proc.stderr, stderr_parts, on_chunk, is_error=True),
            )
            code = await proc.wait()
        except asyncio.CancelledError:
            with contextlib.suppress(ProcessLookupError):
                proc.kill()
            raise

        stderr = "".join(stderr_parts).strip()
        if code in _CANCEL_EXIT_CODES:
            self._log.warn(f'Command "{command_line}" was canceled')
            raise Canceled(command_line)
        if code != 0:
            self._log.error(f'Command "{command_line}" failed with code {code}', stderr or None)
            raise CommandFailed(command_line, code, stderr)

        self._log.info(f'Command "{command_line}" finished with code 0')
        return CommandResult(exit_code=0, stdout="".join(stdout_parts).strip(), stderr=stderr)

    def spawn_detached(self, argv: list[str]) -> None:
        """Start *argv* without a shell, detached from our session, output discarded."""
        command_line = " ".join(shlex.quote(a) for a in argv)
        self._log.info(f"Launching: {command_line}")
        try:
            subprocess.Popen(  # noqa: S603  # nosec B603
                argv,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                env=self.environment(),
                start_new_session=True,
            )
        except OSError as exc:
            self._log.error(f'Failed to launch "{command_line}"', str(exc))
            raise CommandSpawnError(command_line, str(exc)) from exc


async def _pump(
    reader: asyncio.StreamReader | None,
    parts: list[str],
    on_chunk: Callable[[StreamChunk], object],
    *,
    is_error: bool,
) -> None:
    """Read *reader* until EOF, forwarding decoded text to *on_chunk*."""
    if reader is None:
        return
    decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
    while True:
        data = await reader.read(_CHUNK_SIZE)
        text = decoder.decode(data, final=not data)
        if text:
            parts.append(text)
            with contextlib.suppress(Exception):
                on_chunk(StreamChunk(text=text, is_error=is_error))
        if not data:
            return
