"""Shared fixtures for distrobear tests."""

from __future__ import annotations

import os
import shutil
import stat
from collections.abc import Callable
from pathlib import Path

import pytest
from distrobear._diagnostics import DiagnosticLog
from distrobear._executor import build_command_line
from distrobear.errors import Canceled, CommandFailed
from distrobear.types import CommandResult, CommandSpec, StreamChunk

HAS_BASH = shutil.which("bash") is not None and Path("/bin/bash").exists()

requires_bash = pytest.mark.skipif(
    not HAS_BASH,
    reason="bash not found",
)

Responder = Callable[[CommandSpec], CommandResult]


class FakeExecutor:
    """Scripted stand-in for ``CommandExecutor`` that records every spec it runs.

    Responses are registered with :meth:`on`; the most recent matching rule
    wins.  Unmatched commands succeed with empty output.
    """

    def __init__(self, log: DiagnosticLog | None = None, *, search_path: str = "") -> None:
        self.log = log if log is not None else DiagnosticLog()
        self.search_path = search_path
        self.calls: list[CommandSpec] = []
        self.streamed: list[CommandSpec] = []
        self.detached: list[list[str]] = []
        self.expected: list[tuple[CommandSpec, tuple[int, ...]]] = []
        self._rules: list[tuple[str, tuple[str, ...], Responder]] = []

    def on(
        self,
        program: str,
        *prefix: str,
        stdout: str = "",
        stderr: str = "",
        exit_code: int = 0,
        respond: Responder | None = None,
    ) -> None:
        """Answer commands running *program* whose args start with *prefix*."""
        if respond is None:
            result = CommandResult(exit_code=exit_code, stdout=stdout, stderr=stderr)

            def respond(_spec: CommandSpec) -> CommandResult:
                return result

        self._rules.append((program, prefix, respond))

    def _respond(self, spec: CommandSpec) -> CommandResult:
        for program, prefix, respond in reversed(self._rules):
            if spec.program == program and spec.args[: len(prefix)] == prefix:
                return respond(spec)
        return CommandResult(exit_code=0)

    def commands(self) -> list[tuple[str, ...]]:
        """Every recorded invocation as ``(program, *args)``."""
        return [(s.program, *s.args) for s in self.calls]

    async def run(
        self, spec: CommandSpec, *, expected_exit_codes: object = (), log_stdout: bool = True
    ) -> CommandResult:
        self.calls.append(spec)
        self.expected.append((spec, tuple(expected_exit_codes)))  # type: ignore[call-overload]
        result = self._respond(spec)
        if result.exit_code != 0:
            raise CommandFailed(build_command_line(spec), result.exit_code, result.stderr)
        return result

    async def run_streamed(
        self,
        spec: CommandSpec,
        on_chunk: Callable[[StreamChunk], object],
        *,
        on_process: Callable[[object], object] | None = None,
    ) -> CommandResult:
        self.calls.append(spec)
        self.streamed.append(spec)
        if on_process is not None:
            on_process(_FakeProcess())
        result = self._respond(spec)
        if result.stdout:
            on_chunk(StreamChunk(text=result.stdout))
        if result.stderr:
            on_chunk(StreamChunk(text=result.stderr, is_error=True))
        if result.exit_code in (-15, 143):
            raise Canceled(build_command_line(spec))
        if result.exit_code != 0:
            raise CommandFailed(build_command_line(spec), result.exit_code, result.stderr)
        return result

    def spawn_detached(self, argv: list[str]) -> None:
        self.detached.append(list(argv))


class _FakeProcess:
    pid = 999_999
    returncode = None

    def terminate(self) -> None:
        self.returncode = -15  # type: ignore[assignment]


def make_executable(directory: Path, name: str) -> Path:
    """Create an empty executable file *name* inside *directory*."""
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / name
    path.write_text("#!/bin/sh\nexit 0\n")
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return path


@pytest.fixture
def bin_dir(tmp_path: Path) -> Path:
    """An empty directory used as the only entry on the search path."""
    path = tmp_path / "bin"
    path.mkdir()
    return path


@pytest.fixture
def tools(bin_dir: Path) -> Callable[..., None]:
    """Install fake executables: ``tools("podman", "systemctl")``."""

    def install(*names: str) -> None:
        for name in names:
            make_executable(bin_dir, name)

    return install


@pytest.fixture
def log() -> DiagnosticLog:
    return DiagnosticLog()


@pytest.fixture
def fake(log: DiagnosticLog, bin_dir: Path) -> FakeExecutor:
    return FakeExecutor(log, search_path=str(bin_dir))


@pytest.fixture
def home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point ``$HOME`` at a temporary directory."""
    path = tmp_path / "home"
    path.mkdir()
    monkeypatch.setenv("HOME", str(path))
    monkeypatch.delenv("XDG_CONFIG_HOME", raising=False)
    return path


def messages(log: DiagnosticLog, level: str | None = None) -> list[str]:
    """Messages of *log*, optionally filtered by level name."""
    return [e.message for e in log.snapshot() if level is None or e.level.value == level]


os.environ.pop("npm_config_prefix", None)
