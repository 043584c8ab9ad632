# SPDX-License-Identifier: BSD-2-Clause
# Copyright (c) deftio llc

"""Locate executables: container runtime, terminal emulator, arbitrary tools."""

from __future__ import annotations

import os
import re
import shutil
from pathlib import PurePath
from typing import TYPE_CHECKING

from distrobear._executor import ANY_FAILURE
from distrobear.errors import DistroBearError, NoRuntimeFound
from distrobear.types import CommandSpec

if TYPE_CHECKING:
    from collections.abc import Mapping

    from distrobear._executor import CommandExecutor

TERMINAL_PREFERENCE = (
    "ptyxis",
    "gnome-terminal",
    "konsole",
    "xfce4-terminal",
    "mate-terminal",
    "io.elementary.terminal",
    "lxterminal",
    "qterminal",
    "terminator",
    "tilix",
    "kitty",
    "alacritty",
)

_DESKTOP_TERMINALS = (
    ("GNOME", "gnome-terminal"),
    ("KDE", "konsole"),
    ("XFCE", "xfce4-terminal"),
)

_ALTERNATIVE_VALUE = re.compile(r"^Value: (.+)$", re.MULTILINE)


class DependencyResolver:
    """Answers "is this tool installed?" and picks runtimes and terminals."""

    def __init__(
        self,
        executor: CommandExecutor,
        *,
        runtime_preference: tuple[str, ...] = ("podman", "docker"),
        terminal_override: str | None = None,
        environ: Mapping[str, str] | None = None,
    ) -> None:
        self._executor = executor
        self._runtime_preference = runtime_preference
        self._terminal_override = terminal_override
        self._environ = environ if environ is not None else os.environ

    async def command_exists(self, name: str) -> bool:
        """Return True if *name* resolves to an executable on the search path.

        Never raises: any failure counts as "not installed".
        """
        if not name or not name.strip():
            return False
        try:
            return shutil.which(name, path=self._executor.search_path) is not None
        except (OSError, ValueError):
            return False

    async def get_container_runtime(self) -> str:
        """Return the first available runtime in preference order.

        Raises:
            NoRuntimeFound: If none of the candidates is installed.

        """
        for runtime in self._runtime_preference:
            if await self.command_exists(runtime):
                return runtime
        raise NoRuntimeFound(self._runtime_preference)

    async def detect_terminal_emulator(self) -> str | None:
        """Find a terminal emulator; ``None`` when nothing usable is installed.

        Detection order:
        1. configured override
        2. GNOME's default-applications setting
        3. the ``x-terminal-emulator`` alternative
        4. a fixed list of common terminals
        5. a guess from ``XDG_CURRENT_DESKTOP``
        """
        if self._terminal_override and await self.command_exists(self._terminal_override):
            return self._terminal_override

        for probe in (self._gsettings_terminal, self._alternatives_terminal):
            candidate = await probe()
            if candidate and await self.command_exists(candidate):
                return candidate

        for terminal in TERMINAL_PREFERENCE:
            if await self.command_exists(terminal):
                return terminal

        desktop = self._environ.get("XDG_CURRENT_DESKTOP", "")
        for marker, terminal in _DESKTOP_TERMINALS:
            if marker in desktop and await self.command_exists(terminal):
                return terminal
        return None

    async def _gsettings_terminal(self) -> str | None:
        if not await self.command_exists("gsettings"):
            return None
        spec = CommandSpec(
            "gsettings", ("get", "org.gnome.desktop.default-applications.terminal", "exec")
        )
        try:
            result = await self._executor.run(spec, expected_exit_codes=ANY_FAILURE)
        except DistroBearError:
            return None
        return result.stdout.replace("'", "").strip() or None

    async def _alternatives_terminal(self) -> str | None:
        if not await self.command_exists("update-alternatives"):
            return None
        spec = CommandSpec("update-alternatives", ("--query", "x-terminal-emulator"))
        try:
            result = await self._executor.run(
                spec, expected_exit_codes=ANY_FAILURE, log_stdout=False
            )
        except DistroBearError:
            return None
        match = _ALTERNATIVE_VALUE.search(result.stdout)
        if not match:
            return None
        return PurePath(match.group(1).strip()).name or None
