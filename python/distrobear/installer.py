# SPDX-License-Identifier: BSD-2-Clause
# Copyright (c) deftio llc

"""Install the container runtime and the sandbox manager.

The flow is a linear state machine::

    CHECKING_DEPS -> DETECTING_PACKAGE_MANAGER -> ESCALATING_PRIVILEGE
      -> INSTALLING_RUNTIME -> CHECKING_DOWNLOAD_TOOL
      -> INSTALLING_SANDBOX_MANAGER -> VERIFYING -> SUCCESS | FAILED

Privilege is escalated at most once, only when the runtime is missing.  The
sandbox manager is always (re)installed from its upstream install script into
a user prefix, so no privilege is needed for that step.
"""

from __future__ import annotations

import dataclasses
import enum
import os
import shlex
from pathlib import Path
from typing import TYPE_CHECKING

from distrobear.errors import (
    DistroBearError,
    DownloadToolMissing,
    InstallError,
    UnsupportedPackageManager,
    VerificationFailed,
)
from distrobear.types import CommandSpec

if TYPE_CHECKING:
    from collections.abc import Callable

    from distrobear._diagnostics import DiagnosticLog
    from distrobear._executor import CommandExecutor
    from distrobear.resolver import DependencyResolver
    from distrobear.types import StreamChunk


class InstallState(str, enum.Enum):
    CHECKING_DEPS = "checking-deps"
    DETECTING_PACKAGE_MANAGER = "detecting-package-manager"
    ESCALATING_PRIVILEGE = "escalating-privilege"
    INSTALLING_RUNTIME = "installing-runtime"
    CHECKING_DOWNLOAD_TOOL = "checking-download-tool"
    INSTALLING_SANDBOX_MANAGER = "installing-sandbox-manager"
    VERIFYING = "verifying"
    SUCCESS = "success"
    FAILED = "failed"


@dataclasses.dataclass(frozen=True)
class PackageManager:
    """A package manager, detected by ``probe`` and driven through ``command``."""

    probe: str
    command: str
    install_args: tuple[str, ...]

    def install_spec(self, package: str) -> tuple[str, ...]:
        return (self.command, *self.install_args, package)


PACKAGE_MANAGERS = (
    PackageManager("apt", "apt-get", ("install", "-y")),
    PackageManager("dnf", "dnf", ("install", "-y")),
    PackageManager("pacman", "pacman", ("-S", "--noconfirm")),
    PackageManager("zypper", "zypper", ("install", "-y")),
)

DOWNLOAD_TOOLS = ("curl", "wget")


class PrivilegedInstaller:
    """Drives a full dependency installation, reporting to a UI feed and the log."""

    def __init__(  # noqa: PLR0913
        self,
        executor: CommandExecutor,
        resolver: DependencyResolver,
        log: DiagnosticLog,
        *,
        runtime: str = "podman",
        manager: str = "distrobox",
        install_prefix: str = "~/.local",
        script_url: str = "https://raw.githubusercontent.com/89luca89/distrobox/main/install",
        escalation: tuple[str, ...] = ("pkexec", "sudo"),
        package_managers: tuple[PackageManager, ...] = PACKAGE_MANAGERS,
    ) -> None:
        self._executor = executor
        self._resolver = resolver
        self._log = log
        self._runtime = runtime
        self._manager = manager
        self._prefix = Path(install_prefix).expanduser()
        self._script_url = script_url
        self._escalation = escalation
        self._package_managers = package_managers
        self._state = InstallState.CHECKING_DEPS
        self._history: list[InstallState] = []

    @property
    def state(self) -> InstallState:
        return self._state

    @property
    def history(self) -> list[InstallState]:
        """States visited by the last :meth:`install` run, in order."""
        return list(self._history)

    @property
    def manager_binary(self) -> Path:
        return self._prefix / "bin" / self._manager

    def _enter(self, state: InstallState) -> None:
        self._state = state
        self._history.append(state)

    async def install(self, feed: Callable[[str], object]) -> None:
        """Run the whole installation, writing progress lines to *feed*.

        Raises:
            UnsupportedPackageManager: Runtime missing and no package manager known.
            DownloadToolMissing: Neither curl nor wget is installed.
            VerificationFailed: Install commands succeeded but a binary is still missing.
            CommandFailed: The privileged install or the install script failed.

        """
        self._history = []
        self._log.info("SETUP: Starting dependency installation process.")
        feed("--- Starting dependency installation process... ---\n")
        try:
            await self._run(feed)
        except DistroBearError as exc:
            failed_in = self._state
            self._enter(InstallState.FAILED)
            self._log.error(f"SETUP: Installation failed during {failed_in.value}.", str(exc))
            feed(f"--- ERROR: {exc} ---\n")
            raise
        self._enter(InstallState.SUCCESS)
        self._log.info("SETUP: Setup finished successfully.")
        feed("--- Setup finished successfully! ---\n")

    async def _run(self, feed: Callable[[str], object]) -> None:
        self._enter(InstallState.CHECKING_DEPS)
        runtime_present = await self._resolver.command_exists(self._runtime)

        self._enter(InstallState.DETECTING_PACKAGE_MANAGER)
        package_manager = await self._detect_package_manager()

        if runtime_present:
            self._log.info(f"SETUP: {self._runtime} is already installed. Skipping.")
            feed(f"--- {self._runtime} is already installed. Skipping. ---\n")
        else:
            if package_manager is None:
                raise UnsupportedPackageManager(
                    self._runtime, tuple(pm.probe for pm in self._package_managers)
                )
            await self._install_runtime(package_manager, feed)

        self._enter(InstallState.CHECKING_DOWNLOAD_TOOL)
        self._log.info(f"SETUP: Checking for curl/wget for {self._manager} installation...")
        feed(f"--- Checking for curl/wget for {self._manager} installation... ---\n")
        download_tool = await self._detect_download_tool()
        self._log.info(f"SETUP: Found required download tool ({download_tool}).")
        feed("--- Found required download tool. ---\n")

        self._enter(InstallState.INSTALLING_SANDBOX_MANAGER)
        self._log.info(f"SETUP: Installing/Updating {self._manager}...")
        feed(f"--- Installing/Updating {self._manager}... ---\n")
        await self._executor.run_streamed(
            CommandSpec("bash", ("-c", self.manager_install_script(download_tool))),
            self._relay(feed),
        )
        self._log.info(f"SETUP: {self._manager} installation script completed.")

        self._enter(InstallState.VERIFYING)
        await self._verify(feed)

    async def _detect_package_manager(self) -> PackageManager | None:
        for pm in self._package_managers:
            if await self._resolver.command_exists(pm.probe):
                self._log.info(f"SETUP: Detected package manager {pm.probe}.")
                return pm
        return None

    async def _install_runtime(self, pm: PackageManager, feed: Callable[[str], object]) -> None:
        self._enter(InstallState.ESCALATING_PRIVILEGE)
        escalator = await self._detect_escalator()
        spec = CommandSpec(escalator, pm.install_spec(self._runtime))
        self._log.info(f"SETUP: {self._runtime} not found. Using {escalator} to run: {spec.args}")
        feed(
            f"--- {self._runtime} not found. Administrator privileges are required "
            "for installation. ---\n"
        )

        self._enter(InstallState.INSTALLING_RUNTIME)
        await self._executor.run_streamed(spec, self._relay(feed))
        self._log.info(f"SETUP: {self._runtime} installation command completed successfully.")
        feed(f"--- {self._runtime} installed successfully. ---\n")

    async def _detect_escalator(self) -> str:
        for tool in self._escalation:
            if await self._resolver.command_exists(tool):
                return tool
        msg = f"No privilege escalation tool ({', '.join(self._escalation)}) found."
        raise InstallError(msg)

    async def _detect_download_tool(self) -> str:
        for tool in DOWNLOAD_TOOLS:
            if await self._resolver.command_exists(tool):
                return tool
        raise DownloadToolMissing

    def manager_install_script(self, download_tool: str) -> str:
        """Return the ``bash -c`` script that fetches and runs the upstream installer."""
        url = shlex.quote(self._script_url)
        fetch = f"curl -fsSL {url}" if download_tool == "curl" else f"wget -qO- {url}"
        prefix = shlex.quote(str(self._prefix))
        return f"set -eo pipefail; {fetch} | sh -s -- --prefix {prefix}"

    def _relay(self, feed: Callable[[str], object]) -> Callable[[StreamChunk], None]:
        def relay(chunk: StreamChunk) -> None:
            feed(chunk.text)
            self._log.info("SETUP: output", chunk.text.rstrip())

        return relay

    def _manager_executable(self) -> bool:
        path = self.manager_binary
        return path.is_file() and os.access(path, os.X_OK)

    async def _verify(self, feed: Callable[[str], object]) -> None:
        self._log.info("SETUP: Verifying installations...")
        feed("\n--- Verifying installations... ---\n")
        runtime_ok = await self._resolver.command_exists(self._runtime)

        manager_ok = self._manager_executable()
        if manager_ok:
            self._log.info(f"SETUP: Found {self._manager} executable at: {self.manager_binary}")
            feed(f"--- {self._manager} executable found at {self.manager_binary}. ---\n")
        else:
            self._log.warn(
                f"SETUP: Could not find executable at {self.manager_binary}. "
                "Falling back to PATH check."
            )
            feed(
                f"--- Could not find {self._manager} at the standard install path. "
                "Checking your system PATH... ---\n"
            )
            manager_ok = await self._resolver.command_exists(self._manager)

        if not (runtime_ok and manager_ok):
            raise VerificationFailed(
                runtime=self._runtime,
                runtime_found=runtime_ok,
                manager=self._manager,
                manager_found=manager_ok,
            )
        self._log.info(
            f"SETUP: Verification successful. Both {self._runtime} and "
            f"{self._manager} are now available."
        )
        feed("--- Verification successful. ---\n")
