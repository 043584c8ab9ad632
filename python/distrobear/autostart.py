# SPDX-License-Identifier: BSD-2-Clause
# Copyright (c) deftio llc

"""Per-container systemd user services that start a sandbox on login.

Unit files are generated by ``podman generate systemd`` into a private
scratch directory and only the expected ``container-NAME.service`` file is
copied into ``~/.config/systemd/user``.  The scratch directory is removed on
every exit path.
"""

from __future__ import annotations

import shutil
import tempfile
from pathlib import Path
from typing import TYPE_CHECKING

from distrobear._executor import ANY_FAILURE
from distrobear._helpers import sanitize_name
from distrobear.errors import AutostartError, CommandError, DistroBearError, NotFound
from distrobear.types import CommandSpec

if TYPE_CHECKING:
    from collections.abc import Collection

    from distrobear._diagnostics import DiagnosticLog
    from distrobear._executor import CommandExecutor
    from distrobear.resolver import DependencyResolver

SCRATCH_PREFIX = "distrobear-"


def service_name(container: str) -> str:
    """Return the unit name podman generates for *container*."""
    return f"container-{container}.service"


def default_unit_dir() -> Path:
    return Path.home() / ".config" / "systemd" / "user"


class AutostartManager:
    """Installs, enables and removes container autostart units."""

    def __init__(
        self,
        executor: CommandExecutor,
        resolver: DependencyResolver,
        log: DiagnosticLog,
        *,
        unit_dir: Path | None = None,
        scratch_root: Path | None = None,
        generator: str = "podman",
    ) -> None:
        self._executor = executor
        self._resolver = resolver
        self._log = log
        self._unit_dir = unit_dir if unit_dir is not None else default_unit_dir()
        self._scratch_root = scratch_root
        self._generator = generator

    @property
    def unit_dir(self) -> Path:
        return self._unit_dir

    def unit_path(self, container: str) -> Path:
        return self._unit_dir / service_name(container)

    async def _systemctl(self, *args: str, expected_exit_codes: Collection[int] = ()) -> None:
        await self._executor.run(
            CommandSpec("systemctl", ("--user", *args)), expected_exit_codes=expected_exit_codes
        )

    async def enable(self, container: str) -> None:
        """Generate, install and enable the autostart unit for *container*.

        Raises:
            InvalidName: If *container* is empty after sanitisation.
            NotFound: If the runtime or systemctl is missing.
            AutostartError: If the generated unit file could not be installed.
            CommandFailed: If generation, reload or enable fails.

        """
        container = sanitize_name(container)
        for tool in (self._generator, "systemctl"):
            if not await self._resolver.command_exists(tool):
                msg = f"Autostart requires {tool}, which was not found in your PATH."
                raise NotFound(msg)

        unit = service_name(container)
        self._log.info(f"Ensuring systemd user path exists: {self._unit_dir}")
        try:
            self._unit_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            msg = f"Could not create {self._unit_dir}: {exc}"
            raise AutostartError(msg) from exc

        with tempfile.TemporaryDirectory(prefix=SCRATCH_PREFIX, dir=self._scratch_root) as tmp:
            self._log.info(f"Created temporary directory for systemd generation: {tmp}")
            try:
                await self._executor.run(
                    CommandSpec(
                        self._generator,
                        ("generate", "systemd", "--new", "--files", "--name", container),
                        cwd=tmp,
                    )
                )
                self._log.info(f'Generated systemd file for "{container}" in temporary directory.')

                generated = Path(tmp) / unit
                final = self._unit_dir / unit
                try:
                    shutil.copyfile(generated, final)
                except OSError as exc:
                    msg = f"Could not install {generated} as {final}: {exc}"
                    raise AutostartError(msg) from exc
                self._log.info(f"Copied service file from {generated} to {final}")

                await self._systemctl("daemon-reload")
                await self._systemctl("enable", unit)
            finally:
                self._log.info(f"Cleaning up temporary directory: {tmp}")

    async def disable(self, container: str) -> None:
        """Disable and delete the autostart unit for *container*, then reload systemd.

        Missing units are not an error.
        """
        container = sanitize_name(container)
        unit = service_name(container)
        path = self.unit_path(container)
        self._log.warn(
            f'DESTRUCTIVE ACTION: disabling autostart for container "{container}". '
            "This may delete the systemd service file."
        )

        try:
            await self._systemctl("disable", unit, expected_exit_codes=ANY_FAILURE)
        except CommandError as exc:
            self._log.warn(f"Could not disable systemd service (might not exist): {exc}")

        try:
            path.unlink()
        except FileNotFoundError:
            pass
        except OSError as exc:
            self._log.warn(f"Could not delete systemd service file: {exc}")
        else:
            self._log.warn(f"Deleted systemd service file: {path}")

        await self._systemctl("daemon-reload")

    async def is_enabled(self, container: str) -> bool:
        """Return True if the unit is enabled; any error counts as disabled."""
        try:
            unit = service_name(sanitize_name(container))
            await self._systemctl("is-enabled", "--quiet", unit, expected_exit_codes=ANY_FAILURE)
        except DistroBearError:
            return False
        return True
