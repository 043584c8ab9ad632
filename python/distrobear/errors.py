# SPDX-License-Identifier: BSD-2-Clause
# Copyright (c) deftio llc

from __future__ import annotations


class DistroBearError(Exception):
    """Base exception for all distrobear errors."""


class CommandError(DistroBearError):
    """Error related to running an external command."""

    def __init__(self, command_line: str, detail: str = "") -> None:
        self.command_line = command_line
        self.detail = detail
        super().__init__(detail or f"Command failed: {command_line}")


class CommandFailed(CommandError):
    """Command exited with a non-zero status."""

    def __init__(self, command_line: str, exit_code: int, stderr: str = "") -> None:
        self.exit_code = exit_code
        self.stderr = stderr
        super().__init__(command_line, stderr or f"Process exited with code {exit_code}")


class CommandSpawnError(CommandError):
    """The process could not be started (missing shell, bad cwd, ...)."""

    def __init__(self, command_line: str, detail: str = "") -> None:
        msg = f"Could not run {command_line}"
        if detail:
            msg = f"{msg}: {detail}"
        super().__init__(command_line, msg)


class Canceled(DistroBearError):
    """A streamed command was terminated on request."""

    def __init__(self, command_line: str = "") -> None:
        self.command_line = command_line
        super().__init__("Canceled")


class NotFound(DistroBearError):
    """A required executable could not be located."""


class NoRuntimeFound(NotFound):
    """Neither Podman nor Docker is available."""

    def __init__(self, candidates: tuple[str, ...] = ("podman", "docker")) -> None:
        self.candidates = candidates
        names = " or ".join(candidates)
        super().__init__(
            f"No container runtime ({names}) found. Is it installed and in your PATH?"
        )


class TerminalNotFound(NotFound):
    """No supported terminal emulator is installed."""

    def __init__(self) -> None:
        super().__init__("Could not find a supported terminal emulator on your system.")


class InvalidName(DistroBearError):
    """User-supplied identifier is empty after sanitisation."""

    def __init__(self, kind: str) -> None:
        self.kind = kind
        super().__init__(f"Invalid {kind} provided.")


class ParseDegraded(DistroBearError):
    """Tabular output did not carry the expected header columns."""

    def __init__(self, header: str, missing: tuple[str, ...]) -> None:
        self.header = header
        self.missing = missing
        super().__init__(
            f"Could not parse table header, missing column(s) {', '.join(missing)}: {header!r}"
        )


class ImageInUse(DistroBearError):
    """Image is referenced by one or more containers."""

    def __init__(self, image: str, containers: list[str]) -> None:
        self.image = image
        self.containers = containers
        names = ", ".join(f'"{c}"' for c in containers)
        super().__init__(
            f"Cannot delete image. It is being used by container(s): {names}.\n"
            "Please delete the container(s) first."
        )


class AutostartError(DistroBearError):
    """Autostart service could not be installed."""


class InstallError(DistroBearError):
    """Dependency installation failed."""


class UnsupportedPackageManager(InstallError):
    """Runtime is missing and no known package manager is present."""

    def __init__(self, runtime: str, managers: tuple[str, ...]) -> None:
        self.runtime = runtime
        self.managers = managers
        super().__init__(
            f"{runtime} is not installed, and could not detect a supported package manager "
            f"({', '.join(managers)}) to install it."
        )


class DownloadToolMissing(InstallError):
    """Neither curl nor wget is available."""

    def __init__(self) -> None:
        super().__init__(
            "curl or wget is required to download the installer. "
            "Please install either curl or wget and try again."
        )


class VerificationFailed(InstallError):
    """Post-install check could not find one of the installed binaries."""

    def __init__(
        self, *, runtime: str, runtime_found: bool, manager: str, manager_found: bool
    ) -> None:
        self.runtime_found = runtime_found
        self.manager_found = manager_found
        super().__init__(
            "Verification failed after installation. "
            f"{runtime} found: {runtime_found}, {manager} found: {manager_found}. "
            'Your shell PATH may not include "~/.local/bin". '
            "A manual shell restart or logout/login may be required."
        )


class OperationFailed(DistroBearError):
    """A user action failed; the message is a short context followed by the tool's error."""

    def __init__(self, context: str, detail: str) -> None:
        self.context = context
        self.detail = detail
        super().__init__(f"{context}: {detail}")
