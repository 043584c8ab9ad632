# SPDX-License-Identifier: BSD-2-Clause
# Copyright (c) deftio llc

"""Input sanitisation and host path helpers."""

from __future__ import annotations

import re
from pathlib import Path

from distrobear.errors import InvalidName

_KIB = 1024

_NAME_DISALLOWED = re.compile(r"[^A-Za-z0-9_.-]")
_APP_DISALLOWED = re.compile(r"[^A-Za-z0-9_.\s-]")
_SHELL_METACHARS = re.compile(r"[`$();|&<>]")


def sanitize_name(value: object, kind: str = "container name") -> str:
    """Keep only ``[A-Za-z0-9_.-]`` from *value*.

    Raises:
        InvalidName: If nothing is left.

    """
    cleaned = _NAME_DISALLOWED.sub("", str(value))
    if not cleaned:
        raise InvalidName(kind)
    return cleaned


def strip_metachars(value: object) -> str:
    """Drop backticks, ``$``, parentheses and the ``;|&<>`` operators from *value*."""
    return _SHELL_METACHARS.sub("", str(value)).strip()


def sanitize_ref(value: object, kind: str = "image identifier") -> str:
    """Strip shell metacharacters from an image reference or path.

    Raises:
        InvalidName: If nothing is left.

    """
    cleaned = strip_metachars(value)
    if not cleaned:
        raise InvalidName(kind)
    return cleaned


def sanitize_app(value: object) -> str:
    """Sanitise a ``.desktop`` file name (spaces allowed)."""
    cleaned = _APP_DISALLOWED.sub("", str(value))
    if not cleaned.strip():
        raise InvalidName("application name")
    return cleaned


def host_home() -> str:
    return str(Path.home())


def host_applications_dir() -> Path:
    """Directory where exported launchers land on the host."""
    return Path.home() / ".local" / "share" / "applications"


def isolated_home(name: str) -> Path:
    """Default home directory for an isolated container."""
    return Path.home() / ".local" / "share" / "distrobox" / "homes" / name


def format_bytes(n: int) -> str:
    """Format a byte count as a human-readable string (e.g. ``42.1 MB``)."""
    if n < 0:
        return "0 B"
    value = float(n)
    for unit in ("B", "KB", "MB", "GB"):
        if value < _KIB:
            if unit == "B":
                return f"{int(value)} B"
            return f"{value:.1f} {unit}"
        value /= _KIB
    return f"{value:.1f} TB"
