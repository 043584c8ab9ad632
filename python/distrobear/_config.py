# SPDX-License-Identifier: BSD-2-Clause
# Copyright (c) deftio llc

"""Configuration loading with explicit-file -> user-level precedence."""

from __future__ import annotations

import dataclasses
import os
from pathlib import Path
from typing import Any

import yaml

_CONFIG_FILENAME = "distrobear.yaml"
_TUPLE_FIELDS = ("runtime_preference", "escalation", "extra_path")


@dataclasses.dataclass(frozen=True)
class DistroBearConfig:
    """Resolved distrobear configuration."""

    log_capacity: int = 200
    history_file: str | None = None
    auto_log: bool = True
    shell: str = "/bin/bash"
    login_shell: bool = True
    runtime_preference: tuple[str, ...] = ("podman", "docker")
    sandbox_manager: str = "distrobox"
    install_prefix: str = "~/.local"
    install_script_url: str = "https://raw.githubusercontent.com/89luca89/distrobox/main/install"
    escalation: tuple[str, ...] = ("pkexec", "sudo")
    terminal: str | None = None
    extra_path: tuple[str, ...] = ("~/.local/bin",)

    @property
    def manager_binary(self) -> Path:
        """Conventional install location of the sandbox manager executable."""
        return Path(self.install_prefix).expanduser() / "bin" / self.sandbox_manager


def user_config_path() -> Path:
    """Return ``$XDG_CONFIG_HOME/distrobear/distrobear.yaml``."""
    base = os.environ.get("XDG_CONFIG_HOME") or str(Path.home() / ".config")
    return Path(base) / "distrobear" / _CONFIG_FILENAME


def load_config(path: Path | None = None) -> DistroBearConfig:
    """Load configuration with precedence: explicit file > user file > defaults.

    1. Start with defaults
    2. Overlay user-level ``~/.config/distrobear/distrobear.yaml`` (if exists)
    3. Overlay *path* (if given and exists)
    """
    overrides: dict[str, Any] = {}

    user_config = user_config_path()
    if user_config.is_file():
        _merge_yaml(overrides, user_config)

    if path is not None and path.is_file():
        _merge_yaml(overrides, path)

    return _build_config(overrides)


def _merge_yaml(target: dict[str, Any], path: Path) -> None:
    """Parse a YAML file and merge its values into *target*."""
    try:
        data = yaml.safe_load(path.read_text())
    except yaml.YAMLError:
        return
    if not isinstance(data, dict):
        return

    for key, value in data.items():
        if key == "logging" and isinstance(value, dict):
            # Flatten logging sub-keys into top-level config keys
            target.update(value)
        else:
            target[key] = value


def _build_config(overrides: dict[str, Any]) -> DistroBearConfig:
    """Build a ``DistroBearConfig`` from a dict of overrides."""
    field_names = {f.name for f in dataclasses.fields(DistroBearConfig)}
    filtered = {k: v for k, v in overrides.items() if k in field_names}
    for key in _TUPLE_FIELDS:
        if key in filtered:
            value = filtered[key]
            filtered[key] = (value,) if isinstance(value, str) else tuple(value)
    return DistroBearConfig(**filtered)
