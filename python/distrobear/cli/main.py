# SPDX-License-Identifier: BSD-2-Clause
# Copyright (c) deftio llc

"""CLI entry point for distrobear."""

from __future__ import annotations

import dataclasses
from pathlib import Path
from typing import TYPE_CHECKING

import click

from distrobear import __version__

if TYPE_CHECKING:
    from distrobear.backend import Backend


@dataclasses.dataclass
class CliContext:
    """Shared state passed through Click's context object."""

    config: str | None = None
    verbose: bool = False
    _backend: Backend | None = dataclasses.field(default=None, repr=False)

    def backend(self) -> Backend:
        """Build the backend on first use; ``--verbose`` streams its log to stderr."""
        if self._backend is None:
            from distrobear._config import load_config  # noqa: PLC0415
            from distrobear.backend import create_backend  # noqa: PLC0415

            config = load_config(Path(self.config) if self.config else None)
            self._backend = create_backend(config)
            if self.verbose:
                from distrobear.cli._output import print_log_entry  # noqa: PLC0415

                self._backend.log.subscribe(print_log_entry)
        return self._backend


@click.group()
@click.option(
    "--config",
    envvar="DISTROBEAR_CONFIG",
    default=None,
    type=click.Path(dir_okay=False),
    help="Path to a distrobear.yaml file.",
)
@click.option("--verbose", "-v", is_flag=True, help="Stream diagnostic log entries to stderr.")
@click.version_option(version=__version__, prog_name="distrobear")
@click.pass_context
def cli(ctx: click.Context, config: str | None, *, verbose: bool) -> None:
    """Manage distrobox containers, images and exported applications."""
    ctx.ensure_object(dict)
    ctx.obj = CliContext(config=config, verbose=verbose)


# --- Register commands ---

from distrobear.cli._commands import (  # noqa: E402
    app_export_cmd,
    app_unexport_cmd,
    apps_cmd,
    autostart_group,
    commit_cmd,
    create_cmd,
    deps_cmd,
    enter_cmd,
    images_cmd,
    info_cmd,
    list_cmd,
    load_cmd,
    logs_cmd,
    pull_cmd,
    rm_cmd,
    rmi_cmd,
    save_cmd,
    setup_cmd,
    start_cmd,
    stop_cmd,
    sysinfo_cmd,
    terminal_cmd,
)

cli.add_command(list_cmd)
cli.add_command(info_cmd)
cli.add_command(start_cmd)
cli.add_command(stop_cmd)
cli.add_command(rm_cmd)
cli.add_command(enter_cmd)
cli.add_command(commit_cmd)
cli.add_command(create_cmd)
cli.add_command(autostart_group)
cli.add_command(deps_cmd)
cli.add_command(setup_cmd)
cli.add_command(images_cmd)
cli.add_command(pull_cmd)
cli.add_command(rmi_cmd)
cli.add_command(save_cmd)
cli.add_command(load_cmd)
cli.add_command(apps_cmd)
cli.add_command(app_export_cmd)
cli.add_command(app_unexport_cmd)
cli.add_command(logs_cmd)
cli.add_command(sysinfo_cmd)
cli.add_command(terminal_cmd)
