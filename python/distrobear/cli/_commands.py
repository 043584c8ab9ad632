# SPDX-License-Identifier: BSD-2-Clause
# Copyright (c) deftio llc

"""CLI command implementations."""

from __future__ import annotations

import asyncio
import signal
from pathlib import Path
from typing import TYPE_CHECKING, TypeVar

import click

from distrobear.cli._output import (
    format_application_list,
    format_container_info,
    format_container_list,
    format_dependency_report,
    format_error,
    format_image_list,
    format_log_entries,
    format_system_info,
    print_success,
    write_feed,
)
from distrobear.errors import Canceled, DistroBearError

if TYPE_CHECKING:
    from collections.abc import Callable, Coroutine
    from typing import Any

    from distrobear.backend import Backend
    from distrobear.cli.main import CliContext
    from distrobear.types import OSInfo, VersionInfo, VolumeMapping

T = TypeVar("T")

_EXIT_CANCELED = 130


def _get_ctx(ctx: click.Context) -> CliContext:
    """Extract the CliContext from Click's context object."""
    return ctx.obj  # type: ignore[no-any-return]


def _call(ctx: click.Context, action: Callable[[Backend], Coroutine[Any, Any, T]]) -> T:
    """Run *action* against the backend, mapping errors to exit codes."""
    backend = _get_ctx(ctx).backend()
    try:
        return asyncio.run(action(backend))
    except Canceled as exc:
        click.echo("Canceled.", err=True)
        raise SystemExit(_EXIT_CANCELED) from exc
    except DistroBearError as exc:
        format_error(exc)
        raise SystemExit(1) from exc


def _feed_to_stdout(backend: Backend, channel: str) -> Callable[[], None]:
    return backend.callbacks.subscribe(channel, write_feed)


# ---------------------------------------------------------------------------
# Container commands
# ---------------------------------------------------------------------------


@click.command("list")
@click.option("--json", "json_output", is_flag=True, help="Output as JSON.")
@click.pass_context
def list_cmd(ctx: click.Context, *, json_output: bool) -> None:
    """List distrobox containers."""
    items = _call(ctx, lambda b: b.containers.list_containers())
    format_container_list(items, json_output=json_output)


@click.command("info")
@click.argument("container")
@click.option("--json", "json_output", is_flag=True, help="Output as JSON.")
@click.pass_context
def info_cmd(ctx: click.Context, container: str, *, json_output: bool) -> None:
    """Show detailed container information."""
    info = _call(ctx, lambda b: b.containers.info(container))
    format_container_info(info, json_output=json_output)


@click.command("start")
@click.argument("container")
@click.pass_context
def start_cmd(ctx: click.Context, container: str) -> None:
    """Start a container."""
    _call(ctx, lambda b: b.containers.start(container))
    print_success(f"Container {container} started")


@click.command("stop")
@click.argument("container")
@click.pass_context
def stop_cmd(ctx: click.Context, container: str) -> None:
    """Stop a running container."""
    _call(ctx, lambda b: b.containers.stop(container))
    print_success(f"Container {container} stopped")


@click.command("rm")
@click.argument("container")
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation prompt.")
@click.pass_context
def rm_cmd(ctx: click.Context, container: str, *, yes: bool) -> None:
    """Delete a container."""
    from distrobear.cli._output import confirm_destructive  # noqa: PLC0415

    if not yes and not confirm_destructive(f"Delete container '{container}'?"):
        click.echo("Aborted.")
        return
    _call(ctx, lambda b: b.containers.delete(container))
    print_success(f"Container {container} deleted")


@click.command("enter")
@click.argument("container")
@click.pass_context
def enter_cmd(ctx: click.Context, container: str) -> None:
    """Open a container in a new terminal window."""
    terminal = _call(ctx, lambda b: b.containers.enter(container))
    print_success(f"Opened {container} in {terminal}")


@click.command("commit")
@click.argument("container")
@click.argument("image")
@click.option("--tag", default="latest", show_default=True, help="Image tag.")
@click.pass_context
def commit_cmd(ctx: click.Context, container: str, image: str, tag: str) -> None:
    """Save a container as a new image."""
    reference = _call(ctx, lambda b: b.containers.commit(container, image, tag))
    print_success(f"Container {container} saved as {reference}")


def _parse_volumes(values: tuple[str, ...]) -> tuple[VolumeMapping, ...]:
    from distrobear.types import VolumeMapping  # noqa: PLC0415

    mappings = []
    for value in values:
        host, sep, target = value.partition(":")
        if not sep or not host or not target:
            msg = f"expected HOST:CONTAINER, got {value!r}"
            raise click.BadParameter(msg, param_hint="--volume")
        mappings.append(VolumeMapping(host_path=host, container_path=target))
    return tuple(mappings)


@click.command("create")
@click.argument("name")
@click.option("--image", "-i", required=True, help="Image to create the container from.")
@click.option("--init", "use_init", is_flag=True, help="Run an init system in the container.")
@click.option("--nvidia", is_flag=True, help="Share the host's NVIDIA drivers.")
@click.option("--isolated", is_flag=True, help="Use a separate home directory.")
@click.option("--home", "custom_home", default="", help="Home directory for --isolated.")
@click.option("--volume", multiple=True, help="Volume mount HOST:CONTAINER.")
@click.pass_context
def create_cmd(  # noqa: PLR0913
    ctx: click.Context,
    name: str,
    *,
    image: str,
    use_init: bool,
    nvidia: bool,
    isolated: bool,
    custom_home: str,
    volume: tuple[str, ...],
) -> None:
    """Create a new container, streaming distrobox output."""
    from distrobear._callbacks import CREATION_FEED  # noqa: PLC0415
    from distrobear.types import CreateOptions  # noqa: PLC0415

    options = CreateOptions(
        name=name,
        image=image,
        init=use_init,
        nvidia=nvidia,
        isolated=isolated,
        custom_home=custom_home,
        volumes=_parse_volumes(volume),
    )

    async def create(backend: Backend) -> None:
        unsubscribe = _feed_to_stdout(backend, CREATION_FEED)
        try:
            await backend.containers.create(options)
        finally:
            unsubscribe()

    _call(ctx, create)
    print_success(f"Container {name} created")


@click.group("autostart")
def autostart_group() -> None:
    """Manage start-on-login services for containers."""


@autostart_group.command("enable")
@click.argument("container")
@click.pass_context
def autostart_enable_cmd(ctx: click.Context, container: str) -> None:
    """Install and enable the systemd user service for a container."""
    _call(ctx, lambda b: b.autostart.enable(container))
    print_success(f"Autostart enabled for {container}")


@autostart_group.command("disable")
@click.argument("container")
@click.pass_context
def autostart_disable_cmd(ctx: click.Context, container: str) -> None:
    """Disable and remove the systemd user service for a container."""
    _call(ctx, lambda b: b.autostart.disable(container))
    print_success(f"Autostart disabled for {container}")


@autostart_group.command("status")
@click.argument("container")
@click.option("--json", "json_output", is_flag=True, help="Output as JSON.")
@click.pass_context
def autostart_status_cmd(ctx: click.Context, container: str, *, json_output: bool) -> None:
    """Show whether a container starts on login."""
    from distrobear.cli._output import click_echo_json  # noqa: PLC0415

    enabled = _call(ctx, lambda b: b.autostart.is_enabled(container))
    if json_output:
        click_echo_json({"container": container, "enabled": enabled})
        return
    click.echo(f"{container}: {'enabled' if enabled else 'disabled'}")


# ---------------------------------------------------------------------------
# Setup commands
# ---------------------------------------------------------------------------


@click.command("deps")
@click.option("--json", "json_output", is_flag=True, help="Output as JSON.")
@click.pass_context
def deps_cmd(ctx: click.Context, *, json_output: bool) -> None:
    """Check that distrobox and podman are installed."""
    report = _call(ctx, lambda b: b.system.check_dependencies())
    format_dependency_report(report, json_output=json_output)
    if report.needs_setup:
        raise SystemExit(1)


@click.command("setup")
@click.pass_context
def setup_cmd(ctx: click.Context) -> None:
    """Install podman (with elevated privileges) and distrobox."""
    from distrobear._callbacks import INSTALLATION_FEED  # noqa: PLC0415

    async def setup(backend: Backend) -> None:
        unsubscribe = _feed_to_stdout(backend, INSTALLATION_FEED)
        try:
            await backend.install_dependencies()
        finally:
            unsubscribe()

    _call(ctx, setup)
    print_success("Dependencies installed")


# ---------------------------------------------------------------------------
# Image commands
# ---------------------------------------------------------------------------


@click.command("images")
@click.option("--json", "json_output", is_flag=True, help="Output as JSON.")
@click.pass_context
def images_cmd(ctx: click.Context, *, json_output: bool) -> None:
    """List local images."""
    images = _call(ctx, lambda b: b.images.list_images())
    format_image_list(images, json_output=json_output)


@click.command("pull")
@click.argument("image")
@click.pass_context
def pull_cmd(ctx: click.Context, image: str) -> None:
    """Pull an image; Ctrl-C cancels the download."""
    from distrobear._callbacks import IMAGE_PULL_FEED  # noqa: PLC0415

    async def pull(backend: Backend) -> None:
        loop = asyncio.get_running_loop()
        loop.add_signal_handler(signal.SIGINT, backend.images.cancel_pull)
        unsubscribe = _feed_to_stdout(backend, IMAGE_PULL_FEED)
        try:
            await backend.images.pull(image)
        finally:
            unsubscribe()
            loop.remove_signal_handler(signal.SIGINT)

    _call(ctx, pull)
    print_success(f"Pulled {image}")


@click.command("rmi")
@click.argument("image")
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation prompt.")
@click.pass_context
def rmi_cmd(ctx: click.Context, image: str, *, yes: bool) -> None:
    """Delete a local image that no container uses."""
    from distrobear.cli._output import confirm_destructive  # noqa: PLC0415

    if not yes and not confirm_destructive(f"Delete image '{image}'?"):
        click.echo("Aborted.")
        return
    _call(ctx, lambda b: b.images.delete(image))
    print_success(f"Image {image} deleted")


@click.command("save")
@click.argument("image")
@click.option("-o", "--output", default=None, type=click.Path(), help="Output tar file path.")
@click.pass_context
def save_cmd(ctx: click.Context, image: str, output: str | None) -> None:
    """Export an image to a tar archive."""
    from distrobear.images import default_archive_name  # noqa: PLC0415

    target = output or default_archive_name(image)
    result = _call(ctx, lambda b: b.images.export_image(image, target))
    print_success(result.message)


@click.command("load")
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@click.pass_context
def load_cmd(ctx: click.Context, file: str) -> None:
    """Import images from a tar archive."""
    result = _call(ctx, lambda b: b.images.import_image(file))
    print_success(result.message)


# ---------------------------------------------------------------------------
# Application commands
# ---------------------------------------------------------------------------


@click.command("apps")
@click.option("--json", "json_output", is_flag=True, help="Output as JSON.")
@click.pass_context
def apps_cmd(ctx: click.Context, *, json_output: bool) -> None:
    """List applications available in running containers."""
    apps = _call(ctx, lambda b: b.applications.list_applications())
    format_application_list(apps, json_output=json_output)


@click.command("app-export")
@click.argument("container")
@click.argument("app")
@click.pass_context
def app_export_cmd(ctx: click.Context, container: str, app: str) -> None:
    """Add a container application's launcher to the host menu."""
    _call(ctx, lambda b: b.applications.export(container, app))
    print_success(f"Exported {app} from {container}")


@click.command("app-unexport")
@click.argument("container")
@click.argument("app")
@click.pass_context
def app_unexport_cmd(ctx: click.Context, container: str, app: str) -> None:
    """Remove a container application's launcher from the host menu."""
    _call(ctx, lambda b: b.applications.unexport(container, app))
    print_success(f"Removed {app} launcher for {container}")


# ---------------------------------------------------------------------------
# Diagnostics
# ---------------------------------------------------------------------------


@click.command("logs")
@click.option("--last", "last_n", type=int, default=50, help="Number of entries to show.")
@click.option("--clear", is_flag=True, help="Clear the diagnostic log.")
@click.option("--json", "json_output", is_flag=True, help="Output as JSON.")
@click.pass_context
def logs_cmd(ctx: click.Context, *, last_n: int, clear: bool, json_output: bool) -> None:
    """View the diagnostic log (requires 'history_file' to persist across runs)."""
    from distrobear._diagnostics import read_history  # noqa: PLC0415

    backend = _get_ctx(ctx).backend()
    if clear:
        backend.clear_logs()
        print_success("Logs cleared")
        return

    history = backend.config.history_file
    entries = read_history(Path(history).expanduser()) if history else backend.get_logs()
    format_log_entries(
        entries[-last_n:] if last_n > 0 else entries,
        json_output=json_output,
        persisted=bool(history),
    )


@click.command("sysinfo")
@click.option("--json", "json_output", is_flag=True, help="Output as JSON.")
@click.pass_context
def sysinfo_cmd(ctx: click.Context, *, json_output: bool) -> None:
    """Show host and tool version information."""

    async def gather(backend: Backend) -> tuple[OSInfo, VersionInfo, str | None]:
        versions, terminal = await asyncio.gather(
            backend.system.versions(), backend.system.terminal()
        )
        return backend.system.os_info(), versions, terminal

    info, versions, terminal = _call(ctx, gather)
    format_system_info(info, versions, terminal, json_output=json_output)


@click.command("terminal")
@click.pass_context
def terminal_cmd(ctx: click.Context) -> None:
    """Show the terminal emulator used by 'enter'."""
    terminal = _call(ctx, lambda b: b.system.terminal())
    if terminal is None:
        click.echo("No supported terminal emulator found.", err=True)
        raise SystemExit(1)
    click.echo(terminal)
