# SPDX-License-Identifier: BSD-2-Clause
# Copyright (c) deftio llc

"""Rich output formatters for the CLI."""

from __future__ import annotations

import dataclasses
import json
import sys
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence

    from distrobear.errors import DistroBearError
    from distrobear.types import (
        ApplicationList,
        ContainerDetail,
        ContainerList,
        DependencyReport,
        LocalImage,
        LogEntry,
        OSInfo,
        VersionInfo,
    )

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from distrobear._helpers import format_bytes

_console = Console()
_err_console = Console(stderr=True)

_LEVEL_STYLES = {"INFO": "cyan", "WARN": "yellow", "ERROR": "red"}


def _status_style(status: str) -> str:
    lowered = status.lower()
    return "green" if lowered.startswith(("up", "running")) else "yellow"


def format_container_list(items: ContainerList, *, json_output: bool = False) -> None:
    """Print a list of containers as a rich table or JSON."""
    degraded = bool(getattr(items, "degraded", False))
    if json_output:
        click_echo_json(
            {"containers": [dataclasses.asdict(item) for item in items], "degraded": degraded}
        )
        return

    if degraded:
        _err_console.print(
            "[yellow]Could not parse the container list; "
            "run 'distrobear logs' for the raw header.[/yellow]"
        )
        return
    if not items:
        _console.print("[dim]No containers found.[/dim]")
        return

    table = Table(title="Containers")
    table.add_column("Name", style="cyan")
    table.add_column("Status")
    table.add_column("Image")
    table.add_column("Autostart")
    table.add_column("Home")

    for item in items:
        style = _status_style(item.status)
        table.add_row(
            escape(item.name),
            f"[{style}]{escape(item.status)}[/{style}]",
            escape(item.image),
            "yes" if item.is_autostart_enabled else "no",
            "isolated" if item.is_isolated else "host",
        )

    _console.print(table)


def format_container_info(info: ContainerDetail, *, json_output: bool = False) -> None:
    """Print container details as a rich panel or JSON."""
    if json_output:
        click_echo_json(dataclasses.asdict(info))
        return

    style = _status_style(info.status)
    flag_values = (("init", info.init), ("nvidia", info.nvidia), ("root", info.root))
    flags = [name for name, on in flag_values if on]
    lines = [
        f"[bold]ID:[/bold]         {info.id}",
        f"[bold]Status:[/bold]     [{style}]{info.status}[/{style}]",
        f"[bold]Image:[/bold]      {info.image}",
        f"[bold]Created:[/bold]    {info.created}",
        f"[bold]PID:[/bold]        {info.pid}",
        f"[bold]Entrypoint:[/bold] {escape(info.entrypoint)}",
        f"[bold]Backend:[/bold]    {info.backend}",
        f"[bold]Size:[/bold]       {info.size}",
        f"[bold]Home:[/bold]       {escape(info.home_dir)}",
        f"[bold]User:[/bold]       {info.user_name}",
        f"[bold]Hostname:[/bold]   {info.hostname}",
        f"[bold]Flags:[/bold]      {', '.join(flags) or '-'}",
    ]
    if info.volumes:
        lines.append("[bold]Volumes:[/bold]")
        lines.extend(f"  {escape(v)}" for v in info.volumes)

    _console.print(Panel("\n".join(lines), title=f"[cyan]{info.name}[/cyan]", expand=False))


def format_dependency_report(report: DependencyReport, *, json_output: bool = False) -> None:
    if json_output:
        click_echo_json(dataclasses.asdict(report))
        return

    lines = [
        f"[green]✓[/green] {dep.name}" if dep.is_installed else f"[red]✗[/red] {dep.name}"
        for dep in report.dependencies
    ]
    if report.needs_setup:
        lines.append("\n[yellow]Setup required:[/yellow] run 'distrobear setup'.")
    _console.print(Panel("\n".join(lines), title="Dependencies", expand=False))


def format_image_list(images: Sequence[LocalImage], *, json_output: bool = False) -> None:
    if json_output:
        click_echo_json([dataclasses.asdict(img) for img in images])
        return

    if not images:
        _console.print("[dim]No local images found.[/dim]")
        return

    table = Table(title="Local Images")
    table.add_column("Repository", style="cyan")
    table.add_column("Tag")
    table.add_column("ID", style="dim")
    table.add_column("Size")
    table.add_column("Created", style="dim")
    for img in images:
        table.add_row(img.repository, img.tag, img.id, img.size, img.created)
    _console.print(table)


def format_application_list(apps: ApplicationList, *, json_output: bool = False) -> None:
    if json_output:
        click_echo_json(dataclasses.asdict(apps))
        return

    if apps.applications:
        table = Table(title="Applications")
        table.add_column("Name", style="cyan")
        table.add_column("Desktop file", style="dim")
        table.add_column("Container")
        table.add_column("Exported")
        for app in apps.applications:
            table.add_row(
                app.name, app.app_name, app.container_name, "yes" if app.is_exported else "no"
            )
        _console.print(table)
    else:
        _console.print("[dim]No applications found in running containers.[/dim]")

    if apps.unscanned_containers:
        _console.print(
            f"[yellow]Not scanned (stopped):[/yellow] {', '.join(apps.unscanned_containers)}"
        )


def format_log_entries(
    entries: Sequence[LogEntry], *, json_output: bool = False, persisted: bool = True
) -> None:
    """Print diagnostic log entries as a level-coloured table or JSON.

    *persisted* is False when entries come only from the current process.
    """
    if json_output:
        click_echo_json([dataclasses.asdict(e) for e in entries])
        return

    if not entries:
        _console.print("[dim]No log entries found.[/dim]")
        if not persisted:
            _console.print(
                "[dim]Set 'history_file' in distrobear.yaml to keep the log across runs.[/dim]"
            )
        return

    table = Table(title="Diagnostic Log")
    table.add_column("Timestamp", style="dim")
    table.add_column("Level")
    table.add_column("Message")
    table.add_column("Details", style="dim")
    for entry in entries:
        level = entry.level.value
        style = _LEVEL_STYLES.get(level, "")
        table.add_row(
            entry.timestamp.isoformat(timespec="seconds"),
            f"[{style}]{level}[/{style}]",
            escape(entry.message),
            escape((entry.details or "")[:200]),
        )
    _console.print(table)


def print_log_entry(entry: LogEntry) -> None:
    """Print one live log entry to stderr (``--verbose``)."""
    level = entry.level.value
    style = _LEVEL_STYLES.get(level, "")
    _err_console.print(f"[{style}]{level:<5}[/{style}] {escape(entry.message)}", highlight=False)


def format_system_info(
    info: OSInfo, versions: VersionInfo, terminal: str | None, *, json_output: bool = False
) -> None:
    if json_output:
        click_echo_json(
            {
                "os": dataclasses.asdict(info),
                "versions": dataclasses.asdict(versions),
                "terminal": terminal,
            }
        )
        return

    lines = [
        f"[bold]Host:[/bold]      {info.hostname}",
        f"[bold]Platform:[/bold]  {info.platform} {info.release} ({info.arch})",
        f"[bold]Memory:[/bold]    {format_bytes(info.freemem)} free / "
        f"{format_bytes(info.totalmem)}",
        f"[bold]Distrobox:[/bold] {versions.distrobox}",
        f"[bold]Podman:[/bold]    {versions.podman}",
        f"[bold]Terminal:[/bold]  {terminal or '[dim]none found[/dim]'}",
    ]
    _console.print(Panel("\n".join(lines), title="System Information", expand=False))


def write_feed(text: object) -> None:
    """Write streamed tool output straight to stdout."""
    sys.stdout.write(str(text))
    sys.stdout.flush()


def format_error(err: DistroBearError) -> None:
    """Print an error as a rich panel with suggestions."""
    title, suggestion = _error_info(err)
    lines = [escape(str(err))]
    if suggestion:
        lines.append(f"\n[dim]{suggestion}[/dim]")

    panel = Panel(
        "\n".join(lines),
        title=f"[red]{title}[/red]",
        expand=False,
    )
    _err_console.print(panel)


def _error_info(err: DistroBearError) -> tuple[str, str]:
    """Map an error to a title and suggestion string."""
    from distrobear.errors import (  # noqa: PLC0415
        AutostartError,
        CommandSpawnError,
        DownloadToolMissing,
        InvalidName,
        NoRuntimeFound,
        OperationFailed,
        ParseDegraded,
        TerminalNotFound,
        UnsupportedPackageManager,
        VerificationFailed,
    )

    if isinstance(err, NoRuntimeFound):
        return "Runtime Not Found", "Run 'distrobear setup' to install podman."
    if isinstance(err, TerminalNotFound):
        return "Terminal Not Found", "Set 'terminal:' in distrobear.yaml or install a terminal."
    if isinstance(err, UnsupportedPackageManager):
        return "Unsupported Package Manager", "Install podman manually, then rerun setup."
    if isinstance(err, DownloadToolMissing):
        return "Download Tool Missing", "Install curl or wget and rerun 'distrobear setup'."
    if isinstance(err, VerificationFailed):
        return "Verification Failed", "Open a new login shell, then run 'distrobear deps'."
    if isinstance(err, InvalidName):
        return "Invalid Input", "Names may contain letters, digits, '_', '.' and '-'."
    if isinstance(err, ParseDegraded):
        return "Unrecognised Output", "Check your distrobox version with 'distrobear sysinfo'."
    if isinstance(err, AutostartError):
        return "Autostart Failed", "Check that ~/.config/systemd/user is writable."
    if isinstance(err, CommandSpawnError):
        return "Command Not Started", "Check the 'shell:' setting in distrobear.yaml."
    if isinstance(err, OperationFailed):
        return "Operation Failed", "Run 'distrobear logs' for the full command trace."
    return "Error", ""


def print_success(msg: str) -> None:
    """Print a success message with a checkmark."""
    _console.print(f"[green]✓[/green] {msg}")


def confirm_destructive(msg: str) -> bool:
    """Prompt for confirmation. Returns True if confirmed."""
    return _console.input(f"[yellow]{msg} [y/N]:[/yellow] ").strip().lower() == "y"


def click_echo_json(data: object) -> None:
    """Serialize data to JSON and echo to stdout."""
    sys.stdout.write(json.dumps(data, indent=2, default=str) + "\n")
