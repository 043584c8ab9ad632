# SPDX-License-Identifier: BSD-2-Clause
# Copyright (c) deftio llc

"""Wire every backend service together from a :class:`DistroBearConfig`."""

from __future__ import annotations

import dataclasses
from pathlib import Path

from distrobear._callbacks import INSTALLATION_FEED, CallbackRegistry
from distrobear._config import DistroBearConfig, load_config
from distrobear._controller import CancelableOperation
from distrobear._diagnostics import DiagnosticLog, HistoryWriter
from distrobear._executor import CommandExecutor
from distrobear.applications import ApplicationService
from distrobear.autostart import AutostartManager
from distrobear.containers import ContainerService
from distrobear.images import ImageService
from distrobear.installer import PrivilegedInstaller
from distrobear.resolver import DependencyResolver
from distrobear.system import SystemService
from distrobear.types import LogEntry


@dataclasses.dataclass
class Backend:
    """Process-scoped set of services sharing one log, executor and controller."""

    config: DistroBearConfig
    callbacks: CallbackRegistry
    log: DiagnosticLog
    executor: CommandExecutor
    resolver: DependencyResolver
    controller: CancelableOperation
    autostart: AutostartManager
    installer: PrivilegedInstaller
    containers: ContainerService
    images: ImageService
    applications: ApplicationService
    system: SystemService

    async def install_dependencies(self) -> None:
        """Run the installer, streaming progress to the ``installation-log`` feed."""
        await self.installer.install(self.callbacks.feed(INSTALLATION_FEED))

    def get_logs(self) -> list[LogEntry]:
        return self.log.snapshot()

    def clear_logs(self) -> None:
        self.log.clear()


def create_backend(
    config: DistroBearConfig | None = None,
    *,
    executor: CommandExecutor | None = None,
) -> Backend:
    """Build a :class:`Backend`; *config* defaults to :func:`load_config`."""
    if config is None:
        config = load_config()

    callbacks = CallbackRegistry()
    history = None
    if config.history_file:
        history = HistoryWriter(Path(config.history_file).expanduser(), enabled=config.auto_log)
    log = DiagnosticLog(config.log_capacity, history=history, callbacks=callbacks)

    if executor is None:
        executor = CommandExecutor(
            log, shell=config.shell, login=config.login_shell, extra_path=config.extra_path
        )
    resolver = DependencyResolver(
        executor,
        runtime_preference=config.runtime_preference,
        terminal_override=config.terminal,
    )
    controller = CancelableOperation()
    autostart = AutostartManager(executor, resolver, log)
    installer = PrivilegedInstaller(
        executor,
        resolver,
        log,
        runtime=config.runtime_preference[0],
        manager=config.sandbox_manager,
        install_prefix=config.install_prefix,
        script_url=config.install_script_url,
        escalation=config.escalation,
    )
    return Backend(
        config=config,
        callbacks=callbacks,
        log=log,
        executor=executor,
        resolver=resolver,
        controller=controller,
        autostart=autostart,
        installer=installer,
        containers=ContainerService(
            executor, resolver, autostart, log, callbacks, manager=config.sandbox_manager
        ),
        images=ImageService(executor, resolver, log, callbacks, controller),
        applications=ApplicationService(executor, resolver, log, manager=config.sandbox_manager),
        system=SystemService(
            executor,
            resolver,
            log,
            manager=config.sandbox_manager,
            runtime=config.runtime_preference[0],
        ),
    )
