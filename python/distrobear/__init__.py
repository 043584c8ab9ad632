# SPDX-License-Identifier: BSD-2-Clause
# Copyright (c) deftio llc

from __future__ import annotations

from importlib.metadata import version

from distrobear._callbacks import (
    CREATION_FEED,
    IMAGE_PULL_FEED,
    INSTALLATION_FEED,
    CallbackRegistry,
)
from distrobear._config import DistroBearConfig, load_config
from distrobear._controller import CancelableOperation
from distrobear._diagnostics import DiagnosticLog, HistoryWriter
from distrobear._executor import CommandExecutor, build_command_line, quote_arg
from distrobear._parser import ColumnTableParser, ListParser, TableParse
from distrobear.applications import ApplicationService
from distrobear.autostart import AutostartManager
from distrobear.backend import Backend, create_backend
from distrobear.containers import ContainerService
from distrobear.errors import (
    AutostartError,
    Canceled,
    CommandError,
    CommandFailed,
    CommandSpawnError,
    DistroBearError,
    DownloadToolMissing,
    ImageInUse,
    InstallError,
    InvalidName,
    NoRuntimeFound,
    NotFound,
    OperationFailed,
    ParseDegraded,
    TerminalNotFound,
    UnsupportedPackageManager,
    VerificationFailed,
)
from distrobear.images import ImageService
from distrobear.installer import InstallState, PrivilegedInstaller
from distrobear.resolver import DependencyResolver
from distrobear.system import SystemService
from distrobear.types import (
    CommandResult,
    CommandSpec,
    ContainerDetail,
    ContainerList,
    ContainerRecord,
    CreateOptions,
    DependencyReport,
    DependencyStatus,
    LogEntry,
    LogLevel,
    OperationResult,
    StreamChunk,
    VolumeMapping,
)

__version__ = version("distrobear")


def get_version() -> str:
    """Return the distrobear package version string."""
    return __version__


__all__ = [
    "CREATION_FEED",
    "IMAGE_PULL_FEED",
    "INSTALLATION_FEED",
    "ApplicationService",
    "AutostartError",
    "AutostartManager",
    "Backend",
    "CallbackRegistry",
    "CancelableOperation",
    "Canceled",
    "ColumnTableParser",
    "CommandError",
    "CommandExecutor",
    "CommandFailed",
    "CommandResult",
    "CommandSpawnError",
    "CommandSpec",
    "ContainerDetail",
    "ContainerList",
    "ContainerRecord",
    "ContainerService",
    "CreateOptions",
    "DependencyReport",
    "DependencyResolver",
    "DependencyStatus",
    "DiagnosticLog",
    "DistroBearConfig",
    "DistroBearError",
    "DownloadToolMissing",
    "HistoryWriter",
    "ImageInUse",
    "ImageService",
    "InstallError",
    "InstallState",
    "InvalidName",
    "ListParser",
    "LogEntry",
    "LogLevel",
    "NoRuntimeFound",
    "NotFound",
    "OperationFailed",
    "OperationResult",
    "ParseDegraded",
    "PrivilegedInstaller",
    "StreamChunk",
    "SystemService",
    "TableParse",
    "TerminalNotFound",
    "UnsupportedPackageManager",
    "VerificationFailed",
    "VolumeMapping",
    "__version__",
    "build_command_line",
    "create_backend",
    "get_version",
    "load_config",
    "quote_arg",
]
