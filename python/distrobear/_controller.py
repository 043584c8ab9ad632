# SPDX-License-Identifier: BSD-2-Clause
# Copyright (c) deftio llc

"""Single-slot tracker for the one cancelable long-running command."""

from __future__ import annotations

import contextlib
import os
import signal
import threading
from typing import TYPE_CHECKING

from distrobear.types import OperationResult

if TYPE_CHECKING:
    import asyncio
    from collections.abc import Callable

    from distrobear._executor import CommandExecutor
    from distrobear.types import CommandResult, CommandSpec, StreamChunk

NOTHING_TO_CANCEL = "No active pull process found."


class CancelableOperation:
    """Holds the handle of the in-flight cancelable process, if any.

    The caller is responsible for not starting a second operation while one
    is active.  The handle is cleared however the operation ends.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._process: asyncio.subprocess.Process | None = None

    @property
    def active(self) -> bool:
        with self._lock:
            return self._process is not None

    def _attach(self, process: asyncio.subprocess.Process) -> None:
        with self._lock:
            self._process = process

    def _release(self) -> None:
        with self._lock:
            self._process = None

    async def run(
        self,
        executor: CommandExecutor,
        spec: CommandSpec,
        on_chunk: Callable[[StreamChunk], object],
    ) -> CommandResult:
        """Stream *spec* through *executor*, exposing the process to :meth:`cancel`."""
        try:
            return await executor.run_streamed(spec, on_chunk, on_process=self._attach)
        finally:
            self._release()

    def cancel(self) -> OperationResult:
        """Send SIGTERM to the active process group; a no-op when nothing is running."""
        with self._lock:
            process = self._process
        if process is None or process.returncode is not None:
            return OperationResult(success=False, message=NOTHING_TO_CANCEL)
        try:
            os.killpg(process.pid, signal.SIGTERM)
        except (ProcessLookupError, PermissionError):
            with contextlib.suppress(ProcessLookupError):
                process.terminate()
        return OperationResult(success=True)
