# SPDX-License-Identifier: BSD-2-Clause
# Copyright (c) deftio llc

"""Callback registry for log entries and UI-facing output feeds."""

from __future__ import annotations

import contextlib
import threading
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Callable

INSTALLATION_FEED = "installation-log"
CREATION_FEED = "creation-log"
IMAGE_PULL_FEED = "image-pull-log"


class CallbackRegistry:
    """Registry of per-channel callbacks.

    Errors in callbacks are suppressed to avoid breaking the producer.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._cbs: dict[str, list[Callable[[object], object]]] = {}

    def subscribe(self, channel: str, fn: Callable[[object], object]) -> Callable[[], None]:
        """Register ``fn(payload)`` on *channel*; return a function that unregisters it."""
        with self._lock:
            self._cbs.setdefault(channel, []).append(fn)

        def unsubscribe() -> None:
            with self._lock:
                cbs = self._cbs.get(channel, [])
                if fn in cbs:
                    cbs.remove(fn)

        return unsubscribe

    def dispatch(self, channel: str, payload: object) -> None:
        """Fire all callbacks on *channel*, suppressing errors."""
        with self._lock:
            cbs = list(self._cbs.get(channel, ()))
        for fn in cbs:
            with contextlib.suppress(Exception):
                fn(payload)

    def feed(self, channel: str) -> Callable[[str], None]:
        """Return a ``write(text)`` callable that dispatches on *channel*."""

        def write(text: str) -> None:
            self.dispatch(channel, text)

        return write
