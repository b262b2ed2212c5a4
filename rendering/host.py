"""
Deferred graph registration.

Components hand their render callback to ``ChartHost.add_graph()`` instead of
rendering straight away; the host runs queued callbacks on ``flush()`` (the
embedding app's "next frame") or immediately when ``immediate=True``.

The queue is shared between the caller's thread and the fetch pool, so it is
only touched under ``_lock``. Callbacks themselves run outside the lock.
"""

from __future__ import annotations

import logging
import threading
from collections import deque
from typing import Any, Callable, Optional

import plotly.graph_objects as go

logger = logging.getLogger("chartbind")


class ChartHost:
    """Queue of pending render callbacks plus the figures they produced."""

    def __init__(self, immediate: bool = False):
        self.immediate = immediate
        self._queue: deque[tuple[Callable[[], Any], Optional[Callable[[Any], Any]]]] = deque()
        self._lock = threading.RLock()
        self.figures: list[go.Figure] = []

    @property
    def pending(self) -> int:
        with self._lock:
            return len(self._queue)

    def add_graph(
        self,
        render: Callable[[], Any],
        on_complete: Optional[Callable[[Any], Any]] = None,
    ) -> None:
        """Register *render*; *on_complete* receives its result once it ran."""
        with self._lock:
            self._queue.append((render, on_complete))
        if self.immediate:
            self.flush()

    def _next(self):
        with self._lock:
            return self._queue.popleft() if self._queue else None

    def flush(self) -> int:
        """Run every queued render callback. Returns how many ran."""
        count = 0
        while True:
            item = self._next()
            if item is None:
                break
            render, on_complete = item
            result = render()
            if isinstance(result, go.Figure):
                with self._lock:
                    self.figures.append(result)
            if on_complete is not None:
                on_complete(result)
            count += 1
        if count:
            logger.debug(f"[Host] Rendered {count} graph(s)")
        return count

    @property
    def last_figure(self) -> Optional[go.Figure]:
        with self._lock:
            return self.figures[-1] if self.figures else None
