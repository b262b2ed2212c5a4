"""
Chart component: lifecycle shell around the resolver and the reconciler.

    mount()   → start loading a remote dataSource, register the first render
    update()  → re-render with the current bag and the resolved data
    unmount() → drop the model; loads that settle afterwards are ignored

A successful load updates DataSourceState and triggers update(), the same
way a state change re-renders a UI component.

Loads settle on the fetch pool's threads, so the lifecycle methods and
render_chart() hold one re-entrant lock per component: a re-render triggered
by a load never interleaves with a caller's update() or the host's flush().
"""

from __future__ import annotations

import threading
from collections.abc import Mapping
from types import MappingProxyType
from typing import Any, Callable, Optional

import plotly.graph_objects as go

from data_ops.resolver import DataSourceResolver, DataSourceState
from rendering.host import ChartHost
from rendering.models import ChartModel
from rendering.reconciler import SIZE, ConfigReconciler
from rendering.registry import create_model

from .diagnostics import Diagnostics
from .logging import get_logger, set_chart, set_debug

logger = get_logger()


class ChartComponent:
    """One chart instance bound to a property bag.

    Args:
        props: Property bag; ``type`` is required.
        host: Deferred-render host (renders immediately if omitted).
        diagnostics: Sink for deprecation notices.
        factory: Chart model factory keyed by type name.
        fetch: Default fetch provider for string data sources.
    """

    def __init__(
        self,
        props: Mapping[str, Any],
        *,
        host: Optional[ChartHost] = None,
        diagnostics: Optional[Diagnostics] = None,
        factory: Callable[[str], ChartModel] = create_model,
        fetch: Optional[Callable[[str], Any]] = None,
    ):
        self._lock = threading.RLock()
        self.diagnostics = diagnostics if diagnostics is not None else Diagnostics()
        self.host = host if host is not None else ChartHost(immediate=True)
        self.reconciler = ConfigReconciler(self.diagnostics, factory)
        self.resolver = DataSourceResolver(on_state_change=self._state_changed, fetch=fetch)
        self.props = self._freeze(props)
        self.data: list = []
        self.data_source: Any = None
        self.figure: Optional[go.Figure] = None
        self.graph_added = False
        self.mounted = False
        self.pending = None

    def _freeze(self, props: Mapping[str, Any]) -> Mapping[str, Any]:
        if not props.get("type"):
            raise ValueError("Chart property 'type' is required")
        set_debug(bool(props.get("debug", False)))
        set_chart(props["type"])
        return MappingProxyType(dict(props))

    @property
    def state(self) -> DataSourceState:
        return self.resolver.state

    @property
    def chart(self) -> Optional[ChartModel]:
        return self.reconciler.chart

    # -- lifecycle ----------------------------------------------------------

    def mount(self) -> None:
        logger.debug("[Chart] mount()")
        with self._lock:
            self.mounted = True
            self.resolver.active = True
            if self.resolver.is_remote_data_source(self.props):
                self.pending = self.resolver.load_data_source(self.props)
            self._add_graph()

    def update(self, props: Optional[Mapping[str, Any]] = None) -> None:
        logger.debug("[Chart] update()")
        with self._lock:
            if props is not None:
                self.props = self._freeze(props)
            if not self.mounted:
                return
            if self.graph_added:
                self.render_chart()
            else:
                self._add_graph()

    def unmount(self) -> None:
        logger.debug("[Chart] unmount()")
        with self._lock:
            self.mounted = False
            self.resolver.active = False
            self.reconciler.reset()
            self.figure = None
            self.graph_added = False

    def reload(self):
        """Load the bag's dataSource again; returns the pending Future or None."""
        with self._lock:
            self.pending = self.resolver.load_data_source(self.props)
            return self.pending

    # -- rendering ----------------------------------------------------------

    def _add_graph(self) -> None:
        self.host.add_graph(self.render_chart, self._graph_done)

    def _graph_done(self, result: Any) -> None:
        with self._lock:
            self.graph_added = True
            render_end = self.props.get("renderEnd")
        if render_end is not None:
            render_end(result)

    def render_chart(self) -> Optional[go.Figure]:
        """Configure the model from the bag and render it with the resolved data."""
        with self._lock:
            prepared = self.resolver.prepare_props(self.props)
            self.data = prepared["data"]
            self.data_source = prepared["dataSource"]

            chart = self.reconciler.reconcile(self.props, self.data)
            if chart is None:
                logger.debug("[Chart] No data, so skip rendering chart")
                return None

            size = {k: v for k, v in self.props.items() if k in SIZE}
            self.figure = chart.render(self.data, **size)
            return self.figure

    def _state_changed(self, state: DataSourceState) -> None:
        # Runs on whichever thread settled the load (the fetch pool by default)
        logger.debug("[Chart] Data source state changed")
        self.update()
