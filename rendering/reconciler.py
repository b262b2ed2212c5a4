"""
Maps a flat property bag onto a chart model.

The bag carries positional settings (x, y, size, type), per-axis option
trees (xAxis, y2Axis, ...), a margin and any number of pass-through chart
options. The reconciler routes each group to the right part of the model:

    props ──► x/y accessors ──► model.x() / model.y()
          ──► margin        ──► model.margin()
          ──► pass-through  ──► model.options()
          ──► axis trees    ──► apply_axis_tree(model, ...)
          ──► configure     ──► props["configure"](model)   (last)

Unknown option names are skipped, not rejected: the option surface differs
per chart type and one bag may be reused across types.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, Callable, Optional

from component.diagnostics import (
    DEPRECATED_CHART_OPTIONS,
    DEPRECATED_MARGIN_PREFIX,
    Diagnostics,
)

from .models import ChartModel, Configurable, field_accessor
from .registry import create_model

logger = logging.getLogger("chartbind")

SETTINGS = ("x", "y", "width", "height", "type", "dataSource", "configure")
AXIS_NAMES = ("xAxis", "yAxis", "y1Axis", "y2Axis", "y3Axis", "y4Axis", "x2Axis")
SIZE = ("width", "height")
MARGIN = "margin"

RESERVED = frozenset(SETTINGS + AXIS_NAMES + SIZE + (MARGIN,))


def option_kind(value: Any) -> str:
    """Classify an option tree value as 'tree', 'array' or 'terminal'."""
    if isinstance(value, Mapping):
        return "tree"
    if isinstance(value, (list, tuple)):
        return "array"
    return "terminal"


def resolve_accessor(value: Any, default: str) -> Callable[[Any], Any]:
    """Turn a field name (or an accessor) into a record accessor.

    A callable is returned unchanged. A name reads that field from each
    record and falls back to the *default* field when it is missing.
    """
    if callable(value):
        return value
    read_value = field_accessor(value) if value is not None else (lambda d: None)
    read_default = field_accessor(default)

    def accessor(d):
        found = read_value(d)
        return found if found is not None else read_default(d)

    return accessor


class ConfigReconciler:
    """Applies property bags to one lazily created chart model.

    Args:
        diagnostics: Sink for deprecation notices (a private one if omitted).
        factory: Chart model factory keyed by type name.
    """

    def __init__(
        self,
        diagnostics: Optional[Diagnostics] = None,
        factory: Callable[[str], ChartModel] = create_model,
    ):
        self.diagnostics = diagnostics if diagnostics is not None else Diagnostics()
        self._factory = factory
        self.chart: Optional[ChartModel] = None
        self.chart_type: Optional[str] = None

    # -- option selection ---------------------------------------------------

    def options_source(self, props: Mapping[str, Any]) -> Mapping[str, Any]:
        """Return the mapping pass-through options are read from."""
        if props.get("options") is not None:
            return props["options"]
        if props.get("chartOptions") is not None:
            self.diagnostics.warn_once(
                DEPRECATED_CHART_OPTIONS,
                "chartOptions is deprecated use options instead",
            )
            return props["chartOptions"]
        return props

    def select_options(
        self,
        props: Mapping[str, Any],
        keys,
        mode: str = "keep",
    ) -> dict[str, Any]:
        """Pick (mode='keep') or drop (mode='exclude') *keys* from the options source."""
        if mode not in ("keep", "exclude"):
            raise ValueError(f"mode must be 'keep' or 'exclude', got '{mode}'")
        source = self.options_source(props)
        keys = set(keys)
        if mode == "keep":
            return {k: v for k, v in source.items() if k in keys}
        return {k: v for k, v in source.items() if k not in keys}

    def props_by_prefix(self, props: Mapping[str, Any], prefix: str) -> dict[str, Any]:
        """Collect ``<prefix>-<name>`` properties into ``{name: value}``."""
        prefix = prefix + "-"
        return {
            key[len(prefix):]: value
            for key, value in props.items()
            if key.startswith(prefix)
        }

    def derive_margin(self, props: Mapping[str, Any]) -> dict[str, Any]:
        margin = self.select_options(props, (MARGIN,)).get(MARGIN)
        if margin is not None:
            return dict(margin)
        # DEPRECATED: margin-top / margin-left ... properties
        prefixed = self.props_by_prefix(props, MARGIN)
        if prefixed:
            self.diagnostics.warn_once(
                DEPRECATED_MARGIN_PREFIX,
                "Set margin with prefixes is deprecated use an object instead",
            )
            return prefixed
        return {}

    # -- model configuration ------------------------------------------------

    def apply_axis_tree(self, target: Optional[Configurable], tree: Mapping[str, Any]) -> None:
        """Recursively apply *tree* to *target*, skipping names it lacks."""
        if target is None:
            return
        for name, value in tree.items():
            sub = target.child(name)
            if sub is not None and option_kind(value) == "tree":
                self.apply_axis_tree(sub, value)
                continue
            set_value = target.setter(name)
            if set_value is not None:
                set_value(value)
            else:
                logger.debug(f"[Reconciler] {type(target).__name__} has no option '{name}', skipped")

    def build_or_reuse_model(self, chart_type: str) -> ChartModel:
        if self.chart is None:
            logger.debug(f"[Reconciler] Creating {chart_type} model")
            self.chart = self._factory(chart_type)
            self.chart_type = chart_type
        elif chart_type != self.chart_type:
            logger.warning(
                f"[Reconciler] Chart type changed from {self.chart_type} to "
                f"{chart_type}; keeping the existing model"
            )
        return self.chart

    def reconcile(self, props: Mapping[str, Any], data) -> Optional[ChartModel]:
        """Configure the chart model from *props* and attach *data*.

        Returns:
            The configured model, or None when *data* is empty (nothing is
            created or touched in that case).
        """
        if not len(data):
            logger.debug("[Reconciler] No data, skipping configuration")
            return None

        chart = self.build_or_reuse_model(props["type"])
        (chart
            .x(resolve_accessor(props.get("x"), "x"))
            .y(resolve_accessor(props.get("y"), "y"))
            .margin(self.derive_margin(props))
            .options(self.select_options(props, RESERVED, mode="exclude")))

        self.apply_axis_tree(chart, self.select_options(props, AXIS_NAMES))

        # Caller hook runs last so it can override anything above
        configure = props.get("configure")
        if configure is not None:
            configure(chart)

        chart.datum(data)
        return chart

    def reset(self) -> None:
        self.chart = None
        self.chart_type = None
