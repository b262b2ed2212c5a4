"""
Chart models: the mutable configuration objects the reconciler writes into.

A model is a bag of named options with chainable get/set accessors
(``model.showLegend(False).duration(0)``) plus named sub-objects (axes,
legend, tooltip) that are configurable the same way. Options are collected
in place across updates; Plotly is only touched when ``render()`` builds a
``go.Figure`` from the current configuration and dataset.

Capability queries (``setter(name)``, ``child(name)``) are the contract used
by the reconciler: an unknown name answers ``None`` instead of raising, which
is what lets per-chart-type options flow through a shared property bag.
"""

from __future__ import annotations

import copy
import functools
from collections.abc import Mapping, Sequence
from typing import Any, Callable, Optional

import numpy as np
import plotly.graph_objects as go

import config

# Default colour sequence (golden-ratio HSL spacing, pre-computed hex)
_DEFAULT_COLORS = [
    "#cc6633",
    "#55cc33",
    "#3384cc",
    "#a833cc",
    "#33cc98",
    "#cc3340",
    "#33cccc",
    "#ccbe33",
]

_DEFAULT_MARGIN = {"top": 30, "right": 20, "bottom": 50, "left": 60}
_MARGIN_SIDES = {"top": "t", "right": "r", "bottom": "b", "left": "l"}

# Upper bound on generated ticks when a callable tickFormat has no tickValues
_MAX_AUTO_TICKS = 10


def field_accessor(name: Any) -> Callable[[Any], Any]:
    """Return an accessor reading *name* from a record.

    Mappings are read by key, list/tuple records by integer index and
    anything else by attribute. Missing fields read as None.
    """
    def accessor(d):
        if isinstance(d, Mapping):
            return d.get(name)
        if isinstance(name, int) and isinstance(d, Sequence) and not isinstance(d, str):
            return d[name] if -len(d) <= name < len(d) else None
        if isinstance(name, str):
            return getattr(d, name, None)
        return None
    return accessor


class Configurable:
    """Named options with chainable accessors, plus nested configurables.

    Subclasses declare ``OPTIONS`` (name -> default) and ``CHILDREN``
    (name -> Configurable subclass).
    """

    OPTIONS: dict[str, Any] = {}
    CHILDREN: dict[str, type["Configurable"]] = {}

    def __init__(self) -> None:
        self._values: dict[str, Any] = copy.deepcopy(self.OPTIONS)
        self._children: dict[str, Configurable] = {
            name: cls() for name, cls in self.child_types().items()
        }

    def child_types(self) -> dict[str, type["Configurable"]]:
        return dict(self.CHILDREN)

    # -- capability queries -------------------------------------------------

    def setter(self, name: str) -> Optional[Callable[[Any], "Configurable"]]:
        """Return a callable that sets option *name*, or None if unsupported."""
        if name in self._values:
            return functools.partial(self.set, name)
        return None

    def child(self, name: str) -> Optional["Configurable"]:
        """Return the nested configurable called *name*, or None."""
        return self._children.get(name)

    @property
    def option_names(self) -> list[str]:
        return list(self._values)

    @property
    def child_names(self) -> list[str]:
        return list(self._children)

    # -- accessors ----------------------------------------------------------

    def set(self, name: str, value: Any) -> "Configurable":
        if name not in self._values:
            raise KeyError(f"{type(self).__name__} has no option '{name}'")
        self._values[name] = value
        return self

    def get(self, name: str, default: Any = None) -> Any:
        return self._values.get(name, default)

    def options(self, opts: Mapping[str, Any]) -> "Configurable":
        """Set every option in *opts* this object supports; skip the rest."""
        for name, value in opts.items():
            set_value = self.setter(name)
            if set_value is not None:
                set_value(value)
        return self

    def _get_or_set(self, name: str, *value: Any) -> Any:
        if not value:
            return self._values[name]
        return self.set(name, value[0])

    def __getattr__(self, name: str) -> Any:
        # Only reached for names that are not real attributes
        if name.startswith("_"):
            raise AttributeError(name)
        children = self.__dict__.get("_children", {})
        if name in children:
            return children[name]
        if name in self.__dict__.get("_values", {}):
            return functools.partial(self._get_or_set, name)
        raise AttributeError(
            f"'{type(self).__name__}' has no option or child '{name}'"
        )

    def to_dict(self) -> dict:
        """Snapshot of the option values, children nested by name."""
        out = dict(self._values)
        for name, sub in self._children.items():
            out[name] = sub.to_dict()
        return out


# ---------------------------------------------------------------------------
# Sub-objects
# ---------------------------------------------------------------------------

class ScaleModel(Configurable):
    OPTIONS = {"domain": None, "type": "linear"}


class AxisModel(Configurable):
    """Axis options; maps onto a Plotly layout axis."""

    OPTIONS = {
        "axisLabel": None,
        "axisLabelDistance": None,
        "tickFormat": None,
        "tickValues": None,
        "rotateLabels": 0,
        "ticks": None,
        "visible": True,
    }
    CHILDREN = {"scale": ScaleModel}

    def to_plotly(self, values: Optional[list] = None) -> dict:
        """Build a Plotly axis dict. *values* are the data plotted on this axis."""
        layout: dict[str, Any] = {"visible": bool(self.get("visible"))}

        label = self.get("axisLabel")
        if label:
            layout["title"] = {"text": label}
            if self.get("axisLabelDistance") is not None:
                layout["title"]["standoff"] = self.get("axisLabelDistance")

        if self.get("rotateLabels"):
            layout["tickangle"] = self.get("rotateLabels")
        if self.get("ticks"):
            layout["nticks"] = self.get("ticks")

        tick_values = self.get("tickValues")
        tick_format = self.get("tickFormat")
        if callable(tick_format):
            # Plotly only understands d3 format strings; precompute tick text
            if tick_values is None:
                tick_values = _auto_ticks(values or [], self.get("ticks") or _MAX_AUTO_TICKS)
            layout["tickmode"] = "array"
            layout["tickvals"] = list(tick_values)
            layout["ticktext"] = [str(tick_format(v)) for v in tick_values]
        else:
            if tick_format:
                layout["tickformat"] = tick_format
            if tick_values is not None:
                layout["tickmode"] = "array"
                layout["tickvals"] = list(tick_values)

        scale = self.child("scale")
        if scale.get("type") == "log":
            layout["type"] = "log"
        domain = scale.get("domain")
        if domain is not None:
            layout["range"] = list(domain)
        return layout


def _auto_ticks(values: list, count: int) -> list:
    unique = sorted({v for v in values if v is not None})
    if len(unique) <= count:
        return unique
    picks = np.linspace(0, len(unique) - 1, num=count).round().astype(int)
    return [unique[i] for i in dict.fromkeys(picks.tolist())]


class LegendModel(Configurable):
    OPTIONS = {"align": "right", "maxKeyLength": 20}

    def to_plotly(self) -> dict:
        align = self.get("align")
        if align == "left":
            return {"x": 0, "xanchor": "left"}
        if align == "center":
            return {"x": 0.5, "xanchor": "center"}
        return {"x": 1, "xanchor": "right"}

    def label(self, key: str) -> str:
        limit = self.get("maxKeyLength")
        if limit and len(key) > limit:
            return key[: limit - 3] + "..."
        return key


class TooltipModel(Configurable):
    OPTIONS = {"enabled": True, "valueFormatter": None}


# ---------------------------------------------------------------------------
# Chart models
# ---------------------------------------------------------------------------

class ChartModel(Configurable):
    """Base chart model: accessors, margin, general options and rendering.

    Subclasses set ``AXES`` (axis name -> Plotly layout key) and implement
    ``_traces()``.
    """

    OPTIONS = {
        "width": None,
        "height": None,
        "showLegend": True,
        "color": None,
        "duration": 250,
        "noData": "No Data Available.",
        "title": None,
        "forceX": None,
        "forceY": None,
        "useInteractiveGuideline": False,
    }
    CHILDREN = {"legend": LegendModel, "tooltip": TooltipModel}
    AXES: dict[str, str] = {"xAxis": "xaxis", "yAxis": "yaxis"}
    type_name = "chart"

    def __init__(self) -> None:
        super().__init__()
        self._x: Callable[[Any], Any] = field_accessor("x")
        self._y: Callable[[Any], Any] = field_accessor("y")
        self._margin: dict[str, Any] = dict(_DEFAULT_MARGIN)
        self._data: list = []

    def child_types(self) -> dict[str, type[Configurable]]:
        types = dict(self.CHILDREN)
        types.update({name: AxisModel for name in self.AXES})
        return types

    def setter(self, name: str):
        if name in ("x", "y", "margin"):
            return getattr(self, name)
        return super().setter(name)

    # -- positional accessors and margin ------------------------------------

    def x(self, accessor=None):
        if accessor is None:
            return self._x
        self._x = accessor
        return self

    def y(self, accessor=None):
        if accessor is None:
            return self._y
        self._y = accessor
        return self

    def margin(self, margin: Optional[Mapping] = None):
        """Merge the given sides into the margin; unknown sides are ignored."""
        if margin is None:
            return dict(self._margin)
        for side in _MARGIN_SIDES:
            if margin.get(side) is not None:
                self._margin[side] = margin[side]
        return self

    def datum(self, data=None):
        if data is None:
            return self._data
        self._data = list(data)
        return self

    @property
    def axis_names(self) -> list[str]:
        return list(self.AXES)

    # -- rendering ----------------------------------------------------------

    def series(self, data: list) -> list[tuple[str, list, dict]]:
        """Split *data* into (key, values, record) series.

        Records shaped ``{"key": ..., "values": [...]}`` are series; any other
        sequence is a single anonymous series.
        """
        if data and all(isinstance(d, Mapping) and "values" in d for d in data):
            return [
                (str(d.get("key", f"Series {i + 1}")), list(d["values"]), d)
                for i, d in enumerate(data)
            ]
        return [("", list(data), {})]

    def points(self, values: list) -> tuple[list, list]:
        return [self._x(d) for d in values], [self._y(d) for d in values]

    def colors(self) -> list[str]:
        color = self.get("color")
        if isinstance(color, str):
            return [color]
        return list(color) if color else list(_DEFAULT_COLORS)

    def render(self, data=None, width=None, height=None) -> go.Figure:
        """Build a Plotly figure from the current configuration and dataset."""
        if data is not None:
            self.datum(data)
        fig = go.Figure()
        layout = self._base_layout(width, height)
        if not self._data:
            layout["annotations"] = [{
                "text": self.get("noData"), "showarrow": False,
                "xref": "paper", "yref": "paper", "x": 0.5, "y": 0.5,
            }]
            fig.update_layout(**layout)
            return fig

        axis_values: dict[str, list] = {key: [] for key in self.AXES.values()}
        for trace in self._traces(self.series(self._data), axis_values):
            fig.add_trace(trace)

        layout.update(self._axes_layout(axis_values))
        fig.update_layout(**layout)
        return fig

    def _traces(self, series, axis_values: dict[str, list]) -> list:
        raise NotImplementedError

    def _base_layout(self, width, height) -> dict:
        layout: dict[str, Any] = {
            "width": width or self.get("width") or config.DEFAULT_WIDTH,
            "height": height or self.get("height") or config.DEFAULT_HEIGHT,
            "margin": {_MARGIN_SIDES[s]: v for s, v in self._margin.items()},
            "showlegend": bool(self.get("showLegend")),
            "legend": self.child("legend").to_plotly(),
            "transition": {"duration": self.get("duration") or 0},
            "paper_bgcolor": "white",
            "plot_bgcolor": "white",
        }
        if self.get("title"):
            layout["title"] = {"text": self.get("title")}
        if not self.child("tooltip").get("enabled"):
            layout["hovermode"] = False
        elif self.get("useInteractiveGuideline"):
            layout["hovermode"] = "x unified"
        else:
            layout["hovermode"] = "closest"
        return layout

    def _axes_layout(self, axis_values: dict[str, list]) -> dict:
        layout = {}
        for name, key in self.AXES.items():
            layout[key] = self.child(name).to_plotly(axis_values.get(key))
        force = {"xaxis": self.get("forceX"), "yaxis": self.get("forceY")}
        for key, forced in force.items():
            if forced is not None and key in layout and "range" not in layout[key]:
                forced_range = _forced_range(axis_values.get(key, []), forced)
                if forced_range is not None:
                    layout[key]["range"] = forced_range
        return layout

    def _hover(self, ys: list, info: str = "x+text+name") -> dict:
        formatter = self.child("tooltip").get("valueFormatter")
        if not callable(formatter):
            return {}
        return {"hovertext": [formatter(v) for v in ys], "hoverinfo": info}

    def _name(self, key: str) -> str:
        return self.child("legend").label(key)


def _forced_range(values: list, forced) -> Optional[list]:
    forced = forced if isinstance(forced, (list, tuple)) else [forced]
    numeric = [v for v in list(values) + list(forced) if isinstance(v, (int, float))]
    if not numeric:
        return None
    arr = np.asarray(numeric, dtype=float)
    return [float(np.nanmin(arr)), float(np.nanmax(arr))]


class LineChartModel(ChartModel):
    type_name = "lineChart"
    OPTIONS = {**ChartModel.OPTIONS, "isArea": False, "interpolate": "linear"}

    def _line(self, key, xs, ys, color, **kw):
        shape = "spline" if self.get("interpolate") in ("monotone", "basis", "cardinal") else "linear"
        return go.Scatter(
            x=xs, y=ys, mode="lines", name=self._name(key),
            line=dict(color=color, shape=shape),
            fill="tozeroy" if self.get("isArea") else None,
            **self._hover(ys), **kw,
        )

    def _traces(self, series, axis_values):
        palette = self.colors()
        traces = []
        for i, (key, values, record) in enumerate(series):
            xs, ys = self.points(values)
            axis_values["xaxis"].extend(xs)
            axis_values["yaxis"].extend(ys)
            color = record.get("color") or palette[i % len(palette)]
            traces.append(self._line(key, xs, ys, color))
        return traces


class ScatterChartModel(ChartModel):
    type_name = "scatterChart"
    OPTIONS = {**ChartModel.OPTIONS, "pointSize": 8}

    def _traces(self, series, axis_values):
        palette = self.colors()
        traces = []
        for i, (key, values, record) in enumerate(series):
            xs, ys = self.points(values)
            axis_values["xaxis"].extend(xs)
            axis_values["yaxis"].extend(ys)
            color = record.get("color") or palette[i % len(palette)]
            traces.append(go.Scatter(
                x=xs, y=ys, mode="markers", name=self._name(key),
                marker=dict(color=color, size=self.get("pointSize")),
                **self._hover(ys),
            ))
        return traces


class DiscreteBarChartModel(ChartModel):
    type_name = "discreteBarChart"
    OPTIONS = {**ChartModel.OPTIONS, "showValues": False, "valueFormat": None}

    def _bar(self, key, xs, ys, color, **kw):
        text = None
        if self.get("showValues"):
            fmt = self.get("valueFormat")
            text = [fmt(v) if callable(fmt) else v for v in ys]
        return go.Bar(x=xs, y=ys, name=self._name(key), marker_color=color,
                      text=text, **self._hover(ys), **kw)

    def _traces(self, series, axis_values):
        palette = self.colors()
        traces = []
        for key, values, record in series:
            xs, ys = self.points(values)
            axis_values["xaxis"].extend(xs)
            axis_values["yaxis"].extend(ys)
            colors = record.get("color") or [palette[i % len(palette)] for i in range(len(xs))]
            traces.append(self._bar(key, xs, ys, colors))
        return traces


class MultiBarChartModel(DiscreteBarChartModel):
    type_name = "multiBarChart"
    OPTIONS = {**DiscreteBarChartModel.OPTIONS, "stacked": False, "groupSpacing": 0.1}

    def _traces(self, series, axis_values):
        palette = self.colors()
        traces = []
        for i, (key, values, record) in enumerate(series):
            xs, ys = self.points(values)
            axis_values["xaxis"].extend(xs)
            axis_values["yaxis"].extend(ys)
            color = record.get("color") or palette[i % len(palette)]
            traces.append(self._bar(key, xs, ys, color))
        return traces

    def _base_layout(self, width, height):
        layout = super()._base_layout(width, height)
        layout["barmode"] = "stack" if self.get("stacked") else "group"
        layout["bargroupgap"] = self.get("groupSpacing")
        return layout


class LineWithFocusChartModel(LineChartModel):
    """Line chart with a context strip below it (x2Axis / y2Axis)."""

    type_name = "lineWithFocusChart"
    AXES = {"xAxis": "xaxis", "yAxis": "yaxis", "x2Axis": "xaxis2", "y2Axis": "yaxis2"}
    OPTIONS = {**LineChartModel.OPTIONS, "focusHeight": 0.2, "brushExtent": None}

    def _traces(self, series, axis_values):
        palette = self.colors()
        traces = []
        for i, (key, values, record) in enumerate(series):
            xs, ys = self.points(values)
            for axis in self.AXES.values():
                axis_values[axis].extend(xs if axis.startswith("x") else ys)
            color = record.get("color") or palette[i % len(palette)]
            traces.append(self._line(key, xs, ys, color))
            traces.append(self._line(key, xs, ys, color, xaxis="x2", yaxis="y2", showlegend=False))
        return traces

    def _axes_layout(self, axis_values):
        layout = super()._axes_layout(axis_values)
        focus = float(self.get("focusHeight"))
        layout["yaxis"]["domain"] = [focus + 0.1, 1]
        layout["yaxis2"]["domain"] = [0, focus]
        layout["xaxis2"]["anchor"] = "y2"
        layout["yaxis2"]["anchor"] = "x2"
        if self.get("brushExtent") is not None and "range" not in layout["xaxis"]:
            layout["xaxis"]["range"] = list(self.get("brushExtent"))
        return layout


class LinePlusBarChartModel(LineChartModel):
    """Bars on the left axis (y1Axis), lines on the right axis (y2Axis).

    Series flagged ``{"bar": True}`` are bars. With ``focusEnable`` the same
    series are repeated in a context strip on x2Axis / y3Axis / y4Axis.
    """

    type_name = "linePlusBarChart"
    AXES = {
        "xAxis": "xaxis", "x2Axis": "xaxis2",
        "y1Axis": "yaxis", "y2Axis": "yaxis2",
        "y3Axis": "yaxis3", "y4Axis": "yaxis4",
    }
    OPTIONS = {**LineChartModel.OPTIONS, "focusEnable": False, "focusHeight": 0.2}

    def _traces(self, series, axis_values):
        palette = self.colors()
        focus = self.get("focusEnable")
        traces = []
        for i, (key, values, record) in enumerate(series):
            xs, ys = self.points(values)
            color = record.get("color") or palette[i % len(palette)]
            is_bar = bool(record.get("bar"))
            main_y, focus_y = ("yaxis", "yaxis3") if is_bar else ("yaxis2", "yaxis4")
            axis_values["xaxis"].extend(xs)
            axis_values[main_y].extend(ys)
            if is_bar:
                traces.append(go.Bar(x=xs, y=ys, name=self._name(key), marker_color=color,
                                     **self._hover(ys)))
            else:
                traces.append(self._line(key, xs, ys, color, yaxis="y2"))
            if focus:
                axis_values["xaxis2"].extend(xs)
                axis_values[focus_y].extend(ys)
                cls_kw = dict(x=xs, y=ys, xaxis="x2", yaxis="y3" if is_bar else "y4",
                              showlegend=False)
                if is_bar:
                    traces.append(go.Bar(marker_color=color, **cls_kw))
                else:
                    traces.append(go.Scatter(mode="lines", line=dict(color=color), **cls_kw))
        return traces

    def _axes_layout(self, axis_values):
        layout = super()._axes_layout(axis_values)
        layout["yaxis2"].update(overlaying="y", side="right")
        if self.get("focusEnable"):
            focus = float(self.get("focusHeight"))
            layout["yaxis"]["domain"] = [focus + 0.1, 1]
            layout["xaxis2"]["anchor"] = "y3"
            layout["yaxis3"].update(domain=[0, focus], anchor="x2")
            layout["yaxis4"].update(domain=[0, focus], anchor="x2", overlaying="y3", side="right")
        else:
            for key in ("xaxis2", "yaxis3", "yaxis4"):
                layout[key]["visible"] = False
        return layout


class PieChartModel(ChartModel):
    type_name = "pieChart"
    AXES: dict[str, str] = {}
    OPTIONS = {
        **ChartModel.OPTIONS,
        "donut": False,
        "donutRatio": 0.5,
        "showLabels": True,
        "labelType": "key",
    }

    def _traces(self, series, axis_values):
        _key, values, _record = series[0]
        labels, ys = self.points(values)
        textinfo = {"key": "label", "value": "value", "percent": "percent"}.get(
            self.get("labelType"), "label")
        return [go.Pie(
            labels=labels, values=ys,
            hole=self.get("donutRatio") if self.get("donut") else 0,
            textinfo=textinfo if self.get("showLabels") else "none",
            marker=dict(colors=self.colors()),
            **self._hover(ys, info="label+text+name"),
        )]
