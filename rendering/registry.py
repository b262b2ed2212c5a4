"""
Chart model registry.

Describes the supported chart types as structured data. The reconciler
looks up a type name from the property bag here and instantiates the model
once per component.

Adding a new chart type:
    1. Implement a ChartModel subclass in models.py
    2. Add an entry to CHART_TYPES below (or call register_model())
"""

from __future__ import annotations

from typing import Callable

from .models import (
    ChartModel,
    DiscreteBarChartModel,
    LineChartModel,
    LinePlusBarChartModel,
    LineWithFocusChartModel,
    MultiBarChartModel,
    PieChartModel,
    ScatterChartModel,
)


class UnknownChartType(KeyError):
    """Raised when the property bag names a chart type with no registered model."""


CHART_TYPES = [
    {
        "name": "lineChart",
        "factory": LineChartModel,
        "description": "One line per series; supports area fill.",
    },
    {
        "name": "scatterChart",
        "factory": ScatterChartModel,
        "description": "Markers per point; pointSize controls marker size.",
    },
    {
        "name": "discreteBarChart",
        "factory": DiscreteBarChartModel,
        "description": "One bar per record of a single series.",
    },
    {
        "name": "multiBarChart",
        "factory": MultiBarChartModel,
        "description": "Grouped or stacked bars, one colour per series.",
    },
    {
        "name": "lineWithFocusChart",
        "factory": LineWithFocusChartModel,
        "description": "Line chart with a context strip on x2Axis/y2Axis.",
    },
    {
        "name": "linePlusBarChart",
        "factory": LinePlusBarChartModel,
        "description": "Bars on y1Axis, lines on y2Axis, optional focus strip.",
    },
    {
        "name": "pieChart",
        "factory": PieChartModel,
        "description": "Pie or donut; x is the slice label, y the slice value.",
    },
]

# Build lookup dict for fast access
_TYPE_MAP = {t["name"]: t for t in CHART_TYPES}


def get_model_type(name: str) -> dict | None:
    """Look up a chart type by name.

    Args:
        name: Chart type name (e.g., 'lineChart')

    Returns:
        Chart type definition dict, or None if not found.
    """
    return _TYPE_MAP.get(name)


def register_model(name: str, factory: Callable[[], ChartModel], description: str = "") -> None:
    """Register (or replace) the factory for chart type *name*."""
    entry = {"name": name, "factory": factory, "description": description}
    if name in _TYPE_MAP:
        CHART_TYPES[CHART_TYPES.index(_TYPE_MAP[name])] = entry
    else:
        CHART_TYPES.append(entry)
    _TYPE_MAP[name] = entry


def create_model(name: str) -> ChartModel:
    """Instantiate a new model for chart type *name*.

    Raises:
        UnknownChartType: If no factory is registered under *name*.
    """
    entry = get_model_type(name)
    if entry is None:
        raise UnknownChartType(
            f"Unknown chart type: '{name}'. "
            f"Must be one of: {', '.join(t['name'] for t in CHART_TYPES)}"
        )
    return entry["factory"]()


def render_model_catalog() -> str:
    """Render the registry as a markdown catalog of types, axes and options."""
    lines = ["## Chart Types", ""]
    for entry in CHART_TYPES:
        model = entry["factory"]()
        axes = ", ".join(f"`{a}`" for a in model.axis_names) or "none"
        lines.append(f"### **{entry['name']}**")
        if entry["description"]:
            lines.append(entry["description"])
        lines.append("")
        lines.append(f"- Axes: {axes}")
        lines.append(f"- Options: {', '.join(f'`{o}`' for o in model.option_names)}")
        lines.append("")
    return "\n".join(lines)
