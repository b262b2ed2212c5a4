"""Chart models, model registry, configuration reconciler and render host."""

from .models import (
    Configurable,
    ChartModel,
    AxisModel,
    field_accessor,
)
from .registry import (
    CHART_TYPES,
    UnknownChartType,
    create_model,
    get_model_type,
    register_model,
    render_model_catalog,
)
from .reconciler import ConfigReconciler, resolve_accessor
from .host import ChartHost

__all__ = [
    "Configurable",
    "ChartModel",
    "AxisModel",
    "field_accessor",
    "CHART_TYPES",
    "UnknownChartType",
    "create_model",
    "get_model_type",
    "register_model",
    "render_model_catalog",
    "ConfigReconciler",
    "resolve_accessor",
    "ChartHost",
]
