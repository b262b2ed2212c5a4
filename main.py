#!/usr/bin/env python3
"""
chartbind - command line entry point

Renders a chart described by a JSON property bag to an HTML file.

Usage:
    python main.py chart.json                  # writes chart.html
    python main.py chart.json -o out.html      # explicit output path
    python main.py chart.json --verbose        # show debug logging
    python main.py --catalog                   # list chart types and options

The bag uses the same keys as ChartComponent, e.g.:
    {"type": "lineChart", "x": "date", "y": "value",
     "dataSource": "https://example.org/series.json",
     "xAxis": {"axisLabel": "Date"}, "margin": {"left": 80}}
"""

import argparse
import json
import sys
from concurrent.futures import TimeoutError as FutureTimeout
from pathlib import Path

import config


def load_bag(path: Path) -> dict:
    with open(path, "r", encoding="utf-8") as f:
        bag = json.load(f)
    if not isinstance(bag, dict):
        raise ValueError(f"{path}: expected a JSON object, got {type(bag).__name__}")
    return bag


def main():
    parser = argparse.ArgumentParser(description="Render a chart from a JSON property bag")
    parser.add_argument(
        "bag",
        nargs="?",
        default=None,
        help="Path to the JSON property bag",
    )
    parser.add_argument(
        "--output", "-o",
        default=None,
        help="Output HTML path (default: bag path with .html suffix)",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Show debug logging on the console",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help=f"Seconds to wait for a remote dataSource (default: {config.FETCH_TIMEOUT})",
    )
    parser.add_argument(
        "--catalog",
        action="store_true",
        help="Print the supported chart types and their options",
    )
    args = parser.parse_args()

    from component.logging import setup_logging

    setup_logging(verbose=args.verbose)

    if args.catalog:
        from rendering.registry import render_model_catalog
        print(render_model_catalog())
        return 0

    if not args.bag:
        parser.error("a property bag path is required (or use --catalog)")

    from component.chart import ChartComponent
    from data_ops.fetch import shutdown_executor

    bag_path = Path(args.bag)
    try:
        bag = load_bag(bag_path)
    except (OSError, json.JSONDecodeError, ValueError) as e:
        print(f"Error: could not read {bag_path}: {e}", file=sys.stderr)
        return 1

    errors = []
    bag.setdefault("onDataSourceError", errors.append)
    if args.verbose:
        bag["debug"] = True

    try:
        chart = ChartComponent(bag)
        chart.mount()
        if chart.pending is not None:
            chart.pending.result(timeout=args.timeout or config.FETCH_TIMEOUT)
    except (ValueError, KeyError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except FutureTimeout:
        print("Error: timed out waiting for dataSource", file=sys.stderr)
        return 1
    finally:
        shutdown_executor(wait=False)

    if errors:
        print(f"Error: loading dataSource failed: {errors[0]}", file=sys.stderr)
        return 1
    if chart.figure is None:
        print("Error: no data to plot", file=sys.stderr)
        return 1

    output = Path(args.output) if args.output else bag_path.with_suffix(".html")
    chart.figure.write_html(str(output))
    print(f"Wrote {output} ({len(chart.data)} records)")
    return 0


if __name__ == "__main__":
    sys.exit(main())
