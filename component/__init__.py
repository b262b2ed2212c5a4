"""
Chart component package: lifecycle shell, diagnostics and logging.

Import ChartComponent from component.chart.
"""
