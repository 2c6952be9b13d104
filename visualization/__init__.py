# referral_tracker/visualization/__init__.py
# PACKAGE API

"""
Initializes the visualization package, defining its public API.
This file explicitly exports all public-facing functions from its submodules,
providing a single, consistent import point for the pages.
"""

# --- Core Plotting Functions from plots.py ---
from .plots import (
    set_plotly_theme,
    create_empty_figure,
    plot_bar_chart,
    plot_stage_distribution,
    plot_stoplight_donut,
    plot_weekly_trends,
)

# --- Custom UI Element Renderers from ui_elements.py ---
from .ui_elements import (
    load_and_inject_css,
    format_delta_text,
    format_kpi_value,
    render_kpi_card,
    render_stoplight_summary,
    render_traffic_light_indicator,
    stoplight_badge_html,
)

# --- Define the canonical public API for the package ---
__all__ = [
    # from plots.py
    "set_plotly_theme",
    "create_empty_figure",
    "plot_bar_chart",
    "plot_stage_distribution",
    "plot_stoplight_donut",
    "plot_weekly_trends",

    # from ui_elements.py
    "load_and_inject_css",
    "format_delta_text",
    "format_kpi_value",
    "render_kpi_card",
    "render_stoplight_summary",
    "render_traffic_light_indicator",
    "stoplight_badge_html",
]
