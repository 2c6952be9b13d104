# referral_tracker/visualization/ui_elements.py
# THEME-AWARE UI COMPONENTS

import html
import logging
from pathlib import Path
from typing import Any, Dict, Optional, Union

import pandas as pd
import streamlit as st

from config import settings

logger = logging.getLogger(__name__)

STOPLIGHT_LABELS = {'green': 'On Track', 'yellow': 'Needs Attention', 'red': 'Blocked'}


def load_and_inject_css(css_path: Union[str, Path]) -> None:
    """Injects the app stylesheet into the current page run."""
    path = Path(css_path)
    try:
        css = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        logger.warning(f"Stylesheet missing at {path}; pages render unstyled.")
        return
    except (OSError, UnicodeDecodeError) as e:
        logger.error(f"Could not read stylesheet {path}: {e}", exc_info=True)
        return
    st.markdown(f"<style>{css}</style>", unsafe_allow_html=True)


def format_kpi_value(value: Any, decimals: int = 1) -> str:
    if value is None or (not isinstance(value, str) and pd.isna(value)):
        return "N/A"
    if isinstance(value, float) and not value.is_integer():
        return f"{value:,.{decimals}f}"
    if isinstance(value, (int, float)):
        return f"{int(value):,}"
    return str(value)


def format_delta_text(delta: float, delta_kind: str = "percent") -> str:
    """Percent deltas read '+12.5%'; absolute ones (rates, ages) read '+2.0'."""
    return f"{delta:+.1f}%" if delta_kind == "percent" else f"{delta:+.1f}"


def render_kpi_card(
    title: str,
    value: Any,
    unit: str = "",
    delta: Optional[float] = None,
    delta_kind: str = "percent",
    delta_is_improvement: Optional[bool] = None,
    status_level: Optional[str] = None,
    help_text: Optional[str] = None,
    icon: str = "📋"
) -> None:
    """
    Renders a custom HTML KPI card. A delta is shown whenever one is given;
    its color follows `delta_is_improvement` and stays neutral when that is None.
    """
    value_str = format_kpi_value(value)

    delta_html = ""
    if delta is not None:
        if delta_is_improvement is None:
            delta_class, arrow = "neutral", "■"
        else:
            delta_class = "positive" if delta_is_improvement else "negative"
            arrow = "▲" if delta > 0 else "▼"
        delta_html = f'<p class="kpi-delta {delta_class}">{arrow} {html.escape(format_delta_text(delta, delta_kind))}</p>'

    status_class = f"status-{status_level.lower().replace('_', '-')}" if status_level else ""
    tooltip_attr = f'title="{html.escape(help_text)}"' if help_text else ""
    unit_html = f'<span class="kpi-units">{html.escape(unit)}</span>' if unit else ""

    card_html = f"""
    <div class="kpi-card {status_class}" {tooltip_attr}>
        <div class="kpi-header">
            <span class="kpi-icon">{html.escape(icon)}</span>
            <div class="kpi-title">{html.escape(title)}</div>
        </div>
        <div class="kpi-body">
            <p class="kpi-value">{html.escape(value_str)}{unit_html}</p>
            {delta_html}
        </div>
    </div>
    """
    st.markdown(card_html, unsafe_allow_html=True)


def stoplight_badge_html(status: Optional[str]) -> str:
    """Inline colored dot + label; a missing status renders as green."""
    status = (status or 'green').lower()
    label = STOPLIGHT_LABELS.get(status, status.title())
    return (f'<span class="stoplight-badge status-{html.escape(status)}">'
            f'<span class="traffic-light-dot status-{html.escape(status)}"></span>{html.escape(label)}</span>')


def render_traffic_light_indicator(
    message: str,
    status_level: str,
    details: Optional[str] = None
) -> None:
    """A coloured dot followed by a message and optional detail line."""
    status_class = f"status-{status_level.lower().replace('_', '-')}"
    details_html = f'<div class="traffic-light-details">{html.escape(details)}</div>' if details else ""

    indicator_html = f"""
    <div class="traffic-light-indicator">
        <div class="traffic-light-dot {status_class}"></div>
        <div class="traffic-light-message">{html.escape(message)}</div>
        {details_html}
    </div>
    """
    st.markdown(indicator_html, unsafe_allow_html=True)


def render_stoplight_summary(counts: Dict[str, int]) -> None:
    """One traffic-light row per stoplight status with its referral count."""
    for status in settings.STOPLIGHT_STATUSES:
        render_traffic_light_indicator(
            message=f"{STOPLIGHT_LABELS.get(status, status.title())}: {counts.get(status, 0):,}",
            status_level=status,
        )
