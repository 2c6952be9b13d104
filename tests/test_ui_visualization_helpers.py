# referral_tracker/tests/test_ui_visualization_helpers.py
# VISUALIZATION & UI TESTS

import html
from unittest.mock import MagicMock, patch

import plotly.graph_objects as go
import pytest

from data_processing import bucket_weekly
from visualization import (create_empty_figure, plot_stage_distribution,
                           plot_stoplight_donut, plot_weekly_trends, render_kpi_card,
                           render_stoplight_summary, set_plotly_theme, stoplight_badge_html)
from visualization.ui_elements import format_delta_text, format_kpi_value

# Fixtures are sourced from conftest.py

@pytest.fixture(scope="module", autouse=True)
def apply_theme():
    """Apply the custom Plotly theme for all tests in this module."""
    set_plotly_theme()

# --- Plotting Tests ---
def test_create_empty_figure_properties():
    """Verifies that empty figures are created with the correct message and layout."""
    fig = create_empty_figure(title="Empty Test", message="No data here.")
    assert isinstance(fig, go.Figure)
    assert "Empty Test" in fig.layout.title.text
    assert fig.layout.annotations[0].text == "No data here."

def test_plot_weekly_trends_structure(referrals_df):
    """One line trace per weekly series."""
    fig = plot_weekly_trends(bucket_weekly(referrals_df), title="Weekly")
    assert len(fig.data) == 3
    assert all(trace.type == 'scatter' for trace in fig.data)
    assert list(fig.data[0].x) == ['2024-W08', '2024-W09', '2024-W10', '2024-W11']

def test_plot_weekly_trends_suppresses_single_point(referrals_df):
    fig = plot_weekly_trends(bucket_weekly(referrals_df).head(1), title="Weekly", min_points=2)
    assert len(fig.data) == 0
    assert "Not enough data" in fig.layout.annotations[0].text

def test_plot_stoplight_donut_structure():
    fig = plot_stoplight_donut({'green': 3, 'yellow': 1, 'red': 0})
    assert fig.data[0].type == 'pie'
    assert fig.data[0].hole > 0.4
    assert len(plot_stoplight_donut({'green': 0}).data) == 0

def test_plot_stage_distribution_uses_canonical_order(referrals_df):
    stages = ["Referral Received", "Insurance Verification", "Delivered"]
    fig = plot_stage_distribution(referrals_df, stages=stages)
    assert fig.data[0].type == 'bar'
    assert list(fig.data[0].y) == stages
    assert list(fig.data[0].x) == [2, 1, 1]

# --- Formatting ---
@pytest.mark.parametrize("value, expected", [
    (1234, "1,234"), (75.0, "75"), (7.26, "7.3"), (None, "N/A"), ("2024-W11 (3 referrals)", "2024-W11 (3 referrals)"),
])
def test_format_kpi_value(value, expected):
    assert format_kpi_value(value) == expected

def test_format_delta_text():
    assert format_delta_text(200.0, "percent") == "+200.0%"
    assert format_delta_text(-17.0, "absolute") == "-17.0"

# --- UI Element Tests ---
@patch('visualization.ui_elements.st')
def test_render_kpi_card_html(mock_st):
    """Tests that KPI cards render with the correct HTML structure and classes."""
    mock_st.markdown = MagicMock()
    render_kpi_card(
        title="Test KPI", value=123.45, unit="docs",
        status_level="RED", help_text="A test tooltip."
    )

    html_out, kwargs = mock_st.markdown.call_args
    html_content = html_out[0]

    assert 'class="kpi-card status-red"' in html_content
    assert f'title="{html.escape("A test tooltip.")}"' in html_content
    assert '<div class="kpi-title">Test KPI</div>' in html_content
    assert '<p class="kpi-value">123.5' in html_content
    assert '<span class="kpi-units">docs</span>' in html_content
    assert 'kpi-delta' not in html_content
    assert kwargs['unsafe_allow_html'] is True

@pytest.mark.parametrize("delta, improvement, css_class, arrow", [
    (-25.0, False, "negative", "▼"),
    (-17.0, True, "positive", "▼"),
    (200.0, True, "positive", "▲"),
    (0.0, None, "neutral", "■"),
])
@patch('visualization.ui_elements.st')
def test_render_kpi_card_delta_colors(mock_st, delta, improvement, css_class, arrow):
    render_kpi_card("Delta", 1, delta=delta, delta_kind="absolute", delta_is_improvement=improvement)
    html_content = mock_st.markdown.call_args.args[0]
    assert f'<p class="kpi-delta {css_class}">{arrow} {format_delta_text(delta, "absolute")}</p>' in html_content

def test_stoplight_badge_defaults_to_green():
    assert 'status-green' in stoplight_badge_html(None)
    assert 'Blocked' in stoplight_badge_html('RED')

@patch('visualization.ui_elements.st')
def test_render_stoplight_summary(mock_st):
    render_stoplight_summary({'green': 1200, 'red': 2})
    rendered = [c.args[0] for c in mock_st.markdown.call_args_list]
    assert len(rendered) == 3
    assert "On Track: 1,200" in rendered[0]
    assert "Needs Attention: 0" in rendered[1]
    assert "status-red" in rendered[2]
