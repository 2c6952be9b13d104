# referral_tracker/visualization/plots.py
# CENTRALIZED PLOTTING FACTORY

import html
import logging
from typing import Any, Dict, Optional, Sequence

import pandas as pd
import plotly.express as px
import plotly.graph_objects as go
import plotly.io as pio

from config import settings

logger = logging.getLogger(__name__)

TREND_SERIES_LABELS = {
    'new_referrals': 'New Referrals',
    'docs_ready': 'Docs Ready',
    'archived': 'Archived',
}

# --- Theme Setup ---
def set_plotly_theme():
    """Registers the 'reftrack' template and makes it the default for all Plotly charts."""
    base_layout = {
        'font': {'family': "sans-serif", 'size': 12, 'color': settings.COLOR_TEXT_PRIMARY},
        'title': {'x': 0.5, 'xanchor': 'center', 'font': {'size': 18, 'color': settings.COLOR_TEXT_HEADINGS}},
        'paper_bgcolor': settings.COLOR_BACKGROUND_CONTENT,
        'plot_bgcolor': settings.COLOR_BACKGROUND_CONTENT,
        'margin': dict(l=60, r=40, t=60, b=60),
        'legend': dict(orientation="h", yanchor="bottom", y=1.02, xanchor="right", x=1, font={'size': 10}),
        'xaxis': {'showgrid': False, 'zeroline': False},
        'yaxis': {'gridcolor': '#e9ecef', 'zeroline': False},
    }
    reftrack_template = go.layout.Template(layout=base_layout)
    reftrack_template.layout.colorway = settings.PLOTLY_COLORWAY
    pio.templates['reftrack'] = reftrack_template
    pio.templates.default = 'reftrack'
    logger.debug("Custom 'reftrack' Plotly theme applied.")

# --- Factory Functions for Charts ---
def create_empty_figure(title: str, message: str = "No data available.") -> go.Figure:
    fig = go.Figure()
    fig.update_layout(
        title_text=f"<b>{html.escape(title)}</b>",
        xaxis={"visible": False}, yaxis={"visible": False},
        annotations=[{"text": html.escape(message), "xref": "paper", "yref": "paper", "showarrow": False, "font": {"size": 14, "color": settings.COLOR_TEXT_MUTED}}]
    )
    return fig


def plot_weekly_trends(buckets: pd.DataFrame, title: str = "Weekly Referral Trends",
                       min_points: Optional[int] = None) -> go.Figure:
    """
    One line per weekly series (new referrals, docs ready, archived).
    Fewer buckets than the configured minimum yields an explanatory empty figure.
    """
    min_points = min_points if min_points is not None else settings.ANALYTICS.min_trend_points
    if not isinstance(buckets, pd.DataFrame) or buckets.empty:
        return create_empty_figure(title)
    if len(buckets) < min_points:
        return create_empty_figure(title, "Not enough data to display a trend yet.")

    fig = go.Figure()
    for col, label in TREND_SERIES_LABELS.items():
        if col not in buckets.columns:
            continue
        fig.add_trace(go.Scatter(
            x=buckets['week'], y=buckets[col], mode='lines+markers', name=label,
            line=dict(color=settings.TREND_SERIES_COLORS.get(col, settings.COLOR_PRIMARY), width=3),
            hovertemplate=f'<b>%{{x}}</b><br>{label}: %{{y:,d}}<extra></extra>',
        ))
    fig.update_layout(title_text=f"<b>{html.escape(title)}</b>", xaxis_title="Week", yaxis_title="Referrals")
    fig.update_yaxes(tickformat='d', rangemode='tozero')
    return fig


def plot_stoplight_donut(counts: Dict[str, int], title: str = "Stoplight Status") -> go.Figure:
    """Donut of green/yellow/red counts using the stoplight palette."""
    if not counts or sum(counts.values()) == 0:
        return create_empty_figure(title)
    df = pd.DataFrame({'status': list(counts.keys()), 'count': list(counts.values())})
    color_map = {
        'green': settings.COLOR_STOPLIGHT_GREEN,
        'yellow': settings.COLOR_STOPLIGHT_YELLOW,
        'red': settings.COLOR_STOPLIGHT_RED,
    }
    fig = px.pie(df, names='status', values='count', title=f"<b>{html.escape(title)}</b>", hole=0.5,
                 color='status', color_discrete_map=color_map)
    fig.update_traces(textinfo='value+label', textposition='inside', marker_line_width=2,
                      marker_line_color=settings.COLOR_BACKGROUND_CONTENT,
                      hovertemplate='<b>%{label}</b><br>Referrals: %{value}<br>Share: %{percent}<extra></extra>')
    fig.update_layout(showlegend=False)
    return fig


def plot_bar_chart(
    df: pd.DataFrame, x_col: str, y_col: str, title: str,
    x_title: Optional[str] = None, y_title: Optional[str] = None, **px_kwargs: Any
) -> go.Figure:
    """Creates a themed count bar chart (e.g. referrals per workflow stage)."""
    if not isinstance(df, pd.DataFrame) or df.empty:
        return create_empty_figure(title)
    try:
        axis_labels = {
            x_col: x_title or x_col.replace('_', ' ').title(),
            y_col: y_title or y_col.replace('_', ' ').title()
        }
        fig = px.bar(df, x=x_col, y=y_col, title=f"<b>{html.escape(title)}</b>", text_auto=True, labels=axis_labels, **px_kwargs)
        orientation = px_kwargs.get('orientation', 'v')
        fig.update_traces(texttemplate='%{x:,.0f}' if orientation == 'h' else '%{y:,.0f}', textposition='outside')
        if orientation == 'h':
            fig.update_xaxes(tickformat='d', rangemode='tozero')
        else:
            fig.update_yaxes(tickformat='d', rangemode='tozero')
        return fig
    except (KeyError, ValueError) as e:
        logger.error(f"Failed to create bar chart '{title}': {e}", exc_info=True)
        return create_empty_figure(title, "Error generating chart.")


def plot_stage_distribution(df: pd.DataFrame, stages: Optional[Sequence[str]] = None,
                            title: str = "Referrals by Workflow Stage") -> go.Figure:
    """Counts referrals per stage in canonical order, including empty stages."""
    if not isinstance(df, pd.DataFrame) or df.empty or 'workflow_stage' not in df.columns:
        return create_empty_figure(title)
    stages = list(stages if stages is not None else settings.WORKFLOW_STAGES)
    counts = df['workflow_stage'].value_counts().reindex(stages, fill_value=0)
    plot_df = counts.rename_axis('workflow_stage').reset_index(name='count')
    return plot_bar_chart(plot_df, x_col='count', y_col='workflow_stage', title=title,
                          x_title="Referrals", y_title="Stage", orientation='h')

