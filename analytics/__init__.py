# referral_tracker/analytics/__init__.py

"""
Initializes the analytics package, making the KPI table and trend summary
available at the top level for easier importing.
"""

# From kpi_analyzer.py
from .kpi_analyzer import generate_kpi_summary_table

# From trends.py
from .trends import summarize_weekly_trends

# --- Define the public API for the analytics package ---
__all__ = [
    "generate_kpi_summary_table",
    "summarize_weekly_trends",
]
