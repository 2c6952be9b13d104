# referral_tracker/pages/referral_components/__init__.py
# Shared Streamlit components for the referral and patient pages.

from .actions import (render_bulk_patient_actions, render_bulk_referral_actions,
                      read_only_notice, run_mutation)
from .detail import render_patient_detail, render_referral_detail
from .filter_bar import render_filter_sidebar, render_view_summary
from .tables import (patient_display_frame, referral_display_frame,
                     render_selectable_table)
