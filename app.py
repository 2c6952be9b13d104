# referral_tracker/app.py
# APPLICATION ENTRY POINT

import html
import logging
import sys
from pathlib import Path

_project_root = Path(__file__).resolve().parent
if str(_project_root) not in sys.path:
    sys.path.insert(0, str(_project_root))

import streamlit as st

from config import settings
from data_processing.cached import get_referral_snapshot
from data_processing.logic import stoplight_counts
from record_store import RecordStoreError
from visualization import load_and_inject_css, render_kpi_card, set_plotly_theme

# --- Global Configuration ---
logging.basicConfig(
    level=settings.LOG_LEVEL,
    format=settings.LOG_FORMAT,
    datefmt=settings.LOG_DATE_FORMAT,
    handlers=[logging.StreamHandler(sys.stdout)],
    force=True
)
logger = logging.getLogger(__name__)

# requests/urllib3 log every connection at DEBUG.
logging.getLogger("urllib3").setLevel(logging.WARNING)
logging.getLogger("requests").setLevel(logging.WARNING)


st.set_page_config(
    page_title=f"{settings.APP_NAME} - Overview",
    page_icon="🩺",
    layout="wide", initial_sidebar_state="expanded",
    menu_items={
        "Get Help": f"mailto:{settings.SUPPORT_CONTACT_INFO}",
        "Report a bug": f"mailto:{settings.SUPPORT_CONTACT_INFO}?subject=Bug Report - {settings.APP_NAME} v{settings.APP_VERSION}",
        "About": f"### {settings.APP_NAME} (v{settings.APP_VERSION})\n{settings.APP_FOOTER_TEXT}"
    }
)

load_and_inject_css(settings.STYLE_CSS_PATH)
set_plotly_theme()

# --- Application Header and Body ---
st.title(f"🩺 {settings.APP_NAME}")
st.subheader("Referral intake, documentation readiness and workflow tracking")
st.divider()

if settings.RECORD_STORE.is_configured:
    st.success("Connected to the hosted record store. Edits are saved immediately.", icon="🔗")
else:
    st.info(f"""
**Read-only demo mode.** No record store URL is configured, so the dashboards read the local snapshot at
`{html.escape(str(settings.SNAPSHOT_PATH.relative_to(settings.PROJECT_ROOT_DIR)))}`.
Run `python generate_data.py` to (re)create it, or set `REFTRACK_RECORD_STORE__URL` to connect.
""", icon="ℹ️")
st.divider()

st.header("Snapshot at a Glance")
try:
    referrals = get_referral_snapshot()
except RecordStoreError as e:
    logger.error(f"Landing page snapshot fetch failed: {e}")
    st.error(f"Could not load referrals: {e}")
else:
    active = referrals[~referrals['is_archived'].astype(bool)] if not referrals.empty else referrals
    counts = stoplight_counts(active)
    cols = st.columns(4)
    with cols[0]:
        render_kpi_card("Active Referrals", len(active), icon="📥")
    with cols[1]:
        render_kpi_card("Docs Ready", int(active['is_ready'].astype(bool).sum()) if not active.empty else 0, icon="✅")
    with cols[2]:
        render_kpi_card("Blocked", counts['red'], icon="⛔", status_level="RED" if counts['red'] else "GREEN")
    with cols[3]:
        render_kpi_card("Orphaned", int((~active['has_patient']).sum()) if not active.empty else 0, icon="❓",
                        help_text="Referrals whose patient record could not be found.")
st.divider()

PAGE_BLURBS = {
    "Referrals": "Filter the worklist, move referrals between stages and check off documents.",
    "Patients": "Search patients, see their latest referral and archive in bulk.",
    "Dashboard": "Compare this period's intake, readiness and denials with the previous one.",
    "Trends": "Weekly intake, document readiness and archiving by ISO week.",
}

st.header("Explore")
page_files = sorted((_project_root / "pages").glob("[0-9]*.py"))
nav_cols = st.columns(min(len(page_files), 4) or 1)
for col_idx, page_path in enumerate(page_files):
    page_name = page_path.stem[3:].replace("_", " ")
    with nav_cols[col_idx % len(nav_cols)]:
        with st.container(border=True):
            st.subheader(page_name)
            st.caption(PAGE_BLURBS.get(page_name, ""))
            st.page_link(str(page_path.relative_to(_project_root)), label=f"Open {page_name}", icon="➡️")

with st.sidebar:
    st.header(settings.APP_NAME)
    st.caption(f"v{settings.APP_VERSION} · {'live record store' if settings.RECORD_STORE.is_configured else 'demo snapshot'}")
    st.markdown(f"**{html.escape(settings.ORGANIZATION_NAME)}**")
    st.markdown(f"Contact: <a href='mailto:{settings.SUPPORT_CONTACT_INFO}'>{settings.SUPPORT_CONTACT_INFO}</a>", unsafe_allow_html=True)
    st.caption(settings.APP_FOOTER_TEXT)

logger.info("Landing page rendered.")
