# referral_tracker/config/settings.py
# CENTRALIZED CONFIGURATION HUB

import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, computed_field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

settings_logger = logging.getLogger(__name__)

# --- Nested Models for Structured Configuration ---
class AnalyticsConfig(BaseModel):
    min_trend_points: int = 2
    default_dashboard_days: int = 30
    trend_lookback_days: int = 90

class RecordStoreConfig(BaseModel):
    url: Optional[str] = None
    api_key: Optional[str] = None
    timeout_seconds: float = 10.0

    @computed_field
    @property
    def is_configured(self) -> bool:
        return bool(self.url)

# --- Main Settings Class ---
class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix='REFTRACK_', env_nested_delimiter='__', case_sensitive=False, env_file='.env', env_file_encoding='utf-8', extra='ignore')

    PROJECT_ROOT_DIR: Path = Path(__file__).resolve().parent.parent
    APP_NAME: str = "Referral Tracker"; APP_VERSION: str = "1.4.0"
    ORGANIZATION_NAME: str = "Care Coordination Team"; SUPPORT_CONTACT_INFO: str = "support@referraltracker.local"
    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    LOG_FORMAT: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    LOG_DATE_FORMAT: str = "%Y-%m-%d %H:%M:%S"

    ASSETS_DIR: Path; DATA_SOURCES_DIR: Path
    STYLE_CSS_PATH: Path; SNAPSHOT_PATH: Path

    @model_validator(mode='before')
    @classmethod
    def set_default_paths(cls, values: Any) -> Any:
        if isinstance(values, dict):
            root = Path(values.get('PROJECT_ROOT_DIR', Path(__file__).resolve().parent.parent))
            assets = root / "assets"; data = root / "data_sources"
            values.setdefault('ASSETS_DIR', assets); values.setdefault('DATA_SOURCES_DIR', data)
            values.setdefault('STYLE_CSS_PATH', assets / "style.css")
            values.setdefault('SNAPSHOT_PATH', data / "referral_snapshot.json")
        return values

    RECORD_STORE: RecordStoreConfig = RecordStoreConfig()

    # Canonical order; regression detection compares positions in this list.
    WORKFLOW_STAGES: List[str] = [
        "Referral Received",
        "Patient Intake & Demographics",
        "Insurance Verification",
        "Documentation Verification",
        "Preauthorization (PAR)",
        "Ready for Delivery",
        "Delivered",
    ]
    # Stages offered as quick-filter chips on the referrals page.
    QUICK_FILTER_STAGES: List[str] = [
        "Referral Received",
        "Patient Intake & Demographics",
        "Documentation Verification",
        "Preauthorization (PAR)",
    ]
    DOCUMENT_LABELS: Dict[str, str] = {
        "FACE": "Face-to-Face Notes",
        "CMN": "Certificate of Medical Necessity",
        "RX": "Prescription / Order",
        "SWO": "Standard Written Order",
        "INS": "Insurance Card",
        "ID": "Photo ID",
        "POD": "Proof of Delivery",
    }
    DOC_FILTER_STATUSES: List[str] = ["Complete", "Missing", "Not Required"]
    ARCHIVED_ORDER_STATUSES: List[str] = ["Delivered", "Closed", "Archived"]
    STOPLIGHT_STATUSES: List[str] = ["green", "yellow", "red"]
    REGRESSION_REASONS: List[str] = [
        "Missing documentation", "Insurance denial", "Patient request",
        "Data entry correction", "Physician follow-up required", "Other",
    ]

    ANALYTICS: AnalyticsConfig = AnalyticsConfig()

    CACHE_TTL_SECONDS: int = 300
    # Recorded on regressions and bulk document updates; "System" when unset.
    OPERATOR_EMAIL: Optional[str] = None

    COLOR_PRIMARY: str = "#0D9488"; COLOR_SECONDARY: str = "#546E7A"; COLOR_ACCENT: str = "#4F46E5"
    COLOR_BACKGROUND_CONTENT: str = "#FFFFFF"
    COLOR_TEXT_PRIMARY: str = "#343A40"; COLOR_TEXT_HEADINGS: str = "#1A2557"; COLOR_TEXT_MUTED: str = "#6C757D"
    COLOR_STOPLIGHT_RED: str = "#DC2626"; COLOR_STOPLIGHT_YELLOW: str = "#F59E0B"; COLOR_STOPLIGHT_GREEN: str = "#16A34A"
    TREND_SERIES_COLORS: Dict[str, str] = {"new_referrals": "#4F46E5", "docs_ready": "#16A34A", "archived": "#F59E0B"}
    PLOTLY_COLORWAY: List[str] = [COLOR_ACCENT, COLOR_STOPLIGHT_GREEN, COLOR_STOPLIGHT_YELLOW, COLOR_STOPLIGHT_RED, COLOR_SECONDARY]

    @computed_field
    @property
    def APP_FOOTER_TEXT(self) -> str: return f"© {datetime.now().year} {self.ORGANIZATION_NAME}. Referral tracking and documentation readiness."

try:
    settings = Settings()
    settings_logger.info(f"Referral Tracker settings loaded. App: {settings.APP_NAME} v{settings.APP_VERSION}")
except Exception as e:
    settings_logger.critical(f"FATAL: Could not initialize Pydantic settings. Error: {e}", exc_info=True)
    raise
