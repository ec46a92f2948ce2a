"""
Configuration: YAML file + ``.env`` overrides, validated with pydantic.

Every field has a default so the platform runs without a config file.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field

from .models import DetailSelectors

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "config.yaml"


class BrowserSettings(BaseModel):
    browser_type: str = "chromium"
    headless: bool = False
    # Attach to the operator's running browser (keeps the portal login)...
    cdp_url: Optional[str] = None
    # ...or reuse a persistent profile directory.
    user_data_dir: Optional[str] = None
    timeout_ms: float = 30_000


class PortalSettings(BaseModel):
    ticket_origin: str = "https://esm.gov.ae/"
    list_url: Optional[str] = None
    admin_url: str = "https://admin.sharyuae.ae/reports/applications-report"
    admin_origin: str = "https://admin.sharyuae.ae/"


class TimeoutSettings(BaseModel):
    """All values in seconds."""
    open_tab: float = 5.0
    page_load: float = 15.0
    tab_load: float = 20.0
    url_check: float = 10.0
    url_poll_interval: float = 0.3
    url_poll_attempts: int = 20
    detail_settle: float = 1.2
    detail_scrape: float = 10.0
    detail_container_wait: float = 8.0
    detail_poll_interval: float = 0.5
    admin_page_load: float = 20.0
    admin_tab_load: float = 25.0
    admin_url_check: float = 10.0
    admin_settle: float = 1.0
    admin_scrape: float = 20.0
    search_ready_interval: float = 0.3
    search_ready_timeout: float = 8.0
    date_retry_delay: float = 0.3
    results_interval: float = 0.5
    results_timeout: float = 15.0
    row: float = 60.0
    stale_run: float = 120.0
    list_read_attempts: int = 3
    list_read_delay: float = 0.3


class AttachmentSettings(BaseModel):
    max_bytes: int = 8 * 1024 * 1024
    retries: int = 2
    retry_delay: float = 0.3
    timeout: float = 60.0


class SummarySettings(BaseModel):
    enabled: bool = True
    url: str = "http://localhost:8787/summarize"
    timeout: float = 300.0


class StorageSettings(BaseModel):
    db_path: str = "data/incidents.db"
    export_dir: str = "exports"
    export_file: str = "site1_details.json"


class ControlSettings(BaseModel):
    host: str = "127.0.0.1"
    port: int = 8765


class SiteSelectors(BaseModel):
    username_input: str = "input[name='username']"
    password_input: str = "input[name='password']"
    login_button: str = "button[type='submit']"
    search_button: str = "button:has-text('Search')"
    table: str = "[data-testid='results-table']"
    table_row: str = "[data-testid^='row-']"
    cell_pattern: str = "[data-testid^='row-'][data-testid*='-column-'][data-testid$='-content']"
    status_cell: str = "[data-testid^='row-'][data-testid*='-column-status-'][data-testid$='-content']"
    date_range_input: str = "input[name='requestDateRange']"


class SiteLabels(BaseModel):
    date_from: str = "From"
    date_to: str = "To"
    application_no: str = "Application No"
    presale_no: str = "Presale No"
    emirates_id: str = "Emirates ID"
    traffic_no: str = "Traffic No"
    chassis_no: str = "Chassis No"
    status: str = "Status"
    request_date: str = "Request Date"
    application_id: str = "ApplicationId"


class SiteSettings(BaseModel):
    uat_url: str
    prod_url: str
    username_env: str
    password_env: str
    selectors: SiteSelectors = Field(default_factory=SiteSelectors)
    login_timeout: float = 90.0
    table_timeout: float = 90.0

    def url_for(self, env: str, override: Optional[str] = None) -> str:
        if override:
            return override
        return self.prod_url if env == "prod" else self.uat_url

    def credentials(self) -> Dict[str, str]:
        return {
            "username": os.getenv(self.username_env, ""),
            "password": os.getenv(self.password_env, ""),
        }


class ReconcileSettings(BaseModel):
    site1: SiteSettings = Field(
        default_factory=lambda: SiteSettings(
            uat_url="https://SITE1_UAT_URL",
            prod_url="https://SITE1_PROD_URL",
            username_env="SITE1_USERNAME",
            password_env="SITE1_PASSWORD",
        )
    )
    site2: SiteSettings = Field(
        default_factory=lambda: SiteSettings(
            uat_url="https://SITE2_UAT_URL",
            prod_url="https://SITE2_PROD_URL",
            username_env="SITE2_USERNAME",
            password_env="SITE2_PASSWORD",
        )
    )
    labels: SiteLabels = Field(default_factory=SiteLabels)
    artifacts_dir: str = "artifacts"
    out_dir: str = "out"


class Settings(BaseModel):
    log_level: str = "INFO"
    browser: BrowserSettings = Field(default_factory=BrowserSettings)
    portal: PortalSettings = Field(default_factory=PortalSettings)
    timeouts: TimeoutSettings = Field(default_factory=TimeoutSettings)
    attachments: AttachmentSettings = Field(default_factory=AttachmentSettings)
    summary: SummarySettings = Field(default_factory=SummarySettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    control: ControlSettings = Field(default_factory=ControlSettings)
    detail_selectors: DetailSelectors = Field(default_factory=DetailSelectors)
    reconcile: ReconcileSettings = Field(default_factory=ReconcileSettings)


def load_config(path: str = DEFAULT_CONFIG_PATH) -> Dict[str, Any]:
    """Load configuration from YAML file."""
    with open(path) as f:
        return yaml.safe_load(f) or {}


def _apply_env_overrides(data: Dict[str, Any]) -> Dict[str, Any]:
    if os.getenv("LOG_LEVEL"):
        data["log_level"] = os.environ["LOG_LEVEL"]
    if os.getenv("LLM_SERVER_URL"):
        data.setdefault("summary", {})["url"] = os.environ["LLM_SERVER_URL"]
    return data


def load_settings(path: Optional[str] = None) -> Settings:
    """Load ``.env``, read the YAML config (if any) and validate it."""
    load_dotenv()
    config_path = Path(path or os.getenv("INCIDENTS_CONFIG", DEFAULT_CONFIG_PATH))

    data: Dict[str, Any] = {}
    if config_path.exists():
        data = load_config(str(config_path))
        logger.info(f"Loaded configuration from {config_path}")
    else:
        logger.warning(f"Config file not found: {config_path}; using defaults")

    return Settings.model_validate(_apply_env_overrides(data))
