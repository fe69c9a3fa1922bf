"""
Configuration Module
====================

Application settings and configuration management using Pydantic.

Work hours and the static SLA deadline table live in a YAML file
(see ``BUSINESS_HOURS_CONFIG_PATH``); everything else comes from the
environment or a local ``.env`` file.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, field_validator
from functools import lru_cache
from pathlib import Path
from typing import Dict, List, Optional


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Uses Pydantic for validation and type safety.
    """

    # ========== Application ==========
    app_name: str = Field(default="itop-sla-exporter", description="Application name")
    app_version: str = Field(default="1.0.0", description="Application version")
    environment: str = Field(default="development", description="Environment name")
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: str = Field(default="INFO", description="Root log level")

    # ========== Server ==========
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=9100, description="Server port", ge=1, le=65535)

    # ========== iTop REST API ==========
    itop_api_url: Optional[str] = Field(
        default=None,
        description="iTop REST endpoint (e.g. https://itop.example.com/webservices/rest.php)"
    )
    itop_api_user: Optional[str] = Field(default=None, description="iTop REST user")
    itop_api_pwd: Optional[str] = Field(default=None, description="iTop REST password")
    itop_api_version: str = Field(default="1.3", description="iTop REST API version")
    itop_verify_tls: bool = Field(
        default=False,
        description="Verify the iTop TLS certificate (self-signed installs are common)"
    )
    itop_timeout_seconds: float = Field(
        default=30.0,
        description="Timeout for iTop API calls",
        ge=0.1,
        le=300
    )
    itop_timezone: Optional[str] = Field(
        default=None,
        description="IANA zone of iTop timestamps; unset keeps them naive"
    )

    # ========== Tickets ==========
    ticket_classes: List[str] = Field(
        default=["Incident", "UserRequest"],
        description="iTop ticket classes to export"
    )
    ticket_statuses: List[str] = Field(
        default=["assigned", "resolved", "closed"],
        description="Ticket statuses fetched from iTop"
    )

    # ========== SLA Configuration ==========
    business_hours_config_path: Path = Field(
        default=Path("config/business_hours.yaml"),
        description="Path to work hours / SLA deadline YAML file"
    )
    holidays_file: Optional[Path] = Field(
        default=None,
        description="Optional file with one holiday date (YYYY-MM-DD) per line"
    )
    deadline_source: str = Field(
        default="itop",
        description="Where SLA deadlines come from: 'itop' (SLT catalog) or 'config' (YAML table)"
    )

    # ========== Refresh intervals ==========
    ticket_refresh_interval: int = Field(
        default=10,
        description="Seconds between ticket fetches",
        ge=1
    )
    holiday_sync_interval: int = Field(
        default=300,
        description="Seconds between holiday syncs",
        ge=1
    )
    metrics_refresh_interval: int = Field(
        default=10,
        description="Seconds between compliance recomputations",
        ge=1
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Ensure environment is one of allowed values."""
        allowed = {"development", "staging", "production"}
        if v not in allowed:
            raise ValueError(f"environment must be one of {allowed}")
        return v

    @field_validator("deadline_source")
    @classmethod
    def validate_deadline_source(cls, v: str) -> str:
        """Ensure the deadline source is known."""
        v = v.lower()
        if v not in VALID_DEADLINE_SOURCES:
            raise ValueError(f"deadline_source must be one of {VALID_DEADLINE_SOURCES}")
        return v

    @property
    def itop_configured(self) -> bool:
        """True when URL, user and password are all set."""
        return bool(self.itop_api_url and self.itop_api_user and self.itop_api_pwd)


@lru_cache()
def get_settings() -> Settings:
    """Returns cached Settings instance."""
    return Settings()


# ========== Constants ==========

class TicketClass(str):
    """iTop ticket classes."""
    INCIDENT = "Incident"
    USER_REQUEST = "UserRequest"


class Regime(str):
    """Time-accounting regimes."""
    RAW = "raw"
    BUSINESS_HOUR = "business-hour"


class SLAMetric(str):
    """Measured SLA milestones."""
    RESPONSE = "response"
    RESOLVE = "resolve"


class Verdict(str):
    """Compliance verdicts."""
    COMPLY = "comply"
    VIOLATE = "violate"


class SLTMetricTag(str):
    """Metric tags used by iTop SLT records."""
    TTO = "tto"
    TTR = "ttr"


class DeadlineSource(str):
    """Deadline provider selection."""
    ITOP = "itop"
    CONFIG = "config"


# ========== Lists / lookups ==========

VALID_REGIMES = [Regime.RAW, Regime.BUSINESS_HOUR]
VALID_SLA_METRICS = [SLAMetric.RESPONSE, SLAMetric.RESOLVE]
VALID_DEADLINE_SOURCES = [DeadlineSource.ITOP, DeadlineSource.CONFIG]

# iTop SLT.request_type per ticket class
REQUEST_TYPES: Dict[str, str] = {
    TicketClass.INCIDENT: "incident",
    TicketClass.USER_REQUEST: "service_request",
}

# iTop priority/urgency codes
PRIORITY_LABELS: Dict[str, str] = {
    "1": "Critical",
    "2": "High",
    "3": "Medium",
    "4": "Low",
}

# Detail exposition path per ticket class
DETAIL_ENDPOINTS: Dict[str, str] = {
    TicketClass.INCIDENT: "/incidents",
    TicketClass.USER_REQUEST: "/userrequests",
}


# Global settings instance
settings = get_settings()
