# epicq_analytics/config/settings.py
#
# Centralized Application Configuration
# Defines the analytics engine configuration with Pydantic models. Values are
# loaded from environment variables or a .env file, so business weights and
# thresholds can be tuned per deployment without code changes.

import logging
from pathlib import Path
from typing import Dict, Literal

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# --- Define Project Root ---
PROJECT_ROOT = Path(__file__).resolve().parent.parent

settings_logger = logging.getLogger(__name__)

# -----------------------------------------------------------------------------
# 1. NESTED CONFIGURATION MODELS
# -----------------------------------------------------------------------------

class AppConfig(BaseModel):
    """Core application metadata and logging settings."""
    name: str = "EPIC-Q Study Analytics"
    version: str = "1.0.0"
    organization_name: str = "EPIC-Q Study Coordination"

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    log_format: str = "%(asctime)s - %(name)s.%(funcName)s - %(levelname)s - %(message)s"
    log_date_format: str = "%Y-%m-%d %H:%M:%S"

class DirectoryConfig(BaseModel):
    """Key directory paths. Nothing is created on disk at import time."""
    root: Path = PROJECT_ROOT
    data_sources: Path = PROJECT_ROOT / "data_sources"

class ScoringConfig(BaseModel):
    """
    Weights for the composite scores.

    The activity score deliberately weights progress (0.4) above completion
    (0.3) and rewards any case activity at all with a flat 30-point bonus.
    """
    activity_progress_weight: float = 0.4
    activity_completion_weight: float = 0.3
    activity_case_bonus: float = 30.0
    activity_high: float = 80.0
    activity_medium: float = 50.0
    activity_low: float = 20.0

    coordinator_completion_weight: float = 0.4
    coordinator_case_bonus: float = 30.0
    coordinator_response_weight: float = 0.2
    coordinator_alert_weight: float = 0.1
    rating_excellent: float = 80.0
    rating_good: float = 60.0
    rating_fair: float = 40.0

class TrendConfig(BaseModel):
    """Thresholds for the midpoint-split trend heuristic and confidence labels."""
    improving_ratio: float = 1.1
    declining_ratio: float = 0.9
    high_confidence_min_samples: int = 30
    high_confidence_max_cov: float = 0.3
    medium_confidence_min_samples: int = 10
    medium_confidence_max_cov: float = 0.5

class VelocityConfig(BaseModel):
    """Nominal bucket lengths (not elapsed days) and week alignment."""
    period_days: Dict[str, int] = {"day": 1, "week": 7, "month": 30}
    week_anchor: Literal["monday", "sunday"] = "monday"

class PlaceholderConfig(BaseModel):
    """
    Known stand-ins pending real instrumentation. Any value derived from these
    is flagged in the output so it is never presented as measured data.
    """
    # Used per communication when no reply timestamp is recorded.
    fallback_response_time_hours: float = 24.0
    # Used when no alerts are linked to the coordinator's hospital.
    alert_resolution_rate: float = 85.0

class DefaultsConfig(BaseModel):
    """Fallbacks applied when a request omits or mangles a selector."""
    granularity: Literal["day", "week", "month"] = "day"
    level: Literal["hospital", "province", "global"] = "global"
    lookback_days: int = 90
    prediction_days: int = 30
    max_workers: int = 4

# -----------------------------------------------------------------------------
# 2. MAIN SETTINGS CLASS
# -----------------------------------------------------------------------------

class Settings(BaseSettings):
    """
    Main settings class for the analytics engine.
    Aggregates all configuration models and loads from environment variables.
    """
    model_config = SettingsConfigDict(
        env_prefix='EPICQ_',
        case_sensitive=False,
        env_nested_delimiter='__',
        env_file=f"{PROJECT_ROOT}/.env",
        extra='ignore'
    )

    app: AppConfig = Field(default_factory=AppConfig)
    directories: DirectoryConfig = Field(default_factory=DirectoryConfig)
    scoring: ScoringConfig = Field(default_factory=ScoringConfig)
    trend: TrendConfig = Field(default_factory=TrendConfig)
    velocity: VelocityConfig = Field(default_factory=VelocityConfig)
    placeholders: PlaceholderConfig = Field(default_factory=PlaceholderConfig)
    defaults: DefaultsConfig = Field(default_factory=DefaultsConfig)

    # --- Data Source File Names (relative to directories.data_sources) ---
    progress_records_file: str = "hospital_progress.csv"
    case_metrics_file: str = "case_metrics.csv"
    hospitals_file: str = "hospitals.csv"
    alerts_file: str = "alerts.csv"
    assignments_file: str = "project_coordinators.csv"
    coordinators_file: str = "coordinators.json"
    recruitment_periods_file: str = "recruitment_periods.json"


def configure_logging(config: "Settings" = None) -> None:
    """Applies the configured log level and format to the root logger."""
    config = config or settings
    logging.basicConfig(
        level=config.app.log_level,
        format=config.app.log_format,
        datefmt=config.app.log_date_format,
        force=True
    )

# -----------------------------------------------------------------------------
# 3. SINGLETON INSTANCE
# -----------------------------------------------------------------------------

try:
    settings = Settings()
    settings_logger.info(
        f"Settings loaded for '{settings.app.name}' v{settings.app.version}. "
        f"LOG_LEVEL={settings.app.log_level}. PROJECT_ROOT='{PROJECT_ROOT}'"
    )
except Exception as e:
    settings_logger.critical(f"FATAL: Could not initialize application settings. Error: {e}", exc_info=True)
    raise
