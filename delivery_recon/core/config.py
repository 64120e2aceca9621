"""
Configuration Management with Pydantic
Type-safe configuration with validation and environment support.
Values come from environment variables, which properties files populate
(application.properties + application-{profile}.properties).
"""

from typing import Literal
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from delivery_recon.core.environment import Environment, detect_environment, load_environment_config, get_environment

# Load properties files first (this sets environment variables)
# This must happen before any config classes are instantiated
load_environment_config()


def _is_dev():
    return detect_environment().is_development


def _is_prod():
    return detect_environment().is_production


class DatabaseConfig(BaseSettings):
    """Relational store connection settings"""

    url: str = Field(default="sqlite:///./delivery_recon.db", validation_alias="DATABASE_URL")
    echo: bool = Field(default=False, validation_alias="DB_ECHO")
    pool_size: int = Field(default_factory=lambda: 5 if _is_dev() else 10, validation_alias="DB_POOL_SIZE")
    max_overflow: int = Field(default_factory=lambda: 10 if _is_dev() else 20, validation_alias="DB_MAX_OVERFLOW")
    pool_recycle: int = Field(default=1800, validation_alias="DB_POOL_RECYCLE")

    model_config = SettingsConfigDict(case_sensitive=False, populate_by_name=True)

    @property
    def is_sqlite(self) -> bool:
        return self.url.startswith("sqlite")

    @property
    def dialect_label(self) -> str:
        """Driver name and host/path for display, without credentials"""
        scheme, _, rest = self.url.partition("://")
        return f"{scheme}://{rest.rsplit('@', 1)[-1]}"


class MatchingConfig(BaseSettings):
    """Location identity resolution settings"""

    fuzzy_threshold: float = Field(default=0.8, validation_alias="MATCH_FUZZY_THRESHOLD")
    tie_break: Literal["first", "last"] = Field(default="first", validation_alias="MATCH_TIE_BREAK")
    suggestion_min_confidence: float = Field(default=0.0, validation_alias="MATCH_SUGGESTION_MIN_CONFIDENCE")

    model_config = SettingsConfigDict(case_sensitive=False, populate_by_name=True)

    @field_validator("fuzzy_threshold", "suggestion_min_confidence")
    @classmethod
    def _check_unit_interval(cls, value: float) -> float:
        if not 0.0 <= value <= 1.0:
            raise ValueError(f"must be between 0 and 1, got {value}")
        return value

    @field_validator("tie_break", mode="before")
    @classmethod
    def _lower_tie_break(cls, value):
        return value.lower().strip() if isinstance(value, str) else value


class IngestionConfig(BaseSettings):
    """Upload and batch write settings"""

    batch_size: int = Field(default=100, validation_alias="INGEST_BATCH_SIZE")
    max_file_size_mb: int = Field(default=50, validation_alias="MAX_FILE_SIZE_MB")

    model_config = SettingsConfigDict(case_sensitive=False, populate_by_name=True)

    @field_validator("batch_size")
    @classmethod
    def _check_batch_size(cls, value: int) -> int:
        if value < 1:
            raise ValueError("batch_size must be at least 1")
        return value


class QualityConfig(BaseSettings):
    """Data-quality analyzer thresholds"""

    cogs_rate: float = Field(default=0.46, validation_alias="QUALITY_COGS_RATE")
    max_roas: float = Field(default=20.0, validation_alias="QUALITY_MAX_ROAS")
    min_payout_percent: float = Field(default=30.0, validation_alias="QUALITY_MIN_PAYOUT_PERCENT")
    wow_drop_percent: float = Field(default=50.0, validation_alias="QUALITY_WOW_DROP_PERCENT")
    wow_drop_absolute: float = Field(default=1000.0, validation_alias="QUALITY_WOW_DROP_ABSOLUTE")
    wow_spike_percent: float = Field(default=100.0, validation_alias="QUALITY_WOW_SPIKE_PERCENT")
    wow_spike_absolute: float = Field(default=2000.0, validation_alias="QUALITY_WOW_SPIKE_ABSOLUTE")
    lookback_weeks: int = Field(default=8, validation_alias="QUALITY_LOOKBACK_WEEKS")

    model_config = SettingsConfigDict(case_sensitive=False, populate_by_name=True)


class AppConfig(BaseSettings):
    """Main application configuration with environment awareness"""

    environment: Environment = Field(default_factory=get_environment)

    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    matching: MatchingConfig = Field(default_factory=MatchingConfig)
    ingestion: IngestionConfig = Field(default_factory=IngestionConfig)
    quality: QualityConfig = Field(default_factory=QualityConfig)

    # Application settings (environment-specific defaults)
    log_level: str = Field(
        default_factory=lambda: "DEBUG" if _is_dev() else "INFO",
        validation_alias="LOG_LEVEL"
    )
    uvicorn_host: str = Field(
        default_factory=lambda: "127.0.0.1" if _is_dev() else "0.0.0.0",
        validation_alias="UVICORN_HOST"
    )
    uvicorn_port: int = Field(8010, validation_alias="UVICORN_PORT")
    uvicorn_reload: bool = Field(default_factory=_is_dev, validation_alias="UVICORN_RELOAD")
    cors_allowed_origins: str = Field(
        default_factory=lambda: "*" if _is_dev() else "",
        validation_alias="CORS_ALLOWED_ORIGINS"
    )
    debug: bool = Field(default_factory=_is_dev, validation_alias="DEBUG")
    enable_docs: bool = Field(default_factory=lambda: not _is_prod(), validation_alias="ENABLE_DOCS")

    model_config = SettingsConfigDict(case_sensitive=False, populate_by_name=True)

    def __init__(self, **kwargs):
        if 'environment' not in kwargs:
            kwargs['environment'] = detect_environment()
        elif isinstance(kwargs.get('environment'), str):
            kwargs['environment'] = Environment.from_string(kwargs['environment'])

        super().__init__(**kwargs)


# Global configuration instance
config = AppConfig()
