"""Application configuration with comprehensive validation."""
from typing import Optional, Literal, List
from functools import lru_cache
from decimal import Decimal
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import Field, field_validator, model_validator, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings with production-grade validation."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    APP_NAME: str = "HRM KPI Engine"
    APP_VERSION: str = "1.0.0"
    APP_ENV: Literal["development", "staging", "production"] = "development"
    DEBUG: bool = False
    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    LOG_FORMAT: Literal["json", "console"] = "json"

    # API
    API_V1_PREFIX: str = "/api/v1"

    # Organization calendar
    ORG_TIMEZONE: str = "Asia/Dhaka"

    # Scheduled trigger authentication (checked by the HTTP layer, not the engine)
    HRM_CRON_SECRET: Optional[SecretStr] = None

    # Snowflake
    SNOWFLAKE_ACCOUNT: Optional[str] = None
    SNOWFLAKE_USER: Optional[str] = None
    SNOWFLAKE_PASSWORD: Optional[SecretStr] = None
    SNOWFLAKE_DATABASE: Optional[str] = None
    SNOWFLAKE_SCHEMA: Optional[str] = None
    SNOWFLAKE_WAREHOUSE: Optional[str] = None
    SNOWFLAKE_ROLE: Optional[str] = None

    # Redis (advisory period locks)
    REDIS_URL: str = "redis://localhost:6379/0"
    PERIOD_LOCK_TIMEOUT_SECONDS: int = Field(default=300, ge=1, le=3600)
    PERIOD_LOCK_WAIT_SECONDS: float = Field(default=30.0, ge=0.0, le=600.0)

    # Notification delivery
    NOTIFY_WEBHOOK_URL: Optional[str] = None
    NOTIFY_TIMEOUT_SECONDS: float = Field(default=10.0, gt=0, le=120)
    NOTIFY_MAX_ATTEMPTS: int = Field(default=5, ge=1, le=50)
    NOTIFY_BATCH_SIZE: int = Field(default=200, ge=1, le=10000)

    # Tier thresholds (monthly score, 0-100)
    TIER_BONUS_MIN: Decimal = Field(default=Decimal("90"), ge=0, le=100)
    TIER_APPRECIATION_MIN: Decimal = Field(default=Decimal("80"), ge=0, le=100)
    TIER_IMPROVEMENT_MIN: Decimal = Field(default=Decimal("70"), ge=0, le=100)

    # Score-band base fines (applied below TIER_IMPROVEMENT_MIN)
    FINE_BAND_LOW_MIN: Decimal = Field(default=Decimal("60"), ge=0, le=100)
    FINE_BAND_LOW_AMOUNT: Decimal = Field(default=Decimal("300"), ge=0)
    FINE_BAND_MID_MIN: Decimal = Field(default=Decimal("50"), ge=0, le=100)
    FINE_BAND_MID_AMOUNT: Decimal = Field(default=Decimal("600"), ge=0)
    FINE_BAND_HIGH_AMOUNT: Decimal = Field(default=Decimal("1000"), ge=0)

    # Two IMPROVEMENT months in a row
    REPEATED_IMPROVEMENT_FINE: Decimal = Field(default=Decimal("300"), ge=0)

    # Escalation for consecutive fined months: factor = MULTIPLIER ** (count - 1)
    FINE_ESCALATION_MULTIPLIER: Decimal = Field(default=Decimal("1"), ge=1, le=10)
    FINE_ESCALATION_CAP: Decimal = Field(default=Decimal("4"), ge=1, le=100)

    # Tiers that extend the consecutive-improvement streak
    IMPROVEMENT_STREAK_TIERS: List[str] = Field(default=["IMPROVEMENT"])

    # Scheduled month close runs only on these days of the new month
    MONTH_CLOSE_MAX_DAY: int = Field(default=2, ge=1, le=28)

    @field_validator("ORG_TIMEZONE")
    @classmethod
    def validate_timezone(cls, v: str) -> str:
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError):
            raise ValueError(f"Unknown timezone: {v}")
        return v

    @field_validator("IMPROVEMENT_STREAK_TIERS")
    @classmethod
    def validate_streak_tiers(cls, v: List[str]) -> List[str]:
        allowed = {"BONUS", "APPRECIATION", "IMPROVEMENT"}
        normalized = [t.upper() for t in v]
        unknown = set(normalized) - allowed
        if unknown:
            raise ValueError(f"Invalid streak tiers: {sorted(unknown)} (FINE always resets)")
        return normalized

    @model_validator(mode="after")
    def validate_tier_thresholds(self):
        """Tier thresholds must be strictly descending."""
        if not (self.TIER_BONUS_MIN > self.TIER_APPRECIATION_MIN > self.TIER_IMPROVEMENT_MIN):
            raise ValueError(
                "Tier thresholds must satisfy BONUS > APPRECIATION > IMPROVEMENT, got "
                f"{self.TIER_BONUS_MIN}/{self.TIER_APPRECIATION_MIN}/{self.TIER_IMPROVEMENT_MIN}"
            )
        return self

    @model_validator(mode="after")
    def validate_fine_bands(self):
        """Fine bands must sit below the improvement threshold and descend."""
        if not (self.TIER_IMPROVEMENT_MIN > self.FINE_BAND_LOW_MIN > self.FINE_BAND_MID_MIN):
            raise ValueError(
                "Fine bands must satisfy IMPROVEMENT_MIN > FINE_BAND_LOW_MIN > FINE_BAND_MID_MIN"
            )
        return self

    @model_validator(mode="after")
    def validate_production_settings(self):
        """Ensure production has required security settings."""
        if self.APP_ENV == "production":
            if self.DEBUG:
                raise ValueError("DEBUG must be False in production")
            if self.HRM_CRON_SECRET is None or len(self.HRM_CRON_SECRET.get_secret_value()) < 16:
                raise ValueError("HRM_CRON_SECRET must be ≥16 characters in production")
            if not self.SNOWFLAKE_ACCOUNT:
                raise ValueError("SNOWFLAKE_ACCOUNT is required in production")
        return self

    @property
    def snowflake_configured(self) -> bool:
        return bool(self.SNOWFLAKE_ACCOUNT and self.SNOWFLAKE_USER and self.SNOWFLAKE_PASSWORD)


@lru_cache
def get_settings() -> Settings:
    return Settings()

settings = get_settings()
