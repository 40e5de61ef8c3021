"""Engine configuration with validation."""
from typing import Literal
from functools import lru_cache
from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Scoring engine settings, overridable from the environment or a .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    APP_NAME: str = "Judging Leaderboard Engine"
    APP_VERSION: str = "1.0.0"
    APP_ENV: Literal["development", "staging", "production"] = "development"
    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    LOG_FORMAT: Literal["json", "console"] = "json"

    # Numeric precision (places kept after every aggregation step)
    SCORE_DECIMAL_PLACES: int = Field(default=4, ge=0, le=8)

    # Trend analysis
    TREND_STABILITY_THRESHOLD_PCT: float = Field(
        default=2.0,
        ge=0.0,
        le=25.0,
        description="Per-step slope (as % of the window mean) within which a trend is 'stable'",
    )

    # Ranking defaults
    DEFAULT_TEAM_SCORE_POLICY: Literal["highest", "sum", "average"] = "highest"
    DEFAULT_SORT_FIELD: Literal[
        "average_score", "total_score", "submission_count", "team_name"
    ] = "average_score"
    EXCLUDE_INCOMPLETE_SUBMISSIONS: bool = False
    WINNING_POSITIONS: int = Field(default=3, ge=1, le=10)

    # Record limits
    MAX_COMMENT_LENGTH: int = Field(default=2000, ge=1)
    MAX_RUBRIC_NAME_LENGTH: int = Field(default=100, ge=1)
    MAX_RUBRIC_DESCRIPTION_LENGTH: int = Field(default=1000, ge=1)

    # Redis
    REDIS_URL: str = "redis://localhost:6379/0"
    CACHE_TTL_LEADERBOARD: int = Field(default=300, ge=1)  # 5 minutes
    CACHE_TTL_AGGREGATE: int = Field(default=120, ge=1)    # 2 minutes

    @field_validator("REDIS_URL")
    @classmethod
    def validate_redis_url(cls, v: str) -> str:
        if not v.startswith(("redis://", "rediss://", "unix://")):
            raise ValueError("REDIS_URL must use the redis://, rediss:// or unix:// scheme")
        return v

    @model_validator(mode="after")
    def validate_cache_ttls(self):
        """Leaderboards are recomputed from aggregates, so they must not outlive them by much."""
        if self.CACHE_TTL_AGGREGATE > self.CACHE_TTL_LEADERBOARD:
            raise ValueError("CACHE_TTL_AGGREGATE must be <= CACHE_TTL_LEADERBOARD")
        return self

    @model_validator(mode="after")
    def validate_production_settings(self):
        """Production logs are shipped as JSON."""
        if self.APP_ENV == "production" and self.LOG_FORMAT != "json":
            raise ValueError("LOG_FORMAT must be 'json' in production")
        return self


@lru_cache
def get_settings() -> Settings:
    return Settings()

settings = get_settings()
