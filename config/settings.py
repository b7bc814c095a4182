"""
Engine settings loaded from environment variables.

Uses pydantic-settings for validation and type safety. These are the
caller-side defaults and algorithm thresholds; the engine itself never
reads the clock or the environment mid-computation.
"""

from decimal import Decimal
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Engine settings.

    All values loaded from .env file or environment variables.
    Validation happens automatically on first access.
    """

    model_config = SettingsConfigDict(
        env_file=(".env", "../.env"),  # Check current dir, then parent
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"  # Ignore extra env vars
    )

    # ===================
    # CALLER DEFAULTS
    # ===================
    default_lookback_days: int = Field(
        default=90,
        ge=1,
        le=1095,
        description="Trailing days analysed when the request has no start date"
    )
    default_forecast_target: str = Field(
        default="ingredient_usage",
        pattern="^(ingredient_usage|recipe_sales)$",
        description="What a forecast request projects when it doesn't say"
    )
    default_top_recipes_limit: int = Field(
        default=10,
        ge=1,
        le=500,
        description="Recipes returned by top-performer queries"
    )
    default_max_food_cost_percent: Decimal = Field(
        default=Decimal("35"),
        ge=0,
        le=1000,
        description="Food cost % above which a recipe needs attention"
    )

    # ===================
    # FORECASTING
    # ===================
    forecast_horizon_buckets: int = Field(
        default=1,
        ge=0,
        le=365,
        description="Buckets projected forward when the request doesn't say"
    )
    forecast_window_buckets: int = Field(
        default=12,
        ge=2,
        le=730,
        description="Trailing buckets used for weighted average and slope"
    )
    forecast_min_nonzero_buckets: int = Field(
        default=3,
        ge=1,
        le=52,
        description="Non-zero buckets needed before trend fitting is attempted"
    )
    forecast_high_confidence_buckets: int = Field(
        default=12,
        ge=2,
        le=730,
        description="Non-zero buckets needed for HIGH confidence"
    )
    trend_slope_epsilon: Decimal = Field(
        default=Decimal("0.01"),
        ge=0,
        le=1,
        description="Slope per bucket, relative to the window mean, treated as flat"
    )

    # ===================
    # REORDER
    # ===================
    reorder_max_days_lookahead: int = Field(
        default=7,
        ge=0,
        le=365,
        description="Days ahead checked for stockout risk"
    )
    reorder_safety_margin_cycles: Decimal = Field(
        default=Decimal("1"),
        ge=0,
        le=12,
        description="Extra forecast cycles of usage added to reorder quantity"
    )
    reorder_lead_time_days: int = Field(
        default=0,
        ge=0,
        le=120,
        description="Supplier lead time subtracted from the stockout date"
    )

    # ===================
    # TRENDS / SEASONALITY
    # ===================
    trend_change_threshold_pct: Decimal = Field(
        default=Decimal("5"),
        ge=0,
        le=100,
        description="Average % change beyond which a trend is up or down"
    )
    seasonal_min_sample_size: int = Field(
        default=2,
        ge=1,
        le=100,
        description="Samples per cycle position needed for a reliable pattern"
    )
    seasonal_peak_multiplier: Decimal = Field(
        default=Decimal("1.2"),
        ge=1,
        le=10,
        description="Demand multiplier at or above which a position is a peak"
    )
    seasonal_trough_multiplier: Decimal = Field(
        default=Decimal("0.8"),
        ge=0,
        le=1,
        description="Demand multiplier at or below which a position is a trough"
    )

    # ===================
    # LIMITS
    # ===================
    max_batch_entities: int = Field(
        default=500,
        ge=1,
        le=10000,
        description="Maximum IDs accepted in one recipe/ingredient allow-list"
    )

    # ===================
    # APP SETTINGS
    # ===================
    environment: str = Field(
        default="development",
        pattern="^(development|staging|production)$",
        description="Application environment"
    )
    log_level: str = Field(
        default="INFO",
        pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
        description="Logging level"
    )

    # ===================
    # COMPUTED PROPERTIES
    # ===================
    @property
    def is_production(self) -> bool:
        """Check if running in production."""
        return self.environment == "production"


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses lru_cache to ensure settings are only loaded once.
    Call get_settings.cache_clear() to reload.

    Returns:
        Settings: Engine settings

    Raises:
        ValidationError: If env vars are invalid
    """
    return Settings()


# For convenient imports: from config.settings import settings
settings = get_settings()
