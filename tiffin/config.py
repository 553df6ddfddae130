"""Configuration management for the marketplace service."""

from decimal import Decimal
from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Redis Configuration
    redis_url: str = Field(default="redis://localhost:6379/0", description="Redis URL")

    # API Configuration
    api_port: int = Field(default=8000, description="API server port")
    api_host: str = Field(default="0.0.0.0", description="API server host")
    cors_origins: list[str] = Field(
        default=[
            "http://localhost:5173",
            "http://localhost:8080",
            "http://localhost:3000",
        ],
        description="Allowed CORS origins",
    )

    # Environment
    environment: Literal["development", "staging", "production"] = Field(
        default="development"
    )

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")
    log_format: Literal["json", "text"] = Field(default="json", description="Log format")

    # Security
    secret_key: str = Field(..., description="Secret key for JWT signing")
    jwt_algorithm: str = Field(default="HS256", description="JWT signing algorithm")
    access_token_expire_minutes: int = Field(
        default=60 * 24, description="Access token expiration in minutes"
    )

    # Delivery pricing (INR)
    free_delivery_distance_km: float = Field(
        default=3.0, description="Deliveries closer than this are free"
    )
    delivery_fee_per_km: Decimal = Field(default=Decimal("8"), description="Fee per km")
    default_delivery_fee: Decimal = Field(
        default=Decimal("40"), description="Fee when the distance is unknown"
    )
    platform_fee: Decimal = Field(default=Decimal("5"), description="Flat platform fee")
    packaging_charge: Decimal = Field(default=Decimal("15"), description="Packaging charge")
    gst_rate: Decimal = Field(default=Decimal("0.05"), description="GST on item subtotal")
    max_delivery_distance_km: float = Field(
        default=15.0, description="Max delivery distance in km"
    )

    # Delivery time estimates
    base_delivery_minutes: int = Field(default=20, description="Base delivery time")
    minutes_per_km: int = Field(default=5, description="Added minutes per km")
    fast_delivery_distance_km: float = Field(
        default=3.0, description="Deliveries within this distance are fast"
    )

    # Delivery partner payouts
    partner_commission_rate: Decimal = Field(
        default=Decimal("0.10"), description="Share of the order total paid out"
    )
    partner_base_payout: Decimal = Field(
        default=Decimal("30"), description="Fixed payout per delivery"
    )
    avg_km_per_delivery: float = Field(
        default=3.2, description="Estimated distance per delivery for stats"
    )

    # Delivery queue
    pending_deliveries_limit: int = Field(
        default=20, description="Max pending deliveries listed to partners"
    )
    pending_poll_seconds: int = Field(
        default=5, description="Client poll interval for pending deliveries"
    )
    active_poll_seconds: int = Field(
        default=30, description="Client poll interval for active deliveries and orders"
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is valid."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"Log level must be one of {valid_levels}")
        return v_upper


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
