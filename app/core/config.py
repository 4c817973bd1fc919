"""Application configuration."""
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    database_url: str

    app_name: str = "Artisan Marketplace"

    # Routing / geocoding providers
    routing_base_url: str = "http://router.project-osrm.org"
    geocoding_base_url: str = "https://nominatim.openstreetmap.org"
    geocoding_user_agent: str = "artisan-marketplace/0.1"
    routing_timeout_seconds: float = 4.0

    # Delivery pricing
    base_fare: int = 15
    routed_rate_per_km: float = 3.0
    fallback_rate_per_km: float = 3.5
    fallback_minutes_per_km: float = 3.0

    # Checkout
    delivery_quote_max_age_minutes: int = 30

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )


settings = Settings()
