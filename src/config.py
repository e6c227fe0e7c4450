"""Centralised application settings loaded from environment / .env file."""

from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Logging
    log_level: str = "INFO"

    # Backend transport
    transport_mode: str = "simulated"  # "simulated" | "http"
    transport_base_url: str = "http://localhost:3000/api/v1"
    transport_timeout_seconds: float = 10.0

    # Geocoding
    geocoder_mode: str = "simulated"  # "simulated" | "nominatim"
    geocoder_base_url: str = "https://nominatim.openstreetmap.org"
    geocoder_user_agent: str = "trip-lifecycle-engine"
    geocoder_timeout_seconds: float = 5.0
    city_center_lat: float = 28.6139  # New Delhi
    city_center_lng: float = 77.2090

    # Status synchronizer
    delivery_poll_interval_seconds: float = 30.0
    ride_poll_interval_seconds: float = 30.0
    ride_active_poll_interval_seconds: float = 5.0
    degraded_failure_threshold: int = 3

    # Pricing
    currency: str = "IRT"  # Toman
    currency_decimals: int = 0
    pricing_table_path: Optional[str] = None  # JSON file, overrides pricing_table
    pricing_table: dict[str, dict[str, float]] = {
        "RIDE/ECONOMY": {"base_fare": 20000, "per_km_rate": 8000},
        "RIDE/COMFORT": {"base_fare": 20000, "per_km_rate": 12000},
        "RIDE/PREMIUM": {"base_fare": 20000, "per_km_rate": 18000},
        "DELIVERY/DOCUMENT": {"base_fare": 25000, "per_km_rate": 8000},
        "DELIVERY/SMALL": {"base_fare": 40000, "per_km_rate": 8000},
        "DELIVERY/MEDIUM": {"base_fare": 60000, "per_km_rate": 8000},
        "DELIVERY/LARGE": {"base_fare": 100000, "per_km_rate": 8000},
    }

    # Cancellation (irrevocable boundaries)
    ride_cancel_boundary: str = "IN_PROGRESS"
    delivery_cancel_boundary: str = "PICKED_UP"

    model_config = {"env_file": ".env", "extra": "ignore"}


settings = Settings()
