from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    secret_key: str = "dev-secret-change-me"
    debug: bool = False
    data_path: str | None = None  # pickle snapshot file; None keeps everything in memory
    timezone: str = "UTC"  # pytz zone for the system clock and booking start instants
    session_ttl_hours: float = 24
    session_warning_minutes: float = 5
    session_sweep_interval_seconds: float = 15 * 60
    tax_rate: float = 0.08
    service_fee_rate: float = 0.05
    payment_timeout_seconds: float = 10.0
    booking_number_prefix: str = "CR"

    model_config = {
        "env_file": [".env"],
        "env_prefix": "CARRENTAL_",
        "extra": "ignore",
    }
