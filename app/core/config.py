from decimal import Decimal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_env: str = "dev"
    app_host: str = "0.0.0.0"
    app_port: int = 3000
    log_level: str = "INFO"
    cors_allow_origins: list[str] = ["*"]

    cal_api_base_url: str = "https://api.cal.com/v2"
    cal_api_key: str = ""
    cal_event_types_api_version: str = "2024-06-14"
    cal_slots_api_version: str = "2024-09-04"
    cal_bookings_api_version: str = "2024-08-13"
    cal_request_timeout_seconds: float = 10.0

    supported_durations: list[int] = [15, 30, 60]
    event_slug_template: str = "{duration}min"
    availability_default_days: int = 14
    default_time_zone: str = "America/New_York"
    price_per_block: Decimal = Decimal("5.00")

    payment_gate_enabled: bool = True
    payment_receiver_address: str = ""
    payment_network: str = "base-sepolia"
    payment_asset: str = "0x036CbD53842c5426634e7929541eC2318f3dCF7e"
    booking_fee_atomic: str = "5000000"
    payment_confirmation_fee_atomic: str = "10000"
    payment_max_timeout_seconds: int = 300
    facilitator_url: str = "https://x402.org/facilitator"
    facilitator_timeout_seconds: float = 15.0

    payment_credential: str = ""
    payment_confirmation_url: str = "http://localhost:3000/api/process-pwyc-payment"
    payment_confirmation_timeout_seconds: float = 60.0

    proof_verification_mode: str = "accept_all"
    proof_required_hashtag: str = "ATL5D"
    proof_fetch_timeout_seconds: float = 10.0

    rate_limit_backend: str = "redis"
    rate_limit_redis_url: str = "redis://redis:6379/2"
    availability_max_requests: int = 30
    availability_rate_limit_window_seconds: int = 60
    proof_max_requests: int = 10
    proof_rate_limit_window_seconds: int = 60

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )


settings = Settings()
