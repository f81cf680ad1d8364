"""Central environment-driven settings for the gateway process.

Loaded once at import. Every knob maps to an environment variable of the same
name (upper-cased), with `.env` as an optional local override.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class GatewaySettings(BaseSettings):
    """Typed view of runtime configuration from environment variables."""

    service_name: str = "upay-gateway"
    log_level: str = "INFO"

    upay_api: str
    upay_ui: str
    upay_notify: str
    upay_redirect: str
    upay_payment_key: str
    upay_mch_id: str = "1"

    order_memo: str = "testpayment"
    order_id_prefix: str = "TEST"
    order_ttl_seconds: int = 3600
    default_user_id: str = "1"
    default_amount: float = 1.23

    client_ip_header: str = "cf-connecting-ip"
    counter_store_backend: str = "redis"
    redis_url: str = ""
    rate_limit_max_attempts: int = 5
    rate_limit_window_seconds: int = 60

    upstream_timeout_seconds: float = 5.0
    request_timeout_seconds: float = 10.0
    otel_exporter_otlp_endpoint: str = ""
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


settings = GatewaySettings()
