"""
Storefront payments configuration.

Values are read from environment variables prefixed with ``STOREFRONT_``
(for example ``STOREFRONT_API_BASE_URL``) or from a local ``.env`` file.
"""
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Settings for the payment reconciliation core.

    Notes:
    - network_timeout_seconds bounds every gateway call; reconciliation
      relies on it to always reach a terminal outcome
    - fallback_policy decides what an unverifiable callback turns into:
      "optimistic" reports a generic success, "uncertain" asks the
      shopper to check their orders
    """

    # Storefront backend
    api_base_url: str = "http://localhost:5000"
    esewa_api_path: str = "/api/payments/esewa"
    orders_api_path: str = "/api/orders"
    network_timeout_seconds: float = 15.0

    # Navigation targets
    orders_route: str = "/orders"
    checkout_route: str = "/checkout"

    # Reconciliation policy
    fallback_policy: Literal["optimistic", "uncertain"] = "optimistic"
    intent_max_age_seconds: int = 3600

    # Local durable storage
    database_url: str = "sqlite+aiosqlite:///./storefront.db"

    # eSewa merchant (defaults are eSewa's public test merchant)
    esewa_product_code: str = "EPAYTEST"
    esewa_secret_key: str = "8gBm/:&EnhH.1/q"

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    model_config = SettingsConfigDict(
        env_prefix="STOREFRONT_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )


# Global settings instance
settings = Settings()
