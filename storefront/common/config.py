from decimal import Decimal
from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_APP_NAME = "storefront-cart"


class StorefrontSettings(BaseSettings):
    """Settings shared by the cart and checkout components."""

    app_name: str = Field(default=DEFAULT_APP_NAME)
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(default="INFO")
    database_url: str | None = Field(default=None)
    sync_mode: Literal["serialized", "concurrent"] = Field(default="serialized")
    delivery_charge: Decimal = Field(default=Decimal("20.00"), ge=Decimal("0"))
    payment_method: str = Field(default="UPI", min_length=1)
    delivery_type: str = Field(default="delivery", min_length=1)

    model_config = SettingsConfigDict(
        env_file=(".env", ".env.local"), env_prefix="STOREFRONT_", extra="ignore"
    )


@lru_cache
def get_settings() -> StorefrontSettings:
    """Return cached storefront settings."""

    return StorefrontSettings()
