"""Spendguard — Application configuration via environment variables."""

from __future__ import annotations

from pydantic_settings import BaseSettings

from spendguard.core.schema import MAINNET_AXLUSDC_IBC, MAINNET_ID


class SpendGuardSettings(BaseSettings):
    """Central configuration loaded from environment / .env file."""

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    # ── Pricing ────────────────────────────────────────────────
    reference_denom: str = MAINNET_AXLUSDC_IBC
    home_network: str = MAINNET_ID

    # ── Chain (LCD) ────────────────────────────────────────────
    lcd_url: str = "https://lcd-juno.itastakers.com"
    lcd_timeout_seconds: float = 10.0

    # ── State store ────────────────────────────────────────────
    database_url: str = "sqlite:///spendguard.db"
    state_slot: str = "state"

    # ── Logging ────────────────────────────────────────────────
    log_level: str = "INFO"
    log_format: str = "json"


settings = SpendGuardSettings()
