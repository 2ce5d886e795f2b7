"""Asset Registry — Application configuration via environment variables."""

from __future__ import annotations

from typing import Literal

from pydantic import field_validator
from pydantic_settings import BaseSettings


class RegistrySettings(BaseSettings):
    """Central configuration loaded from environment / .env file."""

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "env_prefix": "ASSET_REGISTRY_",
        "extra": "ignore",
    }

    # ── Shared store ───────────────────────────────────────────
    database_url: str = "sqlite:///asset_registry.db"
    database_echo: bool = False

    # ── Deployment ─────────────────────────────────────────────
    # Principal granted Administrator and Minter when a fresh store is deployed.
    admin_principal: str = ""

    # ── Logging ────────────────────────────────────────────────
    log_level: Literal["CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"] = "INFO"
    log_format: str = "json"

    @field_validator("log_level", mode="before")
    @classmethod
    def _normalize_log_level(cls, value: object) -> object:
        return value.upper() if isinstance(value, str) else value


settings = RegistrySettings()
