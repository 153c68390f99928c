"""
Centralized configuration for the capability bus

Provides pydantic-based settings with:
- Environment variable loading (CAPBUS_ prefix, .env support)
- Type validation
- Default values

Usage:
    from capbus.config import get_config

    config = get_config()
    print(config.idempotency_ttl_seconds)
"""

import logging
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class BusConfig(BaseSettings):
    """
    Central configuration for the capability bus

    All settings can be overridden via environment variables with CAPBUS_ prefix.
    For example: CAPBUS_IDEMPOTENCY_TTL_SECONDS, CAPBUS_APP_NAME, etc.
    """

    model_config = SettingsConfigDict(
        env_prefix="CAPBUS_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ============================================
    # Idempotency Configuration
    # ============================================

    idempotency_ttl_seconds: float = Field(
        default=300.0,
        gt=0,
        description="Default lifetime of a cached idempotent result (default: 5 minutes)"
    )

    idempotency_sweep_threshold: int = Field(
        default=1000,
        ge=0,
        description="Cache size above which a set() sweeps all expired entries"
    )

    # ============================================
    # Manifest Configuration
    # ============================================

    manifest_schema_version: str = Field(
        default="0.1.0",
        description="schema_version written into generated manifests"
    )

    app_name: str = Field(
        default="app",
        description="Application name reported in manifests"
    )

    app_version: str = Field(
        default="0.0.0",
        description="Application version reported in manifests"
    )

    # ============================================
    # Logging Configuration
    # ============================================

    log_level: str = Field(
        default="INFO",
        description="Logging level: DEBUG, INFO, WARNING, ERROR, CRITICAL"
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level"""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"log_level must be one of {valid_levels}")
        return v_upper


def configure_logging(level: Optional[str] = None) -> None:
    """Configure root logging for CLI usage"""
    level_name = (level or get_config().log_level).upper()
    logging.basicConfig(
        level=getattr(logging, level_name, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


# ============================================
# Global Config Instance
# ============================================

_global_config: Optional[BusConfig] = None


def get_config() -> BusConfig:
    """
    Get global configuration instance

    Returns:
        Shared BusConfig instance
    """
    global _global_config
    if _global_config is None:
        _global_config = BusConfig()
    return _global_config


def reset_config():
    """Reset global configuration (for testing)"""
    global _global_config
    _global_config = None
