"""
Configuration management for the settlement engine.

Supports configuration via environment variables and .env files.
"""

from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from settlement.core.errors import InvalidAddress
from settlement.core.types import normalize_address

# Ledger identity of the engine when none is configured
DEFAULT_ENGINE_ADDRESS = "0x" + "0" * 37 + "b47"


class SettlementConfig(BaseSettings):
    """
    Configuration settings for the settlement engine.
    
    All settings can be configured via environment variables with the
    SETTLEMENT_ prefix.
    """
    
    model_config = SettingsConfigDict(
        env_prefix="SETTLEMENT_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )
    
    # Engine identity
    engine_address: str = Field(
        default=DEFAULT_ENGINE_ADDRESS,
        description="Ledger address of the engine (allowance spender, value holder)"
    )
    
    # Database settings
    database_url: str = Field(
        default="sqlite:///settlement.db",
        description="SQLAlchemy database URL of the SQL ledger"
    )
    audit_database_url: Optional[str] = Field(
        default=None,
        description="SQLAlchemy database URL for persisted audit events (optional)"
    )
    
    # Logging settings
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR)"
    )
    log_json: bool = Field(
        default=False,
        description="Output logs in JSON format"
    )
    
    @field_validator("engine_address")
    @classmethod
    def _normalize_engine_address(cls, value: str) -> str:
        try:
            return normalize_address(value)
        except InvalidAddress as e:
            raise ValueError(str(e)) from e
    
    @field_validator("log_level")
    @classmethod
    def _upper_log_level(cls, value: str) -> str:
        return value.upper()


# Global config instance
_config: Optional[SettlementConfig] = None


def get_config() -> SettlementConfig:
    """Get or create the global configuration instance."""
    global _config
    if _config is None:
        _config = SettlementConfig()
    return _config


def set_config(config: SettlementConfig) -> None:
    """Set the global configuration instance."""
    global _config
    _config = config
