"""
Configuration Management Module

Provides centralized configuration using pydantic-settings for environment-based configuration.
"""

from decimal import Decimal

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class LedgerConfig(BaseSettings):
    """Account ledger configuration"""
    
    model_config = SettingsConfigDict(
        env_prefix="LEDGER_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore"
    )
    
    # Interest configuration
    annual_interest_rate: Decimal = Decimal("0.05")
    days_per_year: int = 365
    interest_calculation_precision: int = 8  # decimal places interest is rounded to
    
    # Account identifiers, e.g. ACC1001
    account_id_prefix: str = "ACC"
    account_id_start: int = 1001
    
    # Statement rendering
    statement_description_width: int = 26
    
    # Logging configuration
    log_level: str = "INFO"
    log_format: str = "json"  # json or text
    
    # Feature flags
    enable_audit_logging: bool = True
    
    @field_validator("annual_interest_rate")
    @classmethod
    def _check_rate(cls, value: Decimal) -> Decimal:
        if value < Decimal("0") or value > Decimal("1"):
            raise ValueError("Annual interest rate must be between 0 and 1 (0-100%)")
        return value
    
    @field_validator("days_per_year", "account_id_start", "statement_description_width",
                     "interest_calculation_precision")
    @classmethod
    def _check_positive(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("Value must be positive")
        return value
    
    @field_validator("log_format")
    @classmethod
    def _check_log_format(cls, value: str) -> str:
        value = value.lower()
        if value not in ("json", "text"):
            raise ValueError("log_format must be 'json' or 'text'")
        return value


# Global configuration instance
config = LedgerConfig()


def get_config() -> LedgerConfig:
    """Get global configuration instance"""
    return config


def reload_config() -> LedgerConfig:
    """Reload configuration from environment"""
    global config
    config = LedgerConfig()
    return config
