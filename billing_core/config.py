"""
Configuration Management Module

Provides centralized configuration using pydantic-settings for environment-based configuration.
"""

from decimal import Decimal
from typing import List, Optional

from pydantic_settings import BaseSettings


class BillingConfig(BaseSettings):
    """Billing core configuration"""
    
    # Database configuration
    database_url: str = "sqlite:///billing.db"
    use_sqlite: bool = True
    
    # API configuration
    api_host: str = "0.0.0.0"
    api_port: int = 8090
    
    # Logging configuration
    log_level: str = "INFO"
    log_format: str = "json"  # json or text
    log_file: Optional[str] = None  # If None, logs to stdout
    
    # Business rules configuration
    default_currency: str = "BRL"
    satisfied_tolerance: Decimal = Decimal("0.01")  # installment counts as paid at 99%
    alert_days: List[int] = [1, 7, 15, 30]
    early_reminder_days: int = 3
    
    # Messaging transport
    webhook_url: str = ""  # Empty = log transport
    webhook_timeout: int = 30
    
    class Config:
        env_prefix = "BILLING_"
        env_file = ".env"
        case_sensitive = False


# Global configuration instance
config = BillingConfig()


def get_config() -> BillingConfig:
    """Get global configuration instance"""
    return config


def reload_config() -> BillingConfig:
    """Reload configuration from environment"""
    global config
    config = BillingConfig()
    return config


def sqlite_path(database_url: str) -> str:
    """Extract the filesystem path from a sqlite:/// URL"""
    prefix = "sqlite:///"
    if database_url.startswith(prefix):
        return database_url[len(prefix):] or ":memory:"
    return database_url
