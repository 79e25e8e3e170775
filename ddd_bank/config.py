"""
Configuration Management Module

Provides centralized configuration using pydantic-settings for environment-based configuration.
"""

from enum import Enum
from typing import Dict, List

from pydantic_settings import BaseSettings


class OverdraftPolicy(Enum):
    """Whether a debit may take an account balance below zero"""
    REJECT = "reject"
    ALLOW = "allow"


class ClientDeletionPolicy(Enum):
    """What happens to owned accounts when their client is deleted"""
    REJECT_NONZERO_BALANCE = "reject_nonzero_balance"  # Refuse if any owned account holds money
    CASCADE = "cascade"                                # Delete owned accounts regardless


class BankConfig(BaseSettings):
    """DDD Bank configuration"""

    # Storage configuration
    database_url: str = "sqlite:///ddd_bank.db"  # or memory:// for a volatile store

    # Business rules configuration
    overdraft_policy: OverdraftPolicy = OverdraftPolicy.REJECT
    client_deletion_policy: ClientDeletionPolicy = ClientDeletionPolicy.REJECT_NONZERO_BALANCE
    max_client_age_years: int = 150

    # API configuration
    api_host: str = "0.0.0.0"
    api_port: int = 8080
    basic_auth_users: Dict[str, str] = {}  # username -> password
    banker_usernames: List[str] = []       # empty = any authenticated user may use /bank

    # Logging configuration
    log_level: str = "INFO"
    log_format: str = "json"  # json or text

    class Config:
        env_prefix = "DDD_BANK_"
        env_file = ".env"
        case_sensitive = False


# Global configuration instance
config = BankConfig()


def get_config() -> BankConfig:
    """Get global configuration instance"""
    return config


def reload_config() -> BankConfig:
    """Reload configuration from environment"""
    global config
    config = BankConfig()
    return config
