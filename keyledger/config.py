"""
Configuration Management Module

Provides centralized configuration using pydantic-settings for environment-based configuration.
"""

from typing import Optional

from pydantic_settings import BaseSettings


class LedgerConfig(BaseSettings):
    """keyledger configuration"""
    
    # Logging configuration
    log_level: str = "INFO"
    log_format: str = "json"  # json or text
    
    # Root capability used to bootstrap every account
    root_key_secret: Optional[str] = None  # random per bank when unset
    
    # Identifier generation
    account_number_digits: int = 6
    access_key_digits: int = 6
    max_generation_attempts: int = 10000
    
    # Emit a structured log record for every history entry
    echo_history: bool = True
    
    class Config:
        env_prefix = "KEYLEDGER_"
        env_file = ".env"
        case_sensitive = False


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
