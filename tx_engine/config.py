"""
Configuration Management Module

Provides centralized configuration using pydantic-settings for environment-based configuration.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional


class EngineConfig(BaseSettings):
    """Ledger engine configuration"""

    model_config = SettingsConfigDict(
        env_prefix="TX_ENGINE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Logging configuration
    log_level: str = "INFO"
    log_format: str = "json"  # json or text
    log_file: Optional[str] = None  # If None, logs to stderr

    # Input configuration
    input_encoding: str = "utf-8"

    # Generator configuration
    generator_rows: int = 100_000
    generator_output: str = "resources/input/rand.csv"
    generator_seed: Optional[int] = None  # None = nondeterministic


# Global configuration instance
config = EngineConfig()


def get_config() -> EngineConfig:
    """Get global configuration instance"""
    return config


def reload_config() -> EngineConfig:
    """Reload configuration from environment"""
    global config
    config = EngineConfig()
    return config
