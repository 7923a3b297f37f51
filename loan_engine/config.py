"""
Configuration Management Module

Provides centralized configuration using pydantic-settings for environment-based configuration.
"""

from decimal import Decimal
from pydantic_settings import BaseSettings


class EngineConfig(BaseSettings):
    """Loan calculation engine configuration"""

    # Projection bounds
    default_projection_months: int = 120  # Horizon for open-term loans (10 years)
    max_projection_months: int = 600      # Hard ceiling for any simulation (50 years)

    # Payoff simulation
    payoff_epsilon: Decimal = Decimal("0.01")  # Balance treated as paid off
    divergence_fallback_months: int = 360      # Synthetic payoff term for diverging loans

    # Loan defaults
    default_grace_period_months: int = 6
    default_currency: str = "USD"

    # Logging configuration
    log_level: str = "INFO"
    log_format: str = "json"  # json or text

    class Config:
        env_prefix = "LOAN_ENGINE_"
        env_file = ".env"
        case_sensitive = False


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
