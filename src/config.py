"""
Configuration module for the Turso reconciler.

Loads configuration from environment variables. The API client is built
from this configuration once by the host and passed explicitly to every
gateway.
"""

import os
from dataclasses import dataclass, field
from typing import Optional

from client import DEFAULT_API_URL


@dataclass
class ProviderConfig:
    """Turso Platform API configuration."""

    api_token: str = field(default="", repr=False)  # Never log the token
    api_base_url: str = DEFAULT_API_URL
    request_timeout: float = 30.0  # seconds, per request
    max_connections: int = 10

    @classmethod
    def from_env(cls):
        """Load from environment variables."""
        api_token = os.getenv("TURSO_API_TOKEN", "")
        if not api_token:
            raise ValueError(
                "TURSO_API_TOKEN environment variable must be set. "
                "The API token cannot be empty."
            )

        return cls(
            api_token=api_token,
            api_base_url=os.getenv("TURSO_API_URL", DEFAULT_API_URL),
            request_timeout=float(os.getenv("TURSO_REQUEST_TIMEOUT", "30")),
            max_connections=int(os.getenv("TURSO_MAX_CONNECTIONS", "10")),
        )


@dataclass
class ControllerConfig:
    """Apply controller configuration."""

    max_concurrent_reconciles: int = 5
    state_path: str = "turso.state.json"

    @classmethod
    def from_env(cls):
        """Load from environment variables."""
        return cls(
            max_concurrent_reconciles=int(os.getenv("MAX_CONCURRENT_RECONCILES", "5")),
            state_path=os.getenv("TURSO_STATE_PATH", "turso.state.json"),
        )


@dataclass
class LoggingConfig:
    """Logging configuration."""

    log_level: str = "INFO"
    log_format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    @classmethod
    def from_env(cls):
        """Load from environment variables."""
        return cls(
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            log_format=os.getenv(
                "LOG_FORMAT", "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
            ),
        )


@dataclass
class Config:
    """Main configuration object."""

    provider: ProviderConfig
    controller: ControllerConfig
    logging: LoggingConfig

    @classmethod
    def from_env(cls):
        """Load all configuration from environment variables."""
        return cls(
            provider=ProviderConfig.from_env(),
            controller=ControllerConfig.from_env(),
            logging=LoggingConfig.from_env(),
        )


# Global config instance
config: Optional[Config] = None


def load_config() -> Config:
    """Load configuration (singleton pattern)."""
    global config
    if config is None:
        config = Config.from_env()
    return config


def reset_config() -> None:
    """Reset configuration (mainly for testing)."""
    global config
    config = None
