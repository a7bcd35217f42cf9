"""Configuration management for Style DNA Studio.

This module provides centralized configuration management using Pydantic Settings.
All configuration is loaded from environment variables with the STYLEDNA_ prefix,
allowing easy customization without code changes.

Environment Variable Loading
-----------------------------
Configuration values are loaded in the following priority order:
1. Environment variables (STYLEDNA_* prefix)
2. .env file in the project root
3. Default values defined in StyleDnaConfig

Example .env file:
    STYLEDNA_BRIA_API_KEY=your-bria-api-token
    STYLEDNA_BRIA_API_URL=https://engine.prod.bria-api.com/v2
    STYLEDNA_CORS_ORIGIN=http://localhost:3000
    STYLEDNA_SERVER_PORT=3002

Global Configuration Instance
------------------------------
A global `config` instance is created automatically at module import time.
Route handlers read from it through a FastAPI dependency so tests can swap in
their own instance.

Retry and Polling Structs
-------------------------
The Bria client never reads this module directly.  The retry and polling
budgets are turned into explicit :class:`RetryOptions` and
:class:`PollingOptions` structs (see :meth:`StyleDnaConfig.retry_options` and
:meth:`BriaApiClient.from_config`) and handed to the client constructor.  Tests
build those structs with zero delays instead.
"""

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from styledna.core.bria_client import DEFAULT_BASE_URL
from styledna.core.retry import RetryOptions


class StyleDnaConfig(BaseSettings):
    """Main configuration for Style DNA Studio.

    Attributes
    ----------
    Remote Service:
        bria_api_key : str | None
            Token sent in the ``api_token`` header.  Required for every
            endpoint that talks to Bria.
        bria_api_url : str
            Base URL of the Bria v2 API.
        request_timeout : float
            Per-request timeout in seconds for outbound calls.

    Retry:
        retry_max_retries, retry_initial_delay, retry_max_delay,
        retry_backoff_multiplier
            Exponential backoff settings (delays in seconds).

    Polling:
        poll_interval : float
            Seconds between status checks for asynchronous jobs.
        extract_max_polls, generate_max_polls, preview_max_polls : int
            Attempt ceilings per endpoint family.

    Uploads:
        max_file_size : int
            Largest accepted reference image in bytes.
        max_files : int
            Most reference images accepted per extraction request.

    Server:
        cors_origin, server_host, server_port, log_level
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="STYLEDNA_",
        case_sensitive=False,
    )

    # Remote service
    bria_api_key: str | None = Field(
        default=None,
        description="Bria API token (sent as the 'api_token' header)",
    )
    bria_api_url: str = Field(
        default=DEFAULT_BASE_URL,
        description="Base URL for the Bria v2 API",
    )
    request_timeout: float = Field(
        default=120.0,
        description="Outbound request timeout in seconds",
        gt=0,
    )

    # Retry
    retry_max_retries: int = Field(default=3, ge=0, le=10)
    retry_initial_delay: float = Field(default=1.0, ge=0)
    retry_max_delay: float = Field(default=10.0, ge=0)
    retry_backoff_multiplier: float = Field(default=2.0, ge=1.0)

    # Polling
    poll_interval: float = Field(
        default=2.0,
        description="Seconds between status polls",
        ge=0,
    )
    extract_max_polls: int = Field(default=30, ge=1)
    generate_max_polls: int = Field(default=60, ge=1)
    preview_max_polls: int = Field(default=30, ge=1)

    # Uploads
    max_file_size: int = Field(
        default=10 * 1024 * 1024,
        description="Maximum reference image size in bytes",
        gt=0,
    )
    max_files: int = Field(
        default=20,
        description="Maximum number of reference images per extraction",
        ge=1,
    )

    # Server
    cors_origin: str = Field(
        default="http://localhost:3000",
        description="Origin allowed to call the API from a browser",
    )
    server_host: str = Field(default="0.0.0.0")
    server_port: int = Field(default=3002, ge=1024, le=65535)
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(default="INFO")

    def retry_options(self) -> RetryOptions:
        """Build the backoff settings handed to the Bria client."""
        return RetryOptions(
            max_retries=self.retry_max_retries,
            initial_delay=self.retry_initial_delay,
            max_delay=self.retry_max_delay,
            backoff_multiplier=self.retry_backoff_multiplier,
        )


# Global configuration instance, loaded from STYLEDNA_* variables and .env.
config = StyleDnaConfig()
