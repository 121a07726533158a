"""
Configuration Module for the DID Resolver Service

Settings are loaded from environment variables through pydantic-settings, with
defaults suitable for local development. Application components access settings
and shared resources through typed aiohttp AppKeys.

Key configuration areas include:
- Service networking
- Driver and extension selection
- Outbound HTTP behaviour
- Monitoring and error reporting
"""

import asyncio
from typing import Final, Optional
import logging

from aiohttp import ClientSession, web
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

from social.graze.resolver.app.health import HealthGauge
from social.graze.resolver.app.metrics import MetricsClient
from social.graze.resolver.resolver import LocalResolver

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """
    Application settings for the resolver service.

    Every field can be set with the upper-cased environment variable of the same
    name, e.g. PLC_HOSTNAME or METRICS_BACKEND.
    """

    debug: bool = False
    """
    Enable debug mode for verbose logging.
    Set with DEBUG=true environment variable.
    """

    http_port: int = Field(alias="port", default=8080)
    """
    HTTP port for the service to listen on.
    Set with PORT environment variable.
    """

    config_file: Optional[str] = None
    """
    Path to the driver configuration JSON file. No remote drivers if not set.
    Set with CONFIG_FILE environment variable.
    """

    atproto_drivers: bool = True
    """
    Register the native did:plc and did:web drivers after the configured drivers.
    Set with ATPROTO_DRIVERS environment variable.
    """

    plc_hostname: str = "plc.directory"
    """
    Hostname of the PLC directory used by the did:plc driver.
    Set with PLC_HOSTNAME environment variable.
    """

    verify_handles: bool = False
    """
    Register the AT Protocol handle verification extension.
    Set with VERIFY_HANDLES environment variable.
    """

    http_timeout: float = 30.0
    """
    Total timeout in seconds for outbound driver requests.
    Set with HTTP_TIMEOUT environment variable.
    """

    sentry_dsn: Optional[str] = None
    """
    Sentry DSN for error reporting. Optional, no error reporting if not set.
    Set with SENTRY_DSN environment variable.
    """

    metrics_backend: str = "none"
    """
    Metrics backend: 'telegraf', 'otel' or 'none'.
    Set with METRICS_BACKEND environment variable.
    """

    statsd_host: str = Field(alias="TELEGRAF_HOST", default="telegraf")
    """
    StatsD/Telegraf host for metrics collection.
    Set with TELEGRAF_HOST environment variable.
    """

    statsd_port: int = Field(alias="TELEGRAF_PORT", default=8125)
    """
    StatsD/Telegraf port for metrics collection.
    Set with TELEGRAF_PORT environment variable.
    """

    otel_endpoint: Optional[str] = None
    """
    OTLP gRPC endpoint used when METRICS_BACKEND=otel.
    Set with OTEL_ENDPOINT environment variable.
    """

    @field_validator("metrics_backend")
    @classmethod
    def validate_metrics_backend(cls, v: str) -> str:
        v = v.lower()
        if v not in ("telegraf", "otel", "none"):
            raise ValueError("metrics_backend must be one of 'telegraf', 'otel', 'none'")
        return v

    @field_validator("http_timeout")
    @classmethod
    def validate_http_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("http_timeout must be positive")
        return v


# Application context keys for dependency injection
SettingsAppKey: Final = web.AppKey("settings", Settings)
"""AppKey for accessing the application settings"""

SessionAppKey: Final = web.AppKey("http_session", ClientSession)
"""AppKey for accessing the shared aiohttp client session"""

ResolverAppKey: Final = web.AppKey("resolver", LocalResolver)
"""AppKey for accessing the configured resolver"""

HealthGaugeAppKey: Final = web.AppKey("health_gauge", HealthGauge)
"""AppKey for accessing the health monitoring gauge"""

MetricsClientAppKey: Final = web.AppKey("metrics_client", MetricsClient)
"""AppKey for accessing the metrics client"""

TickHealthTaskAppKey: Final = web.AppKey("tick_health_task", asyncio.Task[None])
"""AppKey for the background task that decays the health gauge"""
