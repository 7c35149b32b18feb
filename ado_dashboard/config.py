"""Configuration management for the pipeline dashboard with structured settings and validation."""

import logging
import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

from .errors import AdoConfigurationError

logger = logging.getLogger(__name__)

load_dotenv()


def _env_flag(name: str, default: bool) -> bool:
    return os.getenv(name, str(default)).lower() == "true"


@dataclass
class RetryConfig:
    """Configuration for retry policies with exponential backoff."""

    max_retries: int = 3
    initial_delay: float = 1.0
    max_delay: float = 60.0
    backoff_multiplier: float = 2.0
    jitter: bool = True

    def __post_init__(self):
        """Validate retry configuration values."""
        if self.max_retries < 0:
            raise AdoConfigurationError(
                "max_retries must be non-negative", context={"max_retries": self.max_retries}
            )

        if self.initial_delay <= 0:
            raise AdoConfigurationError(
                "initial_delay must be positive", context={"initial_delay": self.initial_delay}
            )

        if self.max_delay <= 0:
            raise AdoConfigurationError(
                "max_delay must be positive", context={"max_delay": self.max_delay}
            )

        if self.backoff_multiplier <= 1.0:
            raise AdoConfigurationError(
                "backoff_multiplier must be greater than 1.0",
                context={"backoff_multiplier": self.backoff_multiplier},
            )


@dataclass
class ConnectionPoolConfig:
    """Configuration for HTTP connection pooling."""

    enabled: bool = True
    max_pool_connections: int = 20
    max_pool_size: int = 100
    block: bool = False

    def __post_init__(self):
        if self.max_pool_connections <= 0:
            raise AdoConfigurationError(
                "max_pool_connections must be positive",
                context={"max_pool_connections": self.max_pool_connections},
            )

        if self.max_pool_size <= 0:
            raise AdoConfigurationError(
                "max_pool_size must be positive", context={"max_pool_size": self.max_pool_size}
            )


@dataclass
class TelemetryConfig:
    """Configuration for telemetry and observability."""

    enabled: bool = True
    service_name: str = "ado-dashboard"
    service_version: str = "0.1.0"
    trace_sampling_rate: float = 1.0
    metrics_enabled: bool = True

    def __post_init__(self):
        if not 0.0 <= self.trace_sampling_rate <= 1.0:
            raise AdoConfigurationError(
                "trace_sampling_rate must be between 0.0 and 1.0",
                context={"trace_sampling_rate": self.trace_sampling_rate},
            )


@dataclass
class AggregationConfig:
    """
    Settings for the dashboard fan-out.

    max_workers bounds how many pipelines are built concurrently. The two
    timeouts bound the wall time of one pipeline and of the whole dashboard;
    a pipeline exceeding either is skipped like any other per-pipeline failure.
    """

    max_workers: int = 8
    pipeline_timeout_seconds: float = 60.0
    dashboard_timeout_seconds: float = 300.0
    recent_runs_top: int = 5
    base_url: str = "https://dev.azure.com"

    def __post_init__(self):
        if self.max_workers <= 0:
            raise AdoConfigurationError(
                "max_workers must be positive", context={"max_workers": self.max_workers}
            )

        if self.pipeline_timeout_seconds <= 0:
            raise AdoConfigurationError(
                "pipeline_timeout_seconds must be positive",
                context={"pipeline_timeout_seconds": self.pipeline_timeout_seconds},
            )

        if self.dashboard_timeout_seconds < self.pipeline_timeout_seconds:
            raise AdoConfigurationError(
                "dashboard_timeout_seconds must be >= pipeline_timeout_seconds",
                context={
                    "dashboard_timeout_seconds": self.dashboard_timeout_seconds,
                    "pipeline_timeout_seconds": self.pipeline_timeout_seconds,
                },
            )

        if self.recent_runs_top <= 0:
            raise AdoConfigurationError(
                "recent_runs_top must be positive",
                context={"recent_runs_top": self.recent_runs_top},
            )


@dataclass
class DashboardConfig:
    """
    Main configuration class for the dashboard with all settings.

    organization_url and pat fall back to the environment only when not passed.
    Every other setting that has an environment variable is read from it when
    set, replacing the value passed to the constructor (including values on
    the retry, telemetry, connection_pool and aggregation sub-configs).
    """

    organization_url: str | None = None
    pat: str | None = None

    retry: RetryConfig = field(default_factory=RetryConfig)
    telemetry: TelemetryConfig = field(default_factory=TelemetryConfig)
    connection_pool: ConnectionPoolConfig = field(default_factory=ConnectionPoolConfig)
    aggregation: AggregationConfig = field(default_factory=AggregationConfig)

    request_timeout_seconds: int = 30

    def __post_init__(self):
        """Load configuration from environment variables and validate."""
        self.organization_url = self.organization_url or os.getenv("ADO_ORGANIZATION_URL")
        self.pat = self.pat or os.getenv("AZURE_DEVOPS_EXT_PAT")

        self.retry.max_retries = int(os.getenv("ADO_RETRY_MAX_RETRIES", self.retry.max_retries))
        self.retry.initial_delay = float(
            os.getenv("ADO_RETRY_INITIAL_DELAY", self.retry.initial_delay)
        )
        self.retry.max_delay = float(os.getenv("ADO_RETRY_MAX_DELAY", self.retry.max_delay))
        self.retry.jitter = _env_flag("ADO_RETRY_JITTER", self.retry.jitter)

        self.telemetry.enabled = _env_flag("ADO_TELEMETRY_ENABLED", self.telemetry.enabled)
        self.telemetry.service_name = os.getenv(
            "ADO_TELEMETRY_SERVICE_NAME", self.telemetry.service_name
        )
        self.telemetry.trace_sampling_rate = float(
            os.getenv("ADO_TELEMETRY_TRACE_SAMPLING_RATE", self.telemetry.trace_sampling_rate)
        )
        self.telemetry.metrics_enabled = _env_flag(
            "ADO_TELEMETRY_METRICS_ENABLED", self.telemetry.metrics_enabled
        )

        self.connection_pool.enabled = _env_flag(
            "ADO_CONNECTION_POOL_ENABLED", self.connection_pool.enabled
        )
        self.connection_pool.max_pool_connections = int(
            os.getenv(
                "ADO_CONNECTION_POOL_MAX_CONNECTIONS", self.connection_pool.max_pool_connections
            )
        )
        self.connection_pool.max_pool_size = int(
            os.getenv("ADO_CONNECTION_POOL_MAX_SIZE", self.connection_pool.max_pool_size)
        )

        self.aggregation.max_workers = int(
            os.getenv("ADO_DASHBOARD_MAX_WORKERS", self.aggregation.max_workers)
        )
        self.aggregation.pipeline_timeout_seconds = float(
            os.getenv(
                "ADO_DASHBOARD_PIPELINE_TIMEOUT", self.aggregation.pipeline_timeout_seconds
            )
        )
        self.aggregation.dashboard_timeout_seconds = float(
            os.getenv("ADO_DASHBOARD_TIMEOUT", self.aggregation.dashboard_timeout_seconds)
        )
        self.aggregation.recent_runs_top = int(
            os.getenv("ADO_DASHBOARD_RECENT_RUNS", self.aggregation.recent_runs_top)
        )
        self.aggregation.base_url = os.getenv(
            "ADO_DASHBOARD_BASE_URL", self.aggregation.base_url
        ).rstrip("/")

        self.request_timeout_seconds = int(
            os.getenv("ADO_REQUEST_TIMEOUT", self.request_timeout_seconds)
        )

        self._validate()

        logger.info(
            f"Configuration loaded: retry_max={self.retry.max_retries}, "
            f"max_workers={self.aggregation.max_workers}, "
            f"telemetry_enabled={self.telemetry.enabled}, "
            f"connection_pool_enabled={self.connection_pool.enabled}"
        )

    def _validate(self):
        """Re-run sub-config validation after environment overrides were applied."""
        if self.request_timeout_seconds <= 0:
            raise AdoConfigurationError(
                "request_timeout_seconds must be positive",
                context={"request_timeout_seconds": self.request_timeout_seconds},
            )

        self.retry.__post_init__()
        self.telemetry.__post_init__()
        self.connection_pool.__post_init__()
        self.aggregation.__post_init__()

        if (
            self.connection_pool.enabled
            and self.connection_pool.max_pool_size < self.connection_pool.max_pool_connections
        ):
            raise AdoConfigurationError(
                "connection_pool.max_pool_size must be >= max_pool_connections",
                context={
                    "max_pool_size": self.connection_pool.max_pool_size,
                    "max_pool_connections": self.connection_pool.max_pool_connections,
                },
            )

    @classmethod
    def from_env(cls, **overrides) -> "DashboardConfig":
        """
        Create configuration from environment variables with optional overrides.

        Args:
            **overrides: Configuration values to override

        Returns:
            DashboardConfig: Configured instance
        """
        return cls(**overrides)

    def organization_url_for(self, organization: str) -> str:
        """
        Resolve an organization name (or full URL) to the organization's REST root.

        Args:
            organization: Organization name such as "contoso" or a full URL

        Returns:
            str: URL like "https://dev.azure.com/contoso"
        """
        if organization.startswith(("http://", "https://")):
            return organization.rstrip("/")
        return f"{self.aggregation.base_url}/{organization}"
