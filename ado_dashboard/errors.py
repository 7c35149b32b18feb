from typing import Any


class AdoError(Exception):
    """Base exception class for ADO-related errors with structured error information."""

    def __init__(
        self,
        message: str,
        error_code: str,
        context: dict[str, Any] | None = None,
        original_exception: Exception | None = None,
    ):
        """
        Initialize structured ADO error.

        Args:
            message: Human-readable error message
            error_code: Structured error code for programmatic handling
            context: Additional context information about the error
            original_exception: The original exception that caused this error
        """
        super().__init__(message)
        self.error_code = error_code
        self.context = context or {}
        self.original_exception = original_exception


class AdoAuthenticationError(AdoError):
    """Raised when the PAT is missing, invalid or expired."""

    def __init__(
        self,
        message: str = "Authentication failed",
        context: dict[str, Any] | None = None,
        original_exception: Exception | None = None,
    ):
        super().__init__(
            message=message,
            error_code="ADO_AUTH_FAILED",
            context=context,
            original_exception=original_exception,
        )


class AdoRateLimitError(AdoError):
    """Exception for ADO API rate limiting (429 errors)."""

    def __init__(
        self,
        message: str = "API rate limit exceeded",
        retry_after: int | None = None,
        context: dict[str, Any] | None = None,
        original_exception: Exception | None = None,
    ):
        context = context or {}
        if retry_after:
            context["retry_after"] = retry_after

        super().__init__(
            message=message,
            error_code="ADO_RATE_LIMIT",
            context=context,
            original_exception=original_exception,
        )
        self.retry_after = retry_after


class AdoTimeoutError(AdoError):
    """Raised when a request or a bounded aggregation step runs out of time."""

    def __init__(
        self,
        message: str = "Operation timed out",
        timeout_seconds: float | None = None,
        context: dict[str, Any] | None = None,
        original_exception: Exception | None = None,
    ):
        context = context or {}
        if timeout_seconds:
            context["timeout_seconds"] = timeout_seconds

        super().__init__(
            message=message,
            error_code="ADO_TIMEOUT",
            context=context,
            original_exception=original_exception,
        )
        self.timeout_seconds = timeout_seconds


class AdoNetworkError(AdoError):
    """Exception for network-related failures."""

    def __init__(
        self,
        message: str = "Network error occurred",
        context: dict[str, Any] | None = None,
        original_exception: Exception | None = None,
    ):
        super().__init__(
            message=message,
            error_code="ADO_NETWORK_ERROR",
            context=context,
            original_exception=original_exception,
        )


class AdoNotFoundError(AdoError):
    """Raised when an upstream entity (project, definition, file) does not exist."""

    def __init__(
        self,
        message: str = "Resource not found",
        context: dict[str, Any] | None = None,
        original_exception: Exception | None = None,
    ):
        super().__init__(
            message=message,
            error_code="ADO_NOT_FOUND",
            context=context,
            original_exception=original_exception,
        )


class AdoConfigurationError(AdoError):
    """Exception for configuration-related errors."""

    def __init__(
        self,
        message: str = "Configuration error",
        context: dict[str, Any] | None = None,
        original_exception: Exception | None = None,
    ):
        super().__init__(
            message=message,
            error_code="ADO_CONFIG_ERROR",
            context=context,
            original_exception=original_exception,
        )


class ConfigTextUnavailableError(AdoError):
    """Raised when a pipeline has no YAML file to read configuration text from."""

    def __init__(
        self,
        message: str = "Pipeline does not use YAML process.",
        context: dict[str, Any] | None = None,
        original_exception: Exception | None = None,
    ):
        super().__init__(
            message=message,
            error_code="CONFIG_TEXT_UNAVAILABLE",
            context=context,
            original_exception=original_exception,
        )


class DashboardCancelledError(AdoError):
    """Raised inside a pipeline worker once the dashboard request was cancelled."""

    def __init__(
        self,
        message: str = "Dashboard aggregation cancelled",
        context: dict[str, Any] | None = None,
    ):
        super().__init__(
            message=message,
            error_code="DASHBOARD_CANCELLED",
            context=context,
        )
