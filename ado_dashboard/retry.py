"""Retry mechanism with exponential backoff for ADO API calls."""

import logging
import random
import threading
import time
from functools import wraps
from typing import Any, Callable, Optional

import requests
from opentelemetry import trace

from .config import RetryConfig
from .errors import AdoNetworkError, AdoRateLimitError, AdoTimeoutError

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


def _status_code(exception: Exception) -> Optional[int]:
    response = getattr(exception, "response", None)
    if response is None and isinstance(exception, AdoNetworkError):
        response = getattr(exception.original_exception, "response", None)
    return getattr(response, "status_code", None)


class RetryManager:
    """
    Retries transient ADO failures with exponential backoff.

    Rate limits honour Retry-After, network errors and timeouts back off
    exponentially, 4xx responses other than 429 are never retried. After five
    consecutive failures a circuit breaker stops retrying for a minute.

    One manager is shared by every worker thread of a dashboard request, so the
    breaker state is guarded by a lock.
    """

    def __init__(self, config: RetryConfig):
        self.config = config
        self._lock = threading.Lock()
        self._failure_count = 0
        self._circuit_open = False
        self._last_failure_time = 0.0
        self._circuit_timeout = 60

    def _calculate_delay(self, attempt: int, retry_after: Optional[int] = None) -> float:
        """
        Calculate delay for next retry attempt.

        Args:
            attempt: Current attempt number (0-based)
            retry_after: Optional retry-after value from server

        Returns:
            float: Delay in seconds
        """
        if retry_after:
            base_delay = float(retry_after)
        else:
            base_delay = min(
                self.config.initial_delay * (self.config.backoff_multiplier**attempt),
                self.config.max_delay,
            )

        if self.config.jitter:
            base_delay += random.uniform(0.1, 0.3) * base_delay

        return base_delay

    def _should_retry(self, exception: Exception, attempt: int) -> bool:
        with self._lock:
            if self._circuit_open:
                if time.time() - self._last_failure_time > self._circuit_timeout:
                    self._circuit_open = False
                    logger.info("Circuit breaker reset after timeout")
                else:
                    return False

        if attempt >= self.config.max_retries:
            return False

        if isinstance(exception, AdoRateLimitError):
            return True

        if isinstance(exception, (AdoTimeoutError, requests.exceptions.Timeout)):
            return True

        if isinstance(exception, (AdoNetworkError, requests.exceptions.RequestException)):
            status_code = _status_code(exception)
            if status_code is not None and 400 <= status_code < 500 and status_code != 429:
                return False
            return True

        return False

    def _handle_failure(self):
        with self._lock:
            self._failure_count += 1
            self._last_failure_time = time.time()
            if self._failure_count >= 5 and not self._circuit_open:
                self._circuit_open = True
                logger.warning(f"Circuit breaker opened after {self._failure_count} failures")

    def _handle_success(self):
        with self._lock:
            if self._failure_count > 0:
                logger.info(f"Request succeeded after {self._failure_count} failures")
            self._failure_count = 0
            self._circuit_open = False

    def _normalize(self, exception: Exception, attempt: int) -> Exception:
        """Wrap raw requests exceptions into structured ADO errors where retryable."""
        if isinstance(exception, requests.exceptions.HTTPError):
            status_code = _status_code(exception)
            if status_code == 429:
                retry_after = exception.response.headers.get("Retry-After")
                try:
                    retry_after = int(retry_after) if retry_after else None
                except ValueError:
                    retry_after = None
                return AdoRateLimitError(
                    f"Rate limit exceeded on attempt {attempt + 1}",
                    retry_after=retry_after,
                    context={"attempt": attempt + 1, "url": str(exception.response.url)},
                    original_exception=exception,
                )
            if status_code is not None and 400 <= status_code < 500:
                return exception

        if isinstance(exception, requests.exceptions.Timeout):
            return AdoTimeoutError(
                f"Request timeout on attempt {attempt + 1}",
                context={"attempt": attempt + 1},
                original_exception=exception,
            )

        if isinstance(exception, requests.exceptions.RequestException):
            return AdoNetworkError(
                f"Network error on attempt {attempt + 1}: {exception}",
                context={"attempt": attempt + 1, "error_type": type(exception).__name__},
                original_exception=exception,
            )

        return exception

    def retry_on_failure(self, func: Callable[..., Any]) -> Callable[..., Any]:
        """
        Decorator that adds retry logic to a function.

        Args:
            func: Function to wrap with retry logic

        Returns:
            Callable: Wrapped function with retry logic
        """

        @wraps(func)
        def wrapper(*args, **kwargs):
            last_exception: Optional[Exception] = None

            for attempt in range(self.config.max_retries + 1):
                try:
                    with tracer.start_as_current_span("retry_attempt") as span:
                        span.set_attribute("retry.attempt", attempt)
                        result = func(*args, **kwargs)
                        self._handle_success()
                        return result

                except Exception as e:
                    last_exception = self._normalize(e, attempt)

                    if not self._should_retry(last_exception, attempt):
                        break

                    retry_after = (
                        last_exception.retry_after
                        if isinstance(last_exception, AdoRateLimitError)
                        else None
                    )
                    delay = self._calculate_delay(attempt, retry_after)
                    logger.warning(
                        f"Attempt {attempt + 1} failed: {last_exception}. "
                        f"Retrying in {delay:.2f} seconds..."
                    )
                    time.sleep(delay)

            self._handle_failure()
            logger.debug(f"Giving up after {attempt + 1} attempt(s): {last_exception}")
            raise last_exception

        return wrapper
