"""
Graceful cancellation handling for MCP tools.

Converts the cancellation of a long-running tool call into a short
user-facing message, and lets the tool stop its background work first.
"""

import asyncio
import logging
from functools import wraps
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)


class GracefulCancellationError(Exception):
    """Clean exception for user-facing cancellation messages."""

    def __init__(self, message: str = "Operation cancelled by user"):
        self.message = message
        super().__init__(message)

    def __str__(self) -> str:
        return self.message


def _display_name(operation_name: str) -> str:
    return operation_name.replace("_", " ").title()


def graceful_cancellation(
    operation_name: Optional[str] = None,
    on_cancel: Optional[Callable[[], None]] = None,
):
    """
    Decorator that wraps async tool functions with cancellation handling.

    Args:
        operation_name: Name of the operation for the user-facing message
        on_cancel: Called before the error is raised, e.g. to signal worker
            threads to stop

    Example:
        @graceful_cancellation("pipeline dashboard", on_cancel=cancel_event.set)
        async def load_dashboard(...):
            pass
    """

    def decorator(func: Callable) -> Callable:
        @wraps(func)
        async def wrapper(*args, **kwargs) -> Any:
            func_name = operation_name or func.__name__

            try:
                return await func(*args, **kwargs)

            except asyncio.CancelledError:
                logger.info(f"Operation '{func_name}' was cancelled by user")
                if on_cancel is not None:
                    on_cancel()
                raise GracefulCancellationError(f"{_display_name(func_name)} was cancelled")

            except KeyboardInterrupt:
                logger.info(f"Operation '{func_name}' interrupted by user")
                if on_cancel is not None:
                    on_cancel()
                raise GracefulCancellationError(f"{_display_name(func_name)} was interrupted")

            except Exception as e:
                if is_cancellation_exception(e):
                    logger.info(f"Operation '{func_name}' cancelled (nested exception)")
                    if on_cancel is not None:
                        on_cancel()
                    raise GracefulCancellationError(f"{_display_name(func_name)} was cancelled")
                raise

        return wrapper

    return decorator


def is_cancellation_exception(exception: BaseException) -> bool:
    """
    Check whether an exception was caused by cancellation.

    Looks at the exception type, nested exception groups and the
    __cause__/__context__ chain.
    """
    if isinstance(exception, (asyncio.CancelledError, KeyboardInterrupt)):
        return True

    if isinstance(exception, BaseExceptionGroup):
        return any(is_cancellation_exception(nested) for nested in exception.exceptions)

    if exception.__cause__ is not None and is_cancellation_exception(exception.__cause__):
        return True

    if (
        exception.__context__ is not None
        and not exception.__suppress_context__
        and is_cancellation_exception(exception.__context__)
    ):
        return True

    return False
