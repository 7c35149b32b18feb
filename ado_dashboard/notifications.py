"""Fire-and-forget progress messages for connected clients."""

import logging
from abc import ABC, abstractmethod

logger = logging.getLogger(__name__)


class ProgressNotifier(ABC):
    """A channel that pushes status text to a client connection."""

    @abstractmethod
    def send(self, connection_id: str, message: str) -> None:
        """Push `message` to `connection_id`. May be called from worker threads."""


class LoggingProgressNotifier(ProgressNotifier):
    """Default channel: writes progress to the log."""

    def send(self, connection_id: str, message: str) -> None:
        logger.info(f"[{connection_id}] {message}")


def notify(notifier: ProgressNotifier | None, connection_id: str | None, message: str) -> bool:
    """
    Send a progress message when a connection id is present.

    Returns:
        bool: False if the channel raised; the failure is logged and never
        propagates into aggregation.
    """
    if not connection_id or notifier is None:
        return True
    try:
        notifier.send(connection_id, message)
        return True
    except Exception as e:
        logger.warning(f"Progress notification to {connection_id} failed: {e}")
        return False
