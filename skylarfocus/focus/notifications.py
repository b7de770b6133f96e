"""Notification sinks for timer events."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Callable, Optional

from loguru import logger

from ..core.errors import BestEffort


class NotificationSink(ABC):
    """Receives user-facing timer notifications."""

    @abstractmethod
    def notify(self, title: str, body: str) -> None:
        """Deliver a notification."""


class LogNotifier(NotificationSink):
    """Writes notifications to the log."""

    def notify(self, title: str, body: str) -> None:
        logger.info(f"🔔 {title}: {body}")


class CallbackNotifier(NotificationSink):
    """Forwards notifications to a callable, e.g. a desktop toast or TTS hook."""

    def __init__(self, callback: Callable[[str, str], None]):
        self.callback = callback

    def notify(self, title: str, body: str) -> None:
        self.callback(title, body)


def send_notification(sink: Optional[NotificationSink], title: str, body: str) -> bool:
    """
    Notify without letting a failing sink affect the session.

    Returns:
        True if the sink accepted the notification
    """
    if sink is None:
        return False
    with BestEffort(f"Notification '{title}'") as attempt:
        sink.notify(title, body)
    return not attempt.failed
