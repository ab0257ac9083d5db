"""
User-facing notifications (the toasts shown next to the coupon box).

The engine never renders anything; it hands Notification objects to whatever
callable the checkout surface injects.
"""
from dataclasses import dataclass
from typing import Callable, List

from coursepay.utils.logger import get_logger

logger = get_logger("core.notifications")

SUCCESS = "success"
ERROR = "error"
INFO = "info"


@dataclass(frozen=True)
class Notification:
    level: str  # "success" | "error" | "info"
    message: str


Notifier = Callable[[Notification], None]


def log_notifier(notification: Notification) -> None:
    """Default notifier: write the notification to the log."""
    if notification.level == ERROR:
        logger.warning(f"notify[{notification.level}]: {notification.message}")
    else:
        logger.info(f"notify[{notification.level}]: {notification.message}")


class NotificationRecorder:
    """Notifier that keeps every notification, for tests and headless callers."""

    def __init__(self):
        self.items: List[Notification] = []

    def __call__(self, notification: Notification) -> None:
        self.items.append(notification)

    @property
    def messages(self) -> List[str]:
        return [n.message for n in self.items]

    def of_level(self, level: str) -> List[str]:
        return [n.message for n in self.items if n.level == level]
