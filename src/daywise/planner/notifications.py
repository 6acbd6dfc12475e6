"""Notification channel for user-visible messages."""

import logging
from collections import deque
from collections.abc import Callable

from .config import DEFAULT_NOTIFICATION_LIMIT
from .models import Notification, NotificationVariant

logger = logging.getLogger(__name__)

NotificationCallback = Callable[[Notification], None]


class NotificationChannel:
    """
    Bounded, newest-first queue of notifications.

    Components that raise user-visible messages receive a channel instance;
    there is no process-wide dispatcher.
    """

    def __init__(self, limit: int = DEFAULT_NOTIFICATION_LIMIT) -> None:
        """
        Initialize the channel.

        Args:
            limit: Maximum number of notifications kept; older ones are dropped
        """
        if limit < 1:
            raise ValueError("Notification limit must be at least 1")
        self._queue: deque[Notification] = deque(maxlen=limit)
        self._subscribers: list[NotificationCallback] = []

    def notify(
        self,
        title: str,
        description: str | None = None,
        variant: NotificationVariant = NotificationVariant.DEFAULT,
    ) -> Notification:
        """Publish a notification to the queue and every subscriber."""
        notification = Notification(title=title, description=description, variant=variant)
        self._queue.appendleft(notification)

        level = logging.WARNING if variant == NotificationVariant.DESTRUCTIVE else logging.INFO
        logger.log(level, f"{title}: {description or ''}")

        for callback in list(self._subscribers):
            callback(notification)
        return notification

    def subscribe(self, callback: NotificationCallback) -> Callable[[], None]:
        """
        Register a callback for every new notification.

        Returns:
            Callable that unsubscribes the callback
        """
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    @property
    def notifications(self) -> list[Notification]:
        """Current notifications, newest first."""
        return list(self._queue)

    def dismiss(self, notification: Notification | None = None) -> None:
        """Dismiss one notification, or all of them when none is given."""
        if notification is None:
            self._queue.clear()
        elif notification in self._queue:
            self._queue.remove(notification)

    def drain(self) -> list[Notification]:
        """Return and clear every queued notification, oldest first."""
        drained = list(reversed(self._queue))
        self._queue.clear()
        return drained
