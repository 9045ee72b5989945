"""
Notification channel between a binlog session and its consumer
"""

import queue
import threading
from typing import Any, Callable, Dict, Iterator, List, Optional

import structlog

from ..models.events import Notification, NotificationType, TableMetadataEntry


class NotificationChannel:
    """
    Single-consumer queue of session notifications.

    READY is published before any BINLOG notification and STOPPED is the last
    one: anything published after STOPPED is dropped. Consumers either iterate
    the channel or register callbacks and call dispatch().
    """

    def __init__(self, max_queue_size: int = 0):
        self.logger = structlog.get_logger()
        self.max_queue_size = max_queue_size

        # Bounded queues never block the publisher: a full queue drops the new
        # notification, or the oldest one when STOPPED has to go in
        self._queue: "queue.Queue[Notification]" = queue.Queue(maxsize=max_queue_size)

        self._subscribers: Dict[NotificationType, List[Callable[[Notification], None]]] = {}
        self._subscriber_lock = threading.RLock()

        self._stats = {
            'published': 0,
            'delivered': 0,
            'dropped': 0,
        }
        self._stats_lock = threading.Lock()

        self._closed = False
        self._closed_lock = threading.Lock()
        self._drained = False

    def subscribe(self, notification_type: NotificationType,
                  callback: Callable[[Notification], None]) -> None:
        """Subscribe to a notification type"""
        with self._subscriber_lock:
            self._subscribers.setdefault(notification_type, []).append(callback)

        callback_name = getattr(callback, '__name__', str(callback))
        self.logger.debug("Subscribed to notification type",
                          notification_type=notification_type.value,
                          callback=callback_name)

    def unsubscribe(self, notification_type: NotificationType,
                    callback: Callable[[Notification], None]) -> None:
        """Unsubscribe from a notification type"""
        with self._subscriber_lock:
            try:
                self._subscribers.get(notification_type, []).remove(callback)
            except ValueError:
                callback_name = getattr(callback, '__name__', str(callback))
                self.logger.warning("Callback not found in subscribers",
                                    notification_type=notification_type.value,
                                    callback=callback_name)

    def publish(self, notification: Notification) -> bool:
        """Publish a notification. Returns False if it was dropped."""
        with self._closed_lock:
            if self._closed:
                self._count_dropped()
                self.logger.debug("Channel closed, dropping notification",
                                  notification_type=notification.notification_type.value)
                return False
            terminal = notification.notification_type is NotificationType.STOPPED
            if terminal:
                self._closed = True
            # put under the lock so STOPPED cannot overtake an earlier notification
            try:
                self._queue.put_nowait(notification)
            except queue.Full:
                if not terminal:
                    self._count_dropped()
                    self.logger.warning("Notification queue full, dropping notification",
                                        notification_type=notification.notification_type.value,
                                        queue_size=self.max_queue_size)
                    return False
                self._make_room_for(notification)

        with self._stats_lock:
            self._stats['published'] += 1
        return True

    def _make_room_for(self, notification: Notification) -> None:
        """STOPPED must always arrive, so it replaces the oldest pending notification"""
        while True:
            try:
                evicted = self._queue.get_nowait()
            except queue.Empty:
                evicted = None
            if evicted is not None:
                self._count_dropped()
                self.logger.warning("Notification queue full, evicting oldest notification",
                                    notification_type=evicted.notification_type.value)
            try:
                self._queue.put_nowait(notification)
                return
            except queue.Full:
                continue

    def _count_dropped(self) -> None:
        with self._stats_lock:
            self._stats['dropped'] += 1

    def ready(self) -> bool:
        return self.publish(Notification(NotificationType.READY))

    def binlog(self, event: Any, table: Optional[TableMetadataEntry] = None,
               error: Optional[Exception] = None) -> bool:
        return self.publish(Notification(NotificationType.BINLOG, event=event, table=table, error=error))

    def error(self, error: Exception) -> bool:
        return self.publish(Notification(NotificationType.ERROR, error=error))

    def stopped(self) -> bool:
        return self.publish(Notification(NotificationType.STOPPED))

    @property
    def closed(self) -> bool:
        with self._closed_lock:
            return self._closed

    def get(self, timeout: Optional[float] = None) -> Optional[Notification]:
        """Take the next notification, or None on timeout or after STOPPED was consumed"""
        if self._drained:
            return None
        try:
            notification = self._queue.get(timeout=timeout)
        except queue.Empty:
            return None

        if notification.notification_type is NotificationType.STOPPED:
            self._drained = True
        with self._stats_lock:
            self._stats['delivered'] += 1
        return notification

    def __iter__(self) -> Iterator[Notification]:
        """Yield notifications until STOPPED (included) has been delivered"""
        while not self._drained:
            notification = self.get()
            if notification is not None:
                yield notification

    def dispatch(self, timeout: float = 1.0) -> Optional[Notification]:
        """Deliver the next notification to its subscribers and return it"""
        notification = self.get(timeout=timeout)
        if notification is None:
            return None

        with self._subscriber_lock:
            subscribers = list(self._subscribers.get(notification.notification_type, []))

        for callback in subscribers:
            try:
                callback(notification)
            except Exception as e:
                callback_name = getattr(callback, '__name__', str(callback))
                self.logger.error("Error in notification subscriber",
                                  callback=callback_name,
                                  notification_type=notification.notification_type.value,
                                  error=str(e))
        return notification

    def get_stats(self) -> Dict[str, Any]:
        """Get channel statistics"""
        with self._stats_lock:
            stats = self._stats.copy()
        stats['queue_size'] = self._queue.qsize()
        return stats

    def get_queue_size(self) -> int:
        return self._queue.qsize()

    def is_empty(self) -> bool:
        return self._queue.empty()
