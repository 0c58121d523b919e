import itertools
import logging
import threading
from collections import deque
from datetime import timedelta

from config import BREAK_HEADLINE, BREAK_MESSAGE
from core import PresentationFailed

logger = logging.getLogger(__name__)


class WebOverlayPresenter:
    """
    Overlay state for a display client that polls /api/state.

    The client draws whatever snapshot() describes and posts to
    /api/overlay/dismiss when the user closes it. With `client_timeout` set,
    present() raises PresentationFailed unless a client polled within that
    many seconds.
    """

    def __init__(self, clock, client_timeout=None):
        self.clock = clock
        self.client_timeout = client_timeout
        self._last_poll = None
        self._lock = threading.Lock()
        self._overlay = None
        self._on_dismiss = None

    def _client_connected(self):
        if self._last_poll is None:
            return False
        return (self.clock.now() - self._last_poll).total_seconds() <= self.client_timeout

    def present(self, duration_seconds, on_dismiss):
        with self._lock:
            if self.client_timeout is not None and not self._client_connected():
                raise PresentationFailed("No display client is connected")
            if self._overlay is not None:
                logger.info("Overlay already showing, replacing it")
            self._overlay = {
                'kind': 'break',
                'headline': BREAK_HEADLINE,
                'message': BREAK_MESSAGE,
                'duration_seconds': duration_seconds,
                'ends_at': self.clock.now() + timedelta(seconds=duration_seconds),
            }
            self._on_dismiss = on_dismiss
        logger.info(f"Showing break overlay for {duration_seconds}s")

    def show_quote(self, quote):
        with self._lock:
            self._overlay = {'kind': 'quote', 'text': quote.text, 'author': quote.author}
            self._on_dismiss = None
        logger.info("Showing quote overlay")

    def close(self):
        with self._lock:
            was_open = self._overlay is not None
            self._overlay = None
            self._on_dismiss = None
        if was_open:
            logger.info("Overlay closed")

    def dismiss(self):
        """User closed the overlay. Returns False when nothing was showing."""
        with self._lock:
            if self._overlay is None:
                return False
            callback = self._on_dismiss
            self._overlay = None
            self._on_dismiss = None
        logger.info("Overlay dismissed by user")
        if callback is not None:
            callback()
        return True

    def snapshot(self):
        with self._lock:
            self._last_poll = self.clock.now()
            if self._overlay is None:
                return {'active': False}
            overlay = dict(self._overlay)
        ends_at = overlay.pop('ends_at', None)
        if ends_at is not None:
            remaining = (ends_at - self.clock.now()).total_seconds()
            overlay['remaining_seconds'] = max(0, int(remaining))
        overlay['active'] = True
        return overlay


class NotificationFeed:
    """Notifier that queues notifications for the tray client to display."""

    def __init__(self, clock, max_items=20):
        self.clock = clock
        self._lock = threading.Lock()
        self._items = deque(maxlen=max_items)
        self._callbacks = {}
        self._ids = itertools.count(1)

    def notify(self, message, on_click=None):
        with self._lock:
            item = {
                'id': next(self._ids),
                'title': message['title'],
                'body': message['body'],
                'created_at': self.clock.now().isoformat(),
            }
            if len(self._items) == self._items.maxlen:
                self._callbacks.pop(self._items[0]['id'], None)
            self._items.append(item)
            if on_click is not None:
                self._callbacks[item['id']] = on_click
        logger.info(f"Notification #{item['id']}: {item['title']}")
        return item['id']

    def items(self):
        with self._lock:
            return list(self._items)

    def click(self, notification_id):
        """Runs the click action for a notification. Returns False if it is unknown."""
        with self._lock:
            known = any(item['id'] == notification_id for item in self._items)
            callback = self._callbacks.get(notification_id)
        if not known:
            return False
        if callback is not None:
            callback()
        return True
