import heapq
import itertools
import threading
from datetime import datetime, timedelta

import pytz

# Define UTC timezone for consistency
TIMEZONE = pytz.utc


class SystemClock:
    """Wall-clock time with one daemon `threading.Timer` per armed deadline."""

    def now(self):
        return datetime.now(TIMEZONE)

    def call_at(self, deadline, callback):
        delay = max(0.0, (deadline - self.now()).total_seconds())
        timer = threading.Timer(delay, callback)
        timer.daemon = True
        timer.start()
        return timer

    def call_later(self, seconds, callback):
        return self.call_at(self.now() + timedelta(seconds=seconds), callback)


class VirtualTimer:
    def __init__(self, deadline, seq, callback):
        self.deadline = deadline
        self.seq = seq
        self.callback = callback
        self.cancelled = False

    def cancel(self):
        self.cancelled = True

    def __lt__(self, other):
        return (self.deadline, self.seq) < (other.deadline, other.seq)


class VirtualClock:
    """
    Manually driven clock. Time only moves through advance() and sleep(),
    and due callbacks run synchronously on the caller's thread, in deadline order.
    """

    def __init__(self, start=None):
        self._now = start or datetime(2026, 1, 5, 9, 0, 0, tzinfo=TIMEZONE)
        self._queue = []
        self._seq = itertools.count()
        self._lock = threading.RLock()

    def now(self):
        with self._lock:
            return self._now

    def call_at(self, deadline, callback):
        with self._lock:
            timer = VirtualTimer(deadline, next(self._seq), callback)
            heapq.heappush(self._queue, timer)
            return timer

    def call_later(self, seconds, callback):
        return self.call_at(self.now() + timedelta(seconds=seconds), callback)

    def pending(self):
        with self._lock:
            return [t for t in self._queue if not t.cancelled]

    def sleep(self, seconds):
        """Moves time forward without firing anything (simulated processing latency)."""
        with self._lock:
            self._now += timedelta(seconds=seconds)

    def advance(self, seconds):
        """Moves time forward, firing every timer whose deadline falls inside the window."""
        with self._lock:
            target = self._now + timedelta(seconds=seconds)
        while True:
            with self._lock:
                while self._queue and self._queue[0].cancelled:
                    heapq.heappop(self._queue)
                if not self._queue or self._queue[0].deadline > target:
                    if target > self._now:
                        self._now = target
                    return
                timer = heapq.heappop(self._queue)
                if timer.deadline > self._now:
                    self._now = timer.deadline
            timer.callback()
