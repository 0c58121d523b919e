import logging
import threading
from datetime import timedelta
from enum import Enum

from config import MEETING_DEFER_SECONDS

logger = logging.getLogger(__name__)

# --- Status labels ---
STATUS_PAUSED = 'Paused'
STATUS_IDLE = 'Idle'
STATUS_DISABLED = 'Disabled'
STATUS_BLUR = 'Blur in progress'


class SchedulerState(Enum):
    IDLE = 'idle'
    ARMED = 'armed'
    DEFERRED = 'deferred'
    PRESENTING = 'presenting'


class PresentationFailed(RuntimeError):
    """The overlay could not be shown."""


def format_remaining(seconds):
    """Formats a remaining duration as MM:SS, flooring and clamping at zero."""
    total = max(0, int(seconds))
    mins, secs = divmod(total, 60)
    return f"{mins:02d}:{secs:02d}"


class BaseScheduler:
    """
    Single-timer state machine shared by the break and quote schedulers.

    Every transition that cancels the armed timer bumps `generation`; callbacks
    carry the generation they were armed under and are dropped if it moved on.
    """

    name = 'scheduler'
    presenting_label = STATUS_BLUR

    def __init__(self, clock, config_provider):
        self.clock = clock
        self.config_provider = config_provider
        self._lock = threading.RLock()
        self._state = SchedulerState.IDLE
        self._idle_label = STATUS_IDLE
        self._deadline = None
        self._timer = None
        self._generation = 0
        self._config = None

    # --- Introspection ---

    @property
    def state(self):
        with self._lock:
            return self._state

    @property
    def deadline(self):
        with self._lock:
            return self._deadline

    @property
    def generation(self):
        with self._lock:
            return self._generation

    def status(self):
        with self._lock:
            if self._state is SchedulerState.IDLE:
                return self._idle_label
            if self._state is SchedulerState.PRESENTING:
                return self.presenting_label
            remaining = (self._deadline - self.clock.now()).total_seconds()
            if remaining <= 0:
                # Deadline passed, the fire callback is still running.
                return self.presenting_label
            return format_remaining(remaining)

    # --- Commands ---

    def start(self):
        with self._lock:
            self._start_locked()

    def reconfigure(self):
        with self._lock:
            logger.info(f"[{self.name}] Reconfiguring")
            self._start_locked()

    def resume(self):
        with self._lock:
            if self._state is not SchedulerState.IDLE:
                logger.debug(f"[{self.name}] Resume ignored, already {self._state.value}")
                return
            logger.info(f"[{self.name}] Resuming")
            self._start_locked()

    def pause(self):
        with self._lock:
            if self._state is SchedulerState.IDLE:
                logger.debug(f"[{self.name}] Pause ignored, already idle")
                return
            self._go_idle(STATUS_PAUSED)

    def stop(self):
        with self._lock:
            self._go_idle(STATUS_IDLE)

    # --- Transitions (caller holds the lock) ---

    def _start_locked(self):
        self._reset()
        config = self._read_config()
        if not config.enabled:
            logger.info(f"[{self.name}] Disabled in settings")
            self._go_idle(STATUS_DISABLED)
            return
        self._config = config
        self._arm(self._first_deadline(config), self._on_deadline, SchedulerState.ARMED)

    def _read_config(self):
        raise NotImplementedError

    def _first_deadline(self, config):
        raise NotImplementedError

    def _on_deadline(self, generation):
        raise NotImplementedError

    def _cancel_timer(self):
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _reset(self):
        """Cancels whatever is in flight and invalidates outstanding callbacks."""
        self._cancel_timer()
        self._generation += 1

    def _go_idle(self, label):
        self._reset()
        self._state = SchedulerState.IDLE
        self._idle_label = label
        self._deadline = None
        logger.info(f"[{self.name}] Idle ({label})")

    def _arm(self, deadline, callback, state):
        self._reset()
        generation = self._generation
        self._state = state
        self._deadline = deadline
        self._timer = self.clock.call_at(deadline, lambda: callback(generation))
        logger.info(f"[{self.name}] {state.value.capitalize()} until {deadline.isoformat()}")

    def _is_current(self, generation, what):
        if generation != self._generation:
            logger.debug(f"[{self.name}] Discarding stale {what} (generation {generation}, now {self._generation})")
            return False
        return True


class BreakScheduler(BaseScheduler):
    """
    Periodic full-screen wellness breaks.

    When the interval elapses the busy probe is asked once. A busy answer
    defers the break by MEETING_DEFER_SECONDS, after which the overlay shows
    without asking again. The overlay stays up until dismissed or until the
    break duration has passed, whichever comes first; then the next interval
    starts.
    """

    name = 'wellness'
    presenting_label = STATUS_BLUR

    def __init__(self, clock, config_provider, probe, presenter,
                 defer_seconds=MEETING_DEFER_SECONDS):
        super().__init__(clock, config_provider)
        self.probe = probe
        self.presenter = presenter
        self.defer_seconds = defer_seconds

    def _read_config(self):
        return self.config_provider.break_config()

    def _first_deadline(self, config):
        return self.clock.now() + config.interval

    def _reset(self):
        if self._state is SchedulerState.PRESENTING:
            self._close_overlay()
        super()._reset()

    def _on_deadline(self, generation):
        with self._lock:
            if not self._is_current(generation, 'interval timer'):
                return
            self._timer = None
            logger.info(f"[{self.name}] Interval elapsed, checking meeting status")

        busy = self._probe_busy()

        with self._lock:
            if not self._is_current(generation, 'meeting probe result'):
                return
            if busy:
                logger.info(f"[{self.name}] User is in a meeting, deferring break by {self.defer_seconds}s")
                deadline = self.clock.now() + timedelta(seconds=self.defer_seconds)
                self._arm(deadline, self._on_deferral_elapsed, SchedulerState.DEFERRED)
            else:
                self._present()

    def _on_deferral_elapsed(self, generation):
        with self._lock:
            if not self._is_current(generation, 'deferral timer'):
                return
            self._present()

    def _probe_busy(self):
        try:
            return bool(self.probe.is_busy())
        except Exception as e:
            logger.warning(f"[{self.name}] Meeting probe unavailable, assuming not busy: {e}")
            return False

    def _present(self):
        seconds = self._config.break_duration.total_seconds()
        deadline = self.clock.now() + self._config.break_duration
        self._arm(deadline, self._on_presentation_over, SchedulerState.PRESENTING)
        generation = self._generation

        try:
            self.presenter.present(seconds, lambda: self._on_presentation_over(generation, dismissed=True))
        except PresentationFailed as e:
            # The ceiling timer armed above still ends the break.
            logger.error(f"[{self.name}] Overlay failed to show: {e}")
        except Exception:
            logger.exception(f"[{self.name}] Unexpected error showing overlay")

    def _on_presentation_over(self, generation, dismissed=False):
        with self._lock:
            if not self._is_current(generation, 'overlay completion'):
                return
            logger.info(f"[{self.name}] Break over ({'dismissed' if dismissed else 'duration elapsed'})")
            self._arm(self._first_deadline(self._config), self._on_deadline, SchedulerState.ARMED)

    def _close_overlay(self):
        try:
            self.presenter.close()
        except Exception as e:
            logger.error(f"[{self.name}] Failed to close overlay: {e}")
