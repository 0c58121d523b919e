import logging
import threading

from config import APP_NAME

logger = logging.getLogger(__name__)


class UnknownTarget(KeyError):
    """No scheduler is registered under the requested name."""


class SchedulerController:
    """
    Command surface shared by the tray, the HTTP API and the settings form.

    Holds no scheduling state of its own; it only routes commands to the
    schedulers it was given and serializes settings changes.
    """

    def __init__(self, settings, schedulers):
        self.settings = settings
        self.schedulers = {s.name: s for s in schedulers}
        self._lock = threading.Lock()

    def _get(self, target):
        try:
            return self.schedulers[target]
        except (KeyError, TypeError):
            raise UnknownTarget(target)

    def _start_each(self):
        for scheduler in self.schedulers.values():
            try:
                scheduler.start()
            except Exception as e:
                logger.error(f"Could not start {scheduler.name}: {e}")
                scheduler.stop()

    def start_all(self):
        with self._lock:
            self._start_each()

    def shutdown(self):
        with self._lock:
            for scheduler in self.schedulers.values():
                scheduler.stop()
        logger.info("All schedulers stopped")

    def apply_config(self, updates):
        """
        Stops every scheduler, persists `updates` and restarts them all.
        Raises ConfigInvalid before touching anything if `updates` is rejected.
        """
        self.settings.validate(updates)
        with self._lock:
            for scheduler in self.schedulers.values():
                scheduler.stop()
            try:
                saved = self.settings.update(updates)
            finally:
                # Restarts on the previous settings if saving failed.
                self._start_each()
        return saved

    def pause(self, target):
        scheduler = self._get(target)
        with self._lock:
            scheduler.pause()

    def resume(self, target):
        scheduler = self._get(target)
        with self._lock:
            scheduler.resume()

    def status_of(self, target):
        return self._get(target).status()

    def statuses(self):
        return {name: s.status() for name, s in self.schedulers.items()}

    def tray_label(self, target='wellness'):
        return f"{APP_NAME} | {self.status_of(target)}"
