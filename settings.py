import json
import logging
import os
import threading

from config import (
    DEFAULT_SETTINGS,
    ConfigInvalid,
    break_config_from,
    quote_config_from,
    validate_settings,
)

logger = logging.getLogger(__name__)


class SettingsStore:
    """
    JSON-backed user settings. Also serves as the schedulers' config provider.

    With `path=None` the store is memory-only.
    """

    def __init__(self, path=None, initial=None):
        self.path = path
        self._lock = threading.Lock()
        self._settings = dict(DEFAULT_SETTINGS)
        if path is not None:
            self._settings = self._load()
        if initial:
            self._settings = validate_settings(initial, base=self._settings)

    def _load(self):
        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                raw = json.load(f)
        except FileNotFoundError:
            logger.info(f"No settings file at {self.path}, using defaults")
            return dict(DEFAULT_SETTINGS)
        except (OSError, ValueError) as e:
            logger.error(f"Settings load error ({self.path}): {e}. Using defaults.")
            return dict(DEFAULT_SETTINGS)

        try:
            return validate_settings(raw if isinstance(raw, dict) else {})
        except ConfigInvalid as e:
            logger.error(f"Stored settings are invalid: {e}. Using defaults.")
            return dict(DEFAULT_SETTINGS)

    def _save(self, settings):
        directory = os.path.dirname(str(self.path))
        if directory:
            os.makedirs(directory, exist_ok=True)
        tmp_path = f"{self.path}.tmp"
        with open(tmp_path, 'w', encoding='utf-8') as f:
            json.dump(settings, f, indent=2)
        os.replace(tmp_path, self.path)

    def get_settings(self):
        with self._lock:
            return dict(self._settings)

    def validate(self, updates):
        """Returns the merged settings `updates` would produce, or raises ConfigInvalid."""
        with self._lock:
            return validate_settings(updates, base=self._settings)

    def update(self, updates):
        with self._lock:
            clean = validate_settings(updates, base=self._settings)
            if self.path is not None:
                self._save(clean)
            self._settings = clean
            logger.info(f"Settings updated: {clean}")
            return dict(clean)

    # --- Config provider ---

    def break_config(self):
        return break_config_from(self.get_settings())

    def quote_config(self):
        return quote_config_from(self.get_settings())
