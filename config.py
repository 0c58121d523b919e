# config.py

import os
from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path
from typing import Optional

APP_NAME = 'Koda'

# --- USER SETTINGS DEFAULTS ---
# Values used when the settings file is missing or lacks a key.
DEFAULT_SETTINGS = {
    'wellness_enabled': True,
    'wellness_interval': 1,  # minutes between breaks
    'wellness_break': 20,  # seconds the overlay stays up
    'quotes_enabled': False,
}

NUMERIC_SETTINGS = ('wellness_interval', 'wellness_break')
BOOLEAN_SETTINGS = ('wellness_enabled', 'quotes_enabled')

# Upper bounds keep deadlines and timer delays in range.
MAX_SETTINGS = {
    'wellness_interval': 24 * 60,  # one day, in minutes
    'wellness_break': 60 * 60,  # one hour, in seconds
}

# --- MEETING DEFERRAL ---
# A break that comes due during a meeting is postponed once by this much.
MEETING_DEFER_SECONDS = 5 * 60
MEETING_KEYWORDS = ['zoom', 'teams', 'meet.google.com', 'skype', 'webex', 'huddle']
MEETING_PROBE_TIMEOUT = 10

# --- QUOTE OF THE HOUR ---
QUOTE_PERIOD_SECONDS = 60 * 60
QUOTE_TITLE = f'{APP_NAME} | Quote of the Hour'
QUOTE_TIMEOUT = 15

# --- OVERLAY TEXT ---
BREAK_HEADLINE = "Time for a quick eye break."
BREAK_MESSAGE = "Look at something 20 feet away for 20 seconds."

# A display client that has not polled /api/state for this long is gone.
DISPLAY_CLIENT_TIMEOUT = 10

# --- ENVIRONMENT ---
# Read lazily so that load_dotenv() in server.py takes effect first.


def env_settings_file():
    default = Path.home() / '.koda' / 'settings.json'
    return Path(os.getenv('KODA_SETTINGS_FILE', str(default))).expanduser()


def env_timezone():
    return os.getenv('KODA_TIMEZONE', 'UTC')


def env_quote_url():
    return os.getenv('KODA_QUOTE_URL', 'https://zenquotes.io/api/random')


class ConfigInvalid(ValueError):
    """Raised when settings carry a non-positive or non-numeric duration."""


@dataclass(frozen=True)
class ScheduleConfig:
    """Snapshot of one scheduler's parameters for a single cycle."""
    enabled: bool
    interval: timedelta
    break_duration: Optional[timedelta] = None


def _as_bool(key, value):
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ('true', '1', 'yes', 'on'):
        return True
    if isinstance(value, str) and value.strip().lower() in ('false', '0', 'no', 'off'):
        return False
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    raise ConfigInvalid(f"'{key}' must be a boolean, got {value!r}")


def _as_positive_number(key, value):
    if isinstance(value, bool):
        raise ConfigInvalid(f"'{key}' must be a number, got {value!r}")
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ConfigInvalid(f"'{key}' must be a number, got {value!r}")
    if number != number or number in (float('inf'), float('-inf')):
        raise ConfigInvalid(f"'{key}' must be finite, got {value!r}")
    if number <= 0:
        raise ConfigInvalid(f"'{key}' must be positive, got {value!r}")
    if number > MAX_SETTINGS[key]:
        raise ConfigInvalid(f"'{key}' must be at most {MAX_SETTINGS[key]}, got {value!r}")
    return int(number) if number.is_integer() else number


def validate_settings(settings, base=None):
    """
    Merges `settings` over `base` (or the defaults) and returns a clean dict.
    Unknown keys are dropped. Raises ConfigInvalid without side effects.
    """
    merged = dict(base if base is not None else DEFAULT_SETTINGS)
    for key, value in (settings or {}).items():
        if key in DEFAULT_SETTINGS:
            merged[key] = value

    clean = {}
    for key in BOOLEAN_SETTINGS:
        clean[key] = _as_bool(key, merged[key])
    for key in NUMERIC_SETTINGS:
        clean[key] = _as_positive_number(key, merged[key])
    return clean


def break_config_from(settings):
    return ScheduleConfig(
        enabled=settings['wellness_enabled'],
        interval=timedelta(minutes=settings['wellness_interval']),
        break_duration=timedelta(seconds=settings['wellness_break']),
    )


def quote_config_from(settings):
    return ScheduleConfig(
        enabled=settings['quotes_enabled'],
        interval=timedelta(seconds=QUOTE_PERIOD_SECONDS),
    )
