import logging
from collections import namedtuple
from datetime import timedelta

import pytz
import requests
import requests.exceptions

from config import QUOTE_PERIOD_SECONDS, QUOTE_TIMEOUT, QUOTE_TITLE, env_quote_url
from core import BaseScheduler, SchedulerState

logger = logging.getLogger(__name__)

HEADERS = {
    'User-Agent': 'Koda/1.0 (+quote-of-the-hour)',
    'Accept': 'application/json'
}

STATUS_QUOTE = 'Quote in progress'

Quote = namedtuple('Quote', ['text', 'author'])


class FetchFailed(RuntimeError):
    """The quote service could not be reached or returned nothing usable."""


class ZenQuotesFetcher:
    """Fetches one random quote from a ZenQuotes-compatible endpoint."""

    def __init__(self, url=None, timeout=QUOTE_TIMEOUT):
        self.url = url or env_quote_url()
        self.timeout = timeout

    def fetch_one(self):
        try:
            response = requests.get(self.url, headers=HEADERS, timeout=self.timeout)
            response.raise_for_status()
            data = response.json()
        except requests.exceptions.RequestException as e:
            raise FetchFailed(f"Error fetching quote from {self.url}: {e}")
        except ValueError as e:
            raise FetchFailed(f"Quote response was not JSON: {e}")

        # Payload is a one-element list: [{"q": text, "a": author, ...}]
        if not isinstance(data, list) or not data or not isinstance(data[0], dict):
            raise FetchFailed(f"Unexpected quote payload: {data!r}")
        entry = data[0]
        text = (entry.get('q') or '').strip()
        if not text:
            raise FetchFailed("Quote payload carried no text")
        return Quote(text=text, author=(entry.get('a') or 'Unknown').strip())


def format_quote_message(quote):
    return {'title': QUOTE_TITLE, 'body': f'"{quote.text}" - {quote.author}'}


def next_top_of_hour(now, tz=pytz.utc):
    """First whole hour strictly after `now`, in zone `tz`, returned in UTC."""
    local = now.astimezone(tz)
    floored = local.replace(minute=0, second=0, microsecond=0)
    return (floored + timedelta(hours=1)).astimezone(pytz.utc)


class QuoteScheduler(BaseScheduler):
    """
    Hourly quote notifications aligned to the top of the hour.

    Each deadline is the previous one plus exactly one hour, so the time spent
    fetching and notifying never pushes the schedule later.
    """

    name = 'quotes'
    presenting_label = STATUS_QUOTE

    def __init__(self, clock, config_provider, fetcher, notifier, timezone='UTC', on_click=None):
        super().__init__(clock, config_provider)
        self.fetcher = fetcher
        self.notifier = notifier
        self.tz = pytz.timezone(timezone) if isinstance(timezone, str) else timezone
        self.on_click = on_click

    def _read_config(self):
        return self.config_provider.quote_config()

    def _first_deadline(self, config):
        return next_top_of_hour(self.clock.now(), self.tz)

    def _on_deadline(self, generation):
        with self._lock:
            if not self._is_current(generation, 'hourly timer'):
                return
            self._timer = None
            fired_at = self._deadline
            self._state = SchedulerState.PRESENTING
            logger.info(f"[{self.name}] Triggering hourly quote")

        quote = self._fetch()

        with self._lock:
            if not self._is_current(generation, 'quote fetch result'):
                return
            if quote is not None:
                self._notify(quote)
            period = timedelta(seconds=QUOTE_PERIOD_SECONDS)
            deadline = fired_at + period
            now = self.clock.now()
            if deadline <= now:
                # Woke from sleep: drop the missed hours but keep the phase.
                missed = (now - deadline) // period + 1
                logger.warning(f"[{self.name}] Skipping {missed} missed hour(s)")
                deadline += period * missed
            self._arm(deadline, self._on_deadline, SchedulerState.ARMED)

    def _fetch(self):
        try:
            return self.fetcher.fetch_one()
        except FetchFailed as e:
            logger.error(f"[{self.name}] Failed to fetch quote, skipping this hour: {e}")
        except Exception as e:
            logger.error(f"[{self.name}] Unexpected error fetching quote, skipping this hour: {e}")
        return None

    def _notify(self, quote):
        callback = None
        if self.on_click is not None:
            callback = lambda: self.on_click(quote)
        try:
            self.notifier.notify(format_quote_message(quote), callback)
        except Exception as e:
            logger.error(f"[{self.name}] Failed to show quote notification: {e}")

    def send_now(self):
        """Fetches and shows a quote immediately without touching the hourly schedule."""
        logger.info(f"[{self.name}] Sending quote on demand")
        quote = self.fetcher.fetch_one()
        self._notify(quote)
        return quote
