"""
Shared pytest fixtures for the scheduler test suite.

Everything runs on a VirtualClock, so timers only fire when a test calls
clock.advance().
"""
import pytest

from clock import VirtualClock
from core import BreakScheduler, PresentationFailed
from quotes import FetchFailed, Quote, QuoteScheduler
from settings import SettingsStore


class FakeProbe:
    def __init__(self, answers=None, default=False):
        self.answers = list(answers or [])
        self.default = default
        self.calls = 0
        self.hook = None

    def is_busy(self):
        self.calls += 1
        if self.hook is not None:
            self.hook()
        if self.answers:
            answer = self.answers.pop(0)
        else:
            answer = self.default
        if isinstance(answer, Exception):
            raise answer
        return answer


class FakePresenter:
    def __init__(self, fail=False):
        self.fail = fail
        self.shown = []
        self.closed = 0
        self.on_dismiss = None

    def present(self, duration_seconds, on_dismiss):
        if self.fail:
            raise PresentationFailed("renderer crashed")
        self.shown.append(duration_seconds)
        self.on_dismiss = on_dismiss

    def close(self):
        self.closed += 1


class FakeFetcher:
    def __init__(self, clock=None, fail=False):
        self.clock = clock
        self.fail = fail
        self.calls = []
        self.delays = []

    def fetch_one(self):
        if self.clock is not None:
            self.calls.append(self.clock.now())
            if self.delays:
                self.clock.sleep(self.delays.pop(0))
        if self.fail:
            raise FetchFailed("HTTP 503")
        return Quote(text="Well begun is half done.", author="Aristotle")


class FakeNotifier:
    def __init__(self):
        self.sent = []

    def notify(self, message, on_click=None):
        self.sent.append((message, on_click))


@pytest.fixture
def clock():
    return VirtualClock()


@pytest.fixture
def settings():
    """Memory-only settings: 1 minute interval, 20 second break, quotes on."""
    return SettingsStore(initial={
        'wellness_enabled': True,
        'wellness_interval': 1,
        'wellness_break': 20,
        'quotes_enabled': True,
    })


@pytest.fixture
def probe():
    return FakeProbe()


@pytest.fixture
def presenter():
    return FakePresenter()


@pytest.fixture
def fetcher(clock):
    return FakeFetcher(clock)


@pytest.fixture
def notifier():
    return FakeNotifier()


@pytest.fixture
def breaks(clock, settings, probe, presenter):
    return BreakScheduler(clock, settings, probe, presenter)


@pytest.fixture
def quotes(clock, settings, fetcher, notifier):
    return QuoteScheduler(clock, settings, fetcher, notifier)


def parse_mmss(text):
    mins, secs = text.split(':')
    return int(mins) * 60 + int(secs)
