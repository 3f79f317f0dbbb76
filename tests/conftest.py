"""Shared fixtures: a scripted fetcher whose per-node outcome each test controls."""

import threading
import time

import pytest

from kudu_exporter.collector.base import FetchTask
from kudu_exporter.collector.registry import register_fetcher
from kudu_exporter.errors import FetchError

# node_id -> list of records, an exception to raise, an Event to wait on
# first, or a float number of seconds to sleep first
OUTCOMES = {}


@register_fetcher("scripted")
class ScriptedFetchTask(FetchTask):

    def fetch(self):
        outcome = OUTCOMES.get(self.node_id)
        if outcome is None:
            raise FetchError(self.node_id, "no outcome scripted")
        if isinstance(outcome, threading.Event):
            outcome.wait(5)
            return ({"waited": 1},)
        if isinstance(outcome, float):
            time.sleep(outcome)
            return ({"slept": 1},)
        if isinstance(outcome, Exception):
            raise outcome
        return tuple(outcome)


@pytest.fixture
def outcomes():
    OUTCOMES.clear()
    yield OUTCOMES
    OUTCOMES.clear()
