"""
Shared fixtures: a scripted transport and a consumer that records events.
"""

import os
import sys
import threading
import time

import pytest

# Add parent directory to Python path so the top-level packages can be imported
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from acquisition import AcquisitionEngine, Consumer  # noqa: E402
from frame.codec import build_response  # noqa: E402
from utility.initialset import SessionConfig  # noqa: E402


class FakeTransport:
    """
    Transport that answers each written command with the next scripted reply.

    A reply of ``None`` means the device stays silent. Once the script runs
    out, ``default`` is used.
    """

    def __init__(self, replies=(), default=None, open_error=None):
        self.replies = list(replies)
        self.default = default
        self.open_error = open_error
        self.writes = []
        self.open_count = 0
        self.close_count = 0
        self._rx = bytearray()
        self._lock = threading.Lock()

    def open(self, config):
        if self.open_error is not None:
            raise self.open_error
        self.open_count += 1

    def write(self, data):
        with self._lock:
            self.writes.append(bytes(data))
            reply = self.replies.pop(0) if self.replies else self.default
            if reply is not None:
                self._rx += reply
        return len(data)

    def bytes_available(self):
        with self._lock:
            return len(self._rx)

    def read(self, size):
        with self._lock:
            data = bytes(self._rx[:size])
            del self._rx[:size]
            return data

    def close(self):
        self.close_count += 1


class RecordingConsumer(Consumer):
    def __init__(self):
        self.readings = []
        self.health = []
        self.states = []
        self.logs = []
        self._cond = threading.Condition()

    def _record(self, target, item):
        with self._cond:
            target.append(item)
            self._cond.notify_all()

    def on_reading(self, reading):
        self._record(self.readings, reading)

    def on_health_event(self, kind, detail):
        self._record(self.health, (kind, detail))

    def on_state_change(self, state):
        self._record(self.states, state)

    def on_log(self, message):
        self._record(self.logs, message)

    def wait_for(self, predicate, timeout=2.0):
        with self._cond:
            return self._cond.wait_for(predicate, timeout)


def make_config(**overrides):
    settings = dict(
        port="/dev/ttyFAKE0",
        sampling_interval_ms=10,
        response_timeout_ms=50,
        probe_timeout_ms=50,
        poll_granularity_ms=5,
        stale_after_ms=10000,
    )
    settings.update(overrides)
    return SessionConfig(**settings)


@pytest.fixture
def consumer():
    return RecordingConsumer()


@pytest.fixture
def engine_factory(consumer):
    engines = []

    def factory(transport):
        engine = AcquisitionEngine(transport, consumer)
        engines.append(engine)
        return engine

    yield factory
    for engine in engines:
        engine.shutdown(timeout=2)


@pytest.fixture
def good_frame():
    return build_response("1.250", decimal_places=3)


def wait_until(predicate, timeout=2.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.005)
    return predicate()
