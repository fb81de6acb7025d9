"""Shared fixtures for linetest tests."""

import os
import threading
from datetime import timedelta

import pytest

# Qt tests must run without a display
os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")


class CountingProbe:
    """Probe returning scripted latencies and counting how often it was called."""

    def __init__(self, latencies=None, default_ms: float = 10.0):
        self._latencies = list(latencies) if latencies is not None else []
        self.default_ms = default_ms
        self.calls = 0
        self.hosts = []
        self._lock = threading.Lock()

    def probe(self, host):
        with self._lock:
            self.calls += 1
            self.hosts.append(host)
            if self._latencies:
                ms = self._latencies.pop(0)
            else:
                ms = self.default_ms
        return None if ms is None else timedelta(milliseconds=ms)


class StubSampler:
    """Throughput sampler returning a fixed rate."""

    def __init__(self, mbits=None):
        self.mbits = mbits
        self.calls = 0

    def sample_mbits(self, urls):
        self.calls += 1
        return self.mbits


@pytest.fixture
def counting_probe():
    return CountingProbe()


@pytest.fixture
def stub_sampler():
    return StubSampler(mbits=50.0)


@pytest.fixture(scope="session")
def qapp():
    """Create QApplication instance for tests."""
    from PySide6.QtWidgets import QApplication

    app = QApplication.instance()
    if app is None:
        app = QApplication([])
    yield app


@pytest.fixture
def make_probe():
    """Factory for probes with scripted latencies (ms, None for timeout)."""
    return CountingProbe


@pytest.fixture
def make_sampler():
    return StubSampler
