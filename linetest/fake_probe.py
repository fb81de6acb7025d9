"""Fake latency probe for linetest testing and simulation."""

import random
from datetime import timedelta


class FakeProbe:
    """Generates simulated round-trip times."""

    def __init__(self, seed: int | None = None):
        """Initialize with optional random seed for deterministic behavior."""
        # Isolated random instance, the probe runs on the scheduler thread
        self._random = random.Random(seed)

        # Simulation parameters
        self.base_latency = 25.0  # ms
        self.latency_variance = 5.0
        self.spike_probability = 0.05
        self.spike_multiplier = 3.0
        self.loss_probability = 0.02

    def probe(self, host: str) -> timedelta | None:
        """Simulate a single probe against the given host."""
        if not host or not host.strip():
            raise ValueError("Host cannot be empty")

        if self._random.random() < self.loss_probability:
            return None

        if self._random.random() < self.spike_probability:
            latency = self.base_latency * self.spike_multiplier + self._random.gauss(
                0, self.latency_variance
            )
        else:
            latency = self.base_latency + self._random.gauss(0, self.latency_variance)

        latency = max(0.1, latency)

        return timedelta(milliseconds=round(latency, 2))
