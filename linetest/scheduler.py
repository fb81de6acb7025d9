"""Measurement scheduler interleaving latency probes and throughput samples."""

import logging
import threading
import time
from datetime import datetime
from typing import Callable

from linetest.evaluation import MeasurementResult
from linetest.models import Datapoint, Latency, MeasurementConfig, ThroughputDown, now
from linetest.probe import ProbeAdapter
from linetest.probe_ping import PingProbe
from linetest.stream import DatapointStream, Publisher, open_stream
from linetest.throughput import ThroughputSampler

logger = logging.getLogger(__name__)

# Latency probes per throughput sample
DEFAULT_LATENCY_DOWNLOAD_RATIO = 10


class _Deadline:
    """Tracks the optional duration cap of a run."""

    def __init__(self, total_duration: float | None):
        self._started = time.monotonic()
        self._total = total_duration

    def expired(self, slack: float = 0.0) -> bool:
        return (
            self._total is not None
            and time.monotonic() - self._started >= self._total + slack
        )

    def clamp(self, seconds: float) -> float:
        """Shorten a sleep so it does not run past the cap."""
        if self._total is None:
            return seconds
        remaining = self._total - (time.monotonic() - self._started)
        return max(0.0, min(seconds, remaining))


class _Clock:
    """Wall clock that never goes backwards within one run."""

    def __init__(self):
        self._last: datetime | None = None

    def __call__(self) -> datetime:
        stamp = now()
        if self._last is not None and stamp < self._last:
            stamp = self._last
        self._last = stamp
        return stamp


class MeasurementScheduler:
    """Produces a live stream of datapoints for a measurement config.

    Each cycle runs ``latency_download_ratio`` latency probes, sleeping the
    configured probe interval after each, followed by one throughput sample.
    Probing is cheap and runs often; the multi-URL download is expensive and
    runs once per cycle.

    The loop runs on a dedicated thread. It stops when the duration cap is
    reached or when the consumer closes (or drops) the stream.
    """

    def __init__(
        self,
        probe_factory: Callable[[], ProbeAdapter] = PingProbe,
        sampler: ThroughputSampler | None = None,
        latency_download_ratio: int = DEFAULT_LATENCY_DOWNLOAD_RATIO,
    ):
        """Initialize scheduler.

        Args:
            probe_factory: Builds the latency probe for each run. Errors raised
                here are reported synchronously by ``start()``.
            sampler: Throughput sampler, a default one is created if omitted.
            latency_download_ratio: Latency probes per throughput sample.
        """
        if latency_download_ratio < 1:
            raise ValueError("latency_download_ratio must be at least 1")

        self.probe_factory = probe_factory
        self.sampler = sampler if sampler is not None else ThroughputSampler()
        self.latency_download_ratio = latency_download_ratio

    def start(self, config: MeasurementConfig) -> DatapointStream:
        """Start a background run and return its datapoint stream.

        Raises:
            ProbeSetupError: the latency probe cannot be used on this system.
        """
        probe = self.probe_factory()
        deadline = _Deadline(config.total_duration)

        publisher, stream = open_stream()
        thread = threading.Thread(
            target=self._run,
            args=(config, probe, publisher, deadline),
            name="linetest-scheduler",
            daemon=True,
        )
        stream._attach(thread)
        thread.start()

        logger.info(
            "Measurement started: target=%s, urls=%d, interval=%.1fs, duration=%s",
            config.ping_target,
            len(config.download_urls),
            config.probe_interval,
            "unlimited" if config.total_duration is None else f"{config.total_duration:.1f}s",
        )
        return stream

    def run_once(self, config: MeasurementConfig) -> MeasurementResult:
        """Run a single cycle on the calling thread and return its datapoints."""
        probe = self.probe_factory()
        clock = _Clock()
        result = MeasurementResult()

        for i in range(self.latency_download_ratio):
            result.append(Latency.record(probe.probe(config.ping_target), clock()))
            if i < self.latency_download_ratio - 1:
                time.sleep(config.probe_interval)

        mbits = self.sampler.sample_mbits(config.download_urls)
        result.append(ThroughputDown.record(mbits, clock()))
        logger.debug("Single run finished: %d datapoints", len(result))
        return result

    def _run(
        self,
        config: MeasurementConfig,
        probe: ProbeAdapter,
        publisher: Publisher,
        deadline: _Deadline,
    ):
        """Loop body executed on the scheduler thread."""
        clock = _Clock()
        error = None

        try:
            self._loop(config, probe, publisher, deadline, clock)
        except Exception as e:
            logger.exception("Measurement loop failed: target=%s", config.ping_target)
            error = e
        finally:
            publisher.close(error)
            logger.info("Stopping measurement thread")

    def _loop(
        self,
        config: MeasurementConfig,
        probe: ProbeAdapter,
        publisher: Publisher,
        deadline: _Deadline,
        clock: _Clock,
    ):
        while not deadline.expired():
            for _ in range(self.latency_download_ratio):
                if deadline.expired():
                    logger.info("Duration cap reached")
                    return

                latency = probe.probe(config.ping_target)
                if deadline.expired(slack=config.probe_interval):
                    logger.info("Duration cap passed during probe, result dropped")
                    return
                if not self._publish(publisher, Latency.record(latency, clock())):
                    return

                logger.debug("Waiting %.1fs to next ping", config.probe_interval)
                if publisher.wait_closed(deadline.clamp(config.probe_interval)):
                    logger.info("Consumer disconnected")
                    return

            if deadline.expired():
                logger.info("Duration cap reached")
                return

            mbits = self.sampler.sample_mbits(config.download_urls)
            if deadline.expired(slack=config.probe_interval):
                logger.info("Duration cap passed during throughput sample, result dropped")
                return
            if not self._publish(publisher, ThroughputDown.record(mbits, clock())):
                return

        logger.info("Duration cap reached")

    @staticmethod
    def _publish(publisher: Publisher, datapoint: Datapoint) -> bool:
        if publisher.publish(datapoint):
            logger.debug("Published %s", datapoint.kind)
            return True
        logger.info("Consumer disconnected")
        return False
