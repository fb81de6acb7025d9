"""Combined download throughput sampling."""

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import timedelta
from typing import Callable, Sequence

import requests

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024


def http_fetch(url: str, timeout: float) -> int:
    """Download the full body of ``url`` and return the number of bytes read.

    Raises:
        requests.RequestException: connection error or non-success status.
    """
    byte_count = 0
    with requests.get(url, stream=True, timeout=timeout) as response:
        response.raise_for_status()
        for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
            byte_count += len(chunk)
    return byte_count


@dataclass(frozen=True)
class DownloadResult:
    """Aggregate of one or more downloads."""

    elapsed: timedelta
    byte_count: int
    succeeded: int = 1
    failed: int = 0


def to_mbits(result: DownloadResult | None) -> float | None:
    """Convert a download result to Mbit/s, or None if there is no usable rate."""
    if result is None:
        return None
    seconds = result.elapsed.total_seconds()
    if seconds <= 0:
        return None
    mbit = result.byte_count * 8 / 1_000_000
    logger.debug("Mbit: %.3f  B: %d  s: %.3f", mbit, result.byte_count, seconds)
    return mbit / seconds


class ThroughputSampler:
    """Measures how fast the link pulls data from a set of URLs right now.

    All URLs are fetched at once and reduced to a single combined number:
    total bytes of the successful downloads over the wall time until the last
    download (successful or not) finished.
    """

    def __init__(self, fetch: Callable[[str, float], int] = http_fetch, timeout: float = 30.0):
        """
        Args:
            fetch: Callable ``(url, timeout) -> byte_count``; raises on failure.
            timeout: Per-request timeout in seconds passed to ``fetch``.
        """
        if timeout <= 0:
            raise ValueError("timeout must be positive")
        self._fetch = fetch
        self.timeout = timeout

    def measured_download(self, url: str) -> DownloadResult:
        """Fetch a single URL and time it. Errors propagate."""
        started = time.perf_counter()
        byte_count = self._fetch(url, self.timeout)
        elapsed = timedelta(seconds=time.perf_counter() - started)
        return DownloadResult(elapsed=elapsed, byte_count=byte_count)

    def sample(self, urls: Sequence[str]) -> DownloadResult | None:
        """Download all URLs concurrently.

        Returns:
            Combined result, or None if ``urls`` is empty or every fetch failed.
        """
        urls = list(urls)
        if not urls:
            logger.debug("No download URLs configured, skipping throughput sample")
            return None

        byte_count = 0
        succeeded = 0
        failed = 0

        started = time.perf_counter()
        with ThreadPoolExecutor(max_workers=len(urls), thread_name_prefix="linetest-dl") as pool:
            futures = {pool.submit(self._fetch, url, self.timeout): url for url in urls}
            for future, url in futures.items():
                try:
                    byte_count += future.result()
                    succeeded += 1
                except Exception as e:
                    failed += 1
                    logger.warning("Download failed: url=%s, error=%s", url, str(e))
        elapsed = timedelta(seconds=time.perf_counter() - started)

        logger.debug(
            "Throughput sample: ok=%d, failed=%d, bytes=%d, elapsed=%.3fs",
            succeeded,
            failed,
            byte_count,
            elapsed.total_seconds(),
        )

        if succeeded == 0:
            return None

        return DownloadResult(
            elapsed=elapsed, byte_count=byte_count, succeeded=succeeded, failed=failed
        )

    def sample_mbits(self, urls: Sequence[str]) -> float | None:
        """Combined download rate in Mbit/s, or None if the sample failed."""
        return to_mbits(self.sample(urls))
