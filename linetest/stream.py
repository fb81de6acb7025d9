"""Single-producer/single-consumer stream of datapoints.

The producer (the scheduler thread) writes through a ``Publisher``, the
consumer reads from the ``DatapointStream``. Closing the stream, or dropping
the last reference to it, is the only way to cancel a run: the next
``publish()`` returns False and the producer stops.
"""

import logging
import queue
import threading
from typing import Iterator

from linetest.models import Datapoint

logger = logging.getLogger(__name__)

_END = object()


class _Channel:
    """State shared between the two ends of a stream."""

    def __init__(self):
        self.queue = queue.SimpleQueue()
        self.receiver_closed = threading.Event()
        self.error: BaseException | None = None


class Publisher:
    """Writing end of a stream, owned by the producer thread."""

    def __init__(self, channel: _Channel):
        self._channel = channel

    @property
    def is_closed(self) -> bool:
        """True once the consumer closed or dropped the stream."""
        return self._channel.receiver_closed.is_set()

    def publish(self, datapoint: Datapoint) -> bool:
        """Hand a datapoint to the consumer.

        Returns:
            False if the consumer is gone and the producer should stop.
        """
        if self._channel.receiver_closed.is_set():
            return False
        self._channel.queue.put(datapoint)
        return True

    def wait_closed(self, timeout: float) -> bool:
        """Sleep up to ``timeout`` seconds; return True early if the consumer left."""
        if timeout <= 0:
            return self.is_closed
        return self._channel.receiver_closed.wait(timeout)

    def close(self, error: BaseException | None = None):
        """Signal end of stream, optionally recording why the producer stopped."""
        if error is not None:
            self._channel.error = error
        self._channel.queue.put(_END)


class DatapointStream:
    """Reading end of a stream.

    Iterating blocks until the next datapoint arrives and stops when the
    producer has finished.
    """

    def __init__(self, channel: _Channel):
        self._channel = channel
        self._finished = False
        self._thread: threading.Thread | None = None

    def _attach(self, thread: threading.Thread):
        self._thread = thread

    @property
    def error(self) -> BaseException | None:
        """Exception that terminated the producer, if any."""
        return self._channel.error

    @property
    def closed(self) -> bool:
        return self._channel.receiver_closed.is_set()

    @property
    def finished(self) -> bool:
        """True once the end of the stream has been read."""
        return self._finished

    @property
    def is_alive(self) -> bool:
        """True while the producer thread is running."""
        return self._thread is not None and self._thread.is_alive()

    def __iter__(self) -> Iterator[Datapoint]:
        return self

    def __next__(self) -> Datapoint:
        item = self.get()
        if item is None:
            raise StopIteration
        return item

    def get(self, timeout: float | None = None) -> Datapoint | None:
        """Return the next datapoint, or None at end of stream.

        Raises:
            queue.Empty: nothing arrived within ``timeout`` seconds.
        """
        if self._finished:
            return None
        item = self._channel.queue.get(timeout=timeout)
        if item is _END:
            self._finished = True
            return None
        return item

    def drain(self) -> list[Datapoint]:
        """Return every datapoint already available without blocking."""
        items = []
        while not self._finished:
            try:
                item = self._channel.queue.get_nowait()
            except queue.Empty:
                break
            if item is _END:
                self._finished = True
                break
            items.append(item)
        return items

    def close(self):
        """Stop consuming. The producer exits at its next publish attempt."""
        if self._channel.receiver_closed.is_set():
            return
        self._channel.receiver_closed.set()
        # Wake up a reader blocked in get()
        self._channel.queue.put(_END)
        logger.debug("Stream closed by consumer")

    def join(self, timeout: float | None = None) -> bool:
        """Wait for the producer thread; return True if it has exited."""
        if self._thread is None:
            return True
        self._thread.join(timeout)
        return not self._thread.is_alive()

    def __enter__(self) -> "DatapointStream":
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def __del__(self):
        # Dropping the stream is a disconnect
        channel = getattr(self, "_channel", None)
        if channel is not None:
            channel.receiver_closed.set()


def open_stream() -> tuple[Publisher, DatapointStream]:
    """Create a connected publisher/stream pair."""
    channel = _Channel()
    return Publisher(channel), DatapointStream(channel)
