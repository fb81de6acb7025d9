"""Worker classes for consuming a datapoint stream off the GUI thread."""

import logging

from PySide6.QtCore import QObject, QRunnable, Signal

from linetest.stream import DatapointStream

logger = logging.getLogger(__name__)


class WorkerSignals(QObject):
    """Signals for communicating between worker threads and main thread."""

    datapoint_ready = Signal(object, int)  # Emits (Datapoint, generation_id)
    error = Signal(str)  # Emits error message
    finished = Signal(int)  # Emits generation_id when the stream ends


class StreamWorker(QRunnable):
    """Worker that forwards every datapoint of a stream to the main thread."""

    def __init__(self, stream: DatapointStream, generation_id: int):
        super().__init__()
        self.stream = stream
        self.generation_id = generation_id
        self.signals = WorkerSignals()

    def run(self):
        """Drain the stream in a background thread until it ends."""
        count = 0
        try:
            logger.debug("Worker starting: generation_id=%d", self.generation_id)

            for datapoint in self.stream:
                self.signals.datapoint_ready.emit(datapoint, self.generation_id)
                count += 1

            if self.stream.error is not None:
                self.signals.error.emit(str(self.stream.error))

            logger.debug(
                "Worker completed: generation_id=%d, datapoints=%d", self.generation_id, count
            )

        except Exception as e:
            logger.exception(
                "Worker exception: generation_id=%d, error=%s", self.generation_id, str(e)
            )
            self.signals.error.emit(str(e))

        finally:
            self.signals.finished.emit(self.generation_id)
