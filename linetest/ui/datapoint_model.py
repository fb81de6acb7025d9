"""Qt table model for datapoints using the model/view pattern."""

from collections import deque
from typing import Iterable

from PySide6.QtCore import QAbstractTableModel, QModelIndex, Qt

from linetest.models import Datapoint, Latency

_KIND_LABELS = {
    "Latency": "Ping",
    "ThroughputDown": "Download",
    "ThroughputUp": "Upload",
}


class DatapointModel(QAbstractTableModel):
    """Table model showing the most recent datapoints.

    Keeps at most ``max_rows`` rows; the oldest row is dropped with
    beginRemoveRows/endRemoveRows when a new one arrives at capacity.
    """

    def __init__(self, max_rows: int = 300, parent=None):
        super().__init__(parent)
        self._datapoints = deque()  # No maxlen - we manage manually
        self._max_rows = max_rows

        self._columns = ["Time", "Kind", "Value"]
        self._timeout = "Timeout"

    def rowCount(self, parent=QModelIndex()):
        if parent.isValid():
            return 0
        return len(self._datapoints)

    def columnCount(self, parent=QModelIndex()):
        if parent.isValid():
            return 0
        return len(self._columns)

    def data(self, index, role=Qt.DisplayRole):
        """Return data for a given cell."""
        if not index.isValid():
            return None

        if index.row() >= len(self._datapoints) or index.row() < 0:
            return None

        datapoint = self._datapoints[index.row()]
        col = index.column()

        if role == Qt.DisplayRole:
            if col == 0:
                return datapoint.at.strftime("%H:%M:%S")
            elif col == 1:
                return _KIND_LABELS.get(datapoint.kind, datapoint.kind)
            elif col == 2:
                if datapoint.value is None:
                    return self._timeout
                if isinstance(datapoint, Latency):
                    return f"{datapoint.latency_ms:.2f} ms"
                return f"{datapoint.value:.1f} Mbit/s"

        elif role == Qt.TextAlignmentRole:
            if col == 2:
                return Qt.AlignRight | Qt.AlignVCenter
            return Qt.AlignLeft | Qt.AlignVCenter

        return None

    def headerData(self, section, orientation, role=Qt.DisplayRole):
        if role == Qt.DisplayRole and orientation == Qt.Horizontal:
            if 0 <= section < len(self._columns):
                return self._columns[section]
        return None

    def flags(self, index):
        """Return item flags (read-only)."""
        if not index.isValid():
            return Qt.NoItemFlags
        return Qt.ItemIsEnabled | Qt.ItemIsSelectable

    def append_datapoint(self, datapoint: Datapoint):
        """Append a datapoint, dropping the oldest row when at capacity."""
        if len(self._datapoints) >= self._max_rows:
            self.beginRemoveRows(QModelIndex(), 0, 0)
            self._datapoints.popleft()
            self.endRemoveRows()

        new_row = len(self._datapoints)
        self.beginInsertRows(QModelIndex(), new_row, new_row)
        self._datapoints.append(datapoint)
        self.endInsertRows()

    def set_datapoints(self, datapoints: Iterable[Datapoint]):
        """Replace the whole content, keeping only the newest ``max_rows`` entries."""
        self.beginResetModel()
        self._datapoints = deque(datapoints)
        while len(self._datapoints) > self._max_rows:
            self._datapoints.popleft()
        self.endResetModel()

    def clear(self):
        if len(self._datapoints) == 0:
            return

        self.beginRemoveRows(QModelIndex(), 0, len(self._datapoints) - 1)
        self._datapoints.clear()
        self.endRemoveRows()
