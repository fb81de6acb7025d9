"""Main window for the linetest desktop application."""

import logging
from pathlib import Path

from PySide6.QtCore import Qt, QThreadPool
from PySide6.QtGui import QCloseEvent
from PySide6.QtWidgets import (
    QComboBox,
    QFrame,
    QGroupBox,
    QHBoxLayout,
    QHeaderView,
    QLabel,
    QMainWindow,
    QPushButton,
    QTableView,
    QVBoxLayout,
    QWidget,
)

from linetest.evaluation import MeasurementResult, PersistenceError, list_logs
from linetest.models import MeasurementConfig, default_log_path
from linetest.probe import ProbeSetupError
from linetest.scheduler import MeasurementScheduler
from linetest.stream import DatapointStream
from linetest.ui.datapoint_model import DatapointModel
from linetest.workers import StreamWorker

logger = logging.getLogger(__name__)


class MainWindow(QMainWindow):
    """Main application window."""

    INTERVAL_OPTIONS = {"1 s": 1.0, "3 s": 3.0, "7 s": 7.0, "15 s": 15.0}
    DEFAULT_INTERVAL_TEXT = "7 s"

    def __init__(
        self,
        scheduler: MeasurementScheduler | None = None,
        config: MeasurementConfig | None = None,
        log_dir: Path | None = None,
    ):
        super().__init__()
        self.setWindowTitle("linetest")
        self.setGeometry(100, 100, 900, 600)

        self.scheduler = scheduler if scheduler is not None else MeasurementScheduler()
        self.base_config = config if config is not None else MeasurementConfig()
        self.log_dir = log_dir

        # Live run state
        self.stream: DatapointStream | None = None
        self.log_path: Path | None = None
        self._generation_id = 0
        self.thread_pool = QThreadPool.globalInstance()

        # Session shown in the window, live or loaded
        self.result = MeasurementResult()
        self.logs: list[Path] = []

        self.setup_ui()
        self.refresh_logs()
        self.update_statistics()

    @property
    def is_recording(self) -> bool:
        return self.stream is not None

    def closeEvent(self, event: QCloseEvent) -> None:
        """Stop the run and wait briefly for the stream worker."""
        self.stop_recording()
        self.thread_pool.waitForDone(1000)
        super().closeEvent(event)

    def setup_ui(self):
        central_widget = QWidget()
        self.setCentralWidget(central_widget)

        main_layout = QHBoxLayout(central_widget)
        main_layout.addWidget(self.create_control_panel(), 0)
        main_layout.addWidget(self.create_measurement_area(), 1)

    def create_control_panel(self):
        """Create the left control panel."""
        panel = QFrame()
        panel.setFrameStyle(QFrame.Box)
        panel.setFixedWidth(250)

        layout = QVBoxLayout(panel)

        host_group = QGroupBox("Target Host")
        host_layout = QVBoxLayout(host_group)
        self.host_combo = QComboBox()
        self.host_combo.setEditable(True)
        self.host_combo.addItems(["8.8.8.8", "1.1.1.1", "google.com", "cloudflare.com"])
        self.host_combo.setCurrentText(self.base_config.ping_target)
        host_layout.addWidget(self.host_combo)
        layout.addWidget(host_group)

        controls_group = QGroupBox("Recording")
        controls_layout = QVBoxLayout(controls_group)

        self.start_button = QPushButton("Start recording")
        self.start_button.clicked.connect(self.start_recording)
        controls_layout.addWidget(self.start_button)

        self.stop_button = QPushButton("Stop")
        self.stop_button.clicked.connect(self.stop_recording)
        self.stop_button.setEnabled(False)
        controls_layout.addWidget(self.stop_button)

        interval_layout = QHBoxLayout()
        interval_layout.addWidget(QLabel("Interval:"))
        self.interval_combo = QComboBox()
        self.interval_combo.addItems(list(self.INTERVAL_OPTIONS.keys()))
        self.interval_combo.setCurrentText(self.DEFAULT_INTERVAL_TEXT)
        interval_layout.addWidget(self.interval_combo)
        controls_layout.addLayout(interval_layout)

        layout.addWidget(controls_group)

        stats_group = QGroupBox("Info")
        stats_layout = QVBoxLayout(stats_group)
        self.stats_labels = []
        for _ in range(6):
            label = QLabel("--")
            label.setStyleSheet("padding: 2px; font-family: monospace;")
            stats_layout.addWidget(label)
            self.stats_labels.append(label)
        layout.addWidget(stats_group)

        log_group = QGroupBox("Log")
        log_layout = QVBoxLayout(log_group)
        self.log_combo = QComboBox()
        self.log_combo.activated.connect(self.on_log_selected)
        log_layout.addWidget(self.log_combo)
        layout.addWidget(log_group)

        layout.addStretch()

        self.status_label = QLabel("Status: Ready")
        self.status_label.setAlignment(Qt.AlignCenter)
        self.status_label.setWordWrap(True)
        self.status_label.setStyleSheet("font-weight: bold;")
        layout.addWidget(self.status_label)

        return panel

    def create_measurement_area(self):
        """Create the right measurement area with table."""
        area = QFrame()
        area.setFrameStyle(QFrame.Box)
        layout = QVBoxLayout(area)

        title = QLabel("Measurements")
        title.setAlignment(Qt.AlignCenter)
        title.setStyleSheet("font-weight: bold; font-size: 14px; margin: 10px;")
        layout.addWidget(title)

        self.model = DatapointModel(max_rows=300)
        self.table = QTableView()
        self.table.setModel(self.model)
        self.table.setAlternatingRowColors(True)
        self.table.setSelectionBehavior(QTableView.SelectRows)
        header = self.table.horizontalHeader()
        header.setSectionResizeMode(0, QHeaderView.ResizeToContents)
        header.setSectionResizeMode(1, QHeaderView.ResizeToContents)
        header.setSectionResizeMode(2, QHeaderView.Stretch)
        layout.addWidget(self.table)

        return area

    def current_config(self) -> MeasurementConfig:
        """Fresh config for the next run from the current UI state."""
        host = self.host_combo.currentText().strip() or self.base_config.ping_target
        interval = self.INTERVAL_OPTIONS.get(
            self.interval_combo.currentText(), self.base_config.probe_interval
        )
        log_path = default_log_path()
        if self.log_dir is not None:
            log_path = self.log_dir / log_path.name
        return self.base_config.replace(
            ping_targets=(host,), probe_interval=interval, log_path=log_path
        )

    def start_recording(self):
        """Start a new run, replacing whatever session is shown."""
        if self.is_recording:
            return

        config = self.current_config()
        try:
            stream = self.scheduler.start(config)
        except ProbeSetupError as e:
            logger.error("Cannot start measurement: %s", e)
            self.status_label.setText(f"Status: Cannot measure - {e}")
            return

        self._generation_id += 1
        self.stream = stream
        self.log_path = config.log_path
        self.result = MeasurementResult()
        self.model.clear()
        self.update_statistics()

        worker = StreamWorker(stream, self._generation_id)
        worker.signals.datapoint_ready.connect(self.on_datapoint_ready)
        worker.signals.error.connect(self.on_stream_error)
        worker.signals.finished.connect(self.on_stream_finished)
        self.thread_pool.start(worker)

        self.start_button.setEnabled(False)
        self.stop_button.setEnabled(True)
        self.status_label.setText("Status: Recording")

    def stop_recording(self):
        """Stop the live run by closing its stream."""
        if not self.is_recording:
            return

        self.stream.close()
        self.stream = None
        self._generation_id += 1  # Ignore datapoints still in flight

        self.start_button.setEnabled(True)
        self.stop_button.setEnabled(False)
        self.status_label.setText("Status: Stopped")
        self.refresh_logs()

    def on_datapoint_ready(self, datapoint, generation_id):
        if generation_id != self._generation_id:
            logger.debug(
                "Ignoring stale datapoint: generation_id=%d (current=%d)",
                generation_id,
                self._generation_id,
            )
            return

        self.result.append(datapoint)
        self.model.append_datapoint(datapoint)
        self.table.scrollToBottom()
        self.update_statistics()

        if self.log_path is not None:
            try:
                self.result.save(self.log_path)
            except PersistenceError as e:
                logger.error("%s", e)
                self.status_label.setText("Status: Recording (log not saved)")

    def on_stream_error(self, error_msg):
        logger.error("Measurement error: %s", error_msg)
        self.status_label.setText(f"Status: Measurement error - {error_msg}")

    def on_stream_finished(self, generation_id):
        if generation_id != self._generation_id:
            return
        # The scheduler stopped on its own (duration cap or failure)
        self.stream = None
        self.start_button.setEnabled(True)
        self.stop_button.setEnabled(False)
        self.refresh_logs()

    def refresh_logs(self):
        self.logs = list_logs(self.log_dir)
        self.log_combo.clear()
        self.log_combo.addItems([path.name for path in self.logs])
        self.log_combo.setCurrentIndex(-1)

    def on_log_selected(self, index: int):
        """Stop any live run and show the selected saved session instead."""
        if not 0 <= index < len(self.logs):
            return
        self.load_log(self.logs[index])

    def load_log(self, path: Path):
        self.stop_recording()
        try:
            self.result.load(path)
        except PersistenceError as e:
            logger.error("%s", e)
            self.status_label.setText(f"Status: Cannot load {path.name}")
            return

        self.model.set_datapoints(self.result)
        self.update_statistics()
        self.status_label.setText(f"Status: Loaded {path.name}")

    def update_statistics(self):
        for label, text in zip(self.stats_labels, self.result.summary().lines()):
            label.setText(text)
