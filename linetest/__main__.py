"""Entry point for the linetest desktop application."""

import logging
import os
import sys

from PySide6.QtWidgets import QApplication

from linetest.fake_probe import FakeProbe
from linetest.logging_config import LoggingConfig, configure_logging
from linetest.probe import ProbeSetupError
from linetest.probe_ping import PingProbe
from linetest.scheduler import MeasurementScheduler
from linetest.ui.main_window import MainWindow

logger = logging.getLogger(__name__)


def main():
    """Main entry point for the linetest GUI."""
    configure_logging(LoggingConfig.from_env())

    app = QApplication(sys.argv)

    probe_factory = PingProbe
    user_message = None

    # Check for environment variable override
    force_fake = os.environ.get("LINETEST_PROBE", "").lower() == "fake"

    if force_fake:
        probe_factory = FakeProbe
        user_message = "Using simulated latency (LINETEST_PROBE=fake)"
        logger.info("Fake probe explicitly requested via environment variable")
    else:
        try:
            PingProbe()
            logger.info("PingProbe available")
        except ProbeSetupError as e:
            logger.warning("Ping command unavailable: %s", e)
            probe_factory = FakeProbe
            user_message = "Using simulated latency (ping command not available)"

    window = MainWindow(scheduler=MeasurementScheduler(probe_factory=probe_factory))

    if user_message:
        window.status_label.setText(f"Status: {user_message}")
        window.status_label.setStyleSheet("font-weight: bold; color: orange;")

    window.show()

    sys.exit(app.exec())


if __name__ == "__main__":
    main()
