"""Data models for linetest measurements."""

import os
import sys
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from pathlib import Path
from typing import ClassVar, Union

DEFAULT_PING_TARGET = "8.8.8.8"

DEFAULT_DOWNLOAD_URLS = (
    "https://github.com/aseprite/aseprite/releases/download/v1.2.27/Aseprite-v1.2.27-Source.zip",
    "https://dl.google.com/drive-file-stream/GoogleDriveSetup.exe",
    "https://awscli.amazonaws.com/AWSCLIV2.msi",
    "https://awscli.amazonaws.com/awscli-exe-linux-x86_64.zip",
)

DEFAULT_PROBE_INTERVAL = 7.0  # seconds

LOG_SUFFIXES = (".ltst", ".ltest")


def now() -> datetime:
    """Current wall-clock time as a timezone-aware local datetime."""
    return datetime.now().astimezone()


def data_dir() -> Path:
    """Return the per-user directory holding saved sessions."""
    if sys.platform == "win32":
        base = os.environ.get("LOCALAPPDATA")
        root = Path(base) if base else Path.home() / "AppData" / "Local"
    elif sys.platform == "darwin":
        root = Path.home() / "Library" / "Application Support"
    else:
        base = os.environ.get("XDG_DATA_HOME")
        root = Path(base) if base else Path.home() / ".local" / "share"
    return root / "linetest"


def default_log_path(when: datetime | None = None) -> Path:
    """Timestamp-derived log file name, e.g. ``2026-10-17-19h25m.ltst``."""
    when = when or now()
    name = f"{when.year}-{when.month}-{when.day}-{when.hour}h{when.minute}m{LOG_SUFFIXES[0]}"
    return data_dir() / name


@dataclass(frozen=True)
class Latency:
    """Round-trip time of a single probe. ``value=None`` is a timeout."""

    kind: ClassVar[str] = "Latency"

    value: timedelta | None
    at: datetime

    @classmethod
    def record(cls, value: timedelta | None, at: datetime | None = None) -> "Latency":
        return cls(value=value, at=at if at is not None else now())

    @property
    def is_timeout(self) -> bool:
        return self.value is None

    @property
    def latency_ms(self) -> float | None:
        if self.value is None:
            return None
        return self.value.total_seconds() * 1000.0

    def __str__(self) -> str:
        if self.value is None:
            return "Ping:\tTimeout"
        return f"Ping:\t{self.latency_ms:.2f} ms"


@dataclass(frozen=True)
class ThroughputDown:
    """Combined download rate in Mbit/s. ``value=None`` means the sample failed."""

    kind: ClassVar[str] = "ThroughputDown"

    value: float | None
    at: datetime

    @classmethod
    def record(cls, value: float | None, at: datetime | None = None) -> "ThroughputDown":
        return cls(value=value, at=at if at is not None else now())

    @property
    def is_timeout(self) -> bool:
        return self.value is None

    def __str__(self) -> str:
        if self.value is None:
            return "Speed:\tTimeout"
        return f"Speed:\t{self.value:.1f} Mbit/s"


@dataclass(frozen=True)
class ThroughputUp:
    """Upload rate in Mbit/s. Never produced by the scheduler."""

    kind: ClassVar[str] = "ThroughputUp"

    value: float | None
    at: datetime

    @classmethod
    def record(cls, value: float | None, at: datetime | None = None) -> "ThroughputUp":
        return cls(value=value, at=at if at is not None else now())

    @property
    def is_timeout(self) -> bool:
        return self.value is None

    def __str__(self) -> str:
        if self.value is None:
            return "Upload speed:\tTimeout"
        return f"Upload speed:\t{self.value:.1f} Mbit/s"


Datapoint = Union[Latency, ThroughputDown, ThroughputUp]

DATAPOINT_TYPES = {cls.kind: cls for cls in (Latency, ThroughputUp, ThroughputDown)}


@dataclass(frozen=True)
class MeasurementConfig:
    """Settings for one measurement run.

    A run never mutates its config; use ``replace()`` to derive the settings
    for the next run.

    Args:
        ping_targets: Hosts for latency probes. Only the first one is used.
        download_urls: Files downloaded in parallel for each throughput sample.
        probe_interval: Seconds to wait after each latency probe.
        total_duration: Stop after this many seconds. ``None`` runs until the
            consumer closes the stream.
        log_path: Where consumers persist the session, or ``None`` to skip.
    """

    ping_targets: tuple[str, ...] = (DEFAULT_PING_TARGET,)
    download_urls: tuple[str, ...] = DEFAULT_DOWNLOAD_URLS
    probe_interval: float = DEFAULT_PROBE_INTERVAL
    total_duration: float | None = None
    log_path: Path | None = field(default_factory=default_log_path)

    def __post_init__(self):
        # Accept any iterable of strings, store tuples so the config stays hashable
        object.__setattr__(self, "ping_targets", tuple(self.ping_targets))
        object.__setattr__(self, "download_urls", tuple(self.download_urls))
        if self.log_path is not None:
            object.__setattr__(self, "log_path", Path(self.log_path))

        if not self.ping_targets or not self.ping_targets[0].strip():
            raise ValueError("at least one ping target is required")
        if self.probe_interval < 0:
            raise ValueError("probe_interval must not be negative")
        if self.total_duration is not None and self.total_duration <= 0:
            raise ValueError("total_duration must be positive")

    @property
    def ping_target(self) -> str:
        return self.ping_targets[0].strip()

    def replace(self, **changes) -> "MeasurementConfig":
        """Return a new config with the given fields changed."""
        return replace(self, **changes)
