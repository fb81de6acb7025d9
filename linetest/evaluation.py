"""Statistics and persistence for recorded measurement sessions."""

import json
import logging
import math
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Iterable, Sequence

from linetest.models import (
    DATAPOINT_TYPES,
    LOG_SUFFIXES,
    Datapoint,
    Latency,
    ThroughputDown,
    data_dir,
)

logger = logging.getLogger(__name__)


class PersistenceError(Exception):
    """Raised when a session cannot be saved or loaded."""


def mean_download(datapoints: Iterable[Datapoint]) -> float:
    """Mean download rate in Mbit/s over successful samples, NaN if there are none."""
    values = [
        dp.value for dp in datapoints if isinstance(dp, ThroughputDown) and dp.value is not None
    ]
    if not values:
        return math.nan
    return sum(values) / len(values)


def mean_latency(datapoints: Iterable[Datapoint]) -> float:
    """Mean round-trip time in milliseconds, timeouts excluded. NaN if there are none."""
    values = [dp.latency_ms for dp in datapoints if isinstance(dp, Latency) and dp.value is not None]
    if not values:
        return math.nan
    return sum(values) / len(values)


def timeout_count(datapoints: Iterable[Datapoint]) -> int:
    """Number of latency probes that timed out."""
    return sum(1 for dp in datapoints if isinstance(dp, Latency) and dp.value is None)


def timeout_ratio(datapoints: Sequence[Datapoint]) -> float:
    """Timeouts as a fraction of all entries, 0 (no loss) to 1 (total loss).

    The denominator counts every entry, throughput samples included.
    """
    if not datapoints:
        return 0.0
    return timeout_count(datapoints) / len(datapoints)


def session_duration(datapoints: Sequence[Datapoint]) -> timedelta:
    """Time between the first and the last entry, zero if it cannot be determined."""
    if len(datapoints) < 2:
        return timedelta(0)
    span = datapoints[-1].at - datapoints[0].at
    if span < timedelta(0):
        return timedelta(0)
    return span


@dataclass(frozen=True)
class Summary:
    """Session statistics as shown by the CLI and the GUI."""

    samples: int
    duration: timedelta
    mean_download: float
    mean_latency: float
    timeouts: int
    timeout_ratio: float

    def lines(self) -> list[str]:
        def fmt(value: float, unit: str) -> str:
            return "--" if math.isnan(value) else f"{value:.1f} {unit}"

        return [
            f"{self.samples} samples",
            f"Time: {self.duration.total_seconds():.1f}s",
            f"{fmt(self.mean_download, 'Mbit/s')} down",
            f"{fmt(self.mean_latency, 'ms')} mean latency",
            f"{self.timeouts} timeouts",
            f"{self.timeout_ratio * 100:.1f} % timeout",
        ]


def summarize(datapoints: Sequence[Datapoint]) -> Summary:
    return Summary(
        samples=len(datapoints),
        duration=session_duration(datapoints),
        mean_download=mean_download(datapoints),
        mean_latency=mean_latency(datapoints),
        timeouts=timeout_count(datapoints),
        timeout_ratio=timeout_ratio(datapoints),
    )


def datapoint_to_dict(datapoint: Datapoint) -> dict[str, Any]:
    """Encode a datapoint as a JSON-compatible dict.

    Latency values are stored in milliseconds, throughput in Mbit/s.
    """
    if isinstance(datapoint, Latency):
        value = datapoint.latency_ms
    else:
        value = datapoint.value
    return {"kind": datapoint.kind, "value": value, "at": datapoint.at.isoformat()}


def datapoint_from_dict(data: dict[str, Any]) -> Datapoint:
    """Decode a datapoint written by ``datapoint_to_dict``.

    Raises:
        ValueError: unknown kind or malformed fields.
    """
    try:
        cls = DATAPOINT_TYPES[data["kind"]]
        at = datetime.fromisoformat(data["at"])
        value = data.get("value")
        if value is not None:
            value = float(value)
            if cls is Latency:
                value = timedelta(milliseconds=value)
    except (KeyError, TypeError, ValueError, OverflowError) as e:
        raise ValueError(f"malformed datapoint: {data!r}") from e
    return cls(value=value, at=at)


def _legacy_datapoint(data: dict[str, Any]) -> Datapoint:
    """Decode a datapoint from files written by earlier linetest releases.

    Those encode each entry as ``{"Latency": [duration, timestamp]}`` with
    ``{"secs", "nanos"}`` durations and ``{"secs_since_epoch",
    "nanos_since_epoch"}`` timestamps.
    """
    if len(data) != 1:
        raise ValueError(f"malformed datapoint: {data!r}")
    (kind, payload), = data.items()
    try:
        cls = DATAPOINT_TYPES[kind]
        raw_value, raw_at = payload
        seconds = raw_at["secs_since_epoch"] + raw_at["nanos_since_epoch"] / 1e9
        at = datetime.fromtimestamp(seconds, tz=timezone.utc).astimezone()
        if raw_value is None:
            value = None
        elif cls is Latency:
            value = timedelta(seconds=raw_value["secs"], microseconds=raw_value["nanos"] / 1000)
        else:
            value = float(raw_value)
    except (KeyError, TypeError, ValueError, OverflowError, OSError) as e:
        raise ValueError(f"malformed datapoint: {data!r}") from e
    return cls(value=value, at=at)


def decode_datapoints(data: Any) -> list[Datapoint]:
    if not isinstance(data, list):
        raise ValueError("expected a JSON array of datapoints")
    datapoints = []
    for entry in data:
        if not isinstance(entry, dict):
            raise ValueError(f"malformed datapoint: {entry!r}")
        if "kind" in entry:
            datapoints.append(datapoint_from_dict(entry))
        else:
            datapoints.append(_legacy_datapoint(entry))
    return datapoints


def save(datapoints: Iterable[Datapoint], path: str | Path):
    """Write the whole session to ``path`` as JSON, replacing any existing file.

    Raises:
        PersistenceError: the file cannot be written.
    """
    path = Path(path)
    payload = [datapoint_to_dict(dp) for dp in datapoints]
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            json.dump(payload, f)
    except OSError as e:
        raise PersistenceError(f"cannot save session to {path}: {e}") from e
    logger.debug("Saved %d datapoints to %s", len(payload), path)


def load(path: str | Path) -> "MeasurementResult":
    """Read a session saved by ``save``.

    Raises:
        PersistenceError: the file cannot be read or decoded.
    """
    path = Path(path)
    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
        datapoints = decode_datapoints(data)
    except (OSError, ValueError) as e:
        raise PersistenceError(f"cannot load session from {path}: {e}") from e
    logger.info("Loaded %d datapoints from %s", len(datapoints), path)
    return MeasurementResult(datapoints)


def list_logs(directory: str | Path | None = None) -> list[Path]:
    """Saved session files in ``directory`` (default: the data dir), oldest first."""
    directory = Path(directory) if directory is not None else data_dir()
    if not directory.is_dir():
        return []
    logs = [p for p in directory.iterdir() if p.is_file() and p.suffix in LOG_SUFFIXES]
    return sorted(logs, key=lambda p: (p.stat().st_mtime, p.name))


class MeasurementResult(list):
    """An ordered session of datapoints; insertion order is temporal order."""

    def mean_download(self) -> float:
        return mean_download(self)

    def mean_latency(self) -> float:
        return mean_latency(self)

    def timeout_count(self) -> int:
        return timeout_count(self)

    def timeout_ratio(self) -> float:
        return timeout_ratio(self)

    def session_duration(self) -> timedelta:
        return session_duration(self)

    def summary(self) -> Summary:
        return summarize(self)

    def save(self, path: str | Path):
        save(self, path)

    def load(self, path: str | Path):
        """Replace the content with the session stored at ``path``.

        The list is left untouched if loading fails.
        """
        self[:] = load(path)
