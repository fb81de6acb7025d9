"""Tests for session statistics and persistence."""

import json
import math
from datetime import datetime, timedelta, timezone

import pytest

from linetest.evaluation import (
    MeasurementResult,
    PersistenceError,
    datapoint_from_dict,
    datapoint_to_dict,
    list_logs,
    load,
    mean_download,
    mean_latency,
    save,
    session_duration,
    summarize,
    timeout_count,
    timeout_ratio,
)
from linetest.models import Latency, ThroughputDown, ThroughputUp

T0 = datetime(2026, 10, 17, 19, 25, 0, 123456, tzinfo=timezone.utc)


def at(seconds):
    return T0 + timedelta(seconds=seconds)


def ms(value):
    return timedelta(milliseconds=value)


@pytest.fixture
def session():
    return MeasurementResult(
        [
            Latency(ms(10), at(0)),
            Latency(None, at(7)),
            Latency(ms(30), at(14)),
            ThroughputDown(80.0, at(20)),
            Latency(ms(20), at(27)),
            ThroughputDown(None, at(33)),
            ThroughputDown(40.0, at(40)),
        ]
    )


class TestStatistics:
    """Test the evaluation functions."""

    def test_mean_latency_excludes_timeouts(self, session):
        assert mean_latency(session) == pytest.approx(20.0)
        assert session.mean_latency() == pytest.approx(20.0)

    def test_mean_latency_only_timeouts_is_nan(self):
        seq = [Latency(None, at(0)), Latency(None, at(1))]
        assert math.isnan(mean_latency(seq))

    def test_mean_latency_empty_is_nan(self):
        assert math.isnan(mean_latency([]))

    def test_mean_download_ignores_failed_samples(self, session):
        assert mean_download(session) == pytest.approx(60.0)

    def test_mean_download_without_samples_is_nan(self):
        assert math.isnan(mean_download([Latency(ms(5), at(0))]))
        assert math.isnan(mean_download([ThroughputDown(None, at(0))]))

    def test_mean_download_ignores_upload(self):
        seq = [ThroughputUp(100.0, at(0)), ThroughputDown(10.0, at(1))]
        assert mean_download(seq) == pytest.approx(10.0)

    def test_timeout_count(self, session):
        # ThroughputDown(None) is not a latency timeout
        assert timeout_count(session) == 1

    def test_timeout_ratio_divides_by_all_entries(self, session):
        """Current semantics: throughput samples count in the denominator."""
        assert timeout_ratio(session) == pytest.approx(1 / 7)

    def test_timeout_ratio_bounds(self):
        sequences = [
            [],
            [Latency(None, at(0))],
            [Latency(ms(1), at(0))],
            [Latency(None, at(0)), ThroughputDown(None, at(1))],
        ]
        for seq in sequences:
            assert timeout_count(seq) <= len(seq)
            assert 0.0 <= timeout_ratio(seq) <= 1.0

    def test_total_loss(self):
        seq = [Latency(None, at(i)) for i in range(4)]
        assert timeout_ratio(seq) == 1.0

    def test_session_duration(self, session):
        assert session_duration(session) == timedelta(seconds=40)

    def test_session_duration_short(self):
        assert session_duration([]) == timedelta(0)
        assert session_duration([Latency(ms(1), at(5))]) == timedelta(0)

    def test_session_duration_inconsistent_is_zero(self):
        seq = [Latency(ms(1), at(10)), Latency(ms(1), at(0))]
        assert session_duration(seq) == timedelta(0)

    def test_summary(self, session):
        summary = summarize(session)

        assert summary.samples == 7
        assert summary.timeouts == 1
        assert summary.duration == timedelta(seconds=40)
        assert summary.lines() == [
            "7 samples",
            "Time: 40.0s",
            "60.0 Mbit/s down",
            "20.0 ms mean latency",
            "1 timeouts",
            "14.3 % timeout",
        ]

    def test_summary_of_empty_session(self):
        lines = MeasurementResult().summary().lines()

        assert lines[0] == "0 samples"
        assert lines[2] == "-- down"
        assert lines[3] == "-- mean latency"


class TestEncoding:
    """Test the JSON representation of single datapoints."""

    def test_latency_in_milliseconds(self):
        data = datapoint_to_dict(Latency(ms(12.5), T0))

        assert data == {"kind": "Latency", "value": 12.5, "at": T0.isoformat()}

    def test_timeout_is_null(self):
        data = datapoint_to_dict(ThroughputDown(None, T0))
        assert data["value"] is None

    def test_unknown_kind(self):
        with pytest.raises(ValueError, match="malformed"):
            datapoint_from_dict({"kind": "Jitter", "value": 1, "at": T0.isoformat()})

    def test_missing_timestamp(self):
        with pytest.raises(ValueError, match="malformed"):
            datapoint_from_dict({"kind": "Latency", "value": 1})


class TestPersistence:
    """Test saving and loading sessions."""

    def test_round_trip(self, session, tmp_path):
        path = tmp_path / "session.ltst"
        session.save(path)

        loaded = load(path)

        assert loaded == session
        assert isinstance(loaded, MeasurementResult)

    def test_round_trip_local_time(self, tmp_path):
        seq = MeasurementResult(
            [Latency.record(ms(8.123)), ThroughputUp.record(3.25), ThroughputDown.record(None)]
        )
        path = tmp_path / "local.ltst"
        save(seq, path)

        assert load(path) == seq

    def test_save_creates_parent_dirs(self, session, tmp_path):
        path = tmp_path / "a" / "b" / "session.ltst"
        save(session, path)
        assert path.is_file()

    def test_save_overwrites(self, session, tmp_path):
        path = tmp_path / "session.ltst"
        save(session, path)
        save(session[:2], path)

        assert len(load(path)) == 2

    def test_file_is_json_array(self, session, tmp_path):
        path = tmp_path / "session.ltst"
        save(session, path)

        data = json.loads(path.read_text(encoding="utf-8"))
        assert isinstance(data, list)
        assert [entry["kind"] for entry in data][:4] == [
            "Latency",
            "Latency",
            "Latency",
            "ThroughputDown",
        ]

    def test_load_replaces_content(self, session, tmp_path):
        path = tmp_path / "session.ltst"
        save(session[:3], path)

        result = MeasurementResult([ThroughputDown(1.0, at(100))])
        result.load(path)

        assert result == session[:3]

    def test_failed_load_leaves_content_unchanged(self, session, tmp_path):
        path = tmp_path / "broken.ltst"
        path.write_text("{not json", encoding="utf-8")
        before = list(session)

        with pytest.raises(PersistenceError):
            session.load(path)

        assert list(session) == before

    def test_load_missing_file(self, tmp_path):
        with pytest.raises(PersistenceError, match="cannot load"):
            load(tmp_path / "missing.ltst")

    def test_load_wrong_shape(self, tmp_path):
        path = tmp_path / "object.ltst"
        path.write_text('{"kind": "Latency"}', encoding="utf-8")

        with pytest.raises(PersistenceError):
            load(path)

    @pytest.mark.parametrize(
        "entry",
        [
            {"kind": "ThroughputDown", "value": [1], "at": "2026-10-17T19:25:00+00:00"},
            {"kind": "Latency", "value": 1e20, "at": "2026-10-17T19:25:00+00:00"},
            {"kind": "Latency", "value": "fast", "at": "2026-10-17T19:25:00+00:00"},
            {"kind": "Latency", "value": 1.0, "at": 12},
            {"Latency": [12.5, {"secs_since_epoch": 1_700_000_000, "nanos_since_epoch": 0}]},
            {"ThroughputDown": [{"secs": 1}, {"secs_since_epoch": 1_700_000_000, "nanos_since_epoch": 0}]},
            {"Latency": [None, {"secs_since_epoch": 1e30, "nanos_since_epoch": 0}]},
            {"Latency": [None]},
        ],
    )
    def test_load_malformed_entry(self, session, tmp_path, entry):
        path = tmp_path / "malformed.ltst"
        path.write_text(json.dumps([entry]), encoding="utf-8")
        before = list(session)

        with pytest.raises(PersistenceError, match="cannot load"):
            session.load(path)

        assert list(session) == before

    def test_save_failure(self, session, tmp_path):
        blocker = tmp_path / "file"
        blocker.write_text("x", encoding="utf-8")

        with pytest.raises(PersistenceError, match="cannot save"):
            save(session, blocker / "session.ltst")

    def test_load_legacy_format(self, tmp_path):
        path = tmp_path / "old.ltst"
        path.write_text(
            json.dumps(
                [
                    {
                        "Latency": [
                            {"secs": 0, "nanos": 12_500_000},
                            {"secs_since_epoch": 1_700_000_000, "nanos_since_epoch": 0},
                        ]
                    },
                    {
                        "Latency": [
                            None,
                            {"secs_since_epoch": 1_700_000_007, "nanos_since_epoch": 500_000_000},
                        ]
                    },
                    {
                        "ThroughputDown": [
                            42.5,
                            {"secs_since_epoch": 1_700_000_010, "nanos_since_epoch": 0},
                        ]
                    },
                ]
            ),
            encoding="utf-8",
        )

        loaded = load(path)

        assert [dp.kind for dp in loaded] == ["Latency", "Latency", "ThroughputDown"]
        assert loaded[0].value == ms(12.5)
        assert loaded[1].value is None
        assert loaded[2].value == 42.5
        assert loaded[0].at == datetime.fromtimestamp(1_700_000_000, tz=timezone.utc)
        assert loaded.session_duration() == timedelta(seconds=10)


class TestListLogs:
    """Test discovery of saved sessions."""

    def test_lists_only_session_files(self, tmp_path):
        (tmp_path / "a.ltst").write_text("[]", encoding="utf-8")
        (tmp_path / "b.ltest").write_text("[]", encoding="utf-8")
        (tmp_path / "notes.txt").write_text("", encoding="utf-8")
        (tmp_path / "dir.ltst").mkdir()

        names = {path.name for path in list_logs(tmp_path)}

        assert names == {"a.ltst", "b.ltest"}

    def test_missing_directory(self, tmp_path):
        assert list_logs(tmp_path / "nope") == []
