"""
Tests for the FIT codec adapter.

Decoding is exercised with stand-ins for fitparse data messages; encoding
goes through the real fit_tool builder.
"""

from datetime import datetime, timedelta

import pytest
from fit_tool.profile.messages.event_message import EventMessage
from fit_tool.profile.profile_type import Event, EventType, FileType, Sport

from fitsplit import codec
from fitsplit.codec import (
    FIT_EPOCH_UNIX_S,
    SEMICIRCLE_TO_DEG,
    convert_field,
    decode,
    encode,
    model_from_messages,
    to_fit_tool_message,
)
from fitsplit.errors import DecodeError, EncodeError
from fitsplit.models import Discipline, MessageKind, RawMessage, to_fit_timestamp
from fitsplit.planner import rebuild_from_cuts
from fitsplit.reconstructor import reconstruct


# ============================================================
# fitparse stand-ins
# ============================================================

class FakeField:
    def __init__(self, name, value, raw_value=None):
        self.name = name
        self.value = value
        self.raw_value = value if raw_value is None else raw_value


class FakeMessage:
    def __init__(self, mesg_num, fields):
        self.mesg_num = mesg_num
        self.fields = fields


T0 = datetime(2025, 6, 1, 8, 0, 0)  # fitparse yields naive UTC datetimes


def _ts_field(ts):
    return FakeField("timestamp", ts, raw_value=to_fit_timestamp(ts))


def _record(i, **values):
    ts = T0 + timedelta(seconds=i)
    fields = [_ts_field(ts)] + [FakeField(k, v) for k, v in values.items()]
    return FakeMessage(20, fields)


def _session(sport="running", **values):
    fields = [FakeField("sport", sport, raw_value=1)] + [FakeField(k, v) for k, v in values.items()]
    return FakeMessage(18, fields)


class TestModelFromMessages:
    def test_views_stay_aligned(self):
        messages = [
            FakeMessage(0, [FakeField("type", "activity", raw_value=4), FakeField("manufacturer", "garmin", raw_value=1)]),
            _record(0, speed=3.0, heart_rate=120, distance=0.0),
            FakeMessage(21, [_ts_field(T0), FakeField("event", "timer", raw_value=0)]),
            _record(1, speed=3.1, heart_rate=121, distance=3.1),
            _session(total_elapsed_time=1.0, total_distance=3.1, avg_heart_rate=120),
        ]
        model = model_from_messages(messages)

        assert len(model.samples) == 2
        assert len(model.record_messages) == 2
        assert [m.type_id for m in model.messages] == [0, 20, 21, 20, 18]
        assert model.record_messages[1].payload["heart_rate"] == 121
        assert model.samples[1].heart_rate == 121

    def test_raw_payload_keeps_file_integers(self):
        model = model_from_messages([
            FakeMessage(0, [FakeField("type", "activity", raw_value=4)]),
            _record(0, speed=2.5),
        ])
        assert model.messages[0].payload == {"type": 4}
        record = model.record_messages[0].payload
        assert record["timestamp"] == to_fit_timestamp(T0)
        assert record["speed"] == 2.5

    def test_enhanced_fields_preferred(self):
        model = model_from_messages([
            _record(0, speed=2.0, enhanced_speed=2.004, altitude=100.0, enhanced_altitude=100.4),
            _record(1, speed=2.1),
        ])
        assert model.samples[0].speed == pytest.approx(2.004)
        assert model.samples[0].altitude == pytest.approx(100.4)
        assert model.samples[1].speed == pytest.approx(2.1)

    def test_timestamps_become_utc_and_positions_degrees(self):
        lat = int(40.4168 / SEMICIRCLE_TO_DEG)
        lon = int(-3.7038 / SEMICIRCLE_TO_DEG)
        model = model_from_messages([_record(0, position_lat=lat, position_long=lon)])
        sample = model.samples[0]
        assert sample.timestamp.tzinfo is not None
        assert sample.timestamp.utcoffset() == timedelta(0)
        assert sample.position == pytest.approx((40.4168, -3.7038), abs=1e-6)

    def test_records_without_timestamp_dropped_from_both_views(self):
        model = model_from_messages([
            _record(0, speed=1.0),
            FakeMessage(20, [FakeField("speed", 9.9)]),
            _record(2, speed=1.2),
        ])
        assert len(model.samples) == 2
        assert len(model.record_messages) == 2
        assert [m.payload["speed"] for m in model.record_messages] == [1.0, 1.2]

    def test_summary_from_sessions(self):
        model = model_from_messages([
            _record(0, distance=0.0),
            _record(1, distance=5.0),
            _session("cycling", total_elapsed_time=100.0, total_distance=500.0, avg_heart_rate=130.0),
            _session("running", total_elapsed_time=50.0, total_distance=200.0),
        ])
        summary = model.summary
        assert summary.discipline is Discipline.CYCLING
        assert summary.total_duration_s == 150.0
        assert summary.total_distance_m == 700.0
        assert summary.avg_heart_rate == 130

    def test_summary_without_sessions(self):
        model = model_from_messages([
            _record(0, distance=0.0),
            _record(30, distance=120.0),
        ])
        assert model.summary.discipline is Discipline.GENERIC
        assert model.summary.total_duration_s == 30.0
        assert model.summary.total_distance_m == 120.0

    def test_unknown_sport_falls_back_to_generic(self):
        model = model_from_messages([_record(0), _session("e_biking")])
        assert model.summary.discipline is Discipline.GENERIC

    def test_no_records(self):
        with pytest.raises(DecodeError):
            model_from_messages([FakeMessage(0, [FakeField("type", "activity", raw_value=4)])])


class TestDecode:
    def test_garbage_bytes(self):
        with pytest.raises(DecodeError):
            decode(b"this is definitely not a FIT file")

    def test_crc_failure_is_only_a_warning(self, monkeypatch, caplog):
        calls = []

        def fake_read(data, check_crc):
            calls.append(check_crc)
            if check_crc:
                raise codec.FitCRCError("CRC mismatch")
            return [_record(0, speed=1.0), _record(1, speed=1.0)]

        monkeypatch.setattr(codec, "_read_messages", fake_read)
        with caplog.at_level("WARNING", logger="fitsplit.codec"):
            model = decode(b"whatever")
        assert calls == [True, False]
        assert len(model) == 2
        assert "integrity" in caplog.text


class TestConvertField:
    def test_datetime_to_fit_tool_milliseconds(self):
        assert convert_field(MessageKind.RECORD, "timestamp", 1000) == (1000 + FIT_EPOCH_UNIX_S) * 1000
        assert FIT_EPOCH_UNIX_S == 631065600

    def test_semicircles_to_degrees(self):
        assert convert_field(MessageKind.RECORD, "position_lat", 2 ** 30) == pytest.approx(90.0)

    def test_profile_names_to_enums(self):
        assert convert_field(MessageKind.SESSION, "sport", "running") is Sport.RUNNING
        assert convert_field(MessageKind.EVENT, "event_type", "stop_all") is EventType.STOP_ALL
        assert convert_field(MessageKind.FILE_ID, "type", "activity") is FileType.ACTIVITY

    def test_discipline_values(self):
        assert convert_field(MessageKind.LAP, "sport", Discipline.TRANSITION) is Sport.TRANSITION

    def test_other_values_untouched(self):
        assert convert_field(MessageKind.RECORD, "heart_rate", 150) == 150
        assert convert_field(MessageKind.DEVICE_INFO, "product_name", "HRM-Pro") == "HRM-Pro"


class TestToFitToolMessage:
    def test_event(self):
        msg = to_fit_tool_message(RawMessage(MessageKind.EVENT, {
            "timestamp": 1000, "event": "timer", "event_type": "start", "record_no": 3,
        }))
        assert isinstance(msg, EventMessage)
        assert Event(msg.event) is Event.TIMER
        assert EventType(msg.event_type) is EventType.START

    def test_unsupported_type_skipped(self):
        assert to_fit_tool_message(RawMessage(78, {"time": [0.8]})) is None

    def test_activity_local_timestamp_stays_in_fit_seconds(self):
        assert convert_field(MessageKind.ACTIVITY, "local_timestamp", 1117706699) == 1117706699
        msg = to_fit_tool_message(RawMessage(MessageKind.ACTIVITY, {
            "timestamp": 1117699499, "local_timestamp": 1117706699,
        }))
        assert msg.local_timestamp == 1117706699

    def test_bad_value_in_built_message_raises(self):
        with pytest.raises(EncodeError, match="sport"):
            to_fit_tool_message(RawMessage(MessageKind.SESSION, {"sport": "curling"}))


class TestEncode:
    def test_reconstructed_stream_encodes(self, make_model):
        model = make_model([3.0] * 60 + [9.0] * 60)
        messages = reconstruct(model, rebuild_from_cuts(model, [], [60]))
        fit_bytes = encode(messages)
        assert fit_bytes[8:12] == b".FIT"

        decoded = decode(fit_bytes)
        assert len(decoded) == 120
        assert [m.kind for m in decoded.messages].count(MessageKind.SESSION) == 2

    def test_activity_local_timestamp_survives(self, make_model):
        model = make_model([3.0] * 60 + [9.0] * 60)
        messages = reconstruct(model, rebuild_from_cuts(model, [], [60]), tz_name="Europe/Madrid")
        decoded = decode(encode(messages))

        (activity,) = decoded.messages_of(MessageKind.ACTIVITY)
        last_ts = to_fit_timestamp(model.samples[-1].timestamp)
        assert activity.payload["timestamp"] == last_ts
        assert activity.payload["local_timestamp"] == last_ts + 7200
        assert activity.payload["num_sessions"] == 2

    def test_encoder_failure_wrapped(self, monkeypatch):
        class BrokenBuilder:
            def __init__(self, *args, **kwargs):
                pass

            def add(self, message):
                raise RuntimeError("boom")

        monkeypatch.setattr(codec, "FitFileBuilder", BrokenBuilder)
        with pytest.raises(EncodeError, match="boom"):
            encode([RawMessage(MessageKind.EVENT, {"event": "timer"})])
