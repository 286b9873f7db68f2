"""Shared fixtures: synthetic activities built directly as ActivityModels."""

from datetime import datetime, timedelta, timezone

import pytest

from fitsplit.models import (
    ActivityModel,
    Discipline,
    MessageKind,
    RawMessage,
    Sample,
    Summary,
    to_fit_timestamp,
)

START = datetime(2025, 6, 1, 8, 0, 0, tzinfo=timezone.utc)


def build_model(
    speeds,
    *,
    heart_rate=140,
    step_s=1,
    sport="running",
    with_file_id=True,
    devices=2,
    start=START,
):
    """
    One sample per speed value (m/s, or None for a missing reading).

    Record payloads carry ``record_no`` so tests can tell records apart.
    An event message sits between the device infos and the first record,
    the way real files interleave non-record messages.
    """
    messages = []
    if with_file_id:
        messages.append(RawMessage(MessageKind.FILE_ID, {
            "type": 4,
            "manufacturer": 1,
            "product": 3121,
            "serial_number": 3999999999,
            "time_created": to_fit_timestamp(start),
        }))
    for d in range(devices):
        messages.append(RawMessage(MessageKind.DEVICE_INFO, {
            "timestamp": to_fit_timestamp(start),
            "device_index": d,
            "manufacturer": 1,
        }))
    messages.append(RawMessage(MessageKind.EVENT, {
        "timestamp": to_fit_timestamp(start), "event": 0, "event_type": 0,
    }))

    samples = []
    distance = 0.0
    for i, speed in enumerate(speeds):
        ts = start + timedelta(seconds=i * step_s)
        if speed is not None and i > 0:
            distance += speed * step_s
        samples.append(Sample(
            timestamp=ts,
            speed=speed,
            heart_rate=heart_rate,
            distance=distance,
            cadence=85,
            power=220,
        ))
        messages.append(RawMessage(MessageKind.RECORD, {
            "timestamp": to_fit_timestamp(ts),
            "speed": speed,
            "heart_rate": heart_rate,
            "distance": distance,
            "record_no": i,
        }))
        if i == len(speeds) // 2:
            # a non-record message in the middle of the records
            messages.append(RawMessage(78, {"time": [0.8, 0.81]}))

    messages.append(RawMessage(MessageKind.SESSION, {"sport": 1, "total_elapsed_time": float(len(speeds))}))
    summary = Summary(
        discipline=Discipline.parse(sport, default=Discipline.GENERIC),
        total_duration_s=(samples[-1].timestamp - samples[0].timestamp).total_seconds(),
        total_distance_m=distance,
        avg_heart_rate=heart_rate,
        start_time=samples[0].timestamp,
        end_time=samples[-1].timestamp,
    )
    return ActivityModel(samples=tuple(samples), messages=tuple(messages), summary=summary)


@pytest.fixture
def make_model():
    return build_model


@pytest.fixture
def constant_model():
    """1000 samples at 1 Hz and a steady 10 m/s."""
    return build_model([10.0] * 1000)


@pytest.fixture
def triathlon_model():
    """Slow, fast, medium thirds: swim-like, bike-like, run-like."""
    return build_model([1.0] * 333 + [10.0] * 333 + [3.0] * 334, sport="generic")
