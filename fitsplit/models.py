"""
Data structures shared by the decoder, planner, detector and reconstructor.

An ActivityModel holds two index-aligned views of the same decoded file:
display-friendly samples (one per record message) and the raw message
stream the reconstructor passes through to the encoder. The alignment is
checked once, when the model is built.
"""

from __future__ import annotations

import statistics
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum, IntEnum
from typing import Any, Sequence

from fitsplit.errors import DecodeError

# FIT date-times count seconds from 1989-12-31T00:00:00Z
FIT_EPOCH = datetime(1989, 12, 31, tzinfo=timezone.utc)


def to_fit_timestamp(ts: datetime) -> int:
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return round((ts - FIT_EPOCH).total_seconds())


class MessageKind(IntEnum):
    """FIT global message numbers the splitter reads or writes."""

    FILE_ID = 0
    SESSION = 18
    LAP = 19
    RECORD = 20
    EVENT = 21
    DEVICE_INFO = 23
    ACTIVITY = 34

    @classmethod
    def of(cls, type_id: int) -> MessageKind | None:
        try:
            return cls(type_id)
        except ValueError:
            return None


class Discipline(str, Enum):
    RUNNING = "running"
    CYCLING = "cycling"
    TRANSITION = "transition"
    SWIMMING = "swimming"
    WALKING = "walking"
    HIKING = "hiking"
    GENERIC = "generic"

    @classmethod
    def parse(cls, value: Any, default: Discipline | None = None) -> Discipline:
        """Map a sport name (any case) onto a discipline, falling back to ``default``."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            if default is None:
                raise
            return default


@dataclass(frozen=True)
class Sample:
    timestamp: datetime
    speed: float | None = None  # m/s
    heart_rate: int | None = None
    distance: float | None = None  # meters
    cadence: int | None = None
    power: int | None = None
    altitude: float | None = None
    position: tuple[float, float] | None = None  # (lat, lon) degrees


@dataclass(frozen=True)
class RawMessage:
    type_id: int
    payload: dict[str, Any] = field(default_factory=dict)

    @property
    def kind(self) -> MessageKind | None:
        return MessageKind.of(self.type_id)


@dataclass(frozen=True)
class Summary:
    discipline: Discipline
    total_duration_s: float
    total_distance_m: float
    avg_heart_rate: int | None
    start_time: datetime | None
    end_time: datetime | None


@dataclass(frozen=True)
class ActivityModel:
    samples: tuple[Sample, ...]
    messages: tuple[RawMessage, ...]
    summary: Summary
    record_messages: tuple[RawMessage, ...] = field(init=False, repr=False)

    def __post_init__(self):
        if not self.samples:
            raise DecodeError("Activity has no record samples")
        records = tuple(m for m in self.messages if m.type_id == MessageKind.RECORD)
        if len(records) != len(self.samples):
            raise DecodeError(
                f"Record messages ({len(records)}) do not match samples ({len(self.samples)})"
            )
        object.__setattr__(self, "record_messages", records)

    def __len__(self) -> int:
        return len(self.samples)

    def messages_of(self, kind: MessageKind) -> list[RawMessage]:
        return [m for m in self.messages if m.type_id == kind]


@dataclass(frozen=True)
class Segment:
    start_index: int
    end_index: int
    discipline: Discipline = Discipline.GENERIC

    def __len__(self) -> int:
        return self.end_index - self.start_index + 1


@dataclass
class SegmentStats:
    start_time: datetime
    end_time: datetime
    elapsed_time_s: float
    distance_m: float
    avg_heart_rate: int | None
    max_heart_rate: int | None
    avg_speed: float | None
    max_speed: float | None
    avg_cadence: int | None
    avg_power: int | None


def _defined(samples: Sequence[Sample], name: str) -> list:
    return [getattr(s, name) for s in samples if getattr(s, name) is not None]


def _mean_or_none(values: list) -> float | None:
    if not values:
        return None
    return float(statistics.fmean(values))


def _rounded_mean(values: list) -> int | None:
    mean = _mean_or_none(values)
    return None if mean is None else round(mean)


def compute_segment_stats(samples: Sequence[Sample]) -> SegmentStats:
    """
    Aggregate metrics over one segment's sample slice.

    Distance is the delta between the endpoint samples, clamped to zero,
    and zero when either endpoint has no distance.
    """
    if not samples:
        raise ValueError("Cannot compute stats for an empty sample slice")

    first, last = samples[0], samples[-1]
    distance = 0.0
    if first.distance is not None and last.distance is not None:
        distance = max(0.0, float(last.distance) - float(first.distance))

    hr = _defined(samples, "heart_rate")
    speed = _defined(samples, "speed")

    return SegmentStats(
        start_time=first.timestamp,
        end_time=last.timestamp,
        elapsed_time_s=(last.timestamp - first.timestamp).total_seconds(),
        distance_m=distance,
        avg_heart_rate=_rounded_mean(hr),
        max_heart_rate=max(hr) if hr else None,
        avg_speed=_mean_or_none(speed),
        max_speed=float(max(speed)) if speed else None,
        avg_cadence=_rounded_mean(_defined(samples, "cadence")),
        avg_power=_rounded_mean(_defined(samples, "power")),
    )
