"""
Rebuild a single-session activity as a multi-session message stream.

Output layout:
    file_id
    device_info*                    (copied verbatim)
    per segment:
        event timer start
        record*                     (the segment's original records)
        event timer stop_all
        lap
        session
    activity
"""

from __future__ import annotations

import logging
import zoneinfo
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from fitsplit.errors import EmptySegmentError, InsufficientSegmentsError, SegmentCoverageError
from fitsplit.models import (
    ActivityModel,
    MessageKind,
    RawMessage,
    Segment,
    SegmentStats,
    compute_segment_stats,
    to_fit_timestamp,
)
from fitsplit.planner import is_partition

log = logging.getLogger(__name__)

SYNTHETIC_SERIAL_NUMBER = 12345


def _identity_message(model: ActivityModel) -> RawMessage:
    existing = model.messages_of(MessageKind.FILE_ID)
    if existing:
        payload = dict(existing[0].payload)
        payload["type"] = "activity"
    else:
        payload = {
            "type": "activity",
            "manufacturer": "development",
            "product": 0,
            "time_created": to_fit_timestamp(model.samples[0].timestamp),
            "serial_number": SYNTHETIC_SERIAL_NUMBER,
        }
    return RawMessage(MessageKind.FILE_ID, payload)


def _timer_event(ts: datetime, event_type: str) -> RawMessage:
    return RawMessage(MessageKind.EVENT, {
        "timestamp": to_fit_timestamp(ts),
        "event": "timer",
        "event_type": event_type,
    })


def _summary_fields(segment: Segment, stats: SegmentStats) -> Dict[str, Any]:
    """Fields shared by the lap and session that describe one segment."""
    return {
        "timestamp": to_fit_timestamp(stats.end_time),
        "start_time": to_fit_timestamp(stats.start_time),
        "total_elapsed_time": stats.elapsed_time_s,
        "total_timer_time": stats.elapsed_time_s,
        "total_distance": stats.distance_m,
        "sport": segment.discipline.value,
        "sub_sport": "generic",
        "avg_heart_rate": stats.avg_heart_rate,
        "max_heart_rate": stats.max_heart_rate,
        "avg_speed": stats.avg_speed,
        "max_speed": stats.max_speed,
        "enhanced_avg_speed": stats.avg_speed,
        "enhanced_max_speed": stats.max_speed,
        "avg_cadence": stats.avg_cadence,
        "avg_power": stats.avg_power,
    }


def local_offset_seconds(ts: datetime, tz_name: Optional[str] = None) -> int:
    """UTC offset at ``ts`` in the named zone, or in the timestamp's own zone."""
    local = ts.astimezone(zoneinfo.ZoneInfo(tz_name)) if tz_name else ts
    offset = local.utcoffset()
    return int(offset.total_seconds()) if offset is not None else 0


def _check_segments(model: ActivityModel, segments: Sequence[Segment]) -> None:
    if len(segments) < 2:
        raise InsufficientSegmentsError(
            f"Need at least 2 segments to build a multi-session file, got {len(segments)}"
        )
    n = len(model)
    for idx, seg in enumerate(segments):
        if seg.start_index < 0 or seg.end_index >= n or seg.start_index > seg.end_index:
            raise EmptySegmentError(
                f"Segment {idx} ({seg.start_index}..{seg.end_index}) selects no samples of 0..{n - 1}"
            )
    if not is_partition(segments, n):
        spans = ", ".join(f"{s.start_index}..{s.end_index}" for s in segments)
        raise SegmentCoverageError(f"Segments [{spans}] do not cover samples 0..{n - 1} exactly once")


def reconstruct(
    model: ActivityModel,
    segments: Sequence[Segment],
    tz_name: Optional[str] = None,
) -> List[RawMessage]:
    """
    Produce the ordered output message stream with one session and one
    lap per segment.

    Record payloads are passed through untouched; only the framing
    messages (events, laps, sessions, activity) are computed.
    """
    _check_segments(model, segments)

    out: List[RawMessage] = [_identity_message(model)]
    out.extend(model.messages_of(MessageKind.DEVICE_INFO))

    lap_index = 0
    for session_index, seg in enumerate(segments):
        samples = model.samples[seg.start_index:seg.end_index + 1]
        stats = compute_segment_stats(samples)

        out.append(_timer_event(stats.start_time, "start"))
        out.extend(model.record_messages[seg.start_index:seg.end_index + 1])
        out.append(_timer_event(stats.end_time, "stop_all"))

        fields = _summary_fields(seg, stats)
        first_lap_index = lap_index
        out.append(RawMessage(MessageKind.LAP, {"message_index": lap_index, **fields}))
        lap_index += 1
        out.append(RawMessage(MessageKind.SESSION, {
            "message_index": session_index,
            "first_lap_index": first_lap_index,
            "num_laps": lap_index - first_lap_index,
            **fields,
        }))
        log.debug(
            "Session %d: samples %d..%d %s, %.0f s, %.0f m",
            session_index, seg.start_index, seg.end_index,
            seg.discipline.value, stats.elapsed_time_s, stats.distance_m,
        )

    first_ts = model.samples[0].timestamp
    last_ts = model.samples[-1].timestamp
    activity_ts = to_fit_timestamp(last_ts)
    out.append(RawMessage(MessageKind.ACTIVITY, {
        "timestamp": activity_ts,
        "num_sessions": len(segments),
        "total_timer_time": (last_ts - first_ts).total_seconds(),
        "local_timestamp": activity_ts + local_offset_seconds(last_ts, tz_name),
        "type": "manual",
        "event": "activity",
        "event_type": "stop",
    }))

    log.info("Reconstructed %d sessions, %d messages", len(segments), len(out))
    return out
