from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Optional, Sequence

import yaml

from fitsplit.models import ActivityModel, Segment, SegmentStats, Summary, compute_segment_stats
from fitsplit.planner import segment_samples

log = logging.getLogger(__name__)


def format_duration(seconds: float) -> str:
    """H:MM:SS, or M:SS under an hour."""
    seconds = int(seconds)
    h, rem = divmod(seconds, 3600)
    m, s = divmod(rem, 60)
    if h > 0:
        return f"{h}:{m:02d}:{s:02d}"
    return f"{m}:{s:02d}"


def format_distance(meters: Optional[float]) -> str:
    if meters is None:
        return "-"
    return f"{meters / 1000:.2f} km"


def format_speed(mps: Optional[float]) -> Optional[str]:
    """m/s as a km/h string."""
    if mps is None:
        return None
    return f"{mps * 3.6:.1f}"


def summary_dict(summary: Summary) -> dict[str, Any]:
    return {
        "discipline": summary.discipline.value,
        "start_utc": summary.start_time.isoformat() if summary.start_time else None,
        "end_utc": summary.end_time.isoformat() if summary.end_time else None,
        "duration": format_duration(summary.total_duration_s),
        "distance": format_distance(summary.total_distance_m),
        "avg_hr": summary.avg_heart_rate,
    }


def segment_row(position: int, segment: Segment, stats: SegmentStats) -> dict[str, Any]:
    return {
        "segment": position + 1,
        "samples": [segment.start_index, segment.end_index],
        "discipline": segment.discipline.value,
        "start_utc": stats.start_time.isoformat(),
        "end_utc": stats.end_time.isoformat(),
        "duration": format_duration(stats.elapsed_time_s),
        "distance": format_distance(stats.distance_m),
        "avg_hr": stats.avg_heart_rate,
        "max_hr": stats.max_heart_rate,
        "avg_speed_kmh": format_speed(stats.avg_speed),
        "max_speed_kmh": format_speed(stats.max_speed),
        "avg_cadence": stats.avg_cadence,
        "avg_power": stats.avg_power,
    }


def build_report(
    model: ActivityModel,
    segments: Sequence[Segment],
    suggested_cuts: Optional[Sequence[int]] = None,
) -> dict[str, Any]:
    """YAML-ready description of an activity and its segment table."""
    rows = [
        segment_row(i, seg, compute_segment_stats(segment_samples(model, seg)))
        for i, seg in enumerate(segments)
    ]
    report: dict[str, Any] = {
        "summary": summary_dict(model.summary),
        "samples": len(model),
        "segments": rows,
    }
    if suggested_cuts is not None:
        report["suggested_cuts"] = list(suggested_cuts)
    return report


def dump_report(report: dict[str, Any]) -> str:
    return yaml.safe_dump(report, sort_keys=False, allow_unicode=True)


def write_report(report: dict[str, Any], path: Path) -> Path:
    with open(path, "w", encoding="utf-8") as f:
        yaml.safe_dump(report, f, sort_keys=False, allow_unicode=True)
    log.info("Wrote %s", path)
    return path
