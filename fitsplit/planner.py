"""
Segment planning: keep the sample sequence partitioned into contiguous,
ordered segments while cuts are added, removed or replaced in bulk.

Every function here is pure. Segment lists are never mutated in place;
a rejected edit raises before anything new is built, so the caller's
previous list is still valid.
"""

from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass
from typing import Iterable, Sequence

from fitsplit.detector import detect_transitions, even_split
from fitsplit.errors import CannotRemoveLastSegmentError, InvalidCutError
from fitsplit.models import (
    ActivityModel,
    Discipline,
    Sample,
    Segment,
    SegmentStats,
    compute_segment_stats,
)

log = logging.getLogger(__name__)

# Cuts closer than this to either end of the activity are rejected
BOUNDARY_GUARD = 5

CYCLING_ABOVE_KMH = 20.0
TRANSITION_BELOW_KMH = 3.0

PRESETS: dict[str, tuple[Discipline, ...]] = {
    "triathlon": (Discipline.SWIMMING, Discipline.CYCLING, Discipline.RUNNING),
    "duathlon": (Discipline.RUNNING, Discipline.CYCLING, Discipline.RUNNING),
}


# ---------- Discipline guessing ----------

def mean_speed_kmh(samples: Iterable[Sample]) -> float:
    """Mean of the defined speeds in km/h, or 0 when no sample has one."""
    speeds = [s.speed * 3.6 for s in samples if s.speed is not None]
    return sum(speeds) / len(speeds) if speeds else 0.0


def guess_discipline(
    mean_kmh: float,
    cycling_above: float = CYCLING_ABOVE_KMH,
    transition_below: float = TRANSITION_BELOW_KMH,
) -> Discipline:
    # Swimming is never inferred; the heuristic only separates fast, slow and stopped
    if mean_kmh > cycling_above:
        return Discipline.CYCLING
    if mean_kmh < transition_below:
        return Discipline.TRANSITION
    return Discipline.RUNNING


# ---------- Partition helpers ----------

def cut_indices(segments: Sequence[Segment]) -> list[int]:
    return [seg.start_index for seg in segments[1:]]


def _normalize_cuts(cuts: Iterable[int]) -> list[int]:
    return sorted({int(c) for c in cuts})


def _check_guard(n: int, cuts: Sequence[int]) -> None:
    for c in cuts:
        if c < BOUNDARY_GUARD or c > n - BOUNDARY_GUARD:
            raise InvalidCutError(
                f"Cut at sample {c} is within {BOUNDARY_GUARD} samples of the "
                f"start or end of the activity (0..{n - 1})"
            )


def _check_inside(n: int, cuts: Sequence[int]) -> None:
    previous = 0
    for c in cuts:
        if c <= previous or c >= n - 1:
            raise InvalidCutError(f"Cut at sample {c} does not fall strictly inside 0..{n - 1}")
        previous = c


def _bounds(n: int, cuts: Sequence[int]) -> list[tuple[int, int]]:
    edges = [0, *cuts, n]
    return [(edges[i], edges[i + 1] - 1) for i in range(len(edges) - 1)]


def is_partition(segments: Sequence[Segment], n: int) -> bool:
    """True when ``segments`` cover 0..n-1 exactly once, in order."""
    if not segments or segments[0].start_index != 0 or segments[-1].end_index != n - 1:
        return False
    for prev, nxt in zip(segments, segments[1:]):
        if prev.end_index + 1 != nxt.start_index:
            return False
    return all(seg.start_index <= seg.end_index for seg in segments)


# ---------- Planner operations ----------

def reset(model: ActivityModel) -> list[Segment]:
    discipline = model.summary.discipline or Discipline.GENERIC
    return [Segment(0, len(model) - 1, discipline)]


def rebuild_from_cuts(
    model: ActivityModel,
    existing_segments: Sequence[Segment],
    cuts: Iterable[int],
    cycling_above: float = CYCLING_ABOVE_KMH,
    transition_below: float = TRANSITION_BELOW_KMH,
) -> list[Segment]:
    """
    Build a new segment list with boundaries at ``[0, *cuts, N-1]``.

    Segment ``i`` keeps the discipline of ``existing_segments[i]`` when
    there was one; new trailing segments get a speed-based guess.
    """
    n = len(model)
    cuts = _normalize_cuts(cuts)
    _check_guard(n, cuts)
    _check_inside(n, cuts)

    segments = []
    for i, (start, end) in enumerate(_bounds(n, cuts)):
        if i < len(existing_segments):
            discipline = existing_segments[i].discipline
        else:
            discipline = guess_discipline(
                mean_speed_kmh(model.samples[start:end + 1]),
                cycling_above=cycling_above,
                transition_below=transition_below,
            )
        segments.append(Segment(start, end, discipline))
    return segments


def insert_cut(
    model: ActivityModel,
    segments: Sequence[Segment],
    index: int,
    **thresholds: float,
) -> list[Segment]:
    return rebuild_from_cuts(model, segments, [*cut_indices(segments), index], **thresholds)


def remove_cut(segments: Sequence[Segment], index: int) -> list[Segment]:
    """
    Merge segment ``index`` into the next segment, or into the previous
    one when it is the last.
    """
    if len(segments) <= 1:
        raise CannotRemoveLastSegmentError("Only one segment left, nothing to merge")
    if not 0 <= index < len(segments):
        raise IndexError(f"Segment {index} out of range (0..{len(segments) - 1})")

    removed = segments[index]
    merged = list(segments)
    if index < len(segments) - 1:
        nxt = segments[index + 1]
        merged[index + 1] = dataclasses.replace(nxt, start_index=removed.start_index)
    else:
        prev = segments[index - 1]
        merged[index - 1] = dataclasses.replace(prev, end_index=removed.end_index)
    del merged[index]
    return merged


def apply_discipline(segments: Sequence[Segment], index: int, discipline: Discipline | str) -> list[Segment]:
    if not 0 <= index < len(segments):
        raise IndexError(f"Segment {index} out of range (0..{len(segments) - 1})")
    updated = list(segments)
    updated[index] = dataclasses.replace(segments[index], discipline=Discipline.parse(discipline))
    return updated


def apply_preset(model: ActivityModel, preset: str) -> list[Segment]:
    """
    Split into three segments for a multisport preset.

    Cuts come from transition detection, or an even three-way split when
    fewer than two transitions are found.
    """
    try:
        sequence = PRESETS[preset]
    except KeyError:
        raise ValueError(f"Unknown preset {preset!r}, expected one of {sorted(PRESETS)}") from None

    n = len(model)
    cuts = detect_transitions(model, 2)
    if len(cuts) < 2:
        log.info("Preset %s: no clear transitions, splitting evenly", preset)
        cuts = even_split(n, 3)
    _check_inside(n, cuts)

    return [
        Segment(start, end, sequence[i] if i < len(sequence) else Discipline.GENERIC)
        for i, (start, end) in enumerate(_bounds(n, cuts))
    ]


def segment_samples(model: ActivityModel, segment: Segment) -> tuple[Sample, ...]:
    return model.samples[segment.start_index:segment.end_index + 1]


# ---------- Editing session ----------

@dataclass(frozen=True)
class EditingSession:
    """The activity being edited together with its current segment list."""

    model: ActivityModel
    segments: tuple[Segment, ...]
    cycling_above: float = CYCLING_ABOVE_KMH
    transition_below: float = TRANSITION_BELOW_KMH

    @classmethod
    def start(cls, model: ActivityModel, **thresholds: float) -> EditingSession:
        return cls(model, tuple(reset(model)), **thresholds)

    def _with(self, segments: Iterable[Segment]) -> EditingSession:
        return dataclasses.replace(self, segments=tuple(segments))

    @property
    def cuts(self) -> list[int]:
        return cut_indices(self.segments)

    def set_cuts(self, cuts: Iterable[int]) -> EditingSession:
        return self._with(rebuild_from_cuts(
            self.model, self.segments, cuts,
            cycling_above=self.cycling_above,
            transition_below=self.transition_below,
        ))

    def add_cut(self, index: int) -> EditingSession:
        return self.set_cuts([*self.cuts, index])

    def remove_cut(self, index: int) -> EditingSession:
        return self._with(remove_cut(self.segments, index))

    def set_discipline(self, index: int, discipline: Discipline | str) -> EditingSession:
        return self._with(apply_discipline(self.segments, index, discipline))

    def reset(self) -> EditingSession:
        return self._with(reset(self.model))

    def apply_preset(self, preset: str) -> EditingSession:
        return self._with(apply_preset(self.model, preset))

    def detect(self, k: int) -> list[int]:
        return detect_transitions(self.model, k)

    def stats(self) -> list[SegmentStats]:
        return [compute_segment_stats(segment_samples(self.model, seg)) for seg in self.segments]
