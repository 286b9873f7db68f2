"""
Suggest split points where the motion character of an activity changes.

The speed channel is smoothed, differentiated over a short lag, smoothed
again, and the strongest peaks that are far enough apart become cuts.
All window radii scale with the number of samples.
"""

from __future__ import annotations

import logging
from itertools import accumulate
from typing import List, Optional, Sequence, Union

from fitsplit.models import ActivityModel, Sample

log = logging.getLogger(__name__)

MIN_SAMPLES = 100
MIN_GAP_PERCENT = 15


def _windowed_mean(values: Sequence[float], counts: Sequence[int], radius: int) -> List[float]:
    """
    Centered mean over [i - radius, i + radius], clamped to the sequence.

    ``counts`` says how many samples each position contributes (0 or 1), so
    missing values are excluded from the denominator. Windows with nothing
    defined yield 0.
    """
    n = len(values)
    sums = [0.0] + list(accumulate(values))
    totals = [0] + list(accumulate(counts))
    out = []
    for i in range(n):
        lo = max(0, i - radius)
        hi = min(n - 1, i + radius)
        count = totals[hi + 1] - totals[lo]
        out.append((sums[hi + 1] - sums[lo]) / count if count else 0.0)
    return out


def speed_profile(samples: Sequence[Sample]) -> List[float]:
    """Smoothed speed in km/h for every sample index."""
    radius = max(10, len(samples) // 100)
    values = [s.speed * 3.6 if s.speed is not None else 0.0 for s in samples]
    counts = [1 if s.speed is not None else 0 for s in samples]
    return _windowed_mean(values, counts, radius)


def speed_derivative(profile: Sequence[float]) -> List[float]:
    n = len(profile)
    lag = max(5, n // 200)
    return [abs(profile[min(n - 1, i + lag)] - profile[max(0, i - lag)]) for i in range(n)]


def smooth(values: Sequence[float]) -> List[float]:
    radius = max(5, len(values) // 50)
    return _windowed_mean(values, [1] * len(values), radius)


def min_gap_for(n: int) -> int:
    return n * MIN_GAP_PERCENT // 100


def pick_peaks(scores: Sequence[float], k: int, min_gap: int) -> List[int]:
    """
    Greedily take the ``k`` highest-scoring indices at least ``min_gap`` apart.

    Only indices strictly between ``min_gap`` and ``n - 1 - min_gap`` are
    eligible. Ties are broken by position so the result is deterministic.
    """
    n = len(scores)
    candidates = sorted(
        range(min_gap + 1, n - 1 - min_gap),
        key=lambda i: scores[i],
        reverse=True,
    )
    peaks: List[int] = []
    for idx in candidates:
        if len(peaks) >= k:
            break
        if all(abs(p - idx) >= min_gap for p in peaks):
            peaks.append(idx)
    return sorted(peaks)


def detect_transitions(source: Union[ActivityModel, Sequence[Sample]], k: int) -> List[int]:
    """
    Return up to ``k`` ascending sample indices where the activity most
    likely changes discipline.

    Short activities (fewer than 100 samples) yield an empty list; callers
    fall back to :func:`even_split`.
    """
    samples = source.samples if isinstance(source, ActivityModel) else source
    n = len(samples)
    if k <= 0 or n < MIN_SAMPLES:
        return []

    scores = smooth(speed_derivative(speed_profile(samples)))
    cuts = pick_peaks(scores, k, min_gap_for(n))
    log.debug("Detected %d/%d transitions over %d samples: %s", len(cuts), k, n, cuts)
    return cuts


def even_split(n: int, parts: int = 3) -> List[int]:
    """Cut indices dividing ``n`` samples into ``parts`` roughly equal runs."""
    step = n // parts
    return [step * i for i in range(1, parts)]


def suggest_cuts(model: ActivityModel, k: int, fallback_parts: Optional[int] = None) -> List[int]:
    """Detected cuts, or an even split when detection finds fewer than ``k``."""
    cuts = detect_transitions(model, k)
    if len(cuts) < k:
        parts = fallback_parts or k + 1
        log.info("Found %d of %d transitions, falling back to an even %d-way split", len(cuts), k, parts)
        cuts = even_split(len(model), parts)
    return cuts
