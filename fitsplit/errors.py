from __future__ import annotations


class FitSplitError(Exception):
    """Base class for every error the splitter reports to its callers."""


class DecodeError(FitSplitError):
    """The uploaded bytes are not a readable activity file."""


class EncodeError(FitSplitError):
    """The FIT encoder rejected the reconstructed message stream."""


class InvalidCutError(FitSplitError):
    """A cut index falls outside the allowed range of the sample sequence."""


class CannotRemoveLastSegmentError(FitSplitError):
    """Only one segment is left, so there is no cut to remove."""


class ReconstructionError(FitSplitError):
    """The segment list cannot be turned into a multi-session stream."""


class InsufficientSegmentsError(ReconstructionError):
    """A multi-session file needs at least two segments."""


class EmptySegmentError(ReconstructionError):
    """A segment selects no samples of the activity."""


class SegmentCoverageError(ReconstructionError):
    """Segments leave samples out, or cover some of them twice."""
