"""Segment planning.

Turns a source duration and a set of blackout intervals into an ordered,
gapless timeline of segments. Every segment is later materialized as exactly
one media chunk, real or filler.
"""
from dataclasses import dataclass
from typing import Iterable, List

from blackout_hls.errors import InputError


@dataclass(frozen=True)
class BlackoutInterval:
    """A caller-specified time range to be replaced by filler."""
    start: float
    end: float

    @property
    def duration(self) -> float:
        return self.end - self.start


@dataclass(frozen=True)
class Segment:
    """A contiguous slice of media time."""
    start: float
    end: float
    is_blackout: bool = False

    @property
    def duration(self) -> float:
        return self.end - self.start

    def __repr__(self):
        kind = "blackout" if self.is_blackout else "content"
        return f"Segment({self.start:.2f}-{self.end:.2f}, {kind}, dur={self.duration:.2f}s)"


def normalize_intervals(
    intervals: Iterable[BlackoutInterval],
    duration: float
) -> List[BlackoutInterval]:
    """
    Validate, clamp and merge blackout intervals.

    Args:
        intervals: Caller-supplied intervals, any order
        duration: Source duration in seconds

    Returns:
        Sorted, pairwise non-overlapping intervals within [0, duration]

    Raises:
        InputError: On a non-positive duration or an interval that is
            negative, empty/inverted, or starts at or past the end
    """
    if duration <= 0:
        raise InputError(f"Source duration must be positive, got {duration}")

    clamped = []
    for interval in intervals:
        if interval.start < 0:
            raise InputError(f"Blackout interval starts before 0: {interval}")
        if interval.end <= interval.start:
            raise InputError(f"Blackout interval ends before it starts: {interval}")
        if interval.start >= duration:
            raise InputError(
                f"Blackout interval starts at or past the end of the video ({duration:.3f}s): {interval}"
            )
        clamped.append(BlackoutInterval(interval.start, min(interval.end, duration)))

    clamped.sort(key=lambda i: i.start)

    merged: List[BlackoutInterval] = []
    for interval in clamped:
        # Touching intervals stay separate; only real overlap is merged
        if merged and interval.start < merged[-1].end:
            last = merged[-1]
            merged[-1] = BlackoutInterval(last.start, max(last.end, interval.end))
        else:
            merged.append(interval)

    return merged


def build_segments(
    duration: float,
    intervals: Iterable[BlackoutInterval]
) -> List[Segment]:
    """
    Build the full segment timeline around blackout intervals.

    Intervals are taken as given apart from sorting; call
    normalize_intervals first (or use plan_segments) for caller input.

    Args:
        duration: Source duration in seconds
        intervals: Disjoint blackout intervals within [0, duration]

    Returns:
        Ordered segments covering [0, duration)
    """
    segments: List[Segment] = []
    cursor = 0.0

    for interval in sorted(intervals, key=lambda i: i.start):
        if interval.start > cursor:
            segments.append(Segment(cursor, interval.start, is_blackout=False))
        segments.append(Segment(interval.start, interval.end, is_blackout=True))
        cursor = interval.end

    if cursor < duration:
        segments.append(Segment(cursor, duration, is_blackout=False))

    return segments


def plan_segments(
    duration: float,
    intervals: Iterable[BlackoutInterval]
) -> List[Segment]:
    """Normalize caller intervals and build the timeline."""
    return build_segments(duration, normalize_intervals(intervals, duration))
