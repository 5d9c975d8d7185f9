"""Tests for segment planning."""
import random

import pytest

from blackout_hls.errors import InputError
from blackout_hls.pipeline.segment_planner import (
    BlackoutInterval,
    Segment,
    build_segments,
    normalize_intervals,
    plan_segments,
)


def _as_tuples(segments):
    return [(s.start, s.end, s.is_blackout) for s in segments]


class TestSegment:
    """Tests for Segment dataclass."""

    def test_duration(self):
        seg = Segment(start=10.0, end=25.0)
        assert seg.duration == 15.0

    def test_repr(self):
        seg = Segment(start=0.0, end=10.0, is_blackout=True)
        assert "0.00-10.00" in repr(seg)
        assert "blackout" in repr(seg)


class TestBuildSegments:
    """Tests for the timeline algorithm."""

    def test_two_intervals(self):
        segments = build_segments(100.0, [BlackoutInterval(30, 45), BlackoutInterval(60, 70)])
        assert _as_tuples(segments) == [
            (0.0, 30, False),
            (30, 45, True),
            (45, 60, False),
            (60, 70, True),
            (70, 100.0, False),
        ]

    def test_no_intervals(self):
        """With no blackouts, one segment covers the whole video."""
        assert _as_tuples(build_segments(10.0, [])) == [(0.0, 10.0, False)]

    def test_interval_covers_everything(self):
        segments = build_segments(50.0, [BlackoutInterval(0, 50)])
        assert _as_tuples(segments) == [(0, 50, True)]

    def test_interval_at_start(self):
        segments = build_segments(20.0, [BlackoutInterval(0, 5)])
        assert _as_tuples(segments) == [(0, 5, True), (5, 20.0, False)]

    def test_interval_at_end(self):
        segments = build_segments(20.0, [BlackoutInterval(15, 20)])
        assert _as_tuples(segments) == [(0.0, 15, False), (15, 20, True)]

    def test_unsorted_input_is_sorted(self):
        segments = build_segments(100.0, [BlackoutInterval(60, 70), BlackoutInterval(30, 45)])
        assert [s.start for s in segments] == [0.0, 30, 45, 60, 70]

    def test_touching_intervals_stay_separate(self):
        segments = build_segments(30.0, [BlackoutInterval(10, 20), BlackoutInterval(20, 25)])
        assert _as_tuples(segments) == [
            (0.0, 10, False),
            (10, 20, True),
            (20, 25, True),
            (25, 30.0, False),
        ]


class TestNormalizeIntervals:
    """Tests for interval validation, clamping and merging."""

    def test_overlaps_are_merged(self):
        result = normalize_intervals(
            [BlackoutInterval(10, 30), BlackoutInterval(20, 40), BlackoutInterval(35, 38)],
            100.0,
        )
        assert result == [BlackoutInterval(10, 40)]

    def test_end_is_clamped(self):
        result = normalize_intervals([BlackoutInterval(90, 150)], 100.0)
        assert result == [BlackoutInterval(90, 100.0)]

    def test_touching_not_merged(self):
        result = normalize_intervals([BlackoutInterval(20, 25), BlackoutInterval(10, 20)], 30.0)
        assert result == [BlackoutInterval(10, 20), BlackoutInterval(20, 25)]

    @pytest.mark.parametrize("interval", [
        BlackoutInterval(-1, 5),
        BlackoutInterval(5, 5),
        BlackoutInterval(8, 3),
        BlackoutInterval(100, 110),
    ])
    def test_invalid_intervals_rejected(self, interval):
        with pytest.raises(InputError):
            normalize_intervals([interval], 100.0)

    def test_non_positive_duration_rejected(self):
        with pytest.raises(InputError):
            normalize_intervals([], 0)

    def test_plan_resolves_nested_overlap(self):
        """Nested input that the raw algorithm turns into overlapping segments plans cleanly."""
        raw = build_segments(100.0, [BlackoutInterval(10, 50), BlackoutInterval(20, 30)])
        assert any(prev.end > nxt.start for prev, nxt in zip(raw, raw[1:]))

        planned = plan_segments(100.0, [BlackoutInterval(10, 50), BlackoutInterval(20, 30)])
        assert _as_tuples(planned) == [(0.0, 10, False), (10, 50, True), (50, 100.0, False)]


class TestTimelineProperties:
    """Coverage properties over many random disjoint interval sets."""

    @pytest.mark.parametrize("seed", range(25))
    def test_timeline_is_gapless(self, seed):
        rng = random.Random(seed)
        duration = rng.uniform(1.0, 600.0)

        # Disjoint sorted intervals within [0, duration]
        cuts = sorted(rng.uniform(0, duration) for _ in range(rng.randrange(0, 6) * 2))
        intervals = [
            BlackoutInterval(cuts[i], cuts[i + 1])
            for i in range(0, len(cuts), 2)
            if cuts[i + 1] > cuts[i]
        ]

        segments = plan_segments(duration, intervals)

        assert segments[0].start == 0
        assert segments[-1].end == pytest.approx(duration)
        for prev, nxt in zip(segments, segments[1:]):
            assert prev.end == nxt.start
        assert all(s.duration > 0 for s in segments)
        assert sum(s.is_blackout for s in segments) == len(intervals)
