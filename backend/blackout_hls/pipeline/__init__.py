# HLS pipeline - planning, chunk generation, playlists
"""
Pipeline: Blackout HLS

Stages:
1. Planning: blackout intervals -> gapless segment timeline
2. Generation: one chunk per segment (cut from source or synthesized filler)
3. Playlists: normal and blackout playlists over the same chunk indexes

Publishing lives in services/, the pipeline only touches local files.
"""
from .segment_planner import (
    BlackoutInterval,
    Segment,
    build_segments,
    normalize_intervals,
    plan_segments,
)

__all__ = [
    "BlackoutInterval",
    "Segment",
    "build_segments",
    "normalize_intervals",
    "plan_segments",
]
