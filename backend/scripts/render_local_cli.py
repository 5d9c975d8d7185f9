#!/usr/bin/env python3
"""
CLI tool to build normal and blackout HLS renditions of a local video.

Nothing is uploaded: chunks and both playlists are written to the output
directory with local chunk names, together with a JSON summary of the plan.

Usage:
    python scripts/render_local_cli.py <video_path> [--blackout START-END ...]
        [--output-dir <dir>] [--plan-only]

Example:
    python scripts/render_local_cli.py ~/Videos/match.mp4 --blackout 30-45 --blackout 60-70
"""
import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

# Add parent to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from blackout_hls.errors import HlsLockError
from blackout_hls.pipeline.artifacts import chunk_names, generate_artifacts
from blackout_hls.pipeline.playlist import write_playlists
from blackout_hls.pipeline.segment_planner import BlackoutInterval, plan_segments
from blackout_hls.utils.ffmpeg import get_video_info


logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s [%(levelname)s] %(name)s: %(message)s'
)
logger = logging.getLogger(__name__)


def parse_interval(value: str) -> BlackoutInterval:
    """Parse START-END (seconds) into an interval."""
    try:
        start, end = value.split("-", 1)
        return BlackoutInterval(float(start), float(end))
    except ValueError:
        raise argparse.ArgumentTypeError(f"Expected START-END in seconds, got '{value}'")


async def render_video(
    video_path: Path,
    output_dir: Path,
    intervals: list[BlackoutInterval],
    plan_only: bool = False,
):
    """
    Plan, and unless plan_only, generate chunks and playlists for a local video.

    Args:
        video_path: Path to video file
        output_dir: Directory for output files
        intervals: Blackout intervals in seconds
        plan_only: Only write the plan summary
    """
    if not video_path.exists():
        raise FileNotFoundError(f"Video not found: {video_path}")

    output_dir.mkdir(parents=True, exist_ok=True)

    logger.info(f"Probing: {video_path}")
    video_info = await get_video_info(video_path)
    logger.info(f"Duration: {video_info.duration:.1f}s, Resolution: {video_info.resolution}")

    segments = plan_segments(video_info.duration, intervals)

    summary_file = output_dir / "plan.json"
    with open(summary_file, 'w') as f:
        json.dump({
            "video_path": str(video_path),
            "duration": video_info.duration,
            "resolution": video_info.resolution,
            "segment_count": len(segments),
            "segments": [
                {
                    "index": i,
                    "start": seg.start,
                    "end": seg.end,
                    "duration": seg.duration,
                    "blackout": seg.is_blackout,
                    "chunks": chunk_names(i, seg),
                }
                for i, seg in enumerate(segments)
            ],
        }, f, indent=2)
    logger.info(f"Plan written to: {summary_file}")

    if plan_only:
        return

    async def progress_callback(done, total):
        logger.info(f"[{done}/{total}] chunks generated")

    await generate_artifacts(
        video_path, video_info, segments, output_dir,
        progress_callback=progress_callback,
    )
    playlists = write_playlists(segments, output_dir)
    for name, path in playlists.items():
        logger.info(f"Playlist {name}: {path}")


def main():
    parser = argparse.ArgumentParser(
        description="Build normal and blackout HLS renditions of a local video"
    )
    parser.add_argument(
        "video_path",
        type=Path,
        help="Path to video file"
    )
    parser.add_argument(
        "--blackout", "-b",
        type=parse_interval,
        action="append",
        default=[],
        help="Blackout range START-END in seconds (repeatable)"
    )
    parser.add_argument(
        "--output-dir", "-o",
        type=Path,
        default=Path("./hls_output"),
        help="Output directory (default: ./hls_output)"
    )
    parser.add_argument(
        "--plan-only",
        action="store_true",
        help="Only write the segment plan, don't run ffmpeg"
    )

    args = parser.parse_args()

    try:
        asyncio.run(render_video(
            video_path=args.video_path,
            output_dir=args.output_dir,
            intervals=args.blackout,
            plan_only=args.plan_only,
        ))
    except (HlsLockError, FileNotFoundError) as e:
        logger.error(str(e))
        sys.exit(1)


if __name__ == "__main__":
    main()
