"""Chunk generation and job-scoped working directories."""
import asyncio
import logging
import re
import shutil
import tempfile
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import AsyncIterator, Callable, List, Optional

from blackout_hls.config import settings
from blackout_hls.pipeline.segment_planner import Segment
from blackout_hls.utils.ffmpeg import VideoInfo, extract_range, synthesize_filler

logger = logging.getLogger(__name__)

CHUNK_EXTENSION = ".ts"


def segment_name(index: int) -> str:
    """Local name of the real-content chunk at a timeline index."""
    return f"segment_{index:03d}{CHUNK_EXTENSION}"


def blackout_name(index: int) -> str:
    """Local name of the filler chunk at a timeline index."""
    return f"blackout_{index:03d}{CHUNK_EXTENSION}"


def chunk_names(index: int, segment: Segment) -> List[str]:
    """
    Names of the chunks generated for a segment.

    Every index gets its real-content chunk, which the normal playlist
    references. Blackout segments additionally get a filler chunk for the
    redacted playlist.
    """
    names = [segment_name(index)]
    if segment.is_blackout:
        names.append(blackout_name(index))
    return names


@dataclass
class JobWorkspace:
    """Isolated local directory owned by a single job."""
    root: Path

    @property
    def source_dir(self) -> Path:
        return self.root / "source"

    @property
    def output_dir(self) -> Path:
        return self.root / "hls"


@asynccontextmanager
async def job_workspace(job_key: str, base_dir: Optional[Path] = None) -> AsyncIterator[JobWorkspace]:
    """
    Allocate a fresh working directory for one job and remove it afterwards.

    The directory is removed whether the job succeeds or raises.
    """
    base_dir = Path(base_dir or settings.work_dir)
    base_dir.mkdir(parents=True, exist_ok=True)
    safe_key = re.sub(r"[^A-Za-z0-9_.-]", "_", job_key) or "job"
    root = Path(tempfile.mkdtemp(prefix=f"{safe_key}-", dir=base_dir))

    workspace = JobWorkspace(root=root)
    workspace.source_dir.mkdir()
    workspace.output_dir.mkdir()
    logger.debug(f"Allocated workspace {root}")

    try:
        yield workspace
    finally:
        shutil.rmtree(root, ignore_errors=True)
        logger.debug(f"Removed workspace {root}")


@dataclass
class GeneratedArtifacts:
    """Chunks produced for one timeline, in timeline order."""
    output_dir: Path
    chunk_paths: List[Path] = field(default_factory=list)

    @property
    def names(self) -> List[str]:
        return [p.name for p in self.chunk_paths]


async def generate_artifacts(
    source_path: str | Path,
    video_info: VideoInfo,
    segments: List[Segment],
    output_dir: str | Path,
    max_workers: Optional[int] = None,
    progress_callback: Optional[Callable] = None,
) -> GeneratedArtifacts:
    """
    Materialize the chunks of every segment.

    Every segment is cut from the source as segment_NNN. Blackout segments
    additionally get a blackout_NNN filler synthesized at the source
    resolution. The pieces are independent, so the work runs on a bounded
    pool of concurrent ffmpeg processes. The first failure cancels the
    remaining work and propagates; chunks already written stay on disk for
    the workspace teardown.

    Args:
        source_path: Local source video (read-only)
        video_info: Probe result of the source
        segments: Timeline from the segment planner
        output_dir: Directory the chunks are written to
        max_workers: Pool size (settings.generation_workers if not given)
        progress_callback: Optional async callback(done: int, total: int)

    Returns:
        GeneratedArtifacts with chunk paths in timeline order, the content
        chunk of an index before its filler
    """
    source_path = Path(source_path)
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    semaphore = asyncio.Semaphore(max_workers or settings.generation_workers)
    work = [(i, seg, False) for i, seg in enumerate(segments)]
    work += [(i, seg, True) for i, seg in enumerate(segments) if seg.is_blackout]
    total = len(work)
    done = 0

    async def generate_one(index: int, segment: Segment, filler: bool) -> Path:
        nonlocal done
        out_path = output_dir / (blackout_name(index) if filler else segment_name(index))
        async with semaphore:
            if filler:
                logger.info(f"Generating blackout chunk {index}: {segment.duration:.3f}s")
                await synthesize_filler(
                    out_path,
                    video_info.width,
                    video_info.height,
                    segment.duration,
                    start_offset=segment.start,
                )
            else:
                logger.info(
                    f"Extracting chunk {index}: {segment.start:.3f}s to {segment.end:.3f}s "
                    f"({segment.duration:.3f}s)"
                )
                await extract_range(source_path, out_path, segment.start, segment.end)
        done += 1
        if progress_callback:
            await progress_callback(done, total)
        return out_path

    tasks = [asyncio.create_task(generate_one(*item)) for item in work]
    try:
        paths = await asyncio.gather(*tasks)
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise

    by_name = {p.name: p for p in paths}
    chunk_paths = [
        by_name[name]
        for i, seg in enumerate(segments)
        for name in chunk_names(i, seg)
    ]
    return GeneratedArtifacts(output_dir=output_dir, chunk_paths=chunk_paths)
