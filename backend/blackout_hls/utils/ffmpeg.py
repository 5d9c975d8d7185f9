"""FFmpeg and ffprobe utilities."""
import asyncio
import json
import logging
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from blackout_hls.config import settings
from blackout_hls.errors import ToolFailure

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VideoInfo:
    """Video metadata container."""
    duration: float
    width: int
    height: int
    fps: float
    video_codec: str
    audio_codec: Optional[str]

    @property
    def resolution(self) -> str:
        return f"{self.width}x{self.height}"


class FFmpegError(ToolFailure):
    """FFmpeg related error."""
    pass


def check_ffmpeg_available() -> bool:
    """Check if ffmpeg is available."""
    return shutil.which(settings.ffmpeg_path) is not None


def check_ffprobe_available() -> bool:
    """Check if ffprobe is available."""
    return shutil.which(settings.ffprobe_path) is not None


async def _run(cmd: list[str], what: str) -> bytes:
    """Run a tool to completion, returning stdout or raising with its stderr."""
    try:
        proc = await asyncio.create_subprocess_exec(
            *cmd,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE
        )
    except OSError as e:
        raise FFmpegError(f"{what} could not be started: {e}") from e

    stdout, stderr = await proc.communicate()

    if proc.returncode != 0:
        raise FFmpegError(f"{what} failed: {stderr.decode(errors='ignore').strip()}")

    return stdout


async def get_video_info(video_path: str | Path) -> VideoInfo:
    """
    Get video metadata using ffprobe.

    Args:
        video_path: Path to video file

    Returns:
        VideoInfo with video metadata

    Raises:
        FFmpegError: If ffprobe fails or the file has no usable video stream
    """
    video_path = Path(video_path)
    if not video_path.exists():
        raise FFmpegError(f"Video file not found: {video_path}")

    cmd = [
        settings.ffprobe_path,
        "-v", "quiet",
        "-print_format", "json",
        "-show_format",
        "-show_streams",
        str(video_path)
    ]

    stdout = await _run(cmd, "ffprobe")

    try:
        data = json.loads(stdout.decode())
    except json.JSONDecodeError as e:
        raise FFmpegError(f"Failed to parse ffprobe output: {e}")

    # Find video stream
    video_stream = None
    audio_stream = None
    for stream in data.get("streams", []):
        if stream.get("codec_type") == "video" and video_stream is None:
            video_stream = stream
        elif stream.get("codec_type") == "audio" and audio_stream is None:
            audio_stream = stream

    if not video_stream:
        raise FFmpegError("No video stream found")

    # Parse frame rate
    fps_str = video_stream.get("r_frame_rate", "30/1")
    try:
        if "/" in fps_str:
            num, den = fps_str.split("/")
            fps = float(num) / float(den) if float(den) > 0 else 30.0
        else:
            fps = float(fps_str)
    except ValueError:
        fps = 30.0

    # Get duration
    try:
        duration = float(data.get("format", {}).get("duration", 0))
        if duration == 0:
            duration = float(video_stream.get("duration", 0))
    except (TypeError, ValueError):
        duration = 0.0

    if duration <= 0:
        raise FFmpegError("Failed to get video duration")

    width = int(video_stream.get("width", 0))
    height = int(video_stream.get("height", 0))
    if width <= 0 or height <= 0:
        raise FFmpegError("Failed to get video resolution")

    info = VideoInfo(
        duration=duration,
        width=width,
        height=height,
        fps=fps,
        video_codec=video_stream.get("codec_name", "unknown"),
        audio_codec=audio_stream.get("codec_name") if audio_stream else None,
    )
    logger.info(f"Probed {video_path.name}: {info.duration:.3f}s at {info.resolution}")
    return info


async def extract_range(
    source_path: str | Path,
    output_path: str | Path,
    start_time: float,
    end_time: float,
) -> Path:
    """
    Re-encode one time range of the source into an MPEG-TS chunk.

    The chunk keeps audio and video. Output timestamps are offset by
    start_time so consecutive chunks form a continuous timeline.

    Args:
        source_path: Path to source video
        output_path: Path for the .ts chunk
        start_time: Start time in seconds
        end_time: End time in seconds

    Returns:
        Path to the chunk
    """
    source_path = Path(source_path)
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    duration = end_time - start_time

    cmd = [
        settings.ffmpeg_path,
        "-y",
        "-ss", f"{start_time:.6f}",
        "-i", str(source_path),
        "-t", f"{duration:.6f}",
        "-c:v", settings.video_codec,
        "-preset", settings.video_preset,
        "-crf", str(settings.video_crf),
        "-pix_fmt", "yuv420p",
        "-c:a", settings.audio_codec,
        "-b:a", settings.audio_bitrate,
        "-output_ts_offset", f"{start_time:.6f}",
        "-f", "mpegts",
        str(output_path)
    ]

    await _run(cmd, f"Extracting {start_time:.3f}-{end_time:.3f}s")
    return output_path


async def synthesize_filler(
    output_path: str | Path,
    width: int,
    height: int,
    duration: float,
    start_offset: float = 0.0,
) -> Path:
    """
    Generate a solid-color, silent MPEG-TS chunk of exactly `duration` seconds.

    Args:
        output_path: Path for the .ts chunk
        width: Frame width (matches the source)
        height: Frame height (matches the source)
        duration: Chunk length in seconds
        start_offset: Timeline position of the chunk, used as timestamp offset

    Returns:
        Path to the chunk
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    color = f"color=c={settings.filler_color}:s={width}x{height}:r={settings.filler_fps}"
    silence = (
        f"anullsrc=channel_layout={settings.filler_channel_layout}"
        f":sample_rate={settings.filler_sample_rate}"
    )

    cmd = [
        settings.ffmpeg_path,
        "-y",
        "-f", "lavfi", "-i", color,
        "-f", "lavfi", "-i", silence,
        "-t", f"{duration:.6f}",
        "-c:v", settings.video_codec,
        "-preset", settings.video_preset,
        "-pix_fmt", "yuv420p",
        "-c:a", settings.audio_codec,
        "-b:a", settings.audio_bitrate,
        "-shortest",
        "-output_ts_offset", f"{start_offset:.6f}",
        "-f", "mpegts",
        str(output_path)
    ]

    await _run(cmd, f"Filler generation ({duration:.3f}s)")
    return output_path
