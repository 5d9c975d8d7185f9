"""Tests for ffmpeg/ffprobe wrappers."""
import json

import pytest

from blackout_hls.errors import ToolFailure
from blackout_hls.utils import ffmpeg
from blackout_hls.utils.ffmpeg import (
    FFmpegError,
    extract_range,
    get_video_info,
    synthesize_filler,
)


class _FakeProcess:
    def __init__(self, returncode=0, stdout=b"", stderr=b""):
        self.returncode = returncode
        self._stdout = stdout
        self._stderr = stderr

    async def communicate(self):
        return self._stdout, self._stderr


class _Recorder:
    def __init__(self, process):
        self.process = process
        self.commands = []

    async def __call__(self, *cmd, **kwargs):
        self.commands.append(list(cmd))
        return self.process


def _probe_output(duration="12.5", width=1920, height=1080, audio=True):
    streams = [{
        "codec_type": "video",
        "codec_name": "h264",
        "width": width,
        "height": height,
        "r_frame_rate": "30000/1001",
    }]
    if audio:
        streams.append({"codec_type": "audio", "codec_name": "aac"})
    return json.dumps({"streams": streams, "format": {"duration": duration}}).encode()


@pytest.fixture
def video_file(tmp_path):
    path = tmp_path / "input.mp4"
    path.write_bytes(b"\x00")
    return path


@pytest.mark.asyncio
async def test_get_video_info(monkeypatch, video_file):
    recorder = _Recorder(_FakeProcess(stdout=_probe_output()))
    monkeypatch.setattr(ffmpeg.asyncio, "create_subprocess_exec", recorder)

    info = await get_video_info(video_file)

    assert info.duration == 12.5
    assert info.resolution == "1920x1080"
    assert info.fps == pytest.approx(29.97, abs=0.01)
    assert info.video_codec == "h264"
    assert info.audio_codec == "aac"
    assert recorder.commands[0][-1] == str(video_file)


@pytest.mark.asyncio
async def test_get_video_info_without_audio(monkeypatch, video_file):
    recorder = _Recorder(_FakeProcess(stdout=_probe_output(audio=False)))
    monkeypatch.setattr(ffmpeg.asyncio, "create_subprocess_exec", recorder)

    info = await get_video_info(video_file)
    assert info.audio_codec is None


@pytest.mark.asyncio
async def test_zero_duration_is_an_error(monkeypatch, video_file):
    recorder = _Recorder(_FakeProcess(stdout=_probe_output(duration="0")))
    monkeypatch.setattr(ffmpeg.asyncio, "create_subprocess_exec", recorder)

    with pytest.raises(FFmpegError, match="duration"):
        await get_video_info(video_file)


@pytest.mark.asyncio
async def test_missing_file(tmp_path):
    with pytest.raises(FFmpegError, match="not found"):
        await get_video_info(tmp_path / "nope.mp4")


@pytest.mark.asyncio
async def test_failure_carries_stderr(monkeypatch, tmp_path):
    recorder = _Recorder(_FakeProcess(returncode=1, stderr=b"Invalid data found when processing input"))
    monkeypatch.setattr(ffmpeg.asyncio, "create_subprocess_exec", recorder)

    with pytest.raises(ToolFailure) as exc:
        await extract_range(tmp_path / "in.mp4", tmp_path / "out.ts", 0.0, 5.0)

    assert "Invalid data found" in str(exc.value)


@pytest.mark.asyncio
async def test_missing_binary(monkeypatch, tmp_path):
    async def _raise(*cmd, **kwargs):
        raise FileNotFoundError("ffmpeg")

    monkeypatch.setattr(ffmpeg.asyncio, "create_subprocess_exec", _raise)

    with pytest.raises(FFmpegError, match="could not be started"):
        await synthesize_filler(tmp_path / "b.ts", 640, 360, 2.0)


@pytest.mark.asyncio
async def test_extract_range_command(monkeypatch, tmp_path):
    recorder = _Recorder(_FakeProcess())
    monkeypatch.setattr(ffmpeg.asyncio, "create_subprocess_exec", recorder)

    await extract_range(tmp_path / "in.mp4", tmp_path / "out.ts", 45.0, 60.0)

    cmd = recorder.commands[0]
    assert cmd[cmd.index("-ss") + 1] == "45.000000"
    assert cmd[cmd.index("-t") + 1] == "15.000000"
    assert cmd[cmd.index("-output_ts_offset") + 1] == "45.000000"
    assert cmd[cmd.index("-f") + 1] == "mpegts"
    assert cmd[-1] == str(tmp_path / "out.ts")


@pytest.mark.asyncio
async def test_synthesize_filler_command(monkeypatch, tmp_path):
    recorder = _Recorder(_FakeProcess())
    monkeypatch.setattr(ffmpeg.asyncio, "create_subprocess_exec", recorder)

    await synthesize_filler(tmp_path / "b.ts", 1280, 720, 10.0, start_offset=60.0)

    cmd = recorder.commands[0]
    joined = " ".join(cmd)
    assert "color=c=black:s=1280x720" in joined
    assert "anullsrc=channel_layout=stereo:sample_rate=48000" in joined
    assert cmd[cmd.index("-t") + 1] == "10.000000"
    assert cmd[cmd.index("-output_ts_offset") + 1] == "60.000000"
    assert "-shortest" in cmd
