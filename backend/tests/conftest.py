"""Shared fakes and fixtures."""
from pathlib import Path

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from blackout_hls.db.database import Base
from blackout_hls.errors import NotFoundError
from blackout_hls.models import Job, Lock  # noqa: F401  (registers tables)
from blackout_hls.utils.ffmpeg import VideoInfo


class FakeBlobStore:
    """In-memory stand-in for BlobStore."""

    def __init__(self, bucket="test-bucket", region="us-east-1"):
        self.bucket = bucket
        self.region = region
        self.objects = {}
        self.put_log = []
        self.fail_on_put = None

    def url_for(self, key):
        return f"https://{self.bucket}.s3.{self.region}.amazonaws.com/{key}"

    async def put(self, data, key, content_type):
        if self.fail_on_put and self.fail_on_put(key):
            from blackout_hls.services.storage_service import StorageError
            raise StorageError(f"Upload of {key} failed: boom")
        self.objects[key] = (bytes(data), content_type)
        self.put_log.append(key)
        return self.url_for(key)

    async def list(self, prefix):
        return sorted(k for k in self.objects if k.startswith(prefix))

    async def list_folders(self, prefix=""):
        folders = set()
        for key in self.objects:
            if key.startswith(prefix) and "/" in key[len(prefix):]:
                folders.add(prefix + key[len(prefix):].split("/", 1)[0] + "/")
        return sorted(folders)

    async def download(self, key, path):
        if key not in self.objects:
            raise NotFoundError(f"Object {key} not found")
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(self.objects[key][0])
        return path

    async def delete_all(self, keys):
        keys = list(keys)
        for key in keys:
            self.objects.pop(key, None)
        return len(keys)


class FakeTranscoder:
    """Records ffmpeg calls and writes placeholder chunks."""

    def __init__(self, duration=100.0, width=1280, height=720):
        self.info = VideoInfo(
            duration=duration,
            width=width,
            height=height,
            fps=30.0,
            video_codec="h264",
            audio_codec="aac",
        )
        self.extracted = []
        self.fillers = []
        self.fail_on = None

    async def get_video_info(self, path):
        return self.info

    async def extract_range(self, source_path, output_path, start_time, end_time):
        if self.fail_on == "extract":
            from blackout_hls.utils.ffmpeg import FFmpegError
            raise FFmpegError("Extracting failed: corrupt input")
        self.extracted.append((start_time, end_time))
        Path(output_path).write_bytes(b"TS" + f"{start_time}-{end_time}".encode())
        return Path(output_path)

    async def synthesize_filler(self, output_path, width, height, duration, start_offset=0.0):
        if self.fail_on == "filler":
            from blackout_hls.utils.ffmpeg import FFmpegError
            raise FFmpegError("Filler generation failed")
        self.fillers.append((width, height, duration))
        Path(output_path).write_bytes(b"FILLER")
        return Path(output_path)

    def install(self, monkeypatch):
        from blackout_hls.pipeline import artifacts
        from blackout_hls.services import republish_service

        monkeypatch.setattr(artifacts, "extract_range", self.extract_range)
        monkeypatch.setattr(artifacts, "synthesize_filler", self.synthesize_filler)
        monkeypatch.setattr(republish_service, "get_video_info", self.get_video_info)
        return self


@pytest.fixture
def blob_store():
    return FakeBlobStore()


@pytest.fixture
def transcoder(monkeypatch):
    return FakeTranscoder().install(monkeypatch)


@pytest.fixture
async def session_maker(tmp_path):
    # File database: every session gets its own connection, as in production
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()
