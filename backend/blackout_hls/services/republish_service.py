"""Create, modify and delete flows for published blackout presentations."""
import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional

from blackout_hls.config import StorageConfig
from blackout_hls.db.database import async_session_maker
from blackout_hls.errors import InputError, NotFoundError
from blackout_hls.models.job import JobStage, JobType
from blackout_hls.models.lock import LockStatus
from blackout_hls.pipeline.artifacts import JobWorkspace, generate_artifacts, job_workspace
from blackout_hls.pipeline.playlist import (
    NORMAL_PLAYLIST,
    REDACTED_PLAYLIST,
    rewrite_playlist,
    write_playlists,
)
from blackout_hls.pipeline.segment_planner import (
    BlackoutInterval,
    build_segments,
    normalize_intervals,
)
from blackout_hls.services.lock_service import LockService
from blackout_hls.services.publish_service import PublishService, job_prefix
from blackout_hls.services.storage_service import BlobStore
from blackout_hls.utils.ffmpeg import get_video_info
from blackout_hls.workers.job_runner import JobRunner

logger = logging.getLogger(__name__)


@dataclass
class PublishOutcome:
    """What one pipeline pass left in storage."""
    prefix: str
    normal_url: str
    blackout_url: str
    segment_count: int
    blackout_count: int
    intervals: List[BlackoutInterval]

    def to_dict(self):
        return {
            "prefix": self.prefix,
            "normal_url": self.normal_url,
            "blackout_url": self.blackout_url,
            "segment_count": self.segment_count,
            "blackout_count": self.blackout_count,
        }


class RepublishCoordinator:
    """
    Orchestrates planning, generation and publishing for one bucket.

    Every run is a tracked job with its own workspace, removed on success
    and on failure. Remote artifacts of a failed run are not rolled back.
    """

    def __init__(
        self,
        storage: Optional[StorageConfig] = None,
        store: Optional[BlobStore] = None,
        session_maker=None,
        work_dir: Optional[Path] = None,
    ):
        if store is None:
            if storage is None:
                raise InputError("Object storage is not configured")
            store = BlobStore(storage)
        self.store = store
        self.publisher = PublishService(store)
        self.session_maker = session_maker or async_session_maker
        self.runner = JobRunner(self.session_maker)
        self.work_dir = work_dir

    async def _publish_pipeline(
        self,
        workspace: JobWorkspace,
        source_key: str,
        intervals: List[BlackoutInterval],
        prefix: str,
        advance: Callable,
        clear_prefix: bool = False,
    ) -> PublishOutcome:
        """Fetch, probe, plan, generate, publish and rewrite one presentation pair."""
        source_path = await self.publisher.fetch(
            source_key, workspace.source_dir, filename=f"original{Path(source_key).suffix}"
        )
        video_info = await get_video_info(source_path)

        normalized = normalize_intervals(intervals, video_info.duration)
        segments = build_segments(video_info.duration, normalized)
        logger.info(
            f"Planned {len(segments)} segments ({len(normalized)} blackout) "
            f"for {video_info.duration:.3f}s source"
        )

        await advance(JobStage.GENERATING, f"Generating {len(segments)} chunks")
        await generate_artifacts(source_path, video_info, segments, workspace.output_dir)
        playlist_paths = write_playlists(segments, workspace.output_dir)

        await advance(JobStage.PUBLISHING, f"Uploading to {prefix}")
        if clear_prefix:
            await self.publisher.delete_all(prefix)
        url_map = await self.publisher.publish(prefix, workspace.output_dir)

        await advance(JobStage.REWRITING, "Rewriting playlists")
        rewritten = {
            name: rewrite_playlist(await asyncio.to_thread(path.read_text, encoding="utf-8"), url_map)
            for name, path in playlist_paths.items()
        }
        urls = await self.publisher.publish_playlists(prefix, rewritten)

        return PublishOutcome(
            prefix=prefix,
            normal_url=urls[NORMAL_PLAYLIST],
            blackout_url=urls[REDACTED_PLAYLIST],
            segment_count=len(segments),
            blackout_count=len(normalized),
            intervals=normalized,
        )

    async def create(
        self,
        platform_id: str,
        user_id: str,
        content_id: str,
        source_key: str,
        destination_folder: str,
        intervals: List[BlackoutInterval],
    ) -> dict:
        """
        Publish a new presentation pair for a content id and record its lock.

        The content id is reserved by a pending lock row before anything is
        written under its prefix, so a concurrent create for the same id fails
        instead of publishing into the same folder. The reservation becomes
        active on success and is dropped on failure.

        Returns:
            Result dictionary with job_id, lock_id and both playlist URLs

        Raises:
            InputError: If the content id already has a lock
        """
        prefix = job_prefix(destination_folder, content_id)
        if not source_key:
            raise InputError("source_key must not be empty")

        async with self.session_maker() as session:
            lock = await LockService(session).create(
                platform_id=platform_id,
                user_id=user_id,
                content_id=content_id,
                original_content_url=self.store.url_for(source_key),
                original_key=source_key,
                destination_folder=destination_folder,
                status=LockStatus.PENDING,
            )
            await session.commit()
            lock_id = lock.lock_id
        logger.info(f"Reserved content '{content_id}' as lock {lock_id}")

        async def handler(job_id: int, advance: Callable) -> dict:
            async with job_workspace(f"job-{job_id}", self.work_dir) as workspace:
                outcome = await self._publish_pipeline(
                    workspace, source_key, intervals, prefix, advance
                )

            async with self.session_maker() as session:
                await LockService(session).update_redacted_locator(
                    lock_id,
                    outcome.blackout_url,
                    outcome.intervals,
                    normal_content_url=outcome.normal_url,
                )
                await session.commit()

            return {"lock_id": lock_id, **outcome.to_dict()}

        try:
            job_id, result = await self.runner.run(
                JobType.CREATE, handler, lock_id=lock_id, content_id=content_id
            )
        except BaseException:
            async with self.session_maker() as session:
                if await LockService(session).discard_pending(lock_id):
                    await session.commit()
                    logger.info(f"Released reservation of content '{content_id}'")
            raise
        return {"job_id": job_id, **result}

    async def modify(self, lock_id: str, intervals: List[BlackoutInterval]) -> dict:
        """
        Republish a lock's presentations in place with new blackout intervals.

        The prefix is emptied before the new artifacts are uploaded so no
        chunk of a previous, longer layout survives. The lock record is only
        updated once publishing succeeded.
        """
        async with self.session_maker() as session:
            lock = await LockService(session).get_active(lock_id)
            source_key = lock.original_key
            content_id = lock.content_id
            prefix = job_prefix(lock.destination_folder, lock.content_id)

        async def handler(job_id: int, advance: Callable) -> dict:
            async with job_workspace(f"job-{job_id}", self.work_dir) as workspace:
                outcome = await self._publish_pipeline(
                    workspace, source_key, intervals, prefix, advance, clear_prefix=True
                )

            async with self.session_maker() as session:
                await LockService(session).update_redacted_locator(
                    lock_id,
                    outcome.blackout_url,
                    outcome.intervals,
                    normal_content_url=outcome.normal_url,
                )
                await session.commit()

            return {"lock_id": lock_id, **outcome.to_dict()}

        job_id, result = await self.runner.run(
            JobType.MODIFY, handler, lock_id=lock_id, content_id=content_id
        )
        return {"job_id": job_id, **result}

    async def delete(self, lock_id: str) -> dict:
        """
        Remove every published artifact of a lock. The lock record is kept.

        Raises:
            NotFoundError: Unknown lock, or nothing stored under its prefix
            InputError: If the lock is still being created
        """
        async with self.session_maker() as session:
            service = LockService(session)
            content_id = (await service.get_active(lock_id)).content_id
            lock = await service.find_by_content_id(content_id)
            if not lock:
                raise NotFoundError(f"No lock for content '{content_id}'")
            prefix = job_prefix(lock.destination_folder, content_id)

        async def handler(job_id: int, advance: Callable) -> dict:
            keys = await self.publisher.list(prefix)
            if not keys:
                raise NotFoundError(f"No objects found under {prefix}")
            deleted = await self.store.delete_all(keys)
            logger.info(f"Deleted {deleted} objects under {prefix}")
            return {"lock_id": lock_id, "prefix": prefix, "deleted": deleted}

        job_id, result = await self.runner.run(
            JobType.DELETE, handler, lock_id=lock_id, content_id=content_id
        )
        return {"job_id": job_id, **result}
