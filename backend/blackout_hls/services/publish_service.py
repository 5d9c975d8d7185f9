"""Publish service: pushes a job's HLS artifacts to object storage and back."""
import asyncio
import logging
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Tuple

from blackout_hls.config import settings
from blackout_hls.errors import InputError, NotFoundError
from blackout_hls.pipeline.playlist import (
    NORMAL_PLAYLIST,
    REDACTED_PLAYLIST,
    is_playlist,
    localize_playlist,
)
from blackout_hls.services.storage_service import BlobStore

logger = logging.getLogger(__name__)

PLAYLIST_CONTENT_TYPE = "application/vnd.apple.mpegurl"
CHUNK_CONTENT_TYPE = "video/MP2T"
DEFAULT_CONTENT_TYPE = "application/octet-stream"


def content_type_for(name: str) -> str:
    """MIME type of an artifact, by file kind."""
    if name.endswith(".m3u8"):
        return PLAYLIST_CONTENT_TYPE
    if name.endswith(".ts"):
        return CHUNK_CONTENT_TYPE
    return DEFAULT_CONTENT_TYPE


def normalize_folder(folder: str) -> str:
    """Remote folder with exactly one trailing slash and no leading slash."""
    folder = folder.strip().strip("/")
    return f"{folder}/" if folder else ""


def job_prefix(destination_folder: str, content_id: str) -> str:
    """Stable remote prefix owned by one content id."""
    content_id = content_id.strip().strip("/")
    if not content_id:
        raise InputError("content_id must not be empty")
    return f"{normalize_folder(destination_folder)}{content_id}/"


def _local_target(dest_dir: Path, prefix: str, key: str) -> Path:
    """Local path for a key under dest_dir. Keys that would land outside it are rejected."""
    relative = key[len(prefix):] if key.startswith(prefix) else key
    local_path = dest_dir / relative
    if not local_path.resolve().is_relative_to(dest_dir.resolve()):
        raise InputError(f"Object key '{key}' escapes the download folder")
    return local_path


def _localize_file(path: Path, url_prefix: str) -> None:
    content = path.read_text(encoding="utf-8")
    path.write_text(localize_playlist(content, url_prefix), encoding="utf-8")


class PublishService:
    """Uploads, fetches, lists and deletes a job's artifacts under a prefix."""

    def __init__(self, store: BlobStore, max_workers: Optional[int] = None):
        self.store = store
        self.max_workers = max_workers or settings.upload_workers

    async def publish(self, prefix: str, artifact_dir: str | Path) -> Dict[str, str]:
        """
        Phase 1: upload every chunk and both raw playlists under the prefix.

        One attempt per object, no rollback. Uploads run on a bounded pool.

        Returns:
            Mapping of local artifact name to its URL
        """
        artifact_dir = Path(artifact_dir)
        files = sorted(p for p in artifact_dir.iterdir() if p.is_file())
        semaphore = asyncio.Semaphore(self.max_workers)

        async def upload_one(path: Path) -> Tuple[str, str]:
            async with semaphore:
                url = await self.store.put(
                    await asyncio.to_thread(path.read_bytes),
                    f"{prefix}{path.name}",
                    content_type_for(path.name),
                )
            return path.name, url

        results = await asyncio.gather(*(upload_one(p) for p in files))
        logger.info(f"Published {len(results)} artifacts under {prefix}")
        return dict(results)

    async def publish_playlists(self, prefix: str, playlists: Mapping[str, str]) -> Dict[str, str]:
        """
        Phase 2: overwrite the playlists at their fixed keys with rewritten content.

        Args:
            prefix: Job prefix
            playlists: Playlist file name to final content

        Returns:
            Playlist file name to URL
        """
        urls = {}
        for name in (NORMAL_PLAYLIST, REDACTED_PLAYLIST):
            if name not in playlists:
                continue
            urls[name] = await self.store.put(
                playlists[name].encode("utf-8"),
                f"{prefix}{name}",
                PLAYLIST_CONTENT_TYPE,
            )
        logger.info(f"Rewrote playlists under {prefix}: {', '.join(urls)}")
        return urls

    async def fetch(
        self,
        key: str,
        dest_dir: str | Path,
        strip_url_prefix: Optional[str] = None,
        filename: Optional[str] = None,
    ) -> Path:
        """
        Download one object for reprocessing.

        Playlists additionally get `strip_url_prefix` removed from every line
        that starts with it, turning published URLs back into local names.
        """
        dest_dir = Path(dest_dir)
        local_path = dest_dir / (filename or key.rsplit("/", 1)[-1])
        await self.store.download(key, local_path)

        if strip_url_prefix and is_playlist(local_path.name):
            await asyncio.to_thread(_localize_file, local_path, strip_url_prefix)

        return local_path

    async def fetch_folder(self, prefix: str, dest_dir: str | Path) -> List[Tuple[str, Path]]:
        """
        Download everything under a prefix, keeping the relative layout.

        Raises:
            NotFoundError: If nothing is stored under the prefix
            InputError: If a key would be written outside dest_dir
        """
        keys = await self.store.list(prefix)
        if not keys:
            raise NotFoundError(f"No files found under {prefix}")

        dest_dir = Path(dest_dir)
        targets = [(key, _local_target(dest_dir, prefix, key)) for key in keys]

        url_prefix = self.store.url_for(prefix)
        downloaded = []
        for key, local_path in targets:
            await self.store.download(key, local_path)
            if is_playlist(local_path.name):
                await asyncio.to_thread(_localize_file, local_path, url_prefix)
            downloaded.append((key, local_path))

        logger.info(f"Downloaded {len(downloaded)} files from {prefix} to {dest_dir}")
        return downloaded

    async def list(self, prefix: str) -> List[str]:
        return await self.store.list(prefix)

    async def delete_all(self, prefix: str) -> int:
        """Remove every object under the prefix. Not transactional with later uploads."""
        keys = await self.store.list(prefix)
        deleted = await self.store.delete_all(keys)
        logger.info(f"Deleted {deleted} objects under {prefix}")
        return deleted
