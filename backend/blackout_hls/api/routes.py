"""API routes."""
import logging
import re
import shutil
from typing import Optional

from fastapi import APIRouter, Body, Depends, HTTPException
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from blackout_hls.config import StorageConfig, settings
from blackout_hls.db.database import get_db
from blackout_hls.errors import (
    HlsLockError,
    InputError,
    NotFoundError,
    StorageFailure,
    ToolFailure,
)
from blackout_hls.models.job import Job
from blackout_hls.models.lock import Lock
from blackout_hls.services.lock_service import LockService
from blackout_hls.services.publish_service import PublishService, normalize_folder
from blackout_hls.services.republish_service import RepublishCoordinator
from blackout_hls.services.storage_service import BlobStore
from blackout_hls.utils.ffmpeg import check_ffmpeg_available, check_ffprobe_available
from blackout_hls.api.schemas import (
    StorageRequest,
    LockCreateRequest,
    LockModifyRequest,
    LockDeleteRequest,
    LockResponse,
    PublishResponse,
    DeleteResponse,
    FolderListRequest,
    FolderListResponse,
    FolderDownloadRequest,
    FolderDownloadResponse,
    DownloadedFile,
    JobResponse,
    HealthResponse,
)

router = APIRouter()
logger = logging.getLogger(__name__)


def _http_error(e: HlsLockError) -> HTTPException:
    """Map a pipeline failure to an HTTP error carrying its diagnostic."""
    if isinstance(e, InputError):
        return HTTPException(status_code=400, detail=str(e))
    if isinstance(e, NotFoundError):
        return HTTPException(status_code=404, detail=str(e))
    if isinstance(e, StorageFailure):
        return HTTPException(status_code=502, detail=str(e))
    if isinstance(e, ToolFailure):
        return HTTPException(status_code=500, detail=str(e))
    return HTTPException(status_code=500, detail=str(e))


def _resolve_storage(storage: Optional[StorageRequest]) -> StorageConfig:
    """Storage from the request, falling back to the environment defaults."""
    if storage is not None:
        try:
            return storage.to_config()
        except ValidationError as e:
            # Field and reason only; the input may be a credential
            problems = "; ".join(
                f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
            )
            raise HTTPException(status_code=400, detail=f"Invalid storage configuration: {problems}")
    config = settings.default_storage()
    if config is None:
        raise HTTPException(
            status_code=400,
            detail="No storage credentials in request and no default storage configured",
        )
    return config


def get_coordinator(storage: StorageConfig) -> RepublishCoordinator:
    return RepublishCoordinator(storage=storage)


def get_blob_store(storage: StorageConfig) -> BlobStore:
    return BlobStore(storage)


def _lock_to_response(lock: Lock) -> LockResponse:
    return LockResponse(**lock.to_dict(), blackout_locks=lock.get_blackout_locks())


# =============================================================================
# Health & System
# =============================================================================

@router.get("/health", response_model=HealthResponse)
async def health_check():
    """Check API health and dependencies."""
    ffmpeg_ok = check_ffmpeg_available()
    ffprobe_ok = check_ffprobe_available()
    storage_ok = settings.default_storage() is not None

    message = None
    if not (ffmpeg_ok and ffprobe_ok):
        missing = []
        if not ffmpeg_ok:
            missing.append("ffmpeg")
        if not ffprobe_ok:
            missing.append("ffprobe")
        message = f"Missing dependencies: {', '.join(missing)}"

    return HealthResponse(
        status="healthy" if ffmpeg_ok and ffprobe_ok else "degraded",
        ffmpeg_available=ffmpeg_ok,
        ffprobe_available=ffprobe_ok,
        storage_configured=storage_ok,
        message=message
    )


# =============================================================================
# Locks
# =============================================================================

@router.post("/locks", response_model=PublishResponse, status_code=201)
async def create_lock(data: LockCreateRequest):
    """Publish normal and blackout playlists for a video and record the lock."""
    coordinator = get_coordinator(_resolve_storage(data.storage))
    try:
        result = await coordinator.create(
            platform_id=data.platform_id,
            user_id=data.user_id,
            content_id=data.content_id,
            source_key=data.source_key,
            destination_folder=data.destination_folder or settings.default_destination_folder,
            intervals=[b.to_interval() for b in data.blackout_locks],
        )
    except HlsLockError as e:
        raise _http_error(e)
    return PublishResponse(message="Lock created successfully", **result)


@router.get("/locks/by-content/{content_id}", response_model=LockResponse)
async def get_lock_by_content_id(content_id: str, db: AsyncSession = Depends(get_db)):
    """Get a lock by content id."""
    lock = await LockService(db).find_by_content_id(content_id)
    if not lock:
        raise HTTPException(status_code=404, detail="Lock not found")
    return _lock_to_response(lock)


@router.get("/locks/{lock_id}", response_model=LockResponse)
async def get_lock(lock_id: str, db: AsyncSession = Depends(get_db)):
    """Get a lock by ID."""
    lock = await LockService(db).get(lock_id)
    if not lock:
        raise HTTPException(status_code=404, detail="Lock not found")
    return _lock_to_response(lock)


@router.post("/locks/{lock_id}/modify", response_model=PublishResponse)
async def modify_lock(lock_id: str, data: LockModifyRequest):
    """Regenerate and republish a lock's playlists with new blackout intervals."""
    coordinator = get_coordinator(_resolve_storage(data.storage))
    try:
        result = await coordinator.modify(
            lock_id,
            [b.to_interval() for b in data.blackout_locks],
        )
    except HlsLockError as e:
        raise _http_error(e)
    return PublishResponse(message="Lock modified successfully", **result)


@router.delete("/locks/{lock_id}", response_model=DeleteResponse)
async def delete_lock(lock_id: str, data: Optional[LockDeleteRequest] = Body(None)):
    """Delete a lock's published folder. The lock record is kept."""
    coordinator = get_coordinator(_resolve_storage(data.storage if data else None))
    try:
        result = await coordinator.delete(lock_id)
    except HlsLockError as e:
        raise _http_error(e)
    return DeleteResponse(message="Folder deleted successfully", **result)


# =============================================================================
# Storage folders
# =============================================================================

@router.post("/storage/folders", response_model=FolderListResponse)
async def list_folders(data: FolderListRequest):
    """List sub-folders (common prefixes) of a remote folder."""
    store = get_blob_store(_resolve_storage(data.storage))
    try:
        folders = await store.list_folders(normalize_folder(data.folder_prefix))
    except HlsLockError as e:
        raise _http_error(e)
    return FolderListResponse(folders=folders)


@router.post("/storage/download", response_model=FolderDownloadResponse)
async def download_folder(data: FolderDownloadRequest):
    """Download a published folder, turning playlist URLs back into local names."""
    store = get_blob_store(_resolve_storage(data.storage))
    prefix = normalize_folder(data.folder_prefix)
    dest_dir = settings.downloads_dir / (re.sub(r"[^A-Za-z0-9_.-]", "_", prefix.strip("/")) or "root")
    # Start from an empty folder so files from an older layout don't linger
    shutil.rmtree(dest_dir, ignore_errors=True)
    try:
        files = await PublishService(store).fetch_folder(prefix, dest_dir)
    except HlsLockError as e:
        raise _http_error(e)
    return FolderDownloadResponse(
        message="Files downloaded successfully",
        files=[DownloadedFile(key=key, local_path=str(path)) for key, path in files],
    )


# =============================================================================
# Jobs
# =============================================================================

@router.get("/jobs/{job_id}", response_model=JobResponse)
async def get_job(job_id: int, db: AsyncSession = Depends(get_db)):
    """Get a job by ID."""
    job = await db.get(Job, job_id)
    if not job:
        raise HTTPException(status_code=404, detail="Job not found")
    return JobResponse(**job.to_dict())
