"""Pydantic schemas for API requests and responses."""
from datetime import datetime
from typing import Optional, List
from pydantic import BaseModel, Field, SecretStr, model_validator

from blackout_hls.config import StorageConfig
from blackout_hls.pipeline.segment_planner import BlackoutInterval


# =============================================================================
# Storage Schemas
# =============================================================================

class StorageRequest(BaseModel):
    """Object storage credentials supplied with a request."""
    access_key_id: SecretStr
    secret_access_key: SecretStr
    region: str = Field(..., min_length=1)
    bucket: str = Field(..., min_length=1)
    endpoint_url: Optional[str] = None
    public_base_url: Optional[str] = None

    def to_config(self) -> StorageConfig:
        return StorageConfig(**self.model_dump())


# =============================================================================
# Lock Schemas
# =============================================================================

class BlackoutLockRequest(BaseModel):
    """A time range to black out, in seconds."""
    start_time: float = Field(..., ge=0)
    end_time: float = Field(..., gt=0)

    @model_validator(mode="after")
    def _check_order(self):
        if self.end_time <= self.start_time:
            raise ValueError("end_time must be greater than start_time")
        return self

    def to_interval(self) -> BlackoutInterval:
        return BlackoutInterval(start=self.start_time, end=self.end_time)


class LockCreateRequest(BaseModel):
    """Request to publish a new blackout presentation pair."""
    platform_id: str = Field(..., min_length=1)
    user_id: str = Field(..., min_length=1)
    content_id: str = Field(..., min_length=1, description="Stable id; names the remote folder")
    source_key: str = Field(..., min_length=1, description="Key of the original video in the bucket")
    destination_folder: Optional[str] = Field(None, description="Remote folder (settings default if omitted)")
    blackout_locks: List[BlackoutLockRequest] = Field(default_factory=list)
    storage: Optional[StorageRequest] = None


class LockModifyRequest(BaseModel):
    """Request to republish a lock with new blackout intervals."""
    blackout_locks: List[BlackoutLockRequest] = Field(default_factory=list)
    storage: Optional[StorageRequest] = None


class LockDeleteRequest(BaseModel):
    """Request to remove a lock's published artifacts."""
    storage: Optional[StorageRequest] = None


class BlackoutLockResponse(BaseModel):
    """Stored blackout interval."""
    bl_id: str
    start_time: float
    end_time: float


class LockResponse(BaseModel):
    """Lock record response."""
    lock_id: str
    platform_id: str
    user_id: str
    content_id: str
    original_content_url: str
    locked_content_url: Optional[str]
    normal_content_url: Optional[str]
    destination_folder: str
    status: str
    blackout_locks: List[BlackoutLockResponse]
    lock_json_object: dict
    created_at: datetime
    updated_at: datetime


class PublishResponse(BaseModel):
    """Result of a create or modify run."""
    message: str
    job_id: int
    lock_id: str
    normal_url: str
    blackout_url: str
    prefix: str
    segment_count: int
    blackout_count: int


class DeleteResponse(BaseModel):
    """Result of a delete run."""
    message: str
    job_id: int
    lock_id: str
    prefix: str
    deleted: int


# =============================================================================
# Folder Schemas
# =============================================================================

class FolderListRequest(BaseModel):
    """Request to list sub-folders of a remote folder."""
    folder_prefix: str = ""
    storage: Optional[StorageRequest] = None


class FolderListResponse(BaseModel):
    """Sub-folders of a remote folder."""
    folders: List[str]


class FolderDownloadRequest(BaseModel):
    """Request to download a published folder for local re-processing."""
    folder_prefix: str = Field(..., min_length=1)
    storage: Optional[StorageRequest] = None


class DownloadedFile(BaseModel):
    key: str
    local_path: str


class FolderDownloadResponse(BaseModel):
    """Downloaded files."""
    message: str
    files: List[DownloadedFile]


# =============================================================================
# Job Schemas
# =============================================================================

class JobResponse(BaseModel):
    """Job response."""
    id: int
    lock_id: Optional[str]
    content_id: Optional[str]
    job_type: str
    stage: str
    status: str
    message: Optional[str]
    result: Optional[str]
    error: Optional[str]
    created_at: datetime
    completed_at: Optional[datetime]

    class Config:
        from_attributes = True


# =============================================================================
# Health Check
# =============================================================================

class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    ffmpeg_available: bool
    ffprobe_available: bool
    storage_configured: bool
    message: Optional[str] = None
