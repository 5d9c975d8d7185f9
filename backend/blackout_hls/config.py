"""Application configuration."""
from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class StorageConfig(BaseModel):
    """
    Credentials and location of the S3-compatible bucket a job publishes to.

    Built once per job (from the request or from the environment defaults)
    and handed to the storage client. Secrets stay wrapped in SecretStr so
    they never show up in reprs or logs.
    """
    access_key_id: SecretStr
    secret_access_key: SecretStr
    region: str = Field(..., min_length=1)
    bucket: str = Field(..., min_length=1)
    endpoint_url: Optional[str] = None
    public_base_url: Optional[str] = None

    @field_validator("access_key_id", "secret_access_key")
    @classmethod
    def _not_blank(cls, value: SecretStr) -> SecretStr:
        if not value.get_secret_value().strip():
            raise ValueError("credential must not be empty")
        return value

    @field_validator("endpoint_url", "public_base_url")
    @classmethod
    def _strip_trailing_slash(cls, value: Optional[str]) -> Optional[str]:
        if value:
            return value.rstrip("/")
        return value


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8"
    )

    # App settings
    app_name: str = "Blackout HLS"
    debug: bool = True

    # Server settings
    host: str = "0.0.0.0"
    port: int = 8000

    # Browser clients allowed to call the API
    cors_origins: List[str] = ["http://localhost:5173", "http://127.0.0.1:5173"]

    # Database
    database_url: str = "sqlite+aiosqlite:///./data/blackout_hls.db"

    # Data directories
    data_dir: Path = Path("./data")
    work_dir: Path = Path("./data/work")  # One subdirectory per job
    downloads_dir: Path = Path("./data/downloads")

    # FFmpeg settings
    ffmpeg_path: str = "ffmpeg"
    ffprobe_path: str = "ffprobe"

    # Chunk encoding
    video_codec: str = "libx264"
    video_preset: str = "veryfast"
    video_crf: int = 20
    audio_codec: str = "aac"
    audio_bitrate: str = "128k"

    # Filler (blackout) chunks
    filler_color: str = "black"
    filler_fps: int = 30
    filler_sample_rate: int = 48000
    filler_channel_layout: str = "stereo"

    # Worker pools
    generation_workers: int = Field(4, ge=1)  # Concurrent ffmpeg processes per job
    upload_workers: int = Field(8, ge=1)  # Concurrent object uploads per job

    # Default object storage (used when a request carries no storage block)
    aws_region: Optional[str] = None
    aws_s3_bucket_name: Optional[str] = None
    aws_access_key_id: Optional[SecretStr] = None
    aws_secret_access_key: Optional[SecretStr] = None
    s3_endpoint_url: Optional[str] = None
    s3_public_base_url: Optional[str] = None
    default_destination_folder: str = "hls"

    def default_storage(self) -> Optional[StorageConfig]:
        """Build the storage config from the environment, or None if incomplete."""
        if not (
            self.aws_region
            and self.aws_s3_bucket_name
            and self.aws_access_key_id
            and self.aws_secret_access_key
        ):
            return None
        return StorageConfig(
            access_key_id=self.aws_access_key_id,
            secret_access_key=self.aws_secret_access_key,
            region=self.aws_region,
            bucket=self.aws_s3_bucket_name,
            endpoint_url=self.s3_endpoint_url,
            public_base_url=self.s3_public_base_url,
        )


settings = Settings()

# Ensure directories exist
settings.data_dir.mkdir(parents=True, exist_ok=True)
settings.work_dir.mkdir(parents=True, exist_ok=True)
settings.downloads_dir.mkdir(parents=True, exist_ok=True)
