"""Lock model: ties a content id to its original and published presentations."""
import enum
import json
import uuid
from datetime import datetime
from typing import List

from sqlalchemy import Column, Integer, String, DateTime, Enum, Text

from blackout_hls.db.database import Base


class LockStatus(str, enum.Enum):
    """Lock status enumeration."""
    PENDING = "pending"  # Content id reserved, first publish still running
    ACTIVE = "active"


class Lock(Base):
    """Lock record for one content id."""

    __tablename__ = "locks"

    id = Column(Integer, primary_key=True, index=True)
    lock_id = Column(String(36), nullable=False, unique=True, index=True, default=lambda: str(uuid.uuid4()))

    # Owner references (platform/user records live elsewhere)
    platform_id = Column(String(255), nullable=False)
    user_id = Column(String(255), nullable=False)

    # Content
    content_id = Column(String(255), nullable=False, unique=True, index=True)
    original_content_url = Column(String(4096), nullable=False)
    original_key = Column(String(4096), nullable=False)
    destination_folder = Column(String(1024), nullable=False)
    status = Column(Enum(LockStatus), default=LockStatus.ACTIVE, nullable=False)

    # Published playlists
    locked_content_url = Column(String(4096), nullable=True)  # Redacted playlist
    normal_content_url = Column(String(4096), nullable=True)

    # [{"bl_id", "start_time", "end_time"}] stored as JSON text
    blackout_locks = Column(Text, nullable=False, default="[]")

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    def __repr__(self):
        return f"<Lock(lock_id={self.lock_id}, content_id='{self.content_id}')>"

    def get_blackout_locks(self) -> List[dict]:
        return json.loads(self.blackout_locks) if self.blackout_locks else []

    def set_blackout_locks(self, intervals) -> None:
        """Store intervals, issuing a fresh id for each one."""
        self.blackout_locks = json.dumps([
            {
                "bl_id": str(uuid.uuid4()),
                "start_time": float(interval.start),
                "end_time": float(interval.end),
            }
            for interval in intervals
        ])

    def to_dict(self):
        """Convert to dictionary."""
        return {
            "id": self.id,
            "lock_id": self.lock_id,
            "platform_id": self.platform_id,
            "user_id": self.user_id,
            "content_id": self.content_id,
            "original_content_url": self.original_content_url,
            "locked_content_url": self.locked_content_url,
            "normal_content_url": self.normal_content_url,
            "destination_folder": self.destination_folder,
            "status": self.status.value if self.status else None,
            "lock_json_object": {
                "lockId": self.lock_id,
                "originalcontentUrl": self.original_content_url,
                "contentId": self.content_id,
                "lockedcontenturl": self.locked_content_url,
                "locks": {
                    "replacement-video-locks": [],
                    "image-locks": [],
                    "blackout-locks": self.get_blackout_locks(),
                },
            },
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
