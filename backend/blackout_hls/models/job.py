"""Job model for tracking create / modify / delete runs."""
import enum
from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, Enum, Text

from blackout_hls.db.database import Base


class JobType(str, enum.Enum):
    """Job type enumeration."""
    CREATE = "create"
    MODIFY = "modify"
    DELETE = "delete"


class JobStage(str, enum.Enum):
    """Pipeline stage enumeration."""
    PLANNING = "planning"
    GENERATING = "generating"
    PUBLISHING = "publishing"
    REWRITING = "rewriting"
    DONE = "done"
    ERROR = "error"


class JobStatus(str, enum.Enum):
    """Job status enumeration."""
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


# Allowed forward moves; ERROR is reachable from any non-terminal stage
STAGE_TRANSITIONS = {
    JobStage.PLANNING: {JobStage.GENERATING, JobStage.DONE},
    JobStage.GENERATING: {JobStage.PUBLISHING},
    JobStage.PUBLISHING: {JobStage.REWRITING},
    JobStage.REWRITING: {JobStage.DONE},
    JobStage.DONE: set(),
    JobStage.ERROR: set(),
}


def can_transition(current: JobStage, target: JobStage) -> bool:
    """Check whether a stage move is legal."""
    if current in (JobStage.DONE, JobStage.ERROR):
        return False
    if target == JobStage.ERROR:
        return True
    return target in STAGE_TRANSITIONS[current]


class Job(Base):
    """Job model for tracking one request's pipeline run."""

    __tablename__ = "jobs"

    id = Column(Integer, primary_key=True, index=True)
    lock_id = Column(String(36), nullable=True, index=True)
    content_id = Column(String(255), nullable=True)

    # Job info
    job_type = Column(Enum(JobType), nullable=False)
    stage = Column(Enum(JobStage), default=JobStage.PLANNING, nullable=False)
    status = Column(Enum(JobStatus), default=JobStatus.RUNNING, nullable=False)
    message = Column(String(1024), nullable=True)

    # Results/errors
    result = Column(Text, nullable=True)  # JSON string for results
    error = Column(Text, nullable=True)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    completed_at = Column(DateTime, nullable=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    def __repr__(self):
        return f"<Job(id={self.id}, type={self.job_type}, stage={self.stage})>"

    def to_dict(self):
        """Convert to dictionary."""
        return {
            "id": self.id,
            "lock_id": self.lock_id,
            "content_id": self.content_id,
            "job_type": self.job_type.value,
            "stage": self.stage.value,
            "status": self.status.value,
            "message": self.message,
            "result": self.result,
            "error": self.error,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
        }
