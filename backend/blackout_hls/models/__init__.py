# Models module
from blackout_hls.models.lock import Lock, LockStatus
from blackout_hls.models.job import Job

__all__ = ["Lock", "LockStatus", "Job"]
