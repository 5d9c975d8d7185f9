"""Job runner: executes one request's pipeline and records its stages."""
import json
import logging
import traceback
from datetime import datetime
from typing import Any, Callable, Optional, Tuple

from blackout_hls.db.database import async_session_maker
from blackout_hls.models.job import Job, JobStage, JobStatus, JobType, can_transition

logger = logging.getLogger(__name__)


class JobRunner:
    """
    Runs a job handler to completion and keeps its Job row current.

    Each write uses its own short session so stage changes and failures are
    persisted even when the caller's transaction is rolled back.
    """

    def __init__(self, session_maker=None):
        self._session_maker = session_maker or async_session_maker

    async def _update(self, job_id: int, **fields):
        async with self._session_maker() as session:
            job = await session.get(Job, job_id)
            if job:
                for name, value in fields.items():
                    setattr(job, name, value)
                await session.commit()

    async def run(
        self,
        job_type: JobType,
        handler: Callable,
        lock_id: Optional[str] = None,
        content_id: Optional[str] = None,
        **kwargs
    ) -> Tuple[int, Any]:
        """
        Run a handler as a tracked job.

        The handler is awaited as handler(job_id=..., advance=..., **kwargs),
        where advance(stage, message=None) moves the job forward. Reaching
        DONE and falling into ERROR are handled here.

        Returns:
            (job_id, handler result)

        Raises:
            Whatever the handler raised, after the job is marked failed
        """
        async with self._session_maker() as session:
            job = Job(
                job_type=job_type,
                lock_id=lock_id,
                content_id=content_id,
                stage=JobStage.PLANNING,
                status=JobStatus.RUNNING,
                message="Planning...",
            )
            session.add(job)
            await session.commit()
            await session.refresh(job)
            job_id = job.id

        current = JobStage.PLANNING
        logger.info(f"Job {job_id} ({job_type.value}) started")

        async def advance(stage: JobStage, message: Optional[str] = None):
            nonlocal current
            if not can_transition(current, stage):
                raise RuntimeError(f"Job {job_id}: illegal stage change {current.value} -> {stage.value}")
            logger.info(f"Job {job_id}: {current.value} -> {stage.value}" + (f" ({message})" if message else ""))
            current = stage
            await self._update(job_id, stage=stage, message=message or stage.value.capitalize())

        try:
            result = await handler(job_id=job_id, advance=advance, **kwargs)
        except Exception as e:
            error_msg = str(e)
            error_trace = traceback.format_exc()
            logger.error(f"Job {job_id} failed in {current.value}: {error_msg}\n{error_trace}")

            current = JobStage.ERROR
            await self._update(
                job_id,
                stage=JobStage.ERROR,
                status=JobStatus.FAILED,
                message=f"Failed: {error_msg}"[:1024],
                error=error_trace,
                completed_at=datetime.utcnow(),
            )
            raise
        except BaseException:
            # Cancelled request or shutdown; the job must not stay RUNNING
            logger.warning(f"Job {job_id} cancelled in {current.value}")
            current = JobStage.ERROR
            await self._update(
                job_id,
                stage=JobStage.ERROR,
                status=JobStatus.FAILED,
                message="Cancelled",
                completed_at=datetime.utcnow(),
            )
            raise

        await advance(JobStage.DONE, "Completed successfully")
        fields = {"status": JobStatus.COMPLETED, "completed_at": datetime.utcnow()}
        if isinstance(result, dict):
            fields["result"] = json.dumps(result)
            if result.get("lock_id"):
                fields["lock_id"] = result["lock_id"]
        await self._update(job_id, **fields)

        logger.info(f"Job {job_id} completed successfully")
        return job_id, result
