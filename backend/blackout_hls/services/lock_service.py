"""Lock store: persisted lock records."""
from typing import Iterable, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from blackout_hls.errors import InputError, NotFoundError
from blackout_hls.models.lock import Lock, LockStatus
from blackout_hls.pipeline.segment_planner import BlackoutInterval


class LockService:
    """Service for lock record operations."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create(
        self,
        platform_id: str,
        user_id: str,
        content_id: str,
        original_content_url: str,
        original_key: str,
        destination_folder: str,
        locked_content_url: Optional[str] = None,
        normal_content_url: Optional[str] = None,
        blackout_intervals: Iterable[BlackoutInterval] = (),
        status: LockStatus = LockStatus.ACTIVE,
    ) -> Lock:
        """
        Create a lock record.

        The unique content id is the reservation: of two concurrent creates
        for one content id exactly one insert succeeds.

        Raises:
            InputError: If the content id already has a lock
        """
        if await self.find_by_content_id(content_id):
            raise InputError(f"A lock already exists for content '{content_id}'")

        lock = Lock(
            platform_id=platform_id,
            user_id=user_id,
            content_id=content_id,
            original_content_url=original_content_url,
            original_key=original_key,
            destination_folder=destination_folder,
            status=status,
            locked_content_url=locked_content_url,
            normal_content_url=normal_content_url,
        )
        lock.set_blackout_locks(blackout_intervals)

        self.db.add(lock)
        try:
            await self.db.flush()
        except IntegrityError as e:
            await self.db.rollback()
            raise InputError(f"A lock already exists for content '{content_id}'") from e
        await self.db.refresh(lock)

        return lock

    async def get(self, lock_id: str) -> Optional[Lock]:
        """Get a lock by its public lock id."""
        result = await self.db.execute(
            select(Lock).where(Lock.lock_id == lock_id)
        )
        return result.scalar_one_or_none()

    async def get_or_raise(self, lock_id: str) -> Lock:
        lock = await self.get(lock_id)
        if not lock:
            raise NotFoundError(f"Lock {lock_id} not found")
        return lock

    async def get_active(self, lock_id: str) -> Lock:
        """Get a lock whose first publish has completed."""
        lock = await self.get_or_raise(lock_id)
        if lock.status != LockStatus.ACTIVE:
            raise InputError(f"Lock {lock_id} is still being created")
        return lock

    async def find_by_content_id(self, content_id: str) -> Optional[Lock]:
        """Get a lock by content id."""
        result = await self.db.execute(
            select(Lock).where(Lock.content_id == content_id)
        )
        return result.scalar_one_or_none()

    async def update_redacted_locator(
        self,
        lock_id: str,
        locked_content_url: str,
        blackout_intervals: Iterable[BlackoutInterval],
        normal_content_url: Optional[str] = None,
    ) -> Lock:
        """Point the lock at a newly published redacted playlist and mark it active."""
        lock = await self.get_or_raise(lock_id)

        lock.locked_content_url = locked_content_url
        if normal_content_url is not None:
            lock.normal_content_url = normal_content_url
        lock.set_blackout_locks(blackout_intervals)
        lock.status = LockStatus.ACTIVE

        await self.db.flush()
        await self.db.refresh(lock)

        return lock

    async def discard_pending(self, lock_id: str) -> bool:
        """Drop a reservation whose first publish failed. Active locks are kept."""
        lock = await self.get(lock_id)
        if not lock or lock.status != LockStatus.PENDING:
            return False
        await self.db.delete(lock)
        await self.db.flush()
        return True
