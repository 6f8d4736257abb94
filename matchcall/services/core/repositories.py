"""
Repository Layer - Centralized database queries.

This module provides a repository pattern for database access to the
calling tables, keeping the coordinator free of query construction and
hiding dialect differences (Postgres in production, SQLite in tests)
behind the upsert helpers.

Usage:
    from matchcall.services.core.repositories import get_call_repository

    repo = get_call_repository()
    if await repo.is_blocked(db, match_id, caller_id):
        ...

None of the methods commit; the calling service owns the transaction.
"""

import logging
from datetime import datetime
from typing import List, Optional, Sequence

from sqlalchemy import select, update, delete, and_
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from matchcall.models.match import Match
from matchcall.models.call_request import CallRequest, CallRequestStatus
from matchcall.models.call_block import CallBlock
from matchcall.models.match_permission import MatchPermission

logger = logging.getLogger(__name__)


def _insert_for(db: AsyncSession):
    """Return the dialect-specific insert construct supporting ON CONFLICT."""
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        return pg_insert
    if dialect == "sqlite":
        return sqlite_insert
    raise RuntimeError(f"Upsert not supported for dialect {dialect}")


class CallRepository:
    """
    Repository for call request, call block and match queries.
    """

    # === Matches ===

    @staticmethod
    async def get_match(db: AsyncSession, match_id: str) -> Optional[Match]:
        result = await db.execute(select(Match).where(Match.id == match_id))
        return result.scalar_one_or_none()

    # === Call requests ===

    @staticmethod
    async def get_call_request(db: AsyncSession, request_id: str) -> Optional[CallRequest]:
        result = await db.execute(
            select(CallRequest)
            .where(CallRequest.id == request_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def get_call_request_for(
        db: AsyncSession,
        match_id: str,
        requester_id: str
    ) -> Optional[CallRequest]:
        result = await db.execute(
            select(CallRequest)
            .where(
                and_(
                    CallRequest.match_id == match_id,
                    CallRequest.requester_id == requester_id
                )
            )
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def list_call_requests(
        db: AsyncSession,
        match_id: str,
        statuses: Sequence[str]
    ) -> List[CallRequest]:
        result = await db.execute(
            select(CallRequest)
            .where(
                and_(
                    CallRequest.match_id == match_id,
                    CallRequest.status.in_(list(statuses))
                )
            )
            .order_by(CallRequest.created_at.desc())
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    @staticmethod
    async def find_latest_pending_from_other(
        db: AsyncSession,
        match_id: str,
        user_id: str
    ) -> Optional[CallRequest]:
        """Most recent pending request on the match that user_id did not make."""
        result = await db.execute(
            select(CallRequest)
            .where(
                and_(
                    CallRequest.match_id == match_id,
                    CallRequest.status == CallRequestStatus.PENDING.value,
                    CallRequest.requester_id != user_id
                )
            )
            .order_by(CallRequest.created_at.desc())
            .limit(1)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    @classmethod
    async def upsert_pending_request(
        cls,
        db: AsyncSession,
        match_id: str,
        requester_id: str,
        call_type: str,
        expires_at: datetime,
        now: datetime
    ) -> CallRequest:
        """Insert or refresh the requester's row for this match as pending."""
        insert = _insert_for(db)
        stmt = insert(CallRequest).values(
            match_id=match_id,
            requester_id=requester_id,
            type=call_type,
            status=CallRequestStatus.PENDING.value,
            expires_at=expires_at,
            updated_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[CallRequest.match_id, CallRequest.requester_id],
            set_={
                "type": call_type,
                "status": CallRequestStatus.PENDING.value,
                "expires_at": expires_at,
                "updated_at": now,
            },
        )
        await db.execute(stmt)
        return await cls.get_call_request_for(db, match_id, requester_id)

    @staticmethod
    async def transition_from_pending(
        db: AsyncSession,
        request_id: str,
        status: str,
        now: datetime
    ) -> bool:
        """
        Conditionally move a request out of pending.

        Returns:
            True if this call performed the transition, False if the row
            was no longer pending.
        """
        result = await db.execute(
            update(CallRequest)
            .where(
                and_(
                    CallRequest.id == request_id,
                    CallRequest.status == CallRequestStatus.PENDING.value
                )
            )
            .values(status=status, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    @staticmethod
    async def expire_pending_before(db: AsyncSession, now: datetime) -> List[CallRequest]:
        """
        Mark pending requests past their expiry as expired.

        One conditional UPDATE ... RETURNING, so a request answered
        concurrently is neither changed nor returned.
        """
        result = await db.execute(
            update(CallRequest)
            .where(
                and_(
                    CallRequest.status == CallRequestStatus.PENDING.value,
                    CallRequest.expires_at <= now
                )
            )
            .values(status=CallRequestStatus.EXPIRED.value, updated_at=now)
            .returning(CallRequest)
            .execution_options(synchronize_session=False, populate_existing=True)
        )
        return list(result.scalars().all())

    # === Call blocks ===

    @staticmethod
    async def is_blocked(db: AsyncSession, match_id: str, user_id: str) -> bool:
        result = await db.execute(
            select(CallBlock.blocked).where(
                and_(
                    CallBlock.match_id == match_id,
                    CallBlock.blocked_user_id == user_id
                )
            )
        )
        return bool(result.scalar_one_or_none())

    @staticmethod
    async def list_blocks(db: AsyncSession, match_id: str) -> List[CallBlock]:
        result = await db.execute(
            select(CallBlock)
            .where(CallBlock.match_id == match_id)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    @staticmethod
    async def upsert_block(
        db: AsyncSession,
        match_id: str,
        blocker_id: str,
        blocked_user_id: str
    ) -> CallBlock:
        insert = _insert_for(db)
        stmt = insert(CallBlock).values(
            match_id=match_id,
            blocker_id=blocker_id,
            blocked_user_id=blocked_user_id,
            blocked=True,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[CallBlock.match_id, CallBlock.blocked_user_id],
            set_={"blocker_id": blocker_id, "blocked": True},
        )
        await db.execute(stmt)

        result = await db.execute(
            select(CallBlock)
            .where(
                and_(
                    CallBlock.match_id == match_id,
                    CallBlock.blocked_user_id == blocked_user_id
                )
            )
            .execution_options(populate_existing=True)
        )
        return result.scalar_one()

    @staticmethod
    async def delete_blocks_by_blocker(
        db: AsyncSession,
        match_id: str,
        blocker_id: str
    ) -> List[CallBlock]:
        """Delete every block the blocker holds on this match and return the removed rows."""
        result = await db.execute(
            select(CallBlock).where(
                and_(
                    CallBlock.match_id == match_id,
                    CallBlock.blocker_id == blocker_id
                )
            )
        )
        removed = list(result.scalars().all())
        if removed:
            await db.execute(
                delete(CallBlock)
                .where(
                    and_(
                        CallBlock.match_id == match_id,
                        CallBlock.blocker_id == blocker_id
                    )
                )
                .execution_options(synchronize_session=False)
            )
        return removed

    # === Match permissions ===

    @staticmethod
    async def upsert_permission(
        db: AsyncSession,
        match_id: str,
        user_id: str,
        allow_voice: bool,
        allow_video: bool,
        now: datetime
    ) -> MatchPermission:
        insert = _insert_for(db)
        stmt = insert(MatchPermission).values(
            match_id=match_id,
            user_id=user_id,
            allow_voice=allow_voice,
            allow_video=allow_video,
            updated_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[MatchPermission.match_id, MatchPermission.user_id],
            set_={"allow_voice": allow_voice, "allow_video": allow_video, "updated_at": now},
        )
        await db.execute(stmt)

        result = await db.execute(
            select(MatchPermission)
            .where(
                and_(
                    MatchPermission.match_id == match_id,
                    MatchPermission.user_id == user_id
                )
            )
            .execution_options(populate_existing=True)
        )
        return result.scalar_one()


# Global singleton instance (lazy initialization)
_call_repository: Optional[CallRepository] = None


def get_call_repository() -> CallRepository:
    """Get or create the global CallRepository instance."""
    global _call_repository
    if _call_repository is None:
        _call_repository = CallRepository()
    return _call_repository
