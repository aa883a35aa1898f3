import logging
from typing import List

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from findora.database.models import SearchHistory
from findora.models.search_history import SearchHistoryCreate

logger = logging.getLogger(__name__)

MAX_HISTORY_PER_USER = 50


def _newest_first(stmt):
    return stmt.order_by(SearchHistory.timestamp.desc(), SearchHistory.id.desc())


async def list_history(db: AsyncSession, user_id: int) -> List[SearchHistory]:
    stmt = _newest_first(select(SearchHistory).where(SearchHistory.user_id == user_id))
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def add_history(db: AsyncSession, user_id: int, entry: SearchHistoryCreate) -> SearchHistory:
    record = SearchHistory(user_id=user_id, **entry.model_dump())
    db.add(record)
    await db.flush()

    # Keep only the most recent searches; anything past the cap is dropped.
    overflow_stmt = _newest_first(
        select(SearchHistory.id).where(SearchHistory.user_id == user_id)
    ).offset(MAX_HISTORY_PER_USER)
    overflow_ids = list((await db.execute(overflow_stmt)).scalars().all())
    if overflow_ids:
        await db.execute(delete(SearchHistory).where(SearchHistory.id.in_(overflow_ids)))
        logger.info(f"Trimmed {len(overflow_ids)} old search history entries for user {user_id}")

    await db.commit()
    await db.refresh(record)
    return record


async def remove_history(db: AsyncSession, user_id: int, history_id: int) -> None:
    # Deleting an unknown id (or someone else's) is a no-op.
    stmt = delete(SearchHistory).where(
        SearchHistory.id == history_id,
        SearchHistory.user_id == user_id,
    )
    await db.execute(stmt)
    await db.commit()
