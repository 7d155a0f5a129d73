"""Delivery queue over stored recommendations.

Records move forward only: Unshown -> Shown -> Rated.
"""

import logging

from sqlalchemy import and_, case, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from reelsynth.constants import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from reelsynth.models.recommendation import RecommendationBatch, RecommendationRecord
from reelsynth.models.schemas import CatalogItemRead, DeliveredItem, QueueStatus

logger = logging.getLogger(__name__)


class DeliveryQueue:
    """Hand out queued recommendations a page at a time."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def next_batch(self, user_id: int, limit: int = DEFAULT_PAGE_SIZE) -> list[DeliveredItem]:
        """Return up to ``limit`` unshown recommendations and mark them shown.

        Newest batch first, then by position. The whole page is marked in
        one UPDATE and one commit, so two consecutive calls never overlap.
        """
        limit = max(1, min(limit, MAX_PAGE_SIZE))

        result = await self.db.execute(
            select(RecommendationRecord.id)
            .join(RecommendationBatch, RecommendationRecord.batch_id == RecommendationBatch.id)
            .where(
                RecommendationRecord.user_id == user_id,
                RecommendationRecord.shown.is_(False),
                RecommendationRecord.rated.is_(False),
            )
            .order_by(
                RecommendationBatch.generated_at.desc(),
                RecommendationRecord.position.asc(),
                RecommendationRecord.id.asc(),
            )
            .limit(limit)
        )
        record_ids = list(result.scalars().all())
        if not record_ids:
            logger.info(f"No unshown recommendations for user {user_id}")
            return []

        await self.db.execute(
            update(RecommendationRecord)
            .where(
                RecommendationRecord.id.in_(record_ids),
                RecommendationRecord.shown.is_(False),
            )
            .values(shown=True)
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()

        result = await self.db.execute(
            select(RecommendationRecord)
            .options(selectinload(RecommendationRecord.item))
            .where(RecommendationRecord.id.in_(record_ids))
            .execution_options(populate_existing=True)
        )
        records = {record.id: record for record in result.scalars().all()}

        delivered = [
            DeliveredItem(
                record_id=record.id,
                batch_id=record.batch_id,
                position=record.position,
                reason=record.reason,
                match_percentage=record.match_percentage,
                state=record.state,
                item=CatalogItemRead.model_validate(record.item),
            )
            for record in (records[record_id] for record_id in record_ids)
        ]
        logger.info(f"Delivered {len(delivered)} recommendations to user {user_id}")
        return delivered

    async def mark_rated(self, user_id: int, item_id: int) -> int:
        """Move every record of ``item_id`` for the user to Rated.

        Idempotent. Returns the number of records changed.
        """
        result = await self.db.execute(
            update(RecommendationRecord)
            .where(
                RecommendationRecord.user_id == user_id,
                RecommendationRecord.item_id == item_id,
                RecommendationRecord.rated.is_(False),
            )
            .values(rated=True, shown=True)
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()

        changed = result.rowcount or 0
        if changed:
            logger.info(f"Marked {changed} recommendations of item {item_id} rated for user {user_id}")
        return changed

    async def status(self, user_id: int) -> QueueStatus:
        """Counts per state; ``available`` is what can still be delivered or re-shown."""
        unshown = and_(RecommendationRecord.shown.is_(False), RecommendationRecord.rated.is_(False))
        shown = and_(RecommendationRecord.shown.is_(True), RecommendationRecord.rated.is_(False))

        result = await self.db.execute(
            select(
                func.count(RecommendationRecord.id),
                func.coalesce(func.sum(case((unshown, 1), else_=0)), 0),
                func.coalesce(func.sum(case((shown, 1), else_=0)), 0),
                func.coalesce(func.sum(case((RecommendationRecord.rated.is_(True), 1), else_=0)), 0),
            ).where(RecommendationRecord.user_id == user_id)
        )
        total, unshown_count, shown_count, rated_count = result.one()

        return QueueStatus(
            total=total,
            unshown=unshown_count,
            shown=shown_count,
            rated=rated_count,
            available=unshown_count + shown_count,
        )
