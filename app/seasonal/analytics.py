"""
季节性推广效果统计

曝光在返回推荐结果时顺带记录（fire-and-forget，失败只记日志）；
点击由前端上报，直接等待写入，失败抛给调用方。
点击率 = clicks / impressions * 100，没有曝光时为 0。
"""

from __future__ import annotations

import asyncio
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Set

from loguru import logger

from app.data.enums import PromotionInteractionKind
from app.data.models import PromotionInteraction, ScoredCandidate, SeasonalPromotion, utcnow
from app.data.repositories import PromotionAnalyticsRepository
from app.schemas.stats_schema import DailyPromotionStats, PromotionEffectiveness


def click_through_rate(impressions: int, clicks: int) -> float:
    if impressions <= 0:
        return 0.0
    return clicks / impressions * 100.0


class PromotionTracker:
    def __init__(self, repo: PromotionAnalyticsRepository):
        self._repo = repo
        self._pending: Set[asyncio.Task] = set()

    def track_impressions(
        self,
        user_id: str,
        items: Iterable[ScoredCandidate],
        now: Optional[datetime] = None,
    ) -> Optional[asyncio.Task]:
        """对每条返回内容上生效的推广各记一次曝光；没有推广时不建 task"""
        now = now or utcnow()
        interactions = [
            PromotionInteraction(
                promotion_id=promotion_id,
                kind=PromotionInteractionKind.impression.value,
                timestamp=now,
                user_id=user_id,
                content_id=item.content_id,
            )
            for item in items
            for promotion_id in item.promotion_ids
        ]
        if not interactions:
            return None
        task = asyncio.create_task(self._write(interactions))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def _write(self, interactions: List[PromotionInteraction]) -> bool:
        try:
            await self._repo.append_many(interactions)
            return True
        except Exception as e:
            logger.error(f"[PromotionTracker] 推广曝光写入失败 count={len(interactions)}: {e!r}")
            return False

    async def drain(self) -> None:
        while self._pending:
            await asyncio.gather(*list(self._pending))

    async def track_click(
        self,
        promotion_id: str,
        user_id: Optional[str] = None,
        content_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> PromotionInteraction:
        if not promotion_id:
            raise ValueError("promotion_id 不能为空")
        click = PromotionInteraction(
            promotion_id=promotion_id,
            kind=PromotionInteractionKind.click.value,
            timestamp=now or utcnow(),
            user_id=user_id,
            content_id=content_id,
        )
        await self._repo.append_many([click])
        return click

    async def get_effectiveness(
        self,
        promotion_id: str,
        promotion: Optional[SeasonalPromotion] = None,
        since: Optional[datetime] = None,
    ) -> PromotionEffectiveness:
        summary: Dict = await self._repo.summarize(promotion_id, since)
        daily = await self._repo.daily_stats(promotion_id, since)
        out = PromotionEffectiveness(
            promotion_id=promotion_id,
            impressions=summary["impressions"],
            clicks=summary["clicks"],
            unique_users=summary["unique_users"],
            click_through_rate=click_through_rate(summary["impressions"], summary["clicks"]),
            daily_performance=[DailyPromotionStats.model_validate(d) for d in daily],
        )
        if promotion is not None:
            out.promotion_name = promotion.name
            out.is_active = promotion.is_active
            out.start_date = promotion.start_date
            out.end_date = promotion.end_date
        return out

    async def calculate_effectiveness(
        self,
        promotions: Iterable[SeasonalPromotion],
        since: Optional[datetime] = None,
    ) -> List[PromotionEffectiveness]:
        """多条推广一起看，按点击率从高到低"""
        results = [await self.get_effectiveness(p.promotion_id, p, since) for p in promotions]
        results.sort(key=lambda r: (-r.click_through_rate, r.promotion_id))
        return results
