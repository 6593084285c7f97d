"""
推荐日志

log() 是 fire-and-forget：写入放到后台 task，失败只记 loguru 错误日志，不影响已返回的推荐结果。
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta
from typing import Optional, Set

from loguru import logger

from app.core.config import Settings
from app.data.models import RecommendationEvent, utcnow
from app.data.repositories import RecommendationLogRepository
from app.schemas.stats_schema import ABTestStats, AlgorithmStats, UserRecommendationStats, VariantStats

DEFAULT_RETENTION_DAYS = 90
DEFAULT_STATS_DAYS = 30


class RecommendationLogger:
    def __init__(
        self,
        repo: RecommendationLogRepository,
        retention_days: int = DEFAULT_RETENTION_DAYS,
        stats_days: int = DEFAULT_STATS_DAYS,
    ):
        self._repo = repo
        self.retention_days = retention_days
        self.stats_days = stats_days
        self._pending: Set[asyncio.Task] = set()

    @classmethod
    def from_settings(cls, repo: RecommendationLogRepository, settings: Settings) -> "RecommendationLogger":
        return cls(repo, retention_days=settings.LOG_RETENTION_DAYS, stats_days=settings.USER_STATS_DEFAULT_DAYS)

    def log(self, event: RecommendationEvent) -> asyncio.Task:
        """不等待写入完成；需要在事件循环中调用"""
        task = asyncio.create_task(self._write(event))
        # 保留强引用，避免 task 被 GC 回收
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def _write(self, event: RecommendationEvent) -> bool:
        try:
            await self._repo.append(event)
            return True
        except Exception as e:
            logger.error(
                f"[RecommendationLogger] 推荐日志写入失败 user={event.user_id} "
                f"algorithm={event.algorithm}: {e!r}"
            )
            return False

    async def drain(self) -> None:
        """等待所有未完成的写入（测试与进程退出前使用）"""
        while self._pending:
            await asyncio.gather(*list(self._pending))

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    async def get_user_stats(
        self,
        user_id: str,
        days: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> UserRecommendationStats:
        """days 默认取 stats_days（USER_STATS_DEFAULT_DAYS）"""
        if days is None:
            days = self.stats_days
        since = (now or utcnow()) - timedelta(days=days)
        rows = await self._repo.user_algorithm_stats(user_id, since)
        algorithms = [AlgorithmStats.model_validate(r) for r in rows]
        algorithms.sort(key=lambda s: (-s.count, s.algorithm))
        return UserRecommendationStats(user_id=user_id, days=days, algorithms=algorithms)

    async def get_ab_test_stats(self, ab_test_id: str) -> ABTestStats:
        rows = await self._repo.ab_test_variant_stats(ab_test_id)
        variants = [VariantStats.model_validate(r) for r in rows]
        variants.sort(key=lambda s: s.variant or "")
        return ABTestStats(ab_test_id=ab_test_id, variants=variants)

    async def purge_expired(self, now: Optional[datetime] = None) -> int:
        cutoff = (now or utcnow()) - timedelta(days=self.retention_days)
        deleted = await self._repo.delete_before(cutoff)
        logger.info(f"[RecommendationLogger] 清理 {cutoff.isoformat()} 之前的推荐日志 {deleted} 条")
        return deleted
