from __future__ import annotations

import asyncio
from datetime import datetime
from typing import List, Optional

from app.data.models import (
    Content,
    InterestScore,
    PromotionInteraction,
    RecommendationEvent,
    SeasonalPromotion,
    UserProfile,
)
from app.data.repositories import (
    ContentRepository,
    InMemoryInterestRepository,
    InMemoryPromotionAnalyticsRepository,
    InMemoryRecommendationLogRepository,
    ProfileRepository,
    PromotionRepository,
)


class YieldingInterestRepository(InMemoryInterestRepository):
    """get/save 之间让出事件循环，放大并发读改写的竞态"""

    async def get(self, user_id: str, tag: str) -> Optional[InterestScore]:
        await asyncio.sleep(0)
        return await super().get(user_id, tag)

    async def save(self, record: InterestScore) -> InterestScore:
        await asyncio.sleep(0)
        return await super().save(record)


class SlowProfileRepository(ProfileRepository):
    def __init__(self, delay: float):
        self.delay = delay

    async def get(self, user_id: str) -> Optional[UserProfile]:
        await asyncio.sleep(self.delay)
        return UserProfile(user_id=user_id)


class BrokenPromotionRepository(PromotionRepository):
    async def get(self, promotion_id: str) -> Optional[SeasonalPromotion]:
        raise ConnectionError("promotion store down")

    async def save(self, promotion: SeasonalPromotion) -> SeasonalPromotion:
        raise ConnectionError("promotion store down")

    async def delete(self, promotion_id: str) -> bool:
        raise ConnectionError("promotion store down")

    async def find_in_range(self, now: datetime) -> List[SeasonalPromotion]:
        raise ConnectionError("promotion store down")


class BrokenContentRepository(ContentRepository):
    async def find_candidates(self, limit, *, context=None, tags=None) -> List[Content]:
        raise ConnectionError("content store down")

    async def find_popular(self, limit: int) -> List[Content]:
        raise ConnectionError("content store down")


class SlowContentRepository(ContentRepository):
    def __init__(self, delay: float):
        self.delay = delay

    async def find_candidates(self, limit, *, context=None, tags=None) -> List[Content]:
        await asyncio.sleep(self.delay)
        return []

    async def find_popular(self, limit: int) -> List[Content]:
        await asyncio.sleep(self.delay)
        return []


class FailingLogRepository(InMemoryRecommendationLogRepository):
    async def append(self, event: RecommendationEvent) -> None:
        raise ConnectionError("log store down")


class FailingAnalyticsRepository(InMemoryPromotionAnalyticsRepository):
    async def append_many(self, interactions: List[PromotionInteraction]) -> None:
        raise ConnectionError("analytics store down")
