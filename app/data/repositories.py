"""
仓储接口与内存实现

评分核心只依赖这里的抽象接口；MongoDB/MySQL 等存储细节全部留在实现类里。
内存实现用于单测、本地演示，以及作为画像/内容等外部协作方的占位。
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections import defaultdict
from dataclasses import replace
from datetime import datetime, timezone
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from app.data.models import (
    Content,
    ExperimentDefinition,
    InterestScore,
    PromotionInteraction,
    RecommendationEvent,
    SeasonalPromotion,
    UserProfile,
)


class InterestRepository(ABC):
    @abstractmethod
    async def get(self, user_id: str, tag: str) -> Optional[InterestScore]:
        pass

    @abstractmethod
    async def list_for_user(self, user_id: str) -> List[InterestScore]:
        pass

    @abstractmethod
    async def save(self, record: InterestScore) -> InterestScore:
        """按 (user_id, tag) upsert"""
        pass

    @abstractmethod
    async def list_user_ids(self) -> List[str]:
        pass


class ProfileRepository(ABC):
    @abstractmethod
    async def get(self, user_id: str) -> Optional[UserProfile]:
        pass


class ContentRepository(ABC):
    @abstractmethod
    async def find_candidates(
        self,
        limit: int,
        *,
        context: Optional[str] = None,
        tags: Optional[List[str]] = None,
    ) -> List[Content]:
        """按类目/标签/时间取候选集（由内容服务提供）"""
        pass

    @abstractmethod
    async def find_popular(self, limit: int) -> List[Content]:
        pass


class ExperimentRepository(ABC):
    @abstractmethod
    async def get(self, experiment_id: str) -> Optional[ExperimentDefinition]:
        pass

    @abstractmethod
    async def save(self, experiment: ExperimentDefinition) -> ExperimentDefinition:
        pass

    @abstractmethod
    async def list_all(self) -> List[ExperimentDefinition]:
        pass


class PromotionRepository(ABC):
    @abstractmethod
    async def get(self, promotion_id: str) -> Optional[SeasonalPromotion]:
        pass

    @abstractmethod
    async def save(self, promotion: SeasonalPromotion) -> SeasonalPromotion:
        pass

    @abstractmethod
    async def delete(self, promotion_id: str) -> bool:
        pass

    @abstractmethod
    async def find_in_range(self, now: datetime) -> List[SeasonalPromotion]:
        """startDate <= now <= endDate 的全部规则（是否启用、人群、周期由 booster 判断）"""
        pass


class RecommendationLogRepository(ABC):
    @abstractmethod
    async def append(self, event: RecommendationEvent) -> None:
        pass

    @abstractmethod
    async def user_algorithm_stats(self, user_id: str, since: datetime) -> List[Dict]:
        """按 algorithm 分组：count / total_recommendations / avg_processing_time"""
        pass

    @abstractmethod
    async def ab_test_variant_stats(self, ab_test_id: str) -> List[Dict]:
        """按 variant 分组：count / unique_users / total_recommendations / avg_processing_time"""
        pass

    @abstractmethod
    async def delete_before(self, cutoff: datetime) -> int:
        pass


class PromotionAnalyticsRepository(ABC):
    @abstractmethod
    async def append_many(self, interactions: List[PromotionInteraction]) -> None:
        pass

    @abstractmethod
    async def summarize(self, promotion_id: str, since: Optional[datetime] = None) -> Dict:
        """impressions / clicks / unique_users"""
        pass

    @abstractmethod
    async def daily_stats(self, promotion_id: str, since: Optional[datetime] = None) -> List[Dict]:
        """按 UTC 日期分组：date(YYYY-MM-DD) / impressions / clicks，日期升序"""
        pass


# ----------------- in-memory implementations -----------------


class InMemoryInterestRepository(InterestRepository):
    def __init__(self, records: Iterable[InterestScore] = ()) -> None:
        self._records: Dict[Tuple[str, str], InterestScore] = {}
        for record in records:
            self._records[record.key] = replace(record)

    async def get(self, user_id: str, tag: str) -> Optional[InterestScore]:
        record = self._records.get((user_id, tag))
        return replace(record) if record else None

    async def list_for_user(self, user_id: str) -> List[InterestScore]:
        return [replace(r) for (uid, _), r in self._records.items() if uid == user_id]

    async def save(self, record: InterestScore) -> InterestScore:
        self._records[record.key] = replace(record)
        return record

    async def list_user_ids(self) -> List[str]:
        return sorted({uid for uid, _ in self._records})


class InMemoryProfileRepository(ProfileRepository):
    def __init__(self, profiles: Iterable[UserProfile] = ()) -> None:
        self._profiles: Dict[str, UserProfile] = {p.user_id: p for p in profiles}

    async def get(self, user_id: str) -> Optional[UserProfile]:
        return self._profiles.get(user_id)


class InMemoryContentRepository(ContentRepository):
    def __init__(self, contents: Iterable[Content] = ()) -> None:
        self._contents: Dict[str, Content] = {c.content_id: c for c in contents}

    async def find_candidates(
        self,
        limit: int,
        *,
        context: Optional[str] = None,
        tags: Optional[List[str]] = None,
    ) -> List[Content]:
        if limit <= 0:
            return []
        wanted = {t.casefold() for t in tags or []}
        items = [c for c in self._contents.values() if c.is_active]
        if wanted:
            items = [c for c in items if wanted.intersection(t.casefold() for t in c.tags)]
        items.sort(key=_published_sort_key, reverse=True)
        return items[:limit]

    async def find_popular(self, limit: int) -> List[Content]:
        if limit <= 0:
            return []
        items = [c for c in self._contents.values() if c.is_active]
        items.sort(
            key=lambda c: (c.view_count, c.like_count, c.share_count, _published_sort_key(c)),
            reverse=True,
        )
        return items[:limit]


class InMemoryExperimentRepository(ExperimentRepository):
    def __init__(self) -> None:
        self._experiments: Dict[str, ExperimentDefinition] = {}

    async def get(self, experiment_id: str) -> Optional[ExperimentDefinition]:
        return self._experiments.get(experiment_id)

    async def save(self, experiment: ExperimentDefinition) -> ExperimentDefinition:
        self._experiments[experiment.experiment_id] = experiment
        return experiment

    async def list_all(self) -> List[ExperimentDefinition]:
        return list(self._experiments.values())


class InMemoryPromotionRepository(PromotionRepository):
    def __init__(self, promotions: Iterable[SeasonalPromotion] = ()) -> None:
        self._promotions: Dict[str, SeasonalPromotion] = {p.promotion_id: p for p in promotions}

    async def get(self, promotion_id: str) -> Optional[SeasonalPromotion]:
        return self._promotions.get(promotion_id)

    async def save(self, promotion: SeasonalPromotion) -> SeasonalPromotion:
        self._promotions[promotion.promotion_id] = promotion
        return promotion

    async def delete(self, promotion_id: str) -> bool:
        return self._promotions.pop(promotion_id, None) is not None

    async def find_in_range(self, now: datetime) -> List[SeasonalPromotion]:
        return [p for p in self._promotions.values() if p.start_date <= now <= p.end_date]


class InMemoryRecommendationLogRepository(RecommendationLogRepository):
    def __init__(self) -> None:
        self.events: List[RecommendationEvent] = []

    async def append(self, event: RecommendationEvent) -> None:
        self.events.append(event)

    async def user_algorithm_stats(self, user_id: str, since: datetime) -> List[Dict]:
        events = [e for e in self.events if e.user_id == user_id and e.timestamp >= since]
        return _group_events(events, lambda e: e.algorithm, "algorithm")

    async def ab_test_variant_stats(self, ab_test_id: str) -> List[Dict]:
        events = [e for e in self.events if e.ab_test_id == ab_test_id]
        return _group_events(events, lambda e: e.ab_test_variant, "variant")

    async def delete_before(self, cutoff: datetime) -> int:
        before = len(self.events)
        self.events = [e for e in self.events if e.timestamp >= cutoff]
        return before - len(self.events)


class InMemoryPromotionAnalyticsRepository(PromotionAnalyticsRepository):
    def __init__(self) -> None:
        self.interactions: List[PromotionInteraction] = []

    async def append_many(self, interactions: List[PromotionInteraction]) -> None:
        self.interactions.extend(interactions)

    def _select(self, promotion_id: str, since: Optional[datetime]) -> List[PromotionInteraction]:
        return [
            i for i in self.interactions
            if i.promotion_id == promotion_id and (since is None or i.timestamp >= since)
        ]

    async def summarize(self, promotion_id: str, since: Optional[datetime] = None) -> Dict:
        items = self._select(promotion_id, since)
        return {
            "impressions": sum(1 for i in items if i.kind == "impression"),
            "clicks": sum(1 for i in items if i.kind == "click"),
            "unique_users": len({i.user_id for i in items if i.user_id}),
        }

    async def daily_stats(self, promotion_id: str, since: Optional[datetime] = None) -> List[Dict]:
        days: Dict[str, Dict] = {}
        for item in self._select(promotion_id, since):
            day = item.timestamp.astimezone(timezone.utc).date().isoformat()
            row = days.setdefault(day, {"date": day, "impressions": 0, "clicks": 0})
            row["impressions" if item.kind == "impression" else "clicks"] += 1
        return [days[d] for d in sorted(days)]


def _published_sort_key(content: Content) -> float:
    return content.published_at.timestamp() if content.published_at else float("-inf")


def _group_events(
    events: List[RecommendationEvent],
    key_fn: Callable[[RecommendationEvent], Optional[str]],
    key_name: str,
) -> List[Dict]:
    groups: Dict[Optional[str], List[RecommendationEvent]] = defaultdict(list)
    for event in events:
        groups[key_fn(event)].append(event)

    out: List[Dict] = []
    for key, items in groups.items():
        times = [e.response_metrics.processing_time_ms for e in items if e.response_metrics]
        out.append(
            {
                key_name: key,
                "count": len(items),
                "unique_users": len({e.user_id for e in items}),
                "total_recommendations": sum(len(e.content_ids) for e in items),
                # 与 $avg 一致：没有耗时数据时为 None
                "avg_processing_time": (sum(times) / len(times)) if times else None,
            }
        )
    return out
