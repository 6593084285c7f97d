"""
季节性推广加权

SeasonalBooster 基于一份推广规则快照工作（由调用方从仓储按时间范围取出），
本身不做 IO，所有判断都是 now 的纯函数。
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, List, Optional

from app.data.models import Content, SeasonalPromotion, UserProfile
from app.interest.normalization import normalize_tag, normalize_tags
from app.seasonal.recurrence import in_occurrence_window

GLOBAL_REGION = "global"


@dataclass(frozen=True)
class BoostContribution:
    promotion_id: str
    name: str
    factor: float
    explicit: bool  # 是否为 promotedContent 显式推广


def _priority_order(promotions: Iterable[SeasonalPromotion]) -> List[SeasonalPromotion]:
    # 同优先级按 id 排，保证多次调用顺序一致
    return sorted(promotions, key=lambda p: (-p.priority, p.promotion_id))


class SeasonalBooster:
    def __init__(self, promotions: Iterable[SeasonalPromotion] = ()):
        self._promotions = list(promotions)

    def find_active(self, now: datetime) -> List[SeasonalPromotion]:
        active = [
            p
            for p in self._promotions
            if p.is_active and p.start_date <= now <= p.end_date and in_occurrence_window(p, now)
        ]
        return _priority_order(active)

    def find_for_content(
        self,
        content: Content,
        now: datetime,
        promotions: Optional[List[SeasonalPromotion]] = None,
    ) -> List[SeasonalPromotion]:
        candidates = promotions if promotions is not None else self.find_active(now)
        return [p for p in candidates if matches_content(p, content)]

    def find_for_user(self, user: UserProfile, now: datetime) -> List[SeasonalPromotion]:
        return [p for p in self.find_active(now) if matches_user(p, user)]

    @staticmethod
    def boost_factor_for(content: Content, promotions: Iterable[SeasonalPromotion]) -> float:
        factor = 1.0
        for item in explain_boost(content, promotions):
            factor *= item.factor
        return factor


def matches_content(promotion: SeasonalPromotion, content: Content) -> bool:
    if promotion.promoted_factor(content.content_id) is not None:
        return True
    if content.content_type in promotion.boosted_content_types:
        return True
    boosted = set(normalize_tags(promotion.boosted_tags))
    return bool(boosted.intersection(normalize_tags(content.tags)))


def matches_user(promotion: SeasonalPromotion, user: UserProfile) -> bool:
    """分群与地区都按规范化（去空格、小写）后比较"""
    segments = set(normalize_tags(promotion.target_user_segments))
    if segments and not segments.intersection(normalize_tags(user.segments)):
        return False
    if not promotion.regions:
        return True
    regions = {normalize_tag(r) for r in promotion.regions}
    if GLOBAL_REGION in regions:
        return True
    return bool(user.region) and normalize_tag(user.region) in regions


def explain_boost(content: Content, promotions: Iterable[SeasonalPromotion]) -> List[BoostContribution]:
    """
    逐条列出对 content 生效的推广及其系数（按优先级从高到低）

    显式推广用 promotedContent 里的 boostFactor，否则用 globalBoostFactor；
    多条同时命中时系数相乘。
    """
    out: List[BoostContribution] = []
    for promotion in _priority_order(promotions):
        if not matches_content(promotion, content):
            continue
        explicit_factor = promotion.promoted_factor(content.content_id)
        if explicit_factor is not None:
            out.append(BoostContribution(promotion.promotion_id, promotion.name, explicit_factor, True))
        else:
            out.append(BoostContribution(promotion.promotion_id, promotion.name, promotion.global_boost_factor, False))
    return out
