"""
候选内容打分与排序

final = (兴趣分之和 或 冷启动先验 + 体质/目标匹配加分) * 季节加权系数
排序：分数降序 -> publishedAt 降序（无发布时间的排最后）-> content_id 升序
"""

from __future__ import annotations

import time
from typing import Callable, Dict, Iterable, List, Optional

from loguru import logger

from app.data.models import Content, InterestScore, ScoredCandidate, SeasonalPromotion, UserProfile
from app.interest.normalization import normalize_tag, normalize_tags
from app.ranking.constitution import preference_for
from app.seasonal.booster import explain_boost

DEFAULT_PROFILE_MATCH_BONUS = 0.2
DEFAULT_COLD_START_PRIOR = 0.1


class CandidateScorer:
    """
    无状态打分器：输入全是调用方准备好的快照（已衰减的兴趣、画像、候选集、生效推广）

    deadline 为 clock() 的绝对值；超时后只对已打分的部分排序返回。
    """

    def __init__(
        self,
        profile_match_bonus: float = DEFAULT_PROFILE_MATCH_BONUS,
        cold_start_prior: float = DEFAULT_COLD_START_PRIOR,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.profile_match_bonus = profile_match_bonus
        self.cold_start_prior = cold_start_prior
        self.clock = clock

    def rank(
        self,
        user_interests: Iterable[InterestScore],
        profile: Optional[UserProfile],
        candidates: Iterable[Content],
        promotions: Iterable[SeasonalPromotion] = (),
        limit: Optional[int] = None,
        *,
        deadline: Optional[float] = None,
    ) -> List[ScoredCandidate]:
        interests = interest_map(user_interests)
        promotions = list(promotions)

        scored: List[ScoredCandidate] = []
        seen: set[str] = set()
        candidates = list(candidates)
        for content in candidates:
            if deadline is not None and self.clock() >= deadline:
                logger.warning(
                    f"[CandidateScorer] 打分超出时间预算，返回已打分的 {len(scored)}/{len(candidates)} 条"
                )
                break
            if content.content_id in seen:
                continue
            seen.add(content.content_id)
            scored.append(self.score(content, interests, profile, promotions))

        scored.sort(key=sort_key)
        if limit is not None:
            scored = scored[: max(0, limit)]
        return scored

    def score(
        self,
        content: Content,
        interests: Dict[str, float],
        profile: Optional[UserProfile],
        promotions: List[SeasonalPromotion],
    ) -> ScoredCandidate:
        reasons: List[str] = []

        # 1. 兴趣亲和度
        if interests:
            matched = [t for t in normalize_tags(content.tags) if t in interests]
            base = sum(interests[t] for t in matched)
            if matched:
                reasons.append("interest:" + ",".join(matched))
        else:
            base = self.cold_start_prior

        # 2. 体质 / 健康目标匹配
        profile_reason = profile_match(content, profile)
        if profile_reason:
            base += self.profile_match_bonus
            reasons.append(profile_reason)

        # 3. 季节推广
        factor = 1.0
        promotion_ids: List[str] = []
        for item in explain_boost(content, promotions):
            factor *= item.factor
            promotion_ids.append(item.promotion_id)
            reasons.append(f"seasonal:{item.name} x{item.factor:g}")

        return ScoredCandidate(
            content_id=content.content_id,
            score=base * factor,
            reason="; ".join(reasons) or None,
            published_at=content.published_at,
            promotion_ids=tuple(promotion_ids),
        )


def interest_map(user_interests: Iterable[InterestScore]) -> Dict[str, float]:
    out: Dict[str, float] = {}
    for record in user_interests:
        tag = normalize_tag(record.tag)
        if tag:
            out[tag] = record.score
    return out


def profile_match(content: Content, profile: Optional[UserProfile]) -> Optional[str]:
    """命中返回原因描述，未命中返回 None；同时命中多项也只算一次加分"""
    if profile is None:
        return None
    props = content.tcm_properties
    natures = {n.strip() for n in props.nature}
    effects = {normalize_tag(e) for e in props.effects}

    pref = preference_for(profile.constitution)
    if pref is not None:
        if natures & pref.natures:
            return f"constitution:{pref.constitution}"
        if effects & {normalize_tag(e) for e in pref.effects}:
            return f"constitution:{pref.constitution}"

    goals = {normalize_tag(g) for g in profile.goals}
    hit = sorted(effects & goals)
    if hit:
        return "goal:" + ",".join(hit)
    return None


def sort_key(item: ScoredCandidate):
    published = item.published_at.timestamp() if item.published_at else float("-inf")
    return (-item.score, -published, item.content_id)
