"""
兴趣分计算（纯函数，便于单测）

score = min(1, 1 - e^(-k * interactionCount))，显式选择再 +0.3，最后截断到 [0, 1]。
时间衰减只返回新分值，不修改记录；需要落库时由 InterestService.persist_decay 显式保存。
"""

from __future__ import annotations

import math
from dataclasses import replace
from datetime import datetime
from typing import Optional

from app.data.models import InterestScore, utcnow
from app.interest.normalization import normalize_tag

GROWTH_RATE = 0.1  # k，越小增长越慢
EXPLICIT_BOOST = 0.3
DECAY_PERIOD_DAYS = 30.0
EXPLICIT_SCORE_FLOOR = 0.3
IMPLICIT_SCORE_FLOOR = 0.1
SECONDS_PER_DAY = 86400.0


def _clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return max(low, min(high, value))


def recompute_score(interaction_count: int, explicitly_selected: bool = False) -> float:
    base = min(1.0, 1.0 - math.exp(-GROWTH_RATE * interaction_count))
    if explicitly_selected:
        base += EXPLICIT_BOOST
    return _clamp(base)


def refresh_score(record: InterestScore) -> InterestScore:
    """interactionCount 为 0 时保持原分值（默认 0.5）。"""
    if record.interaction_count > 0:
        record.score = recompute_score(record.interaction_count, record.explicitly_selected)
    return record


def record_interaction(
    existing: Optional[InterestScore],
    tag: str,
    explicit: bool = False,
    *,
    user_id: Optional[str] = None,
    now: Optional[datetime] = None,
) -> InterestScore:
    """
    记录一次 (user, tag) 交互，返回新的记录（不修改 existing）

    - 首次交互：interactionCount = 1
    - 之后每次：interactionCount + 1，lastInteraction = now
    - 显式选择是粘性的：一旦为 True 不会回到 False
    """
    now = now or utcnow()
    if existing is None:
        if not user_id:
            raise ValueError("首次交互必须提供 user_id")
        normalized = normalize_tag(tag)
        if not normalized:
            raise ValueError("tag 不能为空")
        record = InterestScore(
            user_id=user_id,
            tag=normalized,
            interaction_count=1,
            explicitly_selected=bool(explicit),
            first_interaction=now,
            last_interaction=now,
        )
        return refresh_score(record)

    record = replace(
        existing,
        interaction_count=existing.interaction_count + 1,
        explicitly_selected=existing.explicitly_selected or bool(explicit),
        last_interaction=now,
        decayed_at=None,
    )
    if record.first_interaction is None:
        record.first_interaction = now
    return refresh_score(record)


def days_since_last_interaction(record: InterestScore, reference_time: datetime) -> Optional[float]:
    if record.last_interaction is None:
        return None
    return (reference_time - record.last_interaction).total_seconds() / SECONDS_PER_DAY


def decay_reference(record: InterestScore) -> Optional[datetime]:
    """score 对应的时刻：上次交互与上次衰减落库中较晚的一个"""
    if record.decayed_at is None:
        return record.last_interaction
    if record.last_interaction is None:
        return record.decayed_at
    return max(record.last_interaction, record.decayed_at)


def apply_time_decay(record: InterestScore, reference_time: Optional[datetime] = None) -> float:
    """
    计算衰减后的分值（不修改 record）

    - 距上次交互不足 1 天：不衰减
    - 否则 factor = exp(-decayRate * days / 30)
    - 下限：显式兴趣 0.3，隐式兴趣 0.1

    已经落库过衰减的记录只补上 decayed_at 之后的那段时间，
    多次落库与一次性计算得到相同的结果。
    """
    reference_time = reference_time or utcnow()
    days = days_since_last_interaction(record, reference_time)
    if days is None or days < 1:
        return record.score

    since = decay_reference(record)
    elapsed = max(0.0, (reference_time - since).total_seconds() / SECONDS_PER_DAY)
    time_decay_factor = math.exp(-record.decay_rate * elapsed / DECAY_PERIOD_DAYS)
    new_score = record.score * time_decay_factor

    score_floor = EXPLICIT_SCORE_FLOOR if record.explicitly_selected else IMPLICIT_SCORE_FLOOR
    return max(score_floor, new_score)


def decayed_copy(record: InterestScore, reference_time: Optional[datetime] = None) -> InterestScore:
    return replace(record, score=apply_time_decay(record, reference_time))


def persisted_decay(record: InterestScore, reference_time: datetime) -> InterestScore:
    """写回存储用的衰减副本：带上 decayed_at，后续衰减从这里接着算"""
    return replace(record, score=apply_time_decay(record, reference_time), decayed_at=reference_time)
