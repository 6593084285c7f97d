"""
实验分桶

无状态：同一实验定义 + 同一 user_id 永远得到同一个 variant，不需要持久化分桶结果。
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from app.abtest.hashing import hash_string
from app.data.models import ExperimentDefinition, Variant


def is_running(experiment: ExperimentDefinition, now: datetime) -> bool:
    return experiment.is_active and experiment.start_date <= now <= experiment.end_date


def is_in_test(experiment: ExperimentDefinition, user_id: str) -> bool:
    """只看流量比例，不看实验是否在运行期"""
    if experiment.target_user_percentage >= 100:
        return True
    return hash_string(user_id) % 100 < experiment.target_user_percentage


def get_variant_for_user(
    experiment: ExperimentDefinition,
    user_id: str,
    now: datetime,
) -> Optional[Variant]:
    """
    Returns:
        命中的 variant；实验未运行或用户不在实验流量内时返回 None（走基线体验）
    """
    if not is_running(experiment, now):
        return None
    if not experiment.variants:
        return None

    if not is_in_test(experiment, user_id):
        return None
    return experiment.variants[hash_string(user_id) % len(experiment.variants)]
