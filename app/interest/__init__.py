"""
用户兴趣模块

提供标签规范化、兴趣分计算（饱和曲线 + 时间衰减）以及按 (user, tag) 串行化的更新服务。
"""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from app.interest.scoring import apply_time_decay, record_interaction, recompute_score
    from app.interest.service import InterestService

__all__ = [
    "InterestService",
    "apply_time_decay",
    "record_interaction",
    "recompute_score",
]
