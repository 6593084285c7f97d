"""
推荐核心的数据记录

全部是纯数据（dataclass），不依赖任何存储引擎；持久化由 repositories 负责。
时间字段统一使用带时区的 UTC datetime。
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

DEFAULT_INTEREST_SCORE = 0.5
DEFAULT_DECAY_RATE = 0.05


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class InterestScore:
    """单个 (user, tag) 的兴趣分，分值在 [0, 1]。"""

    user_id: str
    tag: str  # 已规范化（小写）
    interaction_count: int = 0
    explicitly_selected: bool = False
    score: float = DEFAULT_INTEREST_SCORE
    first_interaction: Optional[datetime] = None
    last_interaction: Optional[datetime] = None
    decay_rate: float = DEFAULT_DECAY_RATE
    # 衰减写回存储的时间；score 已经衰减到这个时刻，下次从这里继续算
    decayed_at: Optional[datetime] = None

    @property
    def key(self) -> Tuple[str, str]:
        return (self.user_id, self.tag)


@dataclass
class Variant:
    name: str
    description: str = ""
    parameters: Dict[str, Any] = field(default_factory=dict)


@dataclass
class ExperimentDefinition:
    experiment_id: str
    name: str
    variants: List[Variant]
    start_date: datetime
    end_date: datetime
    target_user_percentage: int = 100
    segmentation_filters: Dict[str, Any] = field(default_factory=dict)
    goals: List[str] = field(default_factory=lambda: ["click_through_rate", "engagement"])
    is_active: bool = True
    description: str = ""


@dataclass
class PromotedContent:
    content_id: str
    boost_factor: float = 1.5


@dataclass
class RecurrencePattern:
    type: str = "yearly"
    month: Optional[int] = None  # 1-12，仅 yearly
    day: Optional[int] = None  # 1-31，yearly / monthly
    day_of_week: Optional[int] = None  # 0-6（周日=0），仅 weekly
    duration_days: int = 7


@dataclass
class SeasonalPromotion:
    promotion_id: str
    name: str
    start_date: datetime
    end_date: datetime
    is_active: bool = True
    priority: int = 1
    boosted_tags: List[str] = field(default_factory=list)
    boosted_content_types: List[str] = field(default_factory=list)
    promoted_content: List[PromotedContent] = field(default_factory=list)
    target_user_segments: List[str] = field(default_factory=list)
    regions: List[str] = field(default_factory=list)
    global_boost_factor: float = 1.3
    is_recurring: bool = False
    recurrence: Optional[RecurrencePattern] = None
    description: str = ""
    metadata: Dict[str, Any] = field(default_factory=dict)

    def promoted_factor(self, content_id: str) -> Optional[float]:
        for item in self.promoted_content:
            if item.content_id == content_id:
                return item.boost_factor
        return None


@dataclass(frozen=True)
class ResponseMetrics:
    processing_time_ms: float
    total_candidates: int
    filtered_results: int


@dataclass(frozen=True)
class RecommendationEvent:
    """一次推荐请求的日志，只追加、不修改。"""

    user_id: str
    content_ids: Tuple[str, ...]
    algorithm: str
    timestamp: datetime
    ab_test_id: Optional[str] = None
    ab_test_variant: Optional[str] = None
    context: Optional[str] = None
    request_parameters: Dict[str, Any] = field(default_factory=dict)
    response_metrics: Optional[ResponseMetrics] = None
    model_version: str = "1.0.0"


@dataclass
class TCMProperties:
    taste: List[str] = field(default_factory=list)  # 甘 苦 辛 酸 咸 淡
    nature: List[str] = field(default_factory=list)  # 寒 凉 平 温 热
    meridians: List[str] = field(default_factory=list)
    effects: List[str] = field(default_factory=list)
    contraindications: List[str] = field(default_factory=list)


@dataclass
class Content:
    content_id: str
    tags: List[str] = field(default_factory=list)
    content_type: str = "article"
    title: str = ""
    tcm_properties: TCMProperties = field(default_factory=TCMProperties)
    published_at: Optional[datetime] = None
    view_count: int = 0
    like_count: int = 0
    share_count: int = 0
    is_active: bool = True


@dataclass
class UserProfile:
    user_id: str
    constitution: Optional[str] = None
    health_conditions: List[str] = field(default_factory=list)
    goals: List[str] = field(default_factory=list)
    segments: List[str] = field(default_factory=list)
    region: Optional[str] = None


@dataclass
class ScoredCandidate:
    """排序后的候选内容"""

    content_id: str
    score: float
    reason: Optional[str] = None
    published_at: Optional[datetime] = None
    # 对这条内容生效的推广，用于曝光统计
    promotion_ids: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        """转换为字典格式"""
        return {
            "contentId": self.content_id,
            "score": self.score,
            "reason": self.reason,
        }


@dataclass(frozen=True)
class PromotionInteraction:
    """推广的一次曝光或点击，只追加"""

    promotion_id: str
    kind: str  # impression / click
    timestamp: datetime
    user_id: Optional[str] = None
    content_id: Optional[str] = None
