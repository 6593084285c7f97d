from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class AlgorithmStats(BaseModel):
    """某个用户在窗口期内按算法聚合的推荐日志"""

    algorithm: str
    count: int
    total_recommendations: int = Field(..., alias="totalRecommendations")
    avg_processing_time: Optional[float] = Field(default=None, alias="avgProcessingTime")

    model_config = ConfigDict(populate_by_name=True)


class UserRecommendationStats(BaseModel):
    user_id: str = Field(..., alias="userId")
    days: int
    algorithms: List[AlgorithmStats] = Field(default_factory=list)

    model_config = ConfigDict(populate_by_name=True)


class VariantStats(BaseModel):
    """实验某个分组的汇总，评估实验效果的主要输入"""

    variant: Optional[str] = None
    count: int
    unique_users: int = Field(..., alias="uniqueUsers")
    total_recommendations: int = Field(..., alias="totalRecommendations")
    avg_processing_time: Optional[float] = Field(default=None, alias="avgProcessingTime")

    model_config = ConfigDict(populate_by_name=True)


class ABTestStats(BaseModel):
    ab_test_id: str = Field(..., alias="abTestId")
    variants: List[VariantStats] = Field(default_factory=list)

    model_config = ConfigDict(populate_by_name=True)


class DailyPromotionStats(BaseModel):
    date: str
    impressions: int = 0
    clicks: int = 0


class PromotionEffectiveness(BaseModel):
    """推广效果：曝光、点击与点击率（百分比）"""

    promotion_id: str = Field(..., alias="promotionId")
    promotion_name: str = Field(default="Unknown Promotion", alias="promotionName")
    is_active: bool = Field(default=False, alias="isActive")
    start_date: Optional[datetime] = Field(default=None, alias="startDate")
    end_date: Optional[datetime] = Field(default=None, alias="endDate")
    impressions: int = 0
    clicks: int = 0
    unique_users: int = Field(default=0, alias="uniqueUsers")
    click_through_rate: float = Field(default=0.0, alias="clickThroughRate")
    daily_performance: List[DailyPromotionStats] = Field(default_factory=list, alias="dailyPerformance")

    model_config = ConfigDict(populate_by_name=True)
