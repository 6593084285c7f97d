from __future__ import annotations


class RecommendationError(Exception):
    """推荐核心异常基类"""


class ExperimentConfigError(RecommendationError, ValueError):
    """实验定义不合法（只在定义阶段抛出，分桶阶段不会出现）"""


class PromotionConfigError(RecommendationError, ValueError):
    """季节性推广规则不合法"""


class CandidateFetchError(RecommendationError):
    """必需的候选集获取失败或超时，本次推荐请求失败"""
