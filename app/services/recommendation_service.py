"""
推荐请求编排

流程：并发拉取兴趣/画像/实验/推广（可降级）-> 拉取候选集（必需）-> 分桶 -> 打分排序 -> 异步写日志
"""

from __future__ import annotations

import asyncio
from datetime import datetime
from typing import Any, Awaitable, List, Optional, Tuple, TypeVar

from loguru import logger

from app.abtest.bucketing import get_variant_for_user
from app.abtest.definition import find_running
from app.core.config import Settings
from app.data.enums import Algorithm
from app.data.models import (
    Content,
    ExperimentDefinition,
    InterestScore,
    RecommendationEvent,
    ResponseMetrics,
    UserProfile,
    Variant,
    utcnow,
)
from app.data.repositories import ContentRepository, ExperimentRepository, ProfileRepository, PromotionRepository
from app.interest.service import InterestService
from app.logs.recommendation_log import RecommendationLogger
from app.ranking.scorer import CandidateScorer
from app.schemas.recommendation_schema import RecommendationItem, RecommendationRequest, RecommendationResponse
from app.schemas.abtest_schema import CreateExperimentRequest
from app.schemas.stats_schema import PromotionEffectiveness
from app.seasonal.analytics import PromotionTracker
from app.seasonal.booster import SeasonalBooster
from app.services.exceptions import CandidateFetchError

T = TypeVar("T")

# 用于候选集查询的兴趣标签数量上限
MAX_QUERY_TAGS = 10


class RecommendationService:
    def __init__(
        self,
        settings: Settings,
        *,
        interests: InterestService,
        profiles: ProfileRepository,
        contents: ContentRepository,
        experiments: ExperimentRepository,
        promotions: PromotionRepository,
        rec_logger: RecommendationLogger,
        scorer: Optional[CandidateScorer] = None,
        promotion_tracker: Optional[PromotionTracker] = None,
    ):
        self.settings = settings
        self._interests = interests
        self._profiles = profiles
        self._contents = contents
        self._experiments = experiments
        self._promotions = promotions
        self._rec_logger = rec_logger
        self._promotion_tracker = promotion_tracker
        self._scorer = scorer or CandidateScorer(
            profile_match_bonus=settings.PROFILE_MATCH_BONUS,
            cold_start_prior=settings.COLD_START_PRIOR,
        )

    async def recommend(
        self,
        request: RecommendationRequest,
        now: Optional[datetime] = None,
    ) -> RecommendationResponse:
        now = now or utcnow()
        clock = self._scorer.clock
        started = clock()
        user_id = request.user_id
        limit = min(request.limit or self.settings.DEFAULT_RECOMMENDATION_LIMIT, self.settings.MAX_RECOMMENDATION_LIMIT)

        interests, stored_profile, experiment, promotions = await asyncio.gather(
            self._optional(self._interests.load_decayed(user_id, now), "interests", []),
            self._optional(self._profiles.get(user_id), "profile", None),
            self._optional(self._pick_experiment(request.ab_test_id, now), "experiments", None),
            self._optional(self._promotions.find_in_range(now), "promotions", []),
        )
        profile = merge_profile(user_id, stored_profile, request)

        candidates, algorithm_override = await self._fetch_candidates(interests, request.context, limit)

        variant: Optional[Variant] = None
        if experiment is not None:
            variant = get_variant_for_user(experiment, user_id, now)
        algorithm = algorithm_override or _algorithm_for(variant, self.settings.DEFAULT_ALGORITHM)

        booster = SeasonalBooster(promotions)
        user_promotions = booster.find_for_user(profile, now)

        ranked = self._scorer.rank(
            interests,
            profile,
            candidates,
            user_promotions,
            limit,
            deadline=clock() + self.settings.SCORING_BUDGET_SECONDS,
        )

        elapsed_ms = (clock() - started) * 1000.0
        ab_test_id = experiment.experiment_id if variant is not None else None
        variant_name = variant.name if variant is not None else None

        self._rec_logger.log(
            RecommendationEvent(
                user_id=user_id,
                content_ids=tuple(item.content_id for item in ranked),
                algorithm=algorithm,
                timestamp=now,
                ab_test_id=ab_test_id,
                ab_test_variant=variant_name,
                context=request.context,
                request_parameters=request.model_dump(by_alias=True, exclude_none=True),
                response_metrics=ResponseMetrics(
                    processing_time_ms=elapsed_ms,
                    total_candidates=len(candidates),
                    filtered_results=len(ranked),
                ),
            )
        )
        if self._promotion_tracker is not None:
            self._promotion_tracker.track_impressions(user_id, ranked, now)
        logger.info(
            f"[RecommendationService] user={user_id} algorithm={algorithm} variant={variant_name} "
            f"count={len(ranked)}/{len(candidates)} elapsed={elapsed_ms:.1f}ms"
        )

        return RecommendationResponse(
            items=[RecommendationItem(**item.to_dict()) for item in ranked],
            algorithm=algorithm,
            ab_test_id=ab_test_id,
            ab_test_variant=variant_name,
            total_candidates=len(candidates),
            processing_time_ms=elapsed_ms,
        )

    async def create_experiment(self, request: CreateExperimentRequest) -> ExperimentDefinition:
        """未给 endDate 时实验持续 DEFAULT_EXPERIMENT_DURATION_DAYS 天"""
        experiment = request.to_definition(self.settings.DEFAULT_EXPERIMENT_DURATION_DAYS)
        await self._experiments.save(experiment)
        logger.info(f"[RecommendationService] 创建实验 {experiment.experiment_id} variants={len(experiment.variants)}")
        return experiment

    async def get_promotion_effectiveness(self, promotion_id: str) -> PromotionEffectiveness:
        if self._promotion_tracker is None:
            raise RuntimeError("promotion_tracker 未配置")
        promotion = await self._promotions.get(promotion_id)
        return await self._promotion_tracker.get_effectiveness(promotion_id, promotion)

    async def _optional(self, aw: Awaitable[T], name: str, fallback: T) -> T:
        """可降级的依赖：超时或失败时记 WARNING，返回中性兜底值"""
        try:
            return await asyncio.wait_for(aw, timeout=self.settings.FETCH_TIMEOUT_SECONDS)
        except asyncio.TimeoutError:
            logger.warning(f"[RecommendationService] 获取 {name} 超时，降级处理")
        except Exception as e:
            logger.warning(f"[RecommendationService] 获取 {name} 失败，降级处理: {e!r}")
        return fallback

    async def _pick_experiment(self, ab_test_id: Optional[str], now: datetime) -> Optional[ExperimentDefinition]:
        if ab_test_id:
            return await self._experiments.get(ab_test_id)
        running = find_running(await self._experiments.list_all(), now)
        return running[0] if running else None

    async def _fetch_candidates(
        self,
        interests: List[InterestScore],
        context: Optional[str],
        limit: int,
    ) -> Tuple[List[Content], Optional[str]]:
        """
        Returns:
            (候选集, 算法覆盖)；个性化候选为空时回退到热门内容，算法记为 popular
        """
        fetch_size = limit * self.settings.CANDIDATE_MULTIPLIER
        tags = query_tags(interests)
        try:
            candidates = await asyncio.wait_for(
                self._contents.find_candidates(fetch_size, context=context, tags=tags or None),
                timeout=self.settings.FETCH_TIMEOUT_SECONDS,
            )
            if candidates:
                return list(candidates), None
            popular = await asyncio.wait_for(
                self._contents.find_popular(fetch_size),
                timeout=self.settings.FETCH_TIMEOUT_SECONDS,
            )
        except asyncio.TimeoutError as e:
            logger.error("[RecommendationService] 获取候选集超时")
            raise CandidateFetchError("candidate fetch timed out") from e
        except Exception as e:
            logger.error(f"[RecommendationService] 获取候选集失败: {e!r}")
            raise CandidateFetchError(f"candidate fetch failed: {e}") from e
        return list(popular), Algorithm.popular.value


def query_tags(interests: List[InterestScore]) -> List[str]:
    ordered = sorted(interests, key=lambda r: (-r.score, r.tag))
    return [r.tag for r in ordered[:MAX_QUERY_TAGS]]


def merge_profile(user_id: str, stored: Optional[UserProfile], request: RecommendationRequest) -> UserProfile:
    """请求里显式带的体质/人群/地区优先于存储的画像"""
    base = stored or UserProfile(user_id=user_id)
    return UserProfile(
        user_id=user_id,
        constitution=request.constitution or base.constitution,
        health_conditions=list(base.health_conditions),
        goals=list(base.goals),
        segments=list(request.segments) if request.segments is not None else list(base.segments),
        region=request.region or base.region,
    )


def _algorithm_for(variant: Optional[Variant], default: str) -> str:
    if variant is None:
        return default
    algorithm: Any = variant.parameters.get("algorithm")
    return str(algorithm) if algorithm else default
