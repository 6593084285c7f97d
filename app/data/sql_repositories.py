"""
基于 SQLAlchemy 的仓储实现

Session 是同步的，每个操作在 worker 线程里开一个独立会话（asyncio.to_thread），
不会阻塞事件循环。聚合统计直接用 GROUP BY 在数据库里算。
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, TypeVar

from sqlalchemy import case, delete, distinct, func, select
from sqlalchemy.orm import Session, sessionmaker

from app.data.enums import PromotionInteractionKind
from app.data.models import (
    ExperimentDefinition,
    InterestScore,
    PromotedContent,
    PromotionInteraction,
    RecommendationEvent,
    RecurrencePattern,
    ResponseMetrics,
    SeasonalPromotion,
    Variant,
)
from app.data.repositories import (
    ExperimentRepository,
    InterestRepository,
    PromotionAnalyticsRepository,
    PromotionRepository,
    RecommendationLogRepository,
)
from app.data.sql_models import (
    ExperimentRow,
    PromotionInteractionRow,
    RecommendationLogRow,
    SeasonalPromotionRow,
    UserInterestRow,
)

T = TypeVar("T")


def _to_db(dt: Optional[datetime]) -> Optional[datetime]:
    if dt is None:
        return None
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt


def _from_db(dt: Optional[datetime]) -> Optional[datetime]:
    if dt is None:
        return None
    return dt.replace(tzinfo=timezone.utc) if dt.tzinfo is None else dt


class _SqlRepository:
    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    async def _run(self, fn: Callable[[Session], T]) -> T:
        def work() -> T:
            with self._session_factory() as session:
                try:
                    result = fn(session)
                    session.commit()
                    return result
                except Exception:
                    session.rollback()
                    raise

        return await asyncio.to_thread(work)


# ----------------- interests -----------------


def _interest_from_row(row: UserInterestRow) -> InterestScore:
    return InterestScore(
        user_id=row.user_id,
        tag=row.tag,
        interaction_count=row.interaction_count,
        explicitly_selected=row.explicitly_selected,
        score=row.score,
        first_interaction=_from_db(row.first_interaction),
        last_interaction=_from_db(row.last_interaction),
        decay_rate=row.decay_rate,
        decayed_at=_from_db(row.decayed_at),
    )


class SqlInterestRepository(_SqlRepository, InterestRepository):
    async def get(self, user_id: str, tag: str) -> Optional[InterestScore]:
        def fn(session: Session) -> Optional[InterestScore]:
            row = session.execute(
                select(UserInterestRow).where(UserInterestRow.user_id == user_id, UserInterestRow.tag == tag)
            ).scalar_one_or_none()
            return _interest_from_row(row) if row else None

        return await self._run(fn)

    async def list_for_user(self, user_id: str) -> List[InterestScore]:
        def fn(session: Session) -> List[InterestScore]:
            rows = session.execute(
                select(UserInterestRow).where(UserInterestRow.user_id == user_id).order_by(UserInterestRow.tag)
            ).scalars()
            return [_interest_from_row(r) for r in rows]

        return await self._run(fn)

    async def save(self, record: InterestScore) -> InterestScore:
        def fn(session: Session) -> InterestScore:
            row = session.execute(
                select(UserInterestRow).where(
                    UserInterestRow.user_id == record.user_id, UserInterestRow.tag == record.tag
                )
            ).scalar_one_or_none()
            if row is None:
                row = UserInterestRow(user_id=record.user_id, tag=record.tag)
                session.add(row)
            row.interaction_count = record.interaction_count
            row.explicitly_selected = record.explicitly_selected
            row.score = record.score
            row.decay_rate = record.decay_rate
            row.first_interaction = _to_db(record.first_interaction)
            row.last_interaction = _to_db(record.last_interaction)
            row.decayed_at = _to_db(record.decayed_at)
            return record

        return await self._run(fn)

    async def list_user_ids(self) -> List[str]:
        def fn(session: Session) -> List[str]:
            rows = session.execute(
                select(distinct(UserInterestRow.user_id)).order_by(UserInterestRow.user_id)
            ).scalars()
            return list(rows)

        return await self._run(fn)


# ----------------- experiments -----------------


def _experiment_from_row(row: ExperimentRow) -> ExperimentDefinition:
    return ExperimentDefinition(
        experiment_id=row.experiment_id,
        name=row.name,
        description=row.description or "",
        variants=[
            Variant(name=v["name"], description=v.get("description", ""), parameters=v.get("parameters") or {})
            for v in row.variants or []
        ],
        start_date=_from_db(row.start_date),
        end_date=_from_db(row.end_date),
        target_user_percentage=row.target_user_percentage,
        segmentation_filters=row.segmentation_filters or {},
        goals=list(row.goals or []),
        is_active=row.is_active,
    )


class SqlExperimentRepository(_SqlRepository, ExperimentRepository):
    async def get(self, experiment_id: str) -> Optional[ExperimentDefinition]:
        def fn(session: Session) -> Optional[ExperimentDefinition]:
            row = session.execute(
                select(ExperimentRow).where(ExperimentRow.experiment_id == experiment_id)
            ).scalar_one_or_none()
            return _experiment_from_row(row) if row else None

        return await self._run(fn)

    async def save(self, experiment: ExperimentDefinition) -> ExperimentDefinition:
        def fn(session: Session) -> ExperimentDefinition:
            row = session.execute(
                select(ExperimentRow).where(ExperimentRow.experiment_id == experiment.experiment_id)
            ).scalar_one_or_none()
            if row is None:
                row = ExperimentRow(experiment_id=experiment.experiment_id)
                session.add(row)
            row.name = experiment.name
            row.description = experiment.description
            row.variants = [
                {"name": v.name, "description": v.description, "parameters": v.parameters}
                for v in experiment.variants
            ]
            row.start_date = _to_db(experiment.start_date)
            row.end_date = _to_db(experiment.end_date)
            row.target_user_percentage = experiment.target_user_percentage
            row.segmentation_filters = experiment.segmentation_filters
            row.goals = list(experiment.goals)
            row.is_active = experiment.is_active
            return experiment

        return await self._run(fn)

    async def list_all(self) -> List[ExperimentDefinition]:
        def fn(session: Session) -> List[ExperimentDefinition]:
            rows = session.execute(
                select(ExperimentRow).order_by(ExperimentRow.start_date, ExperimentRow.name)
            ).scalars()
            return [_experiment_from_row(r) for r in rows]

        return await self._run(fn)


# ----------------- seasonal promotions -----------------


def _promotion_from_row(row: SeasonalPromotionRow) -> SeasonalPromotion:
    recurrence = None
    if row.recurrence:
        r = row.recurrence
        recurrence = RecurrencePattern(
            type=r.get("type", "yearly"),
            month=r.get("month"),
            day=r.get("day"),
            day_of_week=r.get("dayOfWeek"),
            duration_days=r.get("durationDays", 7),
        )
    return SeasonalPromotion(
        promotion_id=row.promotion_id,
        name=row.name,
        description=row.description or "",
        start_date=_from_db(row.start_date),
        end_date=_from_db(row.end_date),
        is_active=row.is_active,
        priority=row.priority,
        boosted_tags=list(row.boosted_tags or []),
        boosted_content_types=list(row.boosted_content_types or []),
        promoted_content=[
            PromotedContent(content_id=p["contentId"], boost_factor=p.get("boostFactor", 1.5))
            for p in row.promoted_content or []
        ],
        target_user_segments=list(row.target_user_segments or []),
        regions=list(row.regions or []),
        global_boost_factor=row.global_boost_factor,
        is_recurring=row.is_recurring,
        recurrence=recurrence,
        metadata=row.extra or {},
    )


def _recurrence_to_json(pattern: Optional[RecurrencePattern]) -> Optional[Dict]:
    if pattern is None:
        return None
    return {
        "type": pattern.type,
        "month": pattern.month,
        "day": pattern.day,
        "dayOfWeek": pattern.day_of_week,
        "durationDays": pattern.duration_days,
    }


class SqlPromotionRepository(_SqlRepository, PromotionRepository):
    async def get(self, promotion_id: str) -> Optional[SeasonalPromotion]:
        def fn(session: Session) -> Optional[SeasonalPromotion]:
            row = session.execute(
                select(SeasonalPromotionRow).where(SeasonalPromotionRow.promotion_id == promotion_id)
            ).scalar_one_or_none()
            return _promotion_from_row(row) if row else None

        return await self._run(fn)

    async def save(self, promotion: SeasonalPromotion) -> SeasonalPromotion:
        def fn(session: Session) -> SeasonalPromotion:
            row = session.execute(
                select(SeasonalPromotionRow).where(SeasonalPromotionRow.promotion_id == promotion.promotion_id)
            ).scalar_one_or_none()
            if row is None:
                row = SeasonalPromotionRow(promotion_id=promotion.promotion_id)
                session.add(row)
            row.name = promotion.name
            row.description = promotion.description
            row.start_date = _to_db(promotion.start_date)
            row.end_date = _to_db(promotion.end_date)
            row.is_active = promotion.is_active
            row.priority = promotion.priority
            row.boosted_tags = list(promotion.boosted_tags)
            row.boosted_content_types = list(promotion.boosted_content_types)
            row.promoted_content = [
                {"contentId": p.content_id, "boostFactor": p.boost_factor} for p in promotion.promoted_content
            ]
            row.target_user_segments = list(promotion.target_user_segments)
            row.regions = list(promotion.regions)
            row.global_boost_factor = promotion.global_boost_factor
            row.is_recurring = promotion.is_recurring
            row.recurrence = _recurrence_to_json(promotion.recurrence)
            row.extra = dict(promotion.metadata)
            return promotion

        return await self._run(fn)

    async def delete(self, promotion_id: str) -> bool:
        def fn(session: Session) -> bool:
            result = session.execute(
                delete(SeasonalPromotionRow).where(SeasonalPromotionRow.promotion_id == promotion_id)
            )
            return result.rowcount > 0

        return await self._run(fn)

    async def find_in_range(self, now: datetime) -> List[SeasonalPromotion]:
        at = _to_db(now)

        def fn(session: Session) -> List[SeasonalPromotion]:
            rows = session.execute(
                select(SeasonalPromotionRow)
                .where(SeasonalPromotionRow.start_date <= at, SeasonalPromotionRow.end_date >= at)
                .order_by(SeasonalPromotionRow.priority.desc(), SeasonalPromotionRow.promotion_id)
            ).scalars()
            return [_promotion_from_row(r) for r in rows]

        return await self._run(fn)


# ----------------- recommendation logs -----------------


class SqlRecommendationLogRepository(_SqlRepository, RecommendationLogRepository):
    async def append(self, event: RecommendationEvent) -> None:
        metrics: Optional[ResponseMetrics] = event.response_metrics

        def fn(session: Session) -> None:
            session.add(
                RecommendationLogRow(
                    user_id=event.user_id,
                    content_ids=list(event.content_ids),
                    content_count=len(event.content_ids),
                    algorithm=event.algorithm,
                    ab_test_id=event.ab_test_id,
                    ab_test_variant=event.ab_test_variant,
                    context=event.context,
                    request_parameters=dict(event.request_parameters),
                    processing_time_ms=metrics.processing_time_ms if metrics else None,
                    total_candidates=metrics.total_candidates if metrics else None,
                    filtered_results=metrics.filtered_results if metrics else None,
                    model_version=event.model_version,
                    timestamp=_to_db(event.timestamp),
                )
            )

        await self._run(fn)

    async def user_algorithm_stats(self, user_id: str, since: datetime) -> List[Dict]:
        at = _to_db(since)

        def fn(session: Session) -> List[Dict]:
            rows = session.execute(
                select(
                    RecommendationLogRow.algorithm,
                    func.count(RecommendationLogRow.id),
                    func.coalesce(func.sum(RecommendationLogRow.content_count), 0),
                    func.avg(RecommendationLogRow.processing_time_ms),
                )
                .where(RecommendationLogRow.user_id == user_id, RecommendationLogRow.timestamp >= at)
                .group_by(RecommendationLogRow.algorithm)
            ).all()
            return [
                {
                    "algorithm": algorithm,
                    "count": count,
                    "total_recommendations": int(total),
                    "avg_processing_time": float(avg) if avg is not None else None,
                }
                for algorithm, count, total, avg in rows
            ]

        return await self._run(fn)

    async def ab_test_variant_stats(self, ab_test_id: str) -> List[Dict]:
        def fn(session: Session) -> List[Dict]:
            rows = session.execute(
                select(
                    RecommendationLogRow.ab_test_variant,
                    func.count(RecommendationLogRow.id),
                    func.count(distinct(RecommendationLogRow.user_id)),
                    func.coalesce(func.sum(RecommendationLogRow.content_count), 0),
                    func.avg(RecommendationLogRow.processing_time_ms),
                )
                .where(RecommendationLogRow.ab_test_id == ab_test_id)
                .group_by(RecommendationLogRow.ab_test_variant)
            ).all()
            return [
                {
                    "variant": variant,
                    "count": count,
                    "unique_users": unique_users,
                    "total_recommendations": int(total),
                    "avg_processing_time": float(avg) if avg is not None else None,
                }
                for variant, count, unique_users, total, avg in rows
            ]

        return await self._run(fn)

    async def delete_before(self, cutoff: datetime) -> int:
        at = _to_db(cutoff)

        def fn(session: Session) -> int:
            result = session.execute(delete(RecommendationLogRow).where(RecommendationLogRow.timestamp < at))
            return result.rowcount or 0

        return await self._run(fn)


# ----------------- promotion analytics -----------------


def _kind_count(kind: PromotionInteractionKind):
    return func.coalesce(func.sum(case((PromotionInteractionRow.kind == kind.value, 1), else_=0)), 0)


class SqlPromotionAnalyticsRepository(_SqlRepository, PromotionAnalyticsRepository):
    async def append_many(self, interactions: List[PromotionInteraction]) -> None:
        if not interactions:
            return

        def fn(session: Session) -> None:
            session.add_all(
                PromotionInteractionRow(
                    promotion_id=i.promotion_id,
                    kind=i.kind,
                    user_id=i.user_id,
                    content_id=i.content_id,
                    timestamp=_to_db(i.timestamp),
                )
                for i in interactions
            )

        await self._run(fn)

    def _filters(self, promotion_id: str, since: Optional[datetime]) -> list:
        filters = [PromotionInteractionRow.promotion_id == promotion_id]
        if since is not None:
            filters.append(PromotionInteractionRow.timestamp >= _to_db(since))
        return filters

    async def summarize(self, promotion_id: str, since: Optional[datetime] = None) -> Dict:
        filters = self._filters(promotion_id, since)

        def fn(session: Session) -> Dict:
            impressions, clicks, unique_users = session.execute(
                select(
                    _kind_count(PromotionInteractionKind.impression),
                    _kind_count(PromotionInteractionKind.click),
                    func.count(distinct(PromotionInteractionRow.user_id)),
                ).where(*filters)
            ).one()
            return {"impressions": int(impressions), "clicks": int(clicks), "unique_users": unique_users}

        return await self._run(fn)

    async def daily_stats(self, promotion_id: str, since: Optional[datetime] = None) -> List[Dict]:
        filters = self._filters(promotion_id, since)
        day = func.date(PromotionInteractionRow.timestamp)

        def fn(session: Session) -> List[Dict]:
            rows = session.execute(
                select(
                    day,
                    _kind_count(PromotionInteractionKind.impression),
                    _kind_count(PromotionInteractionKind.click),
                )
                .where(*filters)
                .group_by(day)
                .order_by(day)
            ).all()
            # SQLite 返回字符串，MySQL 返回 date
            return [
                {
                    "date": d if isinstance(d, str) else d.isoformat(),
                    "impressions": int(impressions),
                    "clicks": int(clicks),
                }
                for d, impressions, clicks in rows
            ]

        return await self._run(fn)
