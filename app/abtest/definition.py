from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional

from loguru import logger

from app.abtest.bucketing import is_running
from app.data.enums import Algorithm, ExperimentGoal
from app.data.models import ExperimentDefinition, Variant, utcnow
from app.services.exceptions import ExperimentConfigError

DEFAULT_DURATION_DAYS = 30
_ALLOWED_GOALS = {g.value for g in ExperimentGoal}
_ALLOWED_ALGORITHMS = {a.value for a in Algorithm}


def validate_experiment(experiment: ExperimentDefinition) -> ExperimentDefinition:
    """定义期校验，非法配置直接抛 ExperimentConfigError。"""
    if not experiment.experiment_id:
        raise ExperimentConfigError("experiment_id 不能为空")
    if not experiment.name or not experiment.name.strip():
        raise ExperimentConfigError("name 不能为空")

    if len(experiment.variants) < 2:
        raise ExperimentConfigError("A/B test must have at least 2 variants")
    names = [v.name for v in experiment.variants]
    if any(not n for n in names):
        raise ExperimentConfigError("variant name 不能为空")
    if len(set(names)) != len(names):
        raise ExperimentConfigError("Variant names must be unique")
    for variant in experiment.variants:
        algorithm = variant.parameters.get("algorithm")
        if algorithm is not None and (not isinstance(algorithm, str) or algorithm not in _ALLOWED_ALGORITHMS):
            raise ExperimentConfigError(f"variant {variant.name} 使用了未知的算法: {algorithm!r}")

    if experiment.end_date <= experiment.start_date:
        raise ExperimentConfigError("End date must be after start date")

    pct = experiment.target_user_percentage
    if isinstance(pct, bool) or not isinstance(pct, int) or not 1 <= pct <= 100:
        raise ExperimentConfigError(f"targetUserPercentage 必须是 1-100 的整数: {pct!r}")

    unknown = [g for g in experiment.goals if g not in _ALLOWED_GOALS]
    if unknown:
        raise ExperimentConfigError(f"未知的实验目标: {unknown}")
    return experiment


def create_experiment(
    experiment_id: str,
    name: str,
    variants: List[Any],
    *,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    target_user_percentage: int = 100,
    segmentation_filters: Optional[Dict[str, Any]] = None,
    goals: Optional[List[str]] = None,
    is_active: bool = True,
    description: str = "",
    duration_days: int = DEFAULT_DURATION_DAYS,
) -> ExperimentDefinition:
    """
    创建实验定义并校验

    Args:
        variants: Variant 或 {"name", "description", "parameters"} 字典
        start_date: 默认当前时间
        end_date: 默认 start_date + duration_days
    """
    start = start_date or utcnow()
    end = end_date or (start + timedelta(days=duration_days))
    experiment = ExperimentDefinition(
        experiment_id=experiment_id,
        name=name,
        variants=[_to_variant(v) for v in variants],
        start_date=start,
        end_date=end,
        target_user_percentage=target_user_percentage,
        segmentation_filters=dict(segmentation_filters or {}),
        goals=list(goals) if goals is not None else ["click_through_rate", "engagement"],
        is_active=is_active,
        description=description,
    )
    validate_experiment(experiment)
    logger.info(
        f"[Experiment] 创建实验 id={experiment_id} variants={[v.name for v in experiment.variants]} "
        f"pct={target_user_percentage}"
    )
    return experiment


def _to_variant(raw: Any) -> Variant:
    if isinstance(raw, Variant):
        return raw
    if isinstance(raw, dict):
        return Variant(
            name=raw.get("name", ""),
            description=raw.get("description", ""),
            parameters=dict(raw.get("parameters") or {}),
        )
    raise ExperimentConfigError(f"无法识别的 variant: {raw!r}")


def find_running(experiments: Iterable[ExperimentDefinition], now: datetime) -> List[ExperimentDefinition]:
    running = [e for e in experiments if is_running(e, now)]
    running.sort(key=lambda e: (e.start_date, e.name))
    return running
