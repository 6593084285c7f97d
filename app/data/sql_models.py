from __future__ import annotations

from datetime import datetime

from sqlalchemy import JSON, Boolean, DateTime, Float, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database import Base

# 所有时间列都存“无时区的 UTC”，读出后由仓储补回 tzinfo


class UserInterestRow(Base):
    __tablename__ = "user_interests"
    __table_args__ = (
        UniqueConstraint("user_id", "tag", name="uq_user_interest_user_tag"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(128), index=True)
    tag: Mapped[str] = mapped_column(String(128))
    interaction_count: Mapped[int] = mapped_column(Integer, default=0)
    explicitly_selected: Mapped[bool] = mapped_column(Boolean, default=False)
    score: Mapped[float] = mapped_column(Float, default=0.5)
    decay_rate: Mapped[float] = mapped_column(Float, default=0.05)
    first_interaction: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    last_interaction: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    decayed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class ExperimentRow(Base):
    __tablename__ = "ab_tests"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    experiment_id: Mapped[str] = mapped_column(String(128), unique=True, index=True)
    name: Mapped[str] = mapped_column(String(256))
    description: Mapped[str] = mapped_column(Text, default="")
    variants: Mapped[list] = mapped_column(JSON)
    start_date: Mapped[datetime] = mapped_column(DateTime)
    end_date: Mapped[datetime] = mapped_column(DateTime)
    target_user_percentage: Mapped[int] = mapped_column(Integer, default=100)
    segmentation_filters: Mapped[dict] = mapped_column(JSON, default=dict)
    goals: Mapped[list] = mapped_column(JSON, default=list)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class SeasonalPromotionRow(Base):
    __tablename__ = "seasonal_promotions"
    __table_args__ = (
        Index("ix_seasonal_promotion_range", "start_date", "end_date"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    promotion_id: Mapped[str] = mapped_column(String(128), unique=True, index=True)
    name: Mapped[str] = mapped_column(String(256))
    description: Mapped[str] = mapped_column(Text, default="")
    start_date: Mapped[datetime] = mapped_column(DateTime)
    end_date: Mapped[datetime] = mapped_column(DateTime)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    priority: Mapped[int] = mapped_column(Integer, default=1)
    boosted_tags: Mapped[list] = mapped_column(JSON, default=list)
    boosted_content_types: Mapped[list] = mapped_column(JSON, default=list)
    promoted_content: Mapped[list] = mapped_column(JSON, default=list)  # [{"contentId", "boostFactor"}]
    target_user_segments: Mapped[list] = mapped_column(JSON, default=list)
    regions: Mapped[list] = mapped_column(JSON, default=list)
    global_boost_factor: Mapped[float] = mapped_column(Float, default=1.3)
    is_recurring: Mapped[bool] = mapped_column(Boolean, default=False)
    recurrence: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    # metadata 是 Declarative 保留名
    extra: Mapped[dict] = mapped_column("metadata", JSON, default=dict)


class RecommendationLogRow(Base):
    __tablename__ = "recommendation_logs"
    __table_args__ = (
        Index("ix_recommendation_log_user_ts", "user_id", "timestamp"),
        Index("ix_recommendation_log_abtest_ts", "ab_test_id", "timestamp"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(128))
    content_ids: Mapped[list] = mapped_column(JSON)
    content_count: Mapped[int] = mapped_column(Integer, default=0)
    algorithm: Mapped[str] = mapped_column(String(64))
    ab_test_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    ab_test_variant: Mapped[str | None] = mapped_column(String(128), nullable=True)
    context: Mapped[str | None] = mapped_column(String(32), nullable=True)
    request_parameters: Mapped[dict] = mapped_column(JSON, default=dict)
    processing_time_ms: Mapped[float | None] = mapped_column(Float, nullable=True)
    total_candidates: Mapped[int | None] = mapped_column(Integer, nullable=True)
    filtered_results: Mapped[int | None] = mapped_column(Integer, nullable=True)
    model_version: Mapped[str] = mapped_column(String(32), default="1.0.0")
    timestamp: Mapped[datetime] = mapped_column(DateTime, index=True)


class PromotionInteractionRow(Base):
    __tablename__ = "seasonal_content_analytics"
    __table_args__ = (
        Index("ix_promotion_interaction_promo_ts", "promotion_id", "timestamp"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    promotion_id: Mapped[str] = mapped_column(String(128))
    kind: Mapped[str] = mapped_column(String(16))
    user_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    content_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    timestamp: Mapped[datetime] = mapped_column(DateTime)
