"""
按当前中医季节生成自动推广（建议每月 1 日触发）

  0 1 1 * *  cd <project> && python -m app.jobs.seasonal_promotion
"""

from __future__ import annotations

import asyncio
from datetime import datetime
from typing import Optional

from loguru import logger

from app.core.config import Settings, get_settings
from app.core.database import build_engine, build_session_factory, init_db
from app.core.logging import setup_logger
from app.data.models import SeasonalPromotion
from app.data.repositories import PromotionRepository
from app.data.sql_repositories import SqlPromotionRepository
from app.seasonal.promotion import validate_promotion
from app.seasonal.tcm_calendar import build_automatic_promotion


async def ensure_automatic_promotion(repo: PromotionRepository, now: Optional[datetime] = None) -> SeasonalPromotion:
    """同一季节同一年只保留一条（按 promotion_id upsert）"""
    promotion = validate_promotion(build_automatic_promotion(now))
    await repo.save(promotion)
    logger.info(f"自动季节推广已更新: id={promotion.promotion_id} tags={len(promotion.boosted_tags)}")
    return promotion


async def run_once(settings: Settings, now: Optional[datetime] = None) -> SeasonalPromotion:
    engine = build_engine(settings.DATABASE_URL)
    try:
        init_db(engine)
        repo = SqlPromotionRepository(build_session_factory(engine))
        return await ensure_automatic_promotion(repo, now)
    finally:
        engine.dispose()


def main() -> None:
    settings = get_settings()
    setup_logger(settings)
    asyncio.run(run_once(settings))


if __name__ == "__main__":
    main()
