"""
推荐日志保留期清理（建议由 CronJob 定时触发）

示例（每天凌晨 3 点）：
  0 3 * * *  cd <project> && python -m app.jobs.log_retention
"""

from __future__ import annotations

import asyncio
from datetime import datetime
from typing import Optional

from loguru import logger

from app.core.config import Settings, get_settings
from app.core.database import build_engine, build_session_factory, init_db
from app.core.logging import setup_logger
from app.data.sql_repositories import SqlRecommendationLogRepository
from app.logs.recommendation_log import RecommendationLogger


async def run_once(settings: Settings, now: Optional[datetime] = None) -> int:
    engine = build_engine(settings.DATABASE_URL)
    try:
        init_db(engine)
        repo = SqlRecommendationLogRepository(build_session_factory(engine))
        rec_logger = RecommendationLogger.from_settings(repo, settings)
        deleted = await rec_logger.purge_expired(now)
        logger.info(f"推荐日志清理任务执行结果: deleted={deleted}")
        return deleted
    finally:
        engine.dispose()


def main() -> None:
    settings = get_settings()
    setup_logger(settings)
    asyncio.run(run_once(settings))


if __name__ == "__main__":
    main()
