"""
兴趣分衰减落库任务

打分时读到的都是即时计算的衰减副本；这个任务把衰减结果写回存储，
让长期不活跃的兴趣在库里也逐步降到下限。

示例（每天一次）：
  30 2 * * *  cd <project> && python -m app.jobs.interest_decay
"""

from __future__ import annotations

import asyncio
from datetime import datetime
from typing import Optional

from loguru import logger

from app.core.config import Settings, get_settings
from app.core.database import build_engine, build_session_factory, init_db
from app.core.logging import setup_logger
from app.data.repositories import InterestRepository
from app.data.sql_repositories import SqlInterestRepository
from app.interest.service import InterestService


async def decay_all(repo: InterestRepository, now: Optional[datetime] = None) -> int:
    service = InterestService(repo)
    changed = 0
    for user_id in await repo.list_user_ids():
        changed += await service.persist_decay(user_id, now)
    return changed


async def run_once(settings: Settings, now: Optional[datetime] = None) -> int:
    engine = build_engine(settings.DATABASE_URL)
    try:
        init_db(engine)
        repo = SqlInterestRepository(build_session_factory(engine))
        changed = await decay_all(repo, now)
        logger.info(f"兴趣衰减任务执行结果: changed={changed}")
        return changed
    finally:
        engine.dispose()


def main() -> None:
    settings = get_settings()
    setup_logger(settings)
    asyncio.run(run_once(settings))


if __name__ == "__main__":
    main()
