from __future__ import annotations

import unittest
from datetime import datetime, timedelta, timezone

from loguru import logger

from app.core.config import Settings
from app.data.models import RecommendationEvent, ResponseMetrics
from app.data.repositories import InMemoryRecommendationLogRepository
from app.logs.recommendation_log import RecommendationLogger

from tests.fakes import FailingLogRepository

NOW = datetime(2024, 3, 15, 12, 0, tzinfo=timezone.utc)


def _event(user_id="u1", algorithm="content-based", days_ago=0, n=3, ms=None, ab_test_id=None, variant=None):
    return RecommendationEvent(
        user_id=user_id,
        content_ids=tuple(f"c{i}" for i in range(n)),
        algorithm=algorithm,
        timestamp=NOW - timedelta(days=days_ago),
        ab_test_id=ab_test_id,
        ab_test_variant=variant,
        response_metrics=ResponseMetrics(ms, 10, n) if ms is not None else None,
    )


class RecommendationLoggerTestCase(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self) -> None:
        self.repo = InMemoryRecommendationLogRepository()
        self.rec_logger = RecommendationLogger(self.repo)

    async def _log_all(self, *events: RecommendationEvent) -> None:
        for event in events:
            self.rec_logger.log(event)
        await self.rec_logger.drain()

    async def test_log_is_fire_and_forget(self) -> None:
        task = self.rec_logger.log(_event())
        self.assertEqual(self.rec_logger.pending_count, 1)
        self.assertTrue(await task)
        await self.rec_logger.drain()
        self.assertEqual(self.rec_logger.pending_count, 0)
        self.assertEqual(len(self.repo.events), 1)

    async def test_write_failure_is_reported_not_raised(self) -> None:
        messages: list[str] = []
        sink_id = logger.add(lambda m: messages.append(str(m)), level="ERROR")
        try:
            rec_logger = RecommendationLogger(FailingLogRepository())
            task = rec_logger.log(_event())
            await rec_logger.drain()
        finally:
            logger.remove(sink_id)

        self.assertFalse(task.result())
        self.assertTrue(any("推荐日志写入失败" in m for m in messages))

    async def test_user_stats_groups_by_algorithm_within_window(self) -> None:
        await self._log_all(
            _event(algorithm="content-based", n=3, ms=10.0),
            _event(algorithm="content-based", n=5, ms=30.0, days_ago=2),
            _event(algorithm="popular", n=4),
            _event(algorithm="hybrid", n=2, ms=5.0, days_ago=45),
            _event(user_id="u2", algorithm="hybrid", n=9, ms=1.0),
        )

        stats = await self.rec_logger.get_user_stats("u1", days=30, now=NOW)

        by_algo = {s.algorithm: s for s in stats.algorithms}
        self.assertEqual(set(by_algo), {"content-based", "popular"})
        self.assertEqual(by_algo["content-based"].count, 2)
        self.assertEqual(by_algo["content-based"].total_recommendations, 8)
        self.assertAlmostEqual(by_algo["content-based"].avg_processing_time, 20.0)
        self.assertIsNone(by_algo["popular"].avg_processing_time)
        self.assertEqual(stats.model_dump(by_alias=True)["userId"], "u1")

    async def test_ab_test_stats_per_variant(self) -> None:
        await self._log_all(
            _event(user_id="u1", ab_test_id="exp", variant="A", n=2, ms=10.0),
            _event(user_id="u1", ab_test_id="exp", variant="A", n=2, ms=20.0),
            _event(user_id="u2", ab_test_id="exp", variant="A", n=2, ms=30.0),
            _event(user_id="u3", ab_test_id="exp", variant="B", n=5, ms=40.0),
            _event(user_id="u4", ab_test_id="other", variant="A", n=1, ms=1.0),
        )

        stats = await self.rec_logger.get_ab_test_stats("exp")

        self.assertEqual([v.variant for v in stats.variants], ["A", "B"])
        a, b = stats.variants
        self.assertEqual((a.count, a.unique_users, a.total_recommendations), (3, 2, 6))
        self.assertAlmostEqual(a.avg_processing_time, 20.0)
        self.assertEqual((b.count, b.unique_users, b.total_recommendations), (1, 1, 5))
        self.assertEqual(stats.model_dump(by_alias=True)["variants"][0]["uniqueUsers"], 2)

    async def test_purge_expired_uses_retention_window(self) -> None:
        await self._log_all(_event(days_ago=1), _event(days_ago=89), _event(days_ago=91), _event(days_ago=200))

        deleted = await self.rec_logger.purge_expired(NOW)

        self.assertEqual(deleted, 2)
        self.assertEqual(len(self.repo.events), 2)

    async def test_stats_window_and_retention_come_from_settings(self) -> None:
        settings = Settings(USER_STATS_DEFAULT_DAYS=7, LOG_RETENTION_DAYS=30)
        rec_logger = RecommendationLogger.from_settings(self.repo, settings)
        for event in (_event(algorithm="popular", days_ago=1), _event(algorithm="hybrid", days_ago=10)):
            rec_logger.log(event)
        await rec_logger.drain()

        stats = await rec_logger.get_user_stats("u1", now=NOW)

        self.assertEqual(stats.days, 7)
        self.assertEqual([s.algorithm for s in stats.algorithms], ["popular"])
        self.assertEqual(rec_logger.retention_days, 30)
        wider = await rec_logger.get_user_stats("u1", days=30, now=NOW)
        self.assertEqual(len(wider.algorithms), 2)


if __name__ == "__main__":
    unittest.main()
