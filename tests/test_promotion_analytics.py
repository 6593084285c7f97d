from __future__ import annotations

import unittest
from datetime import datetime, timedelta, timezone

from loguru import logger

from app.data.models import ScoredCandidate, SeasonalPromotion
from app.data.repositories import InMemoryPromotionAnalyticsRepository
from app.seasonal.analytics import PromotionTracker, click_through_rate

from tests.fakes import FailingAnalyticsRepository

NOW = datetime(2024, 3, 15, 12, 0, tzinfo=timezone.utc)


def _served(*items) -> list[ScoredCandidate]:
    return [ScoredCandidate(content_id=cid, score=1.0, promotion_ids=tuple(pids)) for cid, pids in items]


def _promo(promotion_id: str, name: str) -> SeasonalPromotion:
    return SeasonalPromotion(
        promotion_id=promotion_id,
        name=name,
        start_date=NOW - timedelta(days=5),
        end_date=NOW + timedelta(days=5),
    )


class ClickThroughRateTestCase(unittest.TestCase):
    def test_percentage(self) -> None:
        self.assertEqual(click_through_rate(0, 0), 0.0)
        self.assertEqual(click_through_rate(0, 3), 0.0)
        self.assertAlmostEqual(click_through_rate(200, 5), 2.5)


class PromotionTrackerTestCase(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self) -> None:
        self.repo = InMemoryPromotionAnalyticsRepository()
        self.tracker = PromotionTracker(self.repo)

    async def test_one_impression_per_promotion_per_item(self) -> None:
        task = self.tracker.track_impressions(
            "u1",
            _served(("c1", ["p1", "p2"]), ("c2", ["p1"]), ("c3", [])),
            now=NOW,
        )
        self.assertIsNotNone(task)
        await self.tracker.drain()

        self.assertEqual(
            sorted((i.promotion_id, i.content_id) for i in self.repo.interactions),
            [("p1", "c1"), ("p1", "c2"), ("p2", "c1")],
        )
        self.assertTrue(all(i.kind == "impression" for i in self.repo.interactions))

    async def test_nothing_to_track(self) -> None:
        self.assertIsNone(self.tracker.track_impressions("u1", _served(("c1", [])), now=NOW))
        self.assertEqual(self.repo.interactions, [])

    async def test_impression_failure_is_logged_not_raised(self) -> None:
        messages: list[str] = []
        sink_id = logger.add(lambda m: messages.append(str(m)), level="ERROR")
        try:
            tracker = PromotionTracker(FailingAnalyticsRepository())
            task = tracker.track_impressions("u1", _served(("c1", ["p1"])), now=NOW)
            await tracker.drain()
        finally:
            logger.remove(sink_id)

        self.assertFalse(task.result())
        self.assertTrue(any("推广曝光写入失败" in m for m in messages))

    async def test_click_requires_promotion_and_propagates_failure(self) -> None:
        with self.assertRaises(ValueError):
            await self.tracker.track_click("", now=NOW)
        with self.assertRaises(ConnectionError):
            await PromotionTracker(FailingAnalyticsRepository()).track_click("p1", now=NOW)

    async def test_effectiveness_aggregates(self) -> None:
        self.tracker.track_impressions("u1", _served(("c1", ["p1"]), ("c2", ["p1"])), now=NOW - timedelta(days=1))
        self.tracker.track_impressions("u2", _served(("c1", ["p1"]), ("c3", ["p2"])), now=NOW)
        await self.tracker.drain()
        await self.tracker.track_click("p1", user_id="u2", content_id="c1", now=NOW)

        result = await self.tracker.get_effectiveness("p1", _promo("p1", "清明养肝"))

        self.assertEqual((result.impressions, result.clicks, result.unique_users), (3, 1, 2))
        self.assertAlmostEqual(result.click_through_rate, 100.0 / 3)
        self.assertEqual(result.promotion_name, "清明养肝")
        self.assertTrue(result.is_active)
        self.assertEqual(
            [(d.date, d.impressions, d.clicks) for d in result.daily_performance],
            [("2024-03-14", 2, 0), ("2024-03-15", 1, 1)],
        )
        dumped = result.model_dump(by_alias=True)
        self.assertEqual(dumped["promotionId"], "p1")
        self.assertIn("clickThroughRate", dumped)

        recent = await self.tracker.get_effectiveness("p1", since=NOW - timedelta(hours=1))
        self.assertEqual((recent.impressions, recent.clicks), (1, 1))
        self.assertEqual(recent.promotion_name, "Unknown Promotion")

    async def test_calculate_effectiveness_orders_by_ctr(self) -> None:
        self.tracker.track_impressions("u1", _served(("c1", ["p1", "p2"]), ("c2", ["p2"])), now=NOW)
        await self.tracker.drain()
        await self.tracker.track_click("p2", user_id="u1", now=NOW)

        results = await self.tracker.calculate_effectiveness(
            [_promo("p1", "a"), _promo("p2", "b"), _promo("p3", "c")]
        )

        self.assertEqual([r.promotion_id for r in results], ["p2", "p1", "p3"])
        self.assertAlmostEqual(results[0].click_through_rate, 50.0)
        self.assertEqual(results[2].impressions, 0)
        self.assertEqual(results[2].click_through_rate, 0.0)


if __name__ == "__main__":
    unittest.main()
