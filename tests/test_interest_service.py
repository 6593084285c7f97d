from __future__ import annotations

import asyncio
import unittest
from datetime import datetime, timedelta, timezone

from app.data.models import Content, InterestScore
from app.data.repositories import InMemoryInterestRepository
from app.interest.scoring import recompute_score
from app.interest.service import InterestService
from app.jobs.interest_decay import decay_all

from tests.fakes import YieldingInterestRepository

NOW = datetime(2024, 3, 15, 12, 0, tzinfo=timezone.utc)


class InterestServiceTestCase(unittest.IsolatedAsyncioTestCase):
    async def test_concurrent_updates_are_serialized_per_key(self) -> None:
        repo = YieldingInterestRepository()
        service = InterestService(repo)

        await asyncio.gather(*(service.record_interaction("u1", "Spring", now=NOW) for _ in range(50)))

        record = await repo.get("u1", "spring")
        self.assertIsNotNone(record)
        self.assertEqual(record.interaction_count, 50)
        self.assertAlmostEqual(record.score, recompute_score(50))

    async def test_track_content_interaction_touches_every_tag_once(self) -> None:
        repo = InMemoryInterestRepository()
        service = InterestService(repo)
        content = Content(content_id="c1", tags=["Spring", "detox", "spring"])

        records = await service.track_content_interaction("u1", content, now=NOW)

        self.assertEqual(sorted(r.tag for r in records), ["detox", "spring"])
        stored = await repo.list_for_user("u1")
        self.assertEqual({r.tag: r.interaction_count for r in stored}, {"spring": 1, "detox": 1})

    async def test_track_content_without_tags(self) -> None:
        service = InterestService(InMemoryInterestRepository())
        self.assertEqual(await service.track_content_interaction("u1", Content(content_id="c1"), now=NOW), [])

    async def test_select_interests_marks_explicit(self) -> None:
        repo = InMemoryInterestRepository()
        service = InterestService(repo)
        await service.record_interaction("u1", "detox", now=NOW)

        await service.select_interests("u1", ["Detox", "mint"], now=NOW)

        detox = await repo.get("u1", "detox")
        mint = await repo.get("u1", "mint")
        self.assertTrue(detox.explicitly_selected)
        self.assertEqual(detox.interaction_count, 2)
        self.assertTrue(mint.explicitly_selected)
        self.assertAlmostEqual(mint.score, recompute_score(1, True))

    async def test_invalid_input(self) -> None:
        service = InterestService(InMemoryInterestRepository())
        with self.assertRaises(ValueError):
            await service.record_interaction("", "spring", now=NOW)
        with self.assertRaises(ValueError):
            await service.record_interaction("u1", "  ", now=NOW)

    async def test_load_decayed_does_not_write(self) -> None:
        record = InterestScore(
            user_id="u1",
            tag="spring",
            interaction_count=10,
            score=0.8,
            last_interaction=NOW - timedelta(days=60),
        )
        repo = InMemoryInterestRepository([record])
        service = InterestService(repo)

        decayed = await service.load_decayed("u1", now=NOW)

        self.assertAlmostEqual(decayed[0].score, 0.724, places=3)
        self.assertEqual((await repo.get("u1", "spring")).score, 0.8)

    async def test_persist_decay_is_explicit_save(self) -> None:
        old = InterestScore(user_id="u1", tag="spring", interaction_count=10, score=0.8,
                            last_interaction=NOW - timedelta(days=60))
        fresh = InterestScore(user_id="u2", tag="mint", interaction_count=1, score=0.4,
                              last_interaction=NOW - timedelta(hours=2))
        repo = InMemoryInterestRepository([old, fresh])

        changed = await decay_all(repo, now=NOW)

        self.assertEqual(changed, 1)
        self.assertAlmostEqual((await repo.get("u1", "spring")).score, 0.724, places=3)
        self.assertEqual((await repo.get("u2", "mint")).score, 0.4)
        self.assertEqual((await repo.get("u1", "spring")).decayed_at, NOW)

    async def test_read_after_persisted_decay_does_not_decay_twice(self) -> None:
        record = InterestScore(user_id="u1", tag="spring", interaction_count=10, score=0.8,
                               last_interaction=NOW - timedelta(days=60))
        repo = InMemoryInterestRepository([record])
        service = InterestService(repo)

        await decay_all(repo, now=NOW)
        decayed = await service.load_decayed("u1", now=NOW)

        self.assertAlmostEqual(decayed[0].score, 0.724, places=3)
        # 同一时刻再跑一次任务不应再变化
        self.assertEqual(await decay_all(repo, now=NOW), 0)

    async def test_daily_decay_job_matches_single_decay(self) -> None:
        start = NOW - timedelta(days=60)
        record = InterestScore(user_id="u1", tag="spring", interaction_count=10, score=0.8,
                               last_interaction=start)
        repo = InMemoryInterestRepository([record])

        for day in range(1, 61):
            await decay_all(repo, now=start + timedelta(days=day))

        stored = await repo.get("u1", "spring")
        self.assertAlmostEqual(stored.score, 0.724, places=3)
        decayed = await InterestService(repo).load_decayed("u1", now=NOW)
        self.assertAlmostEqual(decayed[0].score, 0.724, places=3)

    async def test_new_interaction_resets_decay_reference(self) -> None:
        record = InterestScore(user_id="u1", tag="spring", interaction_count=10, score=0.8,
                               last_interaction=NOW - timedelta(days=60))
        repo = InMemoryInterestRepository([record])
        service = InterestService(repo)
        await decay_all(repo, now=NOW - timedelta(days=1))

        updated = await service.record_interaction("u1", "spring", now=NOW)

        self.assertIsNone(updated.decayed_at)
        self.assertAlmostEqual(updated.score, recompute_score(11))


if __name__ == "__main__":
    unittest.main()
