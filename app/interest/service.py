from __future__ import annotations

import asyncio
import weakref
from datetime import datetime
from typing import Iterable, List, Optional, Tuple

from loguru import logger

from app.data.models import Content, InterestScore, utcnow
from app.data.repositories import InterestRepository
from app.interest.normalization import normalize_tag, normalize_tags
from app.interest.scoring import decayed_copy, persisted_decay, record_interaction


class InterestService:
    """
    兴趣记录的读写入口

    同一 (user, tag) 的更新是 read -> recompute -> save，
    这里用按 key 的 asyncio.Lock 串行化，避免并发请求互相覆盖计数。
    """

    def __init__(self, repo: InterestRepository):
        self._repo = repo
        self._locks: "weakref.WeakValueDictionary[Tuple[str, str], asyncio.Lock]" = (
            weakref.WeakValueDictionary()
        )

    def _lock_for(self, key: Tuple[str, str]) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    async def record_interaction(
        self,
        user_id: str,
        tag: str,
        explicit: bool = False,
        now: Optional[datetime] = None,
    ) -> InterestScore:
        if not user_id:
            raise ValueError("user_id 不能为空")
        normalized = normalize_tag(tag)
        if not normalized:
            raise ValueError("tag 不能为空")

        now = now or utcnow()
        lock = self._lock_for((user_id, normalized))
        async with lock:
            existing = await self._repo.get(user_id, normalized)
            updated = record_interaction(existing, normalized, explicit, user_id=user_id, now=now)
            await self._repo.save(updated)
        return updated

    async def track_content_interaction(
        self,
        user_id: str,
        content: Content,
        now: Optional[datetime] = None,
    ) -> List[InterestScore]:
        """浏览/点赞/分享某条内容：对内容的每个标签各记一次隐式交互"""
        now = now or utcnow()
        tags = normalize_tags(content.tags)
        if not tags:
            return []
        results = await asyncio.gather(
            *(self.record_interaction(user_id, tag, explicit=False, now=now) for tag in tags)
        )
        logger.debug(f"[InterestService] user={user_id} content={content.content_id} tags={tags}")
        return list(results)

    async def select_interests(
        self,
        user_id: str,
        tags: Iterable[str],
        now: Optional[datetime] = None,
    ) -> List[InterestScore]:
        """用户在设置页主动勾选的兴趣"""
        now = now or utcnow()
        out: List[InterestScore] = []
        for tag in normalize_tags(tags):
            out.append(await self.record_interaction(user_id, tag, explicit=True, now=now))
        return out

    async def load_decayed(self, user_id: str, now: Optional[datetime] = None) -> List[InterestScore]:
        """返回衰减后的副本，不写回存储"""
        now = now or utcnow()
        records = await self._repo.list_for_user(user_id)
        return [decayed_copy(r, now) for r in records]

    async def persist_decay(self, user_id: str, now: Optional[datetime] = None) -> int:
        """把衰减后的分值写回存储，返回实际变化的记录数"""
        now = now or utcnow()
        changed = 0
        for record in await self._repo.list_for_user(user_id):
            lock = self._lock_for(record.key)
            async with lock:
                current = await self._repo.get(*record.key)
                if current is None:
                    continue
                decayed = persisted_decay(current, now)
                if decayed.score != current.score:
                    await self._repo.save(decayed)
                    changed += 1
        return changed
