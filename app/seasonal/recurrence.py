"""
周期性推广的发生窗口

recurrence 只描述“每年/每月/每周从哪天开始、持续几天”，这里按 now 推出最近的发生窗口，
不会把每次发生落成独立的推广记录。
"""

from __future__ import annotations

import calendar
from datetime import datetime, timedelta
from typing import Iterator

from app.data.enums import RecurrenceType
from app.data.models import RecurrencePattern, SeasonalPromotion
from app.services.exceptions import PromotionConfigError


def js_weekday(dt: datetime) -> int:
    """周日=0 ... 周六=6"""
    return (dt.weekday() + 1) % 7


def validate_recurrence(pattern: RecurrencePattern) -> RecurrencePattern:
    try:
        RecurrenceType(pattern.type)
    except ValueError:
        raise PromotionConfigError(f"未知的 recurrence 类型: {pattern.type!r}") from None

    if pattern.month is not None and not 1 <= pattern.month <= 12:
        raise PromotionConfigError(f"recurrence.month 必须在 1-12: {pattern.month}")
    if pattern.day is not None and not 1 <= pattern.day <= 31:
        raise PromotionConfigError(f"recurrence.day 必须在 1-31: {pattern.day}")
    if pattern.day_of_week is not None and not 0 <= pattern.day_of_week <= 6:
        raise PromotionConfigError(f"recurrence.dayOfWeek 必须在 0-6: {pattern.day_of_week}")
    if pattern.duration_days < 1:
        raise PromotionConfigError("recurrence.durationDays 必须 >= 1")
    return pattern


def _clamp_day(year: int, month: int, day: int) -> int:
    return min(day, calendar.monthrange(year, month)[1])


def _midnight(dt: datetime) -> datetime:
    return dt.replace(hour=0, minute=0, second=0, microsecond=0)


def _shift_month(year: int, month: int, delta: int) -> tuple[int, int]:
    idx = year * 12 + (month - 1) + delta
    return idx // 12, idx % 12 + 1


def occurrence_starts(promotion: SeasonalPromotion, now: datetime) -> Iterator[datetime]:
    """从当前周期往前，依次给出可能覆盖 now 的发生起点"""
    pattern = promotion.recurrence or RecurrencePattern()
    anchor = promotion.start_date
    kind = RecurrenceType(pattern.type)

    if kind is RecurrenceType.weekly:
        dow = pattern.day_of_week if pattern.day_of_week is not None else js_weekday(anchor)
        back = (js_weekday(now) - dow) % 7
        first = _midnight(now) - timedelta(days=back)
        for k in range(pattern.duration_days // 7 + 1):
            yield first - timedelta(weeks=k)
        return

    if kind is RecurrenceType.monthly:
        day = pattern.day or anchor.day
        for k in range(pattern.duration_days // 28 + 2):
            year, month = _shift_month(now.year, now.month, -k)
            yield _midnight(now).replace(year=year, month=month, day=_clamp_day(year, month, day))
        return

    month = pattern.month or anchor.month
    day = pattern.day or anchor.day
    for k in range(pattern.duration_days // 365 + 2):
        year = now.year - k
        yield _midnight(now).replace(year=year, month=month, day=_clamp_day(year, month, day))


def in_occurrence_window(promotion: SeasonalPromotion, now: datetime) -> bool:
    """非周期推广恒为 True；周期推广要求 now 落在某次发生的 [start, start + durationDays) 内"""
    if not promotion.is_recurring:
        return True
    duration = timedelta(days=(promotion.recurrence or RecurrencePattern()).duration_days)
    for start in occurrence_starts(promotion, now):
        if start <= now < start + duration:
            return True
    return False

