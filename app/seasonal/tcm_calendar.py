"""
中医五季（春、夏、长夏、秋、冬）与自动季节推广
"""

from __future__ import annotations

import calendar
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional

from app.data.enums import RecurrenceType
from app.data.models import RecurrencePattern, SeasonalPromotion, utcnow

AUTO_PROMOTION_BOOST = 1.5
AUTO_PROMOTION_PRIORITY = 10


@dataclass(frozen=True)
class TCMSeason:
    key: str
    name: str
    months: tuple
    element: str
    organ: str
    taste: str
    emotion: str
    color: str
    recommended_tags: List[str] = field(default_factory=list)
    avoid_tags: List[str] = field(default_factory=list)
    seasonal_foods: List[str] = field(default_factory=list)

    @property
    def guidance(self) -> str:
        return (
            f"In {self.name}, focus on supporting your {self.organ} system through "
            f"{self.element} element balancing. Incorporate {self.taste} flavors and "
            f"{self.color}-colored foods into your diet."
        )


SEASONS: Dict[str, TCMSeason] = {
    "spring": TCMSeason(
        key="spring",
        name="Spring",
        months=(2, 3, 4),
        element="Wood",
        organ="Liver",
        taste="Sour",
        emotion="Anger",
        color="Green",
        recommended_tags=[
            "spring", "detox", "cleansing", "liver", "gallbladder",
            "wood element", "green tea", "sour foods", "sprouts",
            "growth", "renewal", "mint", "leafy greens",
        ],
        avoid_tags=["heavy foods", "excess alcohol", "greasy foods"],
        seasonal_foods=[
            "leafy greens", "sprouts", "green tea", "vinegar",
            "wheat", "plums", "lemons", "limes", "goji berries",
        ],
    ),
    "summer": TCMSeason(
        key="summer",
        name="Summer",
        months=(5, 6, 7),
        element="Fire",
        organ="Heart",
        taste="Bitter",
        emotion="Joy",
        color="Red",
        recommended_tags=[
            "summer", "heart", "small intestine", "circulation",
            "fire element", "cooling foods", "bitter foods", "hydration",
            "maturity", "joy", "red foods", "cooling teas",
        ],
        avoid_tags=["excessive heat", "spicy foods", "dehydration", "heavy exercise"],
        seasonal_foods=[
            "watermelon", "cucumber", "bitter greens", "celery",
            "corn", "lemon water", "mung beans", "chrysanthemum tea",
        ],
    ),
    "late_summer": TCMSeason(
        key="late_summer",
        name="Late Summer",
        months=(8,),
        element="Earth",
        organ="Spleen",
        taste="Sweet",
        emotion="Pensiveness",
        color="Yellow",
        recommended_tags=[
            "late summer", "spleen", "stomach", "digestion",
            "earth element", "sweet foods", "centered", "grounding",
            "stability", "nourishment", "yellow foods",
        ],
        avoid_tags=["raw foods", "excessive sweets", "cold foods", "iced drinks"],
        seasonal_foods=[
            "millet", "sweet potatoes", "squash", "carrots", "ginger",
            "honey", "dates", "rice", "oats", "chicken",
        ],
    ),
    "autumn": TCMSeason(
        key="autumn",
        name="Autumn",
        months=(9, 10, 11),
        element="Metal",
        organ="Lung",
        taste="Pungent",
        emotion="Grief",
        color="White",
        recommended_tags=[
            "autumn", "fall", "lung", "large intestine", "respiratory",
            "metal element", "pungent foods", "immune support", "white foods",
            "letting go", "breath", "air", "spicy foods",
        ],
        avoid_tags=["cold foods", "phlegm producing foods", "dairy excess"],
        seasonal_foods=[
            "ginger", "onions", "garlic", "white rice", "almonds",
            "radish", "daikon", "cabbage", "pears", "white mushrooms",
        ],
    ),
    "winter": TCMSeason(
        key="winter",
        name="Winter",
        months=(12, 1),
        element="Water",
        organ="Kidney",
        taste="Salty",
        emotion="Fear",
        color="Black/Blue",
        recommended_tags=[
            "winter", "kidney", "bladder", "adrenals", "bones",
            "water element", "salty foods", "warming foods", "longevity",
            "rest", "restoration", "black foods", "blue foods",
        ],
        avoid_tags=["cold foods", "raw foods", "excess salt", "stimulants"],
        seasonal_foods=[
            "bone broth", "black beans", "kidney beans", "seaweed",
            "walnuts", "black sesame", "dark leafy greens", "lamb",
        ],
    ),
}


def season_for(now: Optional[datetime] = None) -> TCMSeason:
    month = (now or utcnow()).month
    for season in SEASONS.values():
        if month in season.months:
            return season
    raise AssertionError(f"month {month} 不属于任何季节")


def build_automatic_promotion(now: Optional[datetime] = None) -> SeasonalPromotion:
    """
    按当前季节生成一条每年重复的推广

    生效期：本月 1 日 00:00 到下个月最后一天 23:59:59；
    boostedTags 为当季推荐标签，globalBoostFactor 1.5，优先级取上限 10。
    """
    now = now or utcnow()
    season = season_for(now)

    start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    next_year, next_month = (now.year + 1, 1) if now.month == 12 else (now.year, now.month + 1)
    last_day = calendar.monthrange(next_year, next_month)[1]
    end = start.replace(year=next_year, month=next_month, day=last_day, hour=23, minute=59, second=59)

    return SeasonalPromotion(
        promotion_id=f"auto-{season.key}-{now.year}",
        name=f"{season.name} {now.year} - TCM {season.element} Element Focus",
        description=season.guidance,
        start_date=start,
        end_date=end,
        is_active=True,
        priority=AUTO_PROMOTION_PRIORITY,
        boosted_tags=list(season.recommended_tags),
        global_boost_factor=AUTO_PROMOTION_BOOST,
        is_recurring=True,
        recurrence=RecurrencePattern(
            type=RecurrenceType.yearly.value,
            month=start.month,
            day=1,
            duration_days=(end - start).days + 1,
        ),
        metadata={
            "tcmElement": season.element,
            "tcmOrgan": season.organ,
            "tcmTaste": season.taste,
            "tcmColor": season.color,
            "tcmEmotion": season.emotion,
            "seasonalFoods": list(season.seasonal_foods),
            "avoidTags": list(season.avoid_tags),
            "autoGenerated": True,
        },
    )
