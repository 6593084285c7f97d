from __future__ import annotations

from enum import Enum


class Algorithm(str, Enum):
    content_based = "content-based"
    collaborative_filtering = "collaborative-filtering"
    hybrid = "hybrid"
    popular = "popular"
    seasonal = "seasonal"
    custom = "custom"


class RecommendationContext(str, Enum):
    home = "home"
    profile = "profile"
    detail = "detail"
    search = "search"
    category = "category"


class ExperimentGoal(str, Enum):
    click_through_rate = "click_through_rate"
    engagement = "engagement"
    conversion = "conversion"
    retention = "retention"
    time_spent = "time_spent"
    custom = "custom"


class PromotionContentType(str, Enum):
    article = "article"
    recipe = "recipe"
    video = "video"
    podcast = "podcast"
    workshop = "workshop"


class RecurrenceType(str, Enum):
    yearly = "yearly"
    monthly = "monthly"
    weekly = "weekly"


class PromotionInteractionKind(str, Enum):
    impression = "impression"
    click = "click"
