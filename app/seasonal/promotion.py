from __future__ import annotations

from app.data.enums import PromotionContentType
from app.data.models import SeasonalPromotion
from app.seasonal.recurrence import validate_recurrence
from app.services.exceptions import PromotionConfigError

MIN_PRIORITY, MAX_PRIORITY = 1, 10
MIN_GLOBAL_BOOST, MAX_GLOBAL_BOOST = 1.0, 3.0
MIN_CONTENT_BOOST, MAX_CONTENT_BOOST = 1.0, 5.0
_CONTENT_TYPES = {t.value for t in PromotionContentType}


def validate_promotion(promotion: SeasonalPromotion) -> SeasonalPromotion:
    """运营录入推广规则时校验，非法直接抛 PromotionConfigError"""
    if not promotion.promotion_id:
        raise PromotionConfigError("promotion_id 不能为空")
    if not promotion.name or not promotion.name.strip():
        raise PromotionConfigError("name 不能为空")
    if promotion.end_date < promotion.start_date:
        raise PromotionConfigError("End date must be after start date")

    if not MIN_PRIORITY <= promotion.priority <= MAX_PRIORITY:
        raise PromotionConfigError(f"priority 必须在 {MIN_PRIORITY}-{MAX_PRIORITY}: {promotion.priority}")
    if not MIN_GLOBAL_BOOST <= promotion.global_boost_factor <= MAX_GLOBAL_BOOST:
        raise PromotionConfigError(f"globalBoostFactor 超出范围: {promotion.global_boost_factor}")

    for item in promotion.promoted_content:
        if not item.content_id:
            raise PromotionConfigError("promotedContent.contentId 不能为空")
        if not MIN_CONTENT_BOOST <= item.boost_factor <= MAX_CONTENT_BOOST:
            raise PromotionConfigError(f"promotedContent.boostFactor 超出范围: {item.boost_factor}")

    unknown = [t for t in promotion.boosted_content_types if t not in _CONTENT_TYPES]
    if unknown:
        raise PromotionConfigError(f"未知的内容类型: {unknown}")

    if promotion.is_recurring and promotion.recurrence is not None:
        validate_recurrence(promotion.recurrence)
    return promotion
