"""
季节性推广模块

推广规则的匹配与加权（booster）、周期窗口（recurrence）、中医五季日历（tcm_calendar），
以及曝光/点击统计（analytics）。
"""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from app.seasonal.analytics import PromotionTracker
    from app.seasonal.booster import SeasonalBooster, explain_boost
    from app.seasonal.tcm_calendar import build_automatic_promotion, season_for
    from app.seasonal.promotion import validate_promotion

__all__ = [
    "PromotionTracker",
    "SeasonalBooster",
    "build_automatic_promotion",
    "explain_boost",
    "season_for",
    "validate_promotion",
]
