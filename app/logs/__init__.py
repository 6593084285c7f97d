from app.logs.recommendation_log import RecommendationLogger

__all__ = ["RecommendationLogger"]
