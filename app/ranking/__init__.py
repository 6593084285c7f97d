from app.ranking.constitution import CONSTITUTION_PREFERENCES, preference_for
from app.ranking.scorer import CandidateScorer

__all__ = ["CONSTITUTION_PREFERENCES", "CandidateScorer", "preference_for"]
