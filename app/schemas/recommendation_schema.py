from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from app.data.enums import RecommendationContext


class RecommendationRequest(BaseModel):
    user_id: str = Field(..., alias="userId", min_length=1)
    context: Optional[RecommendationContext] = None
    limit: Optional[int] = Field(default=None, ge=1)
    constitution: Optional[str] = None
    segments: Optional[List[str]] = None
    region: Optional[str] = None
    ab_test_id: Optional[str] = Field(default=None, alias="abTestId")

    model_config = ConfigDict(populate_by_name=True, use_enum_values=True)


class RecommendationItem(BaseModel):
    content_id: str = Field(..., alias="contentId")
    score: float
    reason: Optional[str] = None

    model_config = ConfigDict(populate_by_name=True)


class RecommendationResponse(BaseModel):
    items: List[RecommendationItem] = Field(default_factory=list)
    algorithm: str
    ab_test_id: Optional[str] = Field(default=None, alias="abTestId")
    ab_test_variant: Optional[str] = Field(default=None, alias="abTestVariant")
    total_candidates: int = Field(default=0, alias="totalCandidates")
    processing_time_ms: float = Field(default=0.0, alias="processingTimeMs")

    model_config = ConfigDict(populate_by_name=True)
