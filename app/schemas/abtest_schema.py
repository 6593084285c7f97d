from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from app.abtest.definition import create_experiment
from app.data.models import ExperimentDefinition


class VariantSchema(BaseModel):
    name: str
    description: str = ""
    parameters: Dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(populate_by_name=True)


class CreateExperimentRequest(BaseModel):
    experiment_id: str = Field(..., alias="experimentId")
    name: str
    description: str = ""
    variants: List[VariantSchema]
    start_date: Optional[datetime] = Field(default=None, alias="startDate")
    end_date: Optional[datetime] = Field(default=None, alias="endDate")
    target_user_percentage: int = Field(default=100, alias="targetUserPercentage")
    segmentation_filters: Dict[str, Any] = Field(default_factory=dict, alias="segmentationFilters")
    goals: Optional[List[str]] = None
    is_active: bool = Field(default=True, alias="isActive")

    model_config = ConfigDict(populate_by_name=True)

    def to_definition(self, duration_days: int = 30) -> ExperimentDefinition:
        """取值范围交给 create_experiment 统一校验（抛 ExperimentConfigError）"""
        return create_experiment(
            self.experiment_id,
            self.name,
            [v.model_dump() for v in self.variants],
            start_date=self.start_date,
            end_date=self.end_date,
            target_user_percentage=self.target_user_percentage,
            segmentation_filters=self.segmentation_filters,
            goals=self.goals,
            is_active=self.is_active,
            description=self.description,
            duration_days=duration_days,
        )
