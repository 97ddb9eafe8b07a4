from typing import List, Literal

from pydantic import BaseModel, ConfigDict, Field


Education = Literal["No formal education", "Primary", "Secondary", "Higher education"]
Employment = Literal["Unemployed", "Part-time", "Full-time", "Self-employed"]
Location = Literal["Rural", "Urban", "Peri-urban"]
HealthAccess = Literal["None", "Limited", "Moderate", "Good"]
RiskCategory = Literal["Low", "Medium", "High", "Critical"]


class RiskAssessmentRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    income: float = Field(ge=0, description="Monthly income in USD")
    education: Education
    employment: Employment
    household_size: int = Field(alias="householdSize", ge=1)
    location: Location
    health_access: HealthAccess = Field(alias="healthAccess")


class RiskAnalysis(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    risk_score: float = Field(alias="riskScore", ge=0, le=100)
    risk_category: RiskCategory = Field(alias="riskCategory")
    key_factors: List[str] = Field(alias="keyFactors")
    recommendations: List[str]
    sdg_targets: List[str] = Field(alias="sdgTargets")


class RiskAssessmentResponse(BaseModel):
    success: bool
    analysis: RiskAnalysis | None = None
    error: str | None = None
