from enum import StrEnum

from pydantic import BaseModel, Field


class MetricType(StrEnum):
    SESSIONS = "sessions"
    TOTAL_USERS = "totalUsers"
    ENGAGEMENT_RATE = "engagementRate"
    CONVERSIONS = "conversions"
    PURCHASE_REVENUE = "purchaseRevenue"


class MetricDataPoint(BaseModel):
    metric: MetricType
    date: str  # YYYY-MM-DD
    value: float = 0


class MetricDataset(BaseModel):
    """Yesterday's value of one metric plus the baseline window preceding it."""

    tenant_id: str
    metric: MetricType
    yesterday: MetricDataPoint
    baseline_data: list[MetricDataPoint] = Field(default_factory=list)
    days_available: int = 0

    @property
    def baseline_values(self) -> list[float]:
        return [point.value for point in self.baseline_data]
