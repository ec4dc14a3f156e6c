import datetime
from enum import StrEnum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator

from adsentry.models.metric import MetricType
from adsentry.models.severity import AlertSeverity


def utcnow_isoformat() -> str:
    return datetime.datetime.now(tz=datetime.timezone.utc).isoformat()


class AnomalyReason(StrEnum):
    PERCENTAGE_DEVIATION = "percentage_deviation"
    ZERO_VALUE = "zero_value"
    NO_ANOMALY = "no_anomaly"
    INSUFFICIENT_DATA = "insufficient_data"
    BELOW_MINIMUM_BASELINE = "below_minimum_baseline"


class Direction(StrEnum):
    INCREASE = "increase"
    DECREASE = "decrease"
    NONE = "none"


class CheckStatus(StrEnum):
    OK = "ok"
    WARNING = "warning"
    ERROR = "error"


class AnomalyResult(BaseModel):
    tenant_id: str
    tenant_name: str
    metric: MetricType
    date: str
    severity: Optional[AlertSeverity] = None
    baseline: float
    actual: float
    delta_pct: float
    direction: Direction
    reason: AnomalyReason
    diagnosis_hint: str = ""
    checklist_items: list[str] = Field(default_factory=list)

    @property
    def is_anomaly(self) -> bool:
        return self.severity is not None


class AlertData(BaseModel):
    title: str
    short_description: str
    impact: str
    suggested_actions: list[str] = Field(default_factory=list)
    severity: AlertSeverity
    details: dict[str, Any] = Field(default_factory=dict)


class CheckResult(BaseModel):
    check_id: str
    status: CheckStatus
    count: int = 0
    details: dict[str, Any] = Field(default_factory=dict)
    alert_data: Optional[AlertData] = None

    @property
    def is_anomaly(self) -> bool:
        return self.status != CheckStatus.OK and self.alert_data is not None


class TaskCreationResult(BaseModel):
    success: bool
    task_id: Optional[str] = None
    task_url: Optional[str] = None
    error: Optional[str] = None
    skipped: bool = False
    skip_reason: Optional[str] = None


class AlertFingerprint(BaseModel):
    """One ledger entry. Serialized with the camelCase keys of the ledger document."""

    model_config = ConfigDict(populate_by_name=True)

    tenant_id: str = Field(alias="tenantId")
    metric_or_check_id: str = Field(alias="metricOrCheckId")
    date: str
    severity: str
    created_at: str = Field(default_factory=utcnow_isoformat, alias="createdAt")
    task_id: Optional[str] = Field(default=None, alias="taskId")
    task_url: Optional[str] = Field(default=None, alias="taskUrl")

    @field_validator("severity", mode="before")
    @classmethod
    def normalize_severity(cls, severity):
        if isinstance(severity, AlertSeverity):
            return severity.name
        return str(severity).upper()


class FingerprintStoreData(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    version: int = 1
    fingerprints: dict[str, AlertFingerprint] = Field(default_factory=dict)
    last_updated: str = Field(default_factory=utcnow_isoformat, alias="lastUpdated")

    @field_serializer("fingerprints")
    def serialize_fingerprints(self, fingerprints: dict[str, AlertFingerprint]):
        return {
            key: fingerprint.model_dump(by_alias=True, exclude_none=True)
            for key, fingerprint in fingerprints.items()
        }
