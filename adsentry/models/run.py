from pydantic import BaseModel, Field

from adsentry.models.alert import AnomalyResult


class TenantEvaluationSummary(BaseModel):
    tenant_id: str
    tenant_name: str
    metrics_evaluated: int = 0
    anomalies_found: int = 0
    critical_count: int = 0
    warning_count: int = 0
    results: list[AnomalyResult] = Field(default_factory=list)


class MonitoringRunResult(BaseModel):
    success: bool = False
    clients_processed: int = 0
    checks_run: int = 0
    metrics_evaluated: int = 0
    anomalies_found: int = 0
    alerts_created: int = 0
    alerts_skipped: int = 0
    alerts_failed: int = 0
    errors: list[str] = Field(default_factory=list)
    summaries: list[TenantEvaluationSummary] = Field(default_factory=list)
