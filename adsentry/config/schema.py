"""
Monitoring configuration model.

The configuration file holds a ``global`` section and a list of ``tenants``;
each tenant may override thresholds per metric.
"""
import re
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from adsentry.models.metric import MetricType

DEFAULT_METRICS = [
    MetricType.SESSIONS,
    MetricType.TOTAL_USERS,
    MetricType.ENGAGEMENT_RATE,
]


class ThresholdConfig(BaseModel):
    warning: float = Field(default=20, ge=0, le=100)
    critical: float = Field(default=40, ge=0, le=100)
    min_baseline: float = Field(default=20, ge=0)


class ThresholdOverride(BaseModel):
    warning: Optional[float] = Field(default=None, ge=0, le=100)
    critical: Optional[float] = Field(default=None, ge=0, le=100)
    min_baseline: Optional[float] = Field(default=None, ge=0)


class RateLimitingConfig(BaseModel):
    requests_per_minute: int = Field(default=60, ge=1)
    retry_attempts: int = Field(default=2, ge=0)
    retry_delay_ms: int = Field(default=1000, ge=0)


class ClickupGlobalConfig(BaseModel):
    # YAML reads unquoted ClickUp ids as integers
    model_config = ConfigDict(coerce_numbers_to_str=True)

    default_list_id: Optional[str] = None
    error_alert_list_id: Optional[str] = None


class GlobalConfig(BaseModel):
    default_thresholds: ThresholdConfig = Field(default_factory=ThresholdConfig)
    baseline_window_days: int = Field(default=7, ge=3, le=30)
    min_days_for_percentage_alerts: int = Field(default=3, ge=1, le=7)
    rate_limiting: RateLimitingConfig = Field(default_factory=RateLimitingConfig)
    clickup: ClickupGlobalConfig = Field(default_factory=ClickupGlobalConfig)
    fingerprint_retention_days: int = Field(default=30, ge=1)


class Ga4TenantConfig(BaseModel):
    property_id: str
    metrics: list[MetricType] = Field(default_factory=lambda: list(DEFAULT_METRICS))
    key_event_name: Optional[str] = None

    @field_validator("property_id", mode="before")
    @classmethod
    def validate_property_id(cls, property_id):
        property_id = str(property_id).strip()
        if not re.fullmatch(r"\d+", property_id):
            raise ValueError("GA4 property id must be numeric")
        return property_id

    @model_validator(mode="after")
    def key_event_required_for_conversions(self):
        if MetricType.CONVERSIONS in self.metrics and not self.key_event_name:
            raise ValueError(
                "key_event_name is required when the conversions metric is enabled"
            )
        return self


class GoogleAdsTenantConfig(BaseModel):
    customer_id: str
    refresh_token: Optional[str] = None
    monitoring_enabled: bool = True
    checks: Optional[list[str]] = None
    # campaigns younger than this are still ramping up
    no_delivery_hours: int = Field(default=24, ge=0)

    @field_validator("checks")
    @classmethod
    def known_checks(cls, checks):
        if checks is None:
            return checks
        # imported here since checks depend on this module
        from adsentry.checks.checks_factory import get_all_check_ids

        check_ids = get_all_check_ids()
        unknown = [check_id for check_id in checks if check_id not in check_ids]
        if unknown:
            raise ValueError(
                f"Unknown check ids {unknown}, expected any of {check_ids}"
            )
        return checks

    @field_validator("customer_id", mode="before")
    @classmethod
    def normalize_customer_id(cls, customer_id):
        customer_id = re.sub(r"[\s-]", "", str(customer_id))
        if not customer_id.isdigit():
            raise ValueError("Google Ads customer id must be numeric")
        return customer_id


class ClickupTenantConfig(BaseModel):
    model_config = ConfigDict(coerce_numbers_to_str=True)

    list_id: str = Field(min_length=1)
    assignee_id: Optional[str] = None
    tags: list[str] = Field(default_factory=list)


class TenantConfig(BaseModel):
    id: str = Field(min_length=1)
    name: str = Field(min_length=1)
    monitoring_enabled: bool = True
    timezone: str = "Europe/Amsterdam"
    currency: str = "EUR"
    ga4: Optional[Ga4TenantConfig] = None
    thresholds: dict[MetricType, ThresholdOverride] = Field(default_factory=dict)
    google_ads: Optional[GoogleAdsTenantConfig] = None
    clickup: ClickupTenantConfig


class MonitoringConfig(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    global_config: GlobalConfig = Field(default_factory=GlobalConfig, alias="global")
    tenants: list[TenantConfig] = Field(min_length=1)

    @model_validator(mode="after")
    def unique_tenant_ids(self):
        seen = set()
        for tenant in self.tenants:
            if tenant.id in seen:
                raise ValueError(f"Duplicate tenant id: {tenant.id}")
            seen.add(tenant.id)
        return self
