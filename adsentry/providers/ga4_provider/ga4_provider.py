"""
Ga4Provider builds metric datasets from the Google Analytics 4 Data API.
"""

import dataclasses
import datetime
import json
from typing import Optional

import google.oauth2.service_account
import pydantic
import pytz
from google.auth.transport.requests import AuthorizedSession

from adsentry.config.schema import GlobalConfig, TenantConfig
from adsentry.exceptions.provider_config_exception import ProviderConfigException
from adsentry.exceptions.provider_exception import ProviderException
from adsentry.models.metric import MetricDataPoint, MetricDataset, MetricType
from adsentry.providers.base.base_provider import BaseProvider
from adsentry.providers.models.provider_config import ProviderConfig
from adsentry.resilience.retry_policy import RetryPolicy


@pydantic.dataclasses.dataclass
class Ga4ProviderAuthConfig:
    service_account_json: str = dataclasses.field(
        metadata={
            "required": True,
            "description": "A service account JSON with read access to the GA4 properties",
            "sensitive": True,
            "type": "file",
            "file_type": "application/json",
        }
    )


def get_yesterday(timezone: str, now: Optional[datetime.datetime] = None) -> datetime.date:
    """Yesterday's calendar date as seen in the given timezone."""
    now = now or datetime.datetime.now(tz=pytz.UTC)
    if now.tzinfo is None:
        now = pytz.UTC.localize(now)
    return now.astimezone(pytz.timezone(timezone)).date() - datetime.timedelta(days=1)


def format_ga4_date(value: str) -> str:
    """20240115 -> 2024-01-15"""
    if len(value) == 8 and value.isdigit():
        return f"{value[:4]}-{value[4:6]}-{value[6:]}"
    return value


def build_dataset(
    tenant_id: str,
    metric: MetricType,
    data_points: list[MetricDataPoint],
    yesterday: str,
) -> MetricDataset:
    """Split a metric's daily rows into yesterday and its baseline window."""
    yesterday_point = next(
        (point for point in data_points if point.date == yesterday), None
    )
    baseline_data = [point for point in data_points if point.date != yesterday]
    return MetricDataset(
        tenant_id=tenant_id,
        metric=metric,
        yesterday=yesterday_point
        or MetricDataPoint(metric=metric, date=yesterday, value=0),
        baseline_data=baseline_data,
        days_available=len(baseline_data) + (1 if yesterday_point else 0),
    )


class Ga4Provider(BaseProvider):
    """Fetch daily GA4 metrics for anomaly evaluation."""

    PROVIDER_DISPLAY_NAME = "Google Analytics 4"
    PROVIDER_CATEGORY = ["Analytics"]
    GA4_API_BASE = "https://analyticsdata.googleapis.com/v1beta"
    GA4_SCOPE = "https://www.googleapis.com/auth/analytics.readonly"
    # conversions are the event count of the tenant's key event
    GA4_METRIC_MAPPING = {
        MetricType.SESSIONS: "sessions",
        MetricType.TOTAL_USERS: "totalUsers",
        MetricType.ENGAGEMENT_RATE: "engagementRate",
        MetricType.CONVERSIONS: "eventCount",
        MetricType.PURCHASE_REVENUE: "purchaseRevenue",
    }

    def __init__(
        self,
        provider_id: str,
        config: ProviderConfig,
        retry_policy: Optional[RetryPolicy] = None,
    ):
        super().__init__(provider_id, config, retry_policy)
        self._session = None

    def validate_config(self):
        self.authentication_config = Ga4ProviderAuthConfig(
            **self.config.authentication
        )
        try:
            self.service_account_info = json.loads(
                self.authentication_config.service_account_json
            )
        except ValueError as e:
            raise ProviderConfigException(
                f"Invalid service account JSON: {e}", provider_id=self.provider_id
            )

    def dispose(self):
        if self._session is not None:
            self._session.close()
            self._session = None

    @property
    def session(self) -> AuthorizedSession:
        if self._session is None:
            credentials = (
                google.oauth2.service_account.Credentials.from_service_account_info(
                    self.service_account_info, scopes=[self.GA4_SCOPE]
                )
            )
            self._session = AuthorizedSession(credentials)
        return self._session

    def run_report(
        self,
        property_id: str,
        metrics: list[MetricType],
        start_date: str,
        end_date: str,
        event_name: Optional[str] = None,
    ) -> dict[MetricType, list[MetricDataPoint]]:
        """Daily values per metric between start_date and end_date, inclusive."""
        request = {
            "dateRanges": [{"startDate": start_date, "endDate": end_date}],
            "dimensions": [{"name": "date"}],
            "metrics": [{"name": self.GA4_METRIC_MAPPING[metric]} for metric in metrics],
            "orderBys": [{"dimension": {"dimensionName": "date"}}],
        }
        if event_name:
            request["dimensionFilter"] = {
                "filter": {"fieldName": "eventName", "stringFilter": {"value": event_name}}
            }

        response = self._request(
            "POST",
            f"{self.GA4_API_BASE}/properties/{property_id}:runReport",
            session=self.session,
            json=request,
        )
        try:
            report = response.json()
        except ValueError as e:
            raise ProviderException(f"Invalid GA4 response for property {property_id}: {e}")

        data = {metric: [] for metric in metrics}
        for row in report.get("rows", []):
            dimension_values = row.get("dimensionValues") or [{}]
            date = dimension_values[0].get("value")
            if not date:
                continue
            metric_values = row.get("metricValues", [])
            for index, metric in enumerate(metrics):
                value = (
                    metric_values[index].get("value", "0")
                    if index < len(metric_values)
                    else "0"
                )
                data[metric].append(
                    MetricDataPoint(
                        metric=metric, date=format_ga4_date(date), value=float(value)
                    )
                )
        return data

    def fetch_datasets(
        self,
        tenant: TenantConfig,
        global_config: GlobalConfig,
        metrics: list[MetricType],
        now: Optional[datetime.datetime] = None,
    ) -> list[MetricDataset]:
        """
        Fetch yesterday plus the baseline window for each metric of a tenant.

        Conversions are queried separately, filtered on the tenant's key event.
        """
        yesterday = get_yesterday(tenant.timezone, now)
        baseline_start = yesterday - datetime.timedelta(
            days=global_config.baseline_window_days
        )
        property_id = tenant.ga4.property_id
        self.logger.debug(
            f"Fetching GA4 data for {tenant.name}",
            extra={
                "property_id": property_id,
                "yesterday": yesterday.isoformat(),
                "baseline_start": baseline_start.isoformat(),
                "metrics": [str(metric) for metric in metrics],
            },
        )

        datasets = []
        standard_metrics = [m for m in metrics if m != MetricType.CONVERSIONS]
        if standard_metrics:
            data = self.run_report(
                property_id,
                standard_metrics,
                baseline_start.isoformat(),
                yesterday.isoformat(),
            )
            for metric in standard_metrics:
                datasets.append(
                    build_dataset(
                        tenant.id, metric, data.get(metric, []), yesterday.isoformat()
                    )
                )

        if MetricType.CONVERSIONS in metrics and tenant.ga4.key_event_name:
            data = self.run_report(
                property_id,
                [MetricType.CONVERSIONS],
                baseline_start.isoformat(),
                yesterday.isoformat(),
                event_name=tenant.ga4.key_event_name,
            )
            datasets.append(
                build_dataset(
                    tenant.id,
                    MetricType.CONVERSIONS,
                    data.get(MetricType.CONVERSIONS, []),
                    yesterday.isoformat(),
                )
            )
        return datasets


if __name__ == "__main__":
    # Output debug messages
    import logging
    import os

    logging.basicConfig(level=logging.DEBUG, handlers=[logging.StreamHandler()])

    config = ProviderConfig(
        authentication={"service_account_json": os.environ.get("GA4_CREDENTIALS")}
    )
    provider = Ga4Provider(provider_id="ga4", config=config)
    today = datetime.date.today()
    print(
        provider.run_report(
            os.environ.get("GA4_PROPERTY_ID"),
            [MetricType.SESSIONS],
            (today - datetime.timedelta(days=7)).isoformat(),
            today.isoformat(),
        )
    )
