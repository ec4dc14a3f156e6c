import copy
import logging

import pytest

from adsentry.config.loader import parse_config
from adsentry.models.metric import MetricDataPoint, MetricDataset, MetricType

RAW_CONFIG = {
    "global": {
        "default_thresholds": {"warning": 20, "critical": 40, "min_baseline": 20},
        "baseline_window_days": 7,
        "min_days_for_percentage_alerts": 3,
        "rate_limiting": {"retry_attempts": 2, "retry_delay_ms": 1000},
        "clickup": {"error_alert_list_id": "errors"},
    },
    "tenants": [
        {
            "id": "acme",
            "name": "Acme",
            "ga4": {"property_id": "123456789", "metrics": ["sessions"]},
            "clickup": {"list_id": "acme-list", "tags": ["acme"]},
        },
        {
            "id": "globex",
            "name": "Globex",
            "currency": "USD",
            "ga4": {"property_id": "987654321", "metrics": ["sessions"]},
            "clickup": {"list_id": "globex-list"},
        },
    ],
}


@pytest.fixture
def raw_config():
    return copy.deepcopy(RAW_CONFIG)


@pytest.fixture
def monitoring_config(raw_config):
    return parse_config(raw_config)


@pytest.fixture
def tenant_config(monitoring_config):
    return monitoring_config.tenants[0]


@pytest.fixture
def check_logger():
    return logging.getLogger("tests.checks")


@pytest.fixture
def make_dataset():
    def _make_dataset(
        actual,
        baseline_values,
        metric=MetricType.SESSIONS,
        tenant_id="acme",
        date="2024-01-15",
        days_available=None,
    ):
        baseline_data = [
            MetricDataPoint(metric=metric, date=f"2024-01-{8 + index:02d}", value=value)
            for index, value in enumerate(baseline_values)
        ]
        return MetricDataset(
            tenant_id=tenant_id,
            metric=metric,
            yesterday=MetricDataPoint(metric=metric, date=date, value=actual),
            baseline_data=baseline_data,
            days_available=(
                len(baseline_values) + 1 if days_available is None else days_available
            ),
        )

    return _make_dataset
