import datetime
import json

import pytest
import pytz
import requests
import responses

from adsentry.config.loader import parse_config
from adsentry.exceptions.provider_config_exception import ProviderConfigException
from adsentry.models.metric import MetricDataPoint, MetricType
from adsentry.providers.ga4_provider.ga4_provider import (
    Ga4Provider,
    build_dataset,
    format_ga4_date,
    get_yesterday,
)
from adsentry.providers.models.provider_config import ProviderConfig

REPORT_URL = (
    "https://analyticsdata.googleapis.com/v1beta/properties/123456789:runReport"
)
NOW = pytz.UTC.localize(datetime.datetime(2024, 1, 16, 8, 0))


def report(rows):
    return {
        "rows": [
            {
                "dimensionValues": [{"value": date}],
                "metricValues": [{"value": str(value)} for value in values],
            }
            for date, *values in rows
        ]
    }


@pytest.fixture
def ga4_provider():
    config = ProviderConfig(
        authentication={"service_account_json": json.dumps({"type": "service_account"})}
    )
    provider = Ga4Provider("ga4_acme", config)
    provider._session = requests.Session()
    return provider


def test_get_yesterday_uses_tenant_timezone():
    late_evening_utc = pytz.UTC.localize(datetime.datetime(2024, 1, 15, 23, 30))
    assert get_yesterday("Europe/Amsterdam", late_evening_utc) == datetime.date(2024, 1, 15)
    assert get_yesterday("UTC", late_evening_utc) == datetime.date(2024, 1, 14)
    naive = datetime.datetime(2024, 1, 15, 23, 30)
    assert get_yesterday("UTC", naive) == datetime.date(2024, 1, 14)


def test_format_ga4_date():
    assert format_ga4_date("20240115") == "2024-01-15"
    assert format_ga4_date("2024-01-15") == "2024-01-15"


def test_build_dataset():
    points = [
        MetricDataPoint(metric=MetricType.SESSIONS, date=f"2024-01-{day:02d}", value=day)
        for day in range(8, 16)
    ]
    dataset = build_dataset("acme", MetricType.SESSIONS, points, "2024-01-15")
    assert dataset.yesterday.value == 15
    assert len(dataset.baseline_data) == 7
    assert dataset.days_available == 8


def test_build_dataset_without_yesterday_row():
    points = [
        MetricDataPoint(metric=MetricType.SESSIONS, date="2024-01-14", value=100)
    ]
    dataset = build_dataset("acme", MetricType.SESSIONS, points, "2024-01-15")
    assert dataset.yesterday.value == 0
    assert dataset.yesterday.date == "2024-01-15"
    assert dataset.days_available == 1


def test_invalid_service_account_json():
    config = ProviderConfig(authentication={"service_account_json": "{not json"})
    with pytest.raises(ProviderConfigException):
        Ga4Provider("ga4_acme", config)


@responses.activate
def test_run_report(ga4_provider):
    responses.add(
        responses.POST,
        REPORT_URL,
        json=report([("20240114", 100, 80), ("20240115", 60, 50)]),
        status=200,
    )

    data = ga4_provider.run_report(
        "123456789",
        [MetricType.SESSIONS, MetricType.TOTAL_USERS],
        "2024-01-08",
        "2024-01-15",
    )

    assert [point.value for point in data[MetricType.SESSIONS]] == [100, 60]
    assert data[MetricType.TOTAL_USERS][1].date == "2024-01-15"
    body = json.loads(responses.calls[0].request.body)
    assert body["dateRanges"] == [{"startDate": "2024-01-08", "endDate": "2024-01-15"}]
    assert body["metrics"] == [{"name": "sessions"}, {"name": "totalUsers"}]
    assert "dimensionFilter" not in body


@responses.activate
def test_fetch_datasets(ga4_provider, raw_config):
    raw_config["tenants"][0]["ga4"] = {
        "property_id": "123456789",
        "metrics": ["sessions", "conversions"],
        "key_event_name": "purchase",
    }
    config = parse_config(raw_config)
    days = [f"202401{day:02d}" for day in range(8, 16)]
    responses.add(
        responses.POST,
        REPORT_URL,
        json=report([(day, 100) for day in days[:-1]] + [(days[-1], 60)]),
        status=200,
    )
    responses.add(
        responses.POST,
        REPORT_URL,
        json=report([(day, 5) for day in days]),
        status=200,
    )

    datasets = ga4_provider.fetch_datasets(
        config.tenants[0],
        config.global_config,
        [MetricType.SESSIONS, MetricType.CONVERSIONS],
        now=NOW,
    )

    sessions, conversions = datasets
    assert sessions.metric == MetricType.SESSIONS
    assert sessions.yesterday.date == "2024-01-15"
    assert sessions.yesterday.value == 60
    assert sessions.baseline_values == [100] * 7
    assert sessions.days_available == 8
    assert conversions.metric == MetricType.CONVERSIONS
    assert conversions.yesterday.value == 5

    standard_request = json.loads(responses.calls[0].request.body)
    assert standard_request["metrics"] == [{"name": "sessions"}]
    assert standard_request["dateRanges"][0]["startDate"] == "2024-01-08"
    conversions_request = json.loads(responses.calls[1].request.body)
    assert conversions_request["metrics"] == [{"name": "eventCount"}]
    assert conversions_request["dimensionFilter"] == {
        "filter": {"fieldName": "eventName", "stringFilter": {"value": "purchase"}}
    }
