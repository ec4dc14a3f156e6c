import pytest
from freezegun import freeze_time

from adsentry.checks.checks_factory import (
    CHECKS,
    get_all_check_ids,
    get_check,
    get_checks,
)
from adsentry.checks.budget_depleted_check import BudgetDepletedCheck
from adsentry.checks.conversion_tracking_check import ConversionTrackingCheck
from adsentry.checks.cpa_increase_check import CpaIncreaseCheck
from adsentry.checks.disapproved_ads_check import DisapprovedAdsCheck
from adsentry.checks.extensions_disapproved_check import ExtensionsDisapprovedCheck
from adsentry.checks.no_delivery_check import NoDeliveryCheck
from adsentry.checks.paused_high_performers_check import PausedHighPerformersCheck
from adsentry.checks.payment_issues_check import PaymentIssuesCheck
from adsentry.checks.roas_decrease_check import RoasDecreaseCheck
from adsentry.checks.spend_without_value_check import SpendWithoutValueCheck
from adsentry.config.loader import parse_config
from adsentry.exceptions.provider_exception import ProviderHttpException
from adsentry.models.alert import CheckStatus
from adsentry.models.severity import AlertSeverity
from tests.fixtures.fakes import FakePlatformClient


def micros(amount):
    return str(int(amount * 1_000_000))


def test_registry_order():
    assert get_all_check_ids() == [
        "payment_issues",
        "disapproved_ads",
        "no_delivery",
        "budget_depleted",
        "extensions_disapproved",
        "conversion_tracking",
        "cpa_increase",
        "roas_decrease",
        "spend_without_value",
        "paused_high_performers",
    ]
    assert isinstance(get_check("cpa_increase"), CpaIncreaseCheck)
    assert get_check("unknown") is None


def test_get_checks_filters_in_registry_order():
    assert get_checks() == CHECKS
    assert [check.id for check in get_checks(["cpa_increase", "payment_issues", "nope"])] == [
        "payment_issues",
        "cpa_increase",
    ]
    assert get_checks([]) == []


def test_checks_re_raise_platform_errors(tenant_config, check_logger):
    client = FakePlatformClient([(("FROM",), ProviderHttpException("boom", 500))])
    for check in CHECKS:
        with pytest.raises(ProviderHttpException):
            check.run(client, tenant_config, check_logger)


class TestPaymentIssuesCheck:
    def test_ok(self, tenant_config, check_logger):
        client = FakePlatformClient(
            [
                (("FROM customer",), [{"customer": {"status": "ENABLED"}}]),
                (("FROM billing_setup",), [{"billingSetup": {"status": "APPROVED"}}]),
            ]
        )
        result = PaymentIssuesCheck().run(client, tenant_config, check_logger)
        assert result.status == CheckStatus.OK
        assert not result.is_anomaly

    def test_suspended_account_is_critical(self, tenant_config, check_logger):
        client = FakePlatformClient(
            [
                (("FROM customer",), [{"customer": {"status": "SUSPENDED"}}]),
                (("FROM billing_setup",), [{"billingSetup": {"status": "PENDING"}}]),
            ]
        )
        result = PaymentIssuesCheck().run(client, tenant_config, check_logger)
        assert result.status == CheckStatus.ERROR
        assert result.count == 2
        assert result.alert_data.severity == AlertSeverity.CRITICAL
        assert result.alert_data.details["issue_types"] == [
            "account_suspended",
            "billing_pending",
        ]

    def test_missing_billing_setup_is_high(self, tenant_config, check_logger):
        client = FakePlatformClient(
            [(("FROM customer",), [{"customer": {"status": "ENABLED"}}])]
        )
        result = PaymentIssuesCheck().run(client, tenant_config, check_logger)
        assert result.alert_data.severity == AlertSeverity.HIGH
        assert result.alert_data.details["issue_types"] == ["no_billing_setup"]

    def test_billing_permission_error_is_ignored(self, tenant_config, check_logger):
        client = FakePlatformClient(
            [
                (("FROM customer",), [{"customer": {"status": "ENABLED"}}]),
                (("FROM billing_setup",), ProviderHttpException("denied", 403)),
            ]
        )
        result = PaymentIssuesCheck().run(client, tenant_config, check_logger)
        assert result.status == CheckStatus.OK


def disapproved_ad(ad_id, topics=()):
    return {
        "adGroupAd": {
            "ad": {"id": ad_id, "name": f"Ad {ad_id}"},
            "policySummary": {
                "approvalStatus": "DISAPPROVED",
                "policyTopicEntries": [{"topic": topic} for topic in topics],
            },
        },
        "adGroup": {"id": "10", "name": "Shoes"},
        "campaign": {"id": "20", "name": "Brand"},
    }


class TestDisapprovedAdsCheck:
    def test_ok(self, tenant_config, check_logger):
        result = DisapprovedAdsCheck().run(FakePlatformClient(), tenant_config, check_logger)
        assert result.status == CheckStatus.OK

    def test_few_disapproved_ads_are_high(self, tenant_config, check_logger):
        client = FakePlatformClient(
            [
                (
                    ("FROM ad_group_ad",),
                    [
                        disapproved_ad("1", ["TRADEMARKS"]),
                        disapproved_ad("2", ["DESTINATION_NOT_WORKING", "TRADEMARKS"]),
                    ],
                )
            ]
        )
        result = DisapprovedAdsCheck().run(client, tenant_config, check_logger)
        assert result.status == CheckStatus.ERROR
        assert result.count == 2
        assert result.alert_data.severity == AlertSeverity.HIGH
        assert result.alert_data.short_description == "2 ads disapproved"
        assert result.details["policy_topics"] == ["DESTINATION_NOT_WORKING", "TRADEMARKS"]
        assert result.details["disapproved_ads"][0]["campaign_name"] == "Brand"

    def test_many_disapproved_ads_are_critical(self, tenant_config, check_logger):
        client = FakePlatformClient(
            [(("FROM ad_group_ad",), [disapproved_ad(str(i)) for i in range(12)])]
        )
        result = DisapprovedAdsCheck().run(client, tenant_config, check_logger)
        assert result.alert_data.severity == AlertSeverity.CRITICAL
        assert result.count == 12
        assert len(result.details["disapproved_ads"]) == 10


def asset(asset_type, status="DISAPPROVED"):
    return {
        "asset": {
            "id": "1",
            "name": f"{asset_type} asset",
            "type": asset_type,
            "policySummary": {"approvalStatus": status},
        }
    }


class TestExtensionsDisapprovedCheck:
    def test_approved_rows_are_ignored(self, tenant_config, check_logger):
        client = FakePlatformClient(
            [(("FROM asset",), [asset("SITELINK", status="APPROVED")])]
        )
        result = ExtensionsDisapprovedCheck().run(client, tenant_config, check_logger)
        assert result.status == CheckStatus.OK

    def test_sitelinks_are_high(self, tenant_config, check_logger):
        client = FakePlatformClient(
            [(("FROM asset",), [asset("SITELINK"), asset("SITELINK"), asset("CALLOUT")])]
        )
        result = ExtensionsDisapprovedCheck().run(client, tenant_config, check_logger)
        assert result.alert_data.severity == AlertSeverity.HIGH
        assert result.details["by_type"] == {"SITELINK": 2, "CALLOUT": 1}

    def test_other_extensions_are_medium(self, tenant_config, check_logger):
        client = FakePlatformClient(
            [(("FROM asset",), [asset("CALLOUT"), asset("IMAGE"), asset("PRICE")])]
        )
        result = ExtensionsDisapprovedCheck().run(client, tenant_config, check_logger)
        assert result.alert_data.severity == AlertSeverity.MEDIUM
        assert result.count == 3


def campaign_row(campaign_id, cost, clicks, conversions=0, all_conversions=0):
    return {
        "campaign": {"id": campaign_id, "name": f"Campaign {campaign_id}"},
        "metrics": {
            "costMicros": micros(cost),
            "clicks": str(clicks),
            "conversions": conversions,
            "allConversions": all_conversions,
        },
    }


class TestConversionTrackingCheck:
    def test_ok(self, tenant_config, check_logger):
        client = FakePlatformClient(
            [
                (("FROM conversion_action",), [{"conversionAction": {"id": "1"}}]),
                (("FROM campaign",), [campaign_row("1", 300, 120, conversions=4)]),
            ]
        )
        result = ConversionTrackingCheck().run(client, tenant_config, check_logger)
        assert result.status == CheckStatus.OK

    def test_tracking_not_set_up(self, tenant_config, check_logger):
        result = ConversionTrackingCheck().run(
            FakePlatformClient(), tenant_config, check_logger
        )
        assert result.status == CheckStatus.ERROR
        assert result.alert_data.title == "Google Ads: conversion tracking not set up"
        assert result.alert_data.severity == AlertSeverity.HIGH

    def test_zero_conversion_campaigns(self, tenant_config, check_logger):
        client = FakePlatformClient(
            [
                (("FROM conversion_action",), [{"conversionAction": {"id": "1"}}]),
                (
                    ("FROM campaign",),
                    [
                        campaign_row("1", 150, 60),
                        # split over two days
                        campaign_row("2", 40, 30, conversions=1),
                        campaign_row("2", 40, 30),
                    ],
                ),
            ]
        )
        result = ConversionTrackingCheck().run(client, tenant_config, check_logger)
        assert result.count == 1
        assert result.alert_data.severity == AlertSeverity.HIGH
        assert result.alert_data.impact.startswith("€150.00 spent")
        assert result.details["zero_conversion_campaigns"][0]["name"] == "Campaign 1"

    def test_expensive_account_without_conversions_is_critical(
        self, tenant_config, check_logger
    ):
        client = FakePlatformClient(
            [
                (("FROM conversion_action",), [{"conversionAction": {"id": "1"}}]),
                (("FROM campaign",), [campaign_row("1", 600, 200)]),
            ]
        )
        result = ConversionTrackingCheck().run(client, tenant_config, check_logger)
        assert result.alert_data.severity == AlertSeverity.CRITICAL
        assert [issue["type"] for issue in result.details["issues"]] == [
            "zero_conversions",
            "account_zero_conversions",
        ]


def period_rows(conversions, cost, conversions_value=0):
    return [
        {
            "metrics": {
                "conversions": conversions,
                "costMicros": micros(cost),
                "conversionsValue": conversions_value,
            }
        }
    ]


class TestCpaIncreaseCheck:
    def client(self, current, full):
        return FakePlatformClient(
            [
                (("LAST_7_DAYS",), period_rows(*current)),
                (("LAST_14_DAYS",), period_rows(*full)),
            ]
        )

    def test_critical_increase(self, tenant_config, check_logger):
        # previous: 20 conversions for 200 (CPA 10), current: 10 for 150 (CPA 15)
        result = CpaIncreaseCheck().run(
            self.client((10, 150), (30, 350)), tenant_config, check_logger
        )
        assert result.status == CheckStatus.ERROR
        assert result.alert_data.severity == AlertSeverity.CRITICAL

    def test_warning_increase(self, tenant_config, check_logger):
        # CPA 10 -> 12.5
        result = CpaIncreaseCheck().run(
            self.client((10, 125), (30, 325)), tenant_config, check_logger
        )
        assert result.status == CheckStatus.WARNING
        assert result.alert_data.severity == AlertSeverity.HIGH

    def test_stable_cpa(self, tenant_config, check_logger):
        result = CpaIncreaseCheck().run(
            self.client((10, 105), (30, 305)), tenant_config, check_logger
        )
        assert result.status == CheckStatus.OK

    def test_too_few_conversions(self, tenant_config, check_logger):
        result = CpaIncreaseCheck().run(
            self.client((4, 400), (24, 600)), tenant_config, check_logger
        )
        assert result.status == CheckStatus.OK

    def test_too_few_previous_conversions(self, tenant_config, check_logger):
        # previous week: 3 conversions for 40
        result = CpaIncreaseCheck().run(
            self.client((10, 150), (13, 190)), tenant_config, check_logger
        )
        assert result.status == CheckStatus.OK
        assert result.details["previous_conversions"] == 3
        assert result.details["min_required"] == 5

    @pytest.mark.parametrize(
        "current_cost, full_cost, status, severity",
        [
            # CPA 10 -> 12 is exactly +20%
            (120, 320, CheckStatus.WARNING, AlertSeverity.HIGH),
            # CPA 10 -> 14 is exactly +40%
            (140, 340, CheckStatus.ERROR, AlertSeverity.CRITICAL),
        ],
    )
    def test_thresholds_are_inclusive(
        self, tenant_config, check_logger, current_cost, full_cost, status, severity
    ):
        result = CpaIncreaseCheck().run(
            self.client((10, current_cost), (30, full_cost)), tenant_config, check_logger
        )
        assert result.status == status
        assert result.alert_data.severity == severity

    def test_no_previous_spend(self, tenant_config, check_logger):
        result = CpaIncreaseCheck().run(
            self.client((10, 100), (30, 100)), tenant_config, check_logger
        )
        assert result.status == CheckStatus.OK
        assert result.details["message"] == "No spend in the previous period for comparison"


class TestRoasDecreaseCheck:
    def client(self, current, full):
        return FakePlatformClient(
            [
                (("LAST_7_DAYS",), period_rows(0, current[1], current[0])),
                (("LAST_14_DAYS",), period_rows(0, full[1], full[0])),
            ]
        )

    def test_no_conversion_value(self, tenant_config, check_logger):
        result = RoasDecreaseCheck().run(
            self.client((0, 100), (0, 200)), tenant_config, check_logger
        )
        assert result.status == CheckStatus.OK
        assert "not applicable" in result.details["message"]

    def test_collapse_is_critical(self, tenant_config, check_logger):
        # previous ROAS 3.0, current 0.4
        result = RoasDecreaseCheck().run(
            self.client((40, 100), (340, 200)), tenant_config, check_logger
        )
        assert result.status == CheckStatus.ERROR
        assert result.alert_data.title == "Google Ads: ROAS collapsed"

    def test_severe_decrease_is_critical(self, tenant_config, check_logger):
        # previous ROAS 4.0, current 2.4
        result = RoasDecreaseCheck().run(
            self.client((240, 100), (640, 200)), tenant_config, check_logger
        )
        assert result.alert_data.title == "Google Ads: severe ROAS decrease"
        assert result.alert_data.severity == AlertSeverity.CRITICAL
        assert result.details["lost_revenue"] == pytest.approx(160)

    def test_decrease_is_warning(self, tenant_config, check_logger):
        # previous ROAS 4.0, current 3.0
        result = RoasDecreaseCheck().run(
            self.client((300, 100), (700, 200)), tenant_config, check_logger
        )
        assert result.status == CheckStatus.WARNING
        assert result.alert_data.severity == AlertSeverity.HIGH

    def test_low_spend_is_skipped(self, tenant_config, check_logger):
        result = RoasDecreaseCheck().run(
            self.client((10, 40), (410, 140)), tenant_config, check_logger
        )
        assert result.status == CheckStatus.OK
        assert result.details["min_required"] == 50


def paused_row(campaign_id, conversions, revenue, cost):
    return {
        "campaign": {"id": campaign_id, "name": f"Campaign {campaign_id}", "status": "PAUSED"},
        "metrics": {
            "conversions": conversions,
            "conversionsValue": revenue,
            "costMicros": micros(cost),
            "impressions": "1000",
            "clicks": "100",
        },
    }


class TestPausedHighPerformersCheck:
    def test_no_paused_campaigns(self, tenant_config, check_logger):
        result = PausedHighPerformersCheck().run(
            FakePlatformClient(), tenant_config, check_logger
        )
        assert result.status == CheckStatus.OK

    def test_paused_high_performer(self, tenant_config, check_logger):
        client = FakePlatformClient(
            [
                (
                    ("'PAUSED'",),
                    [
                        paused_row("1", 10, 1500, 300),
                        # ROAS 0.5 and CPA above average
                        paused_row("2", 5, 100, 200),
                    ],
                ),
                (
                    ("'ENABLED'",),
                    [{"metrics": {"conversions": 10, "costMicros": micros(300)}}],
                ),
            ]
        )
        result = PausedHighPerformersCheck().run(client, tenant_config, check_logger)
        assert result.status == CheckStatus.WARNING
        assert result.count == 1
        assert result.alert_data.severity == AlertSeverity.HIGH
        assert result.details["campaigns"][0]["campaign_name"] == "Campaign 1"
        assert result.details["comparison_cpa"] == 30

    def test_low_volume_is_medium(self, tenant_config, check_logger):
        client = FakePlatformClient(
            [
                (("'PAUSED'",), [paused_row("1", 5, 600, 100)]),
                (("'ENABLED'",), ProviderHttpException("denied", 403)),
            ]
        )
        result = PausedHighPerformersCheck().run(client, tenant_config, check_logger)
        assert result.alert_data.severity == AlertSeverity.MEDIUM
        assert result.details["comparison_cpa"] is None


def delivery_row(campaign_id, impressions, start_date=None):
    campaign = {"id": campaign_id, "name": f"Campaign {campaign_id}", "status": "ENABLED"}
    if start_date:
        campaign["startDate"] = start_date
    return {
        "campaign": campaign,
        "metrics": {"impressions": str(impressions), "costMicros": "0"},
    }


@freeze_time("2024-01-16 08:00:00")
class TestNoDeliveryCheck:
    def test_no_enabled_campaigns(self, tenant_config, check_logger):
        result = NoDeliveryCheck().run(FakePlatformClient(), tenant_config, check_logger)
        assert result.status == CheckStatus.OK
        assert result.details["message"] == "No enabled campaigns found"

    def test_all_campaigns_deliver(self, tenant_config, check_logger):
        client = FakePlatformClient(
            [(("FROM campaign",), [delivery_row("1", 500, "2023-12-01")])]
        )
        result = NoDeliveryCheck().run(client, tenant_config, check_logger)
        assert result.status == CheckStatus.OK
        assert result.details["total_campaigns"] == 1

    def test_campaigns_without_delivery(self, tenant_config, check_logger):
        client = FakePlatformClient(
            [
                (
                    ("FROM campaign",),
                    [
                        delivery_row("1", 0, "2023-12-01"),
                        delivery_row("2", 500, "2023-12-01"),
                        # started this morning, still ramping up
                        delivery_row("3", 0, "2024-01-16"),
                        delivery_row("4", 0),
                    ],
                )
            ]
        )
        result = NoDeliveryCheck().run(client, tenant_config, check_logger)
        assert result.status == CheckStatus.ERROR
        assert result.count == 2
        assert result.alert_data.severity == AlertSeverity.HIGH
        assert result.alert_data.details["campaign_names"] == ["Campaign 1", "Campaign 4"]
        assert result.details["campaigns"][0]["hours_old"] == 46 * 24 + 8
        assert result.details["campaigns"][1]["hours_old"] is None
        assert result.details["threshold_hours"] == 24

    def test_many_campaigns_is_critical(self, tenant_config, check_logger):
        client = FakePlatformClient(
            [(("FROM campaign",), [delivery_row(str(i), 0, "2023-12-01") for i in range(4)])]
        )
        result = NoDeliveryCheck().run(client, tenant_config, check_logger)
        assert result.alert_data.severity == AlertSeverity.CRITICAL

    def test_tenant_ramp_up_window(self, raw_config, check_logger):
        raw_config["tenants"][0]["google_ads"] = {
            "customer_id": "1234567890",
            "no_delivery_hours": 200,
        }
        tenant = parse_config(raw_config).tenants[0]
        client = FakePlatformClient(
            [(("FROM campaign",), [delivery_row("1", 0, "2024-01-10")])]
        )
        result = NoDeliveryCheck().run(client, tenant, check_logger)
        assert result.status == CheckStatus.OK


def budget_row(campaign_id, budget, spent):
    return {
        "campaign": {"id": campaign_id, "name": f"Campaign {campaign_id}"},
        "campaignBudget": {"amountMicros": micros(budget)},
        "metrics": {"costMicros": micros(spent)},
    }


class TestBudgetDepletedCheck:
    def test_no_depleted_budgets(self, tenant_config, check_logger):
        client = FakePlatformClient(
            [(("campaign_budget",), [budget_row("1", 100, 90), budget_row("2", 0, 50)])]
        )
        result = BudgetDepletedCheck().run(client, tenant_config, check_logger)
        assert result.status == CheckStatus.OK

    def test_depleted_budget(self, tenant_config, check_logger):
        client = FakePlatformClient(
            [(("campaign_budget",), [budget_row("1", 100, 96), budget_row("2", 100, 50)])]
        )
        result = BudgetDepletedCheck().run(client, tenant_config, check_logger)
        assert result.status == CheckStatus.ERROR
        assert result.count == 1
        assert result.alert_data.severity == AlertSeverity.HIGH
        assert result.alert_data.details["total_budget"] == "€100.00"
        assert result.details["campaigns"] == [
            {"campaign_id": "1", "campaign_name": "Campaign 1", "budget": 100, "spent": 96}
        ]

    def test_many_depleted_budgets_is_critical(self, tenant_config, check_logger):
        client = FakePlatformClient(
            [(("campaign_budget",), [budget_row(str(i), 50, 60) for i in range(3)])]
        )
        result = BudgetDepletedCheck().run(client, tenant_config, check_logger)
        assert result.alert_data.severity == AlertSeverity.CRITICAL


class TestSpendWithoutValueCheck:
    def client(self, current, full):
        return FakePlatformClient(
            [
                (("LAST_7_DAYS",), period_rows(*current)),
                (("LAST_14_DAYS",), period_rows(*full)),
            ]
        )

    def test_too_little_previous_spend(self, tenant_config, check_logger):
        result = SpendWithoutValueCheck().run(
            self.client((10, 200), (15, 250)), tenant_config, check_logger
        )
        assert result.status == CheckStatus.OK
        assert result.details["min_required"] == 100

    def test_no_significant_spend_increase(self, tenant_config, check_logger):
        result = SpendWithoutValueCheck().run(
            self.client((10, 220), (20, 420)), tenant_config, check_logger
        )
        assert result.status == CheckStatus.OK
        assert result.details["spend_change_percent"] == 10

    def test_proportional_growth(self, tenant_config, check_logger):
        result = SpendWithoutValueCheck().run(
            self.client((15, 300), (25, 500)), tenant_config, check_logger
        )
        assert result.status == CheckStatus.OK
        assert result.details["message"] == "Spend increase with proportional result growth"

    def test_value_growth_counts_as_results(self, tenant_config, check_logger):
        # conversions flat but conversion value doubled
        result = SpendWithoutValueCheck().run(
            self.client((10, 300, 1000), (20, 500, 1500)), tenant_config, check_logger
        )
        assert result.status == CheckStatus.OK

    def test_flat_results_on_large_increase_is_critical(self, tenant_config, check_logger):
        # spend 200 -> 300, conversions 10 -> 10
        result = SpendWithoutValueCheck().run(
            self.client((10, 300), (20, 500)), tenant_config, check_logger
        )
        assert result.status == CheckStatus.ERROR
        assert result.alert_data.severity == AlertSeverity.CRITICAL
        assert result.details["spend_change_percent"] == 50
        assert result.details["wasted_spend_estimate"] == pytest.approx(100)

    def test_disproportionate_increase_is_warning(self, tenant_config, check_logger):
        # spend 200 -> 280, conversions 10 -> 11
        result = SpendWithoutValueCheck().run(
            self.client((11, 280), (21, 480)), tenant_config, check_logger
        )
        assert result.status == CheckStatus.WARNING
        assert result.alert_data.severity == AlertSeverity.HIGH
        assert result.details["growth_gap"] == 30
