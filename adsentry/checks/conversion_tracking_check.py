from adsentry.checks.base_check import (
    BaseCheck,
    get_field,
    micros_to_amount,
    to_float,
    to_int,
)
from adsentry.models.alert import AlertData
from adsentry.models.severity import AlertSeverity
from adsentry.utils.formatting import format_currency

CONVERSIONS_QUERY = """
    SELECT
      campaign.id,
      campaign.name,
      campaign.status,
      metrics.conversions,
      metrics.all_conversions,
      metrics.cost_micros,
      metrics.clicks
    FROM campaign
    WHERE campaign.status = 'ENABLED'
      AND segments.date DURING LAST_7_DAYS
"""

CONVERSION_ACTIONS_QUERY = """
    SELECT
      conversion_action.id,
      conversion_action.name,
      conversion_action.status,
      conversion_action.category,
      conversion_action.type
    FROM conversion_action
    WHERE conversion_action.status = 'ENABLED'
"""

MIN_CAMPAIGN_SPEND = 100
MIN_CAMPAIGN_CLICKS = 50
CRITICAL_CAMPAIGN_SPEND = 500
MIN_ACCOUNT_SPEND = 200


class ConversionTrackingCheck(BaseCheck):
    """Spend without any measured conversions, or no conversion actions at all."""

    id = "conversion_tracking"
    name = "Conversion tracking issues"
    description = "Detects potential problems with conversion tracking"

    @staticmethod
    def aggregate_campaigns(rows: list[dict]) -> dict[str, dict]:
        campaigns = {}
        for row in rows:
            campaign_id = get_field(row, "campaign.id", "unknown")
            campaign = campaigns.setdefault(
                campaign_id,
                {
                    "campaign_id": campaign_id,
                    "name": get_field(row, "campaign.name", "Unknown"),
                    "conversions": 0.0,
                    "all_conversions": 0.0,
                    "cost": 0.0,
                    "clicks": 0,
                },
            )
            campaign["conversions"] += to_float(get_field(row, "metrics.conversions"))
            campaign["all_conversions"] += to_float(
                get_field(row, "metrics.allConversions")
            )
            campaign["cost"] += micros_to_amount(get_field(row, "metrics.costMicros"))
            campaign["clicks"] += to_int(get_field(row, "metrics.clicks"))
        return campaigns

    def run(self, platform_client, tenant_config, logger):
        logger.debug(f"Running {self.id} check for {tenant_config.name}")
        currency = tenant_config.currency
        issues = []
        try:
            has_conversion_actions = True
            try:
                actions = platform_client.query(CONVERSION_ACTIONS_QUERY)["results"]
            except Exception as e:
                logger.debug("Could not query conversion actions", extra={"error": str(e)})
            else:
                if not actions:
                    has_conversion_actions = False
                    issues.append(
                        {
                            "type": "no_conversion_actions",
                            "description": "No active conversion actions configured",
                            "severity": "high",
                        }
                    )

            rows = platform_client.query(CONVERSIONS_QUERY)["results"]
        except Exception as e:
            logger.error(
                f"Error running {self.id} check",
                extra={"error": str(e), "tenant_name": tenant_config.name},
            )
            raise

        if not rows:
            if has_conversion_actions:
                return self.ok_result(
                    {"message": "No campaign data found for conversion analysis"}
                )
            return self.error_result(
                1,
                AlertData(
                    title="Google Ads: conversion tracking not set up",
                    short_description="No conversion tracking active",
                    impact=(
                        "Without conversion tracking there is no way to tell "
                        "which campaigns deliver ROI"
                    ),
                    suggested_actions=[
                        "Set up conversion tracking in Google Ads",
                        "Import conversions from Google Analytics 4",
                        "Install the Google Ads conversion tag",
                        "Configure offline conversion imports if applicable",
                    ],
                    severity=AlertSeverity.HIGH,
                    details={"has_conversion_actions": False},
                ),
                {"issues": issues},
            )

        campaigns = self.aggregate_campaigns(rows)
        zero_conversion_campaigns = [
            campaign
            for campaign in campaigns.values()
            if campaign["cost"] >= MIN_CAMPAIGN_SPEND
            and campaign["clicks"] >= MIN_CAMPAIGN_CLICKS
            and campaign["conversions"] == 0
            and campaign["all_conversions"] == 0
        ]
        for campaign in zero_conversion_campaigns:
            issues.append(
                {
                    "type": "zero_conversions",
                    "description": (
                        f"{format_currency(campaign['cost'], currency)} spent, "
                        f"{campaign['clicks']} clicks, 0 conversions"
                    ),
                    "campaign_name": campaign["name"],
                    "severity": (
                        "critical"
                        if campaign["cost"] > CRITICAL_CAMPAIGN_SPEND
                        else "high"
                    ),
                }
            )

        total_conversions = sum(c["conversions"] for c in campaigns.values())
        total_cost = sum(c["cost"] for c in campaigns.values())
        if total_conversions == 0 and total_cost > MIN_ACCOUNT_SPEND:
            issues.append(
                {
                    "type": "account_zero_conversions",
                    "description": (
                        f"Account spent {format_currency(total_cost, currency)} "
                        "without conversions (7 days)"
                    ),
                    "severity": "critical",
                }
            )

        if not issues:
            logger.debug("No conversion tracking issues found")
            return self.ok_result(
                {
                    "message": "Conversion tracking works correctly",
                    "total_conversions": total_conversions,
                    "total_cost": round(total_cost, 2),
                }
            )

        count = len(issues)
        has_critical = any(issue["severity"] == "critical" for issue in issues)
        zero_conversion_spend = sum(c["cost"] for c in zero_conversion_campaigns)
        logger.warning(
            f"Found {count} conversion tracking issues",
            extra={
                "tenant_name": tenant_config.name,
                "issue_types": [issue["type"] for issue in issues],
            },
        )
        return self.error_result(
            count,
            AlertData(
                title="Google Ads: conversion tracking issues",
                short_description=(
                    "Critical conversion tracking issues found"
                    if has_critical
                    else f"{count} potential tracking issue{'s' if count > 1 else ''}"
                ),
                impact=(
                    f"{format_currency(zero_conversion_spend, currency)} spent on "
                    "campaigns without measurable conversions"
                    if zero_conversion_spend > 0
                    else "Conversion data may be unreliable"
                ),
                suggested_actions=[
                    "Check that the conversion tag is installed correctly",
                    "Verify conversions in Google Tag Assistant",
                    "Check that conversion actions are configured correctly",
                    "Review the attribution window settings",
                    "Test a conversion manually to verify tracking",
                    "Check whether ad blockers are blocking tracking",
                ],
                severity=AlertSeverity.CRITICAL if has_critical else AlertSeverity.HIGH,
                details={
                    "issue_count": count,
                    "has_conversion_actions": has_conversion_actions,
                    "total_conversions": total_conversions,
                    "total_cost": round(total_cost, 2),
                    "zero_conversion_campaigns": len(zero_conversion_campaigns),
                },
            ),
            {
                "issues": issues,
                "zero_conversion_campaigns": zero_conversion_campaigns[:10],
                "total_conversions": total_conversions,
            },
        )
