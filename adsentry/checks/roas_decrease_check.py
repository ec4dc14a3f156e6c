from adsentry.checks.base_check import BaseCheck, get_field, micros_to_amount, to_float
from adsentry.models.alert import AlertData
from adsentry.models.severity import AlertSeverity
from adsentry.utils.formatting import format_currency

CURRENT_PERIOD_QUERY = """
    SELECT
      metrics.conversions_value,
      metrics.cost_micros
    FROM customer
    WHERE segments.date DURING LAST_7_DAYS
"""

FULL_PERIOD_QUERY = """
    SELECT
      metrics.conversions_value,
      metrics.cost_micros
    FROM customer
    WHERE segments.date DURING LAST_14_DAYS
"""

WARNING_THRESHOLD = 0.20
CRITICAL_THRESHOLD = 0.35
MIN_CONVERSION_VALUE = 100
MIN_SPEND = 50


def aggregate_roas(rows: list[dict]) -> dict:
    value = sum(to_float(get_field(row, "metrics.conversionsValue")) for row in rows)
    cost = sum(micros_to_amount(get_field(row, "metrics.costMicros")) for row in rows)
    return {
        "conversions_value": value,
        "cost": cost,
        "roas": value / cost if cost > 0 else 0,
    }


class RoasDecreaseCheck(BaseCheck):
    """Week over week return on ad spend drop for accounts tracking conversion value."""

    id = "roas_decrease"
    name = "ROAS decrease"
    description = "Detects significant drops in return on ad spend against the previous week"

    def run(self, platform_client, tenant_config, logger):
        logger.debug(f"Running {self.id} check for {tenant_config.name}")
        try:
            current = aggregate_roas(platform_client.query(CURRENT_PERIOD_QUERY)["results"])
            full = aggregate_roas(platform_client.query(FULL_PERIOD_QUERY)["results"])
        except Exception as e:
            logger.error(
                f"Error running {self.id} check",
                extra={"error": str(e), "tenant_name": tenant_config.name},
            )
            raise

        previous_value = full["conversions_value"] - current["conversions_value"]
        previous_cost = full["cost"] - current["cost"]
        previous = {
            "conversions_value": previous_value,
            "cost": previous_cost,
            "roas": previous_value / previous_cost if previous_cost > 0 else 0,
        }

        if current["conversions_value"] == 0 and previous["conversions_value"] == 0:
            logger.debug("No conversion value tracking detected, skipping ROAS check")
            return self.ok_result(
                {"message": "No conversion value tracked, check not applicable"}
            )
        if current["cost"] < MIN_SPEND or previous["cost"] < MIN_SPEND:
            logger.debug("Insufficient spend for ROAS comparison")
            return self.ok_result(
                {
                    "message": "Too little spend for a reliable ROAS analysis",
                    "current_spend": current["cost"],
                    "previous_spend": previous["cost"],
                    "min_required": MIN_SPEND,
                }
            )
        if (
            current["conversions_value"] < MIN_CONVERSION_VALUE
            and previous["conversions_value"] < MIN_CONVERSION_VALUE
        ):
            logger.debug("Conversion value too low for meaningful ROAS analysis")
            return self.ok_result(
                {
                    "message": "Conversion value too low for a meaningful ROAS analysis",
                    "current_value": current["conversions_value"],
                    "previous_value": previous["conversions_value"],
                }
            )

        roas_change = (
            (current["roas"] - previous["roas"]) / previous["roas"]
            if previous["roas"] > 0
            else 0
        )
        change_percent = round(roas_change * 100)
        expected_revenue = current["cost"] * previous["roas"]
        lost_revenue = max(0, expected_revenue - current["conversions_value"])
        details = {
            "current_period": current,
            "previous_period": previous,
            "previous_period_source": "LAST_14_DAYS minus LAST_7_DAYS",
            "roas_change_percent": change_percent,
            "lost_revenue": lost_revenue,
        }
        currency = tenant_config.currency
        comparison = f"({current['roas']:.2f} vs {previous['roas']:.2f})"

        if previous["roas"] > 1 and current["roas"] < 0.5:
            logger.warning(f"ROAS collapsed for {tenant_config.name}")
            return self.error_result(
                1,
                AlertData(
                    title="Google Ads: ROAS collapsed",
                    short_description=(
                        f"ROAS dropped from {previous['roas']:.2f} to {current['roas']:.2f}"
                    ),
                    impact=(
                        f"Every unit of spend now returns only {current['roas']:.2f}. "
                        f"Estimated missed revenue: {format_currency(lost_revenue, currency)}. "
                        "Urgent action required."
                    ),
                    suggested_actions=[
                        "Check IMMEDIATELY that conversion tracking works",
                        "Pause campaigns with negative ROI to limit further losses",
                        "Check for major product, pricing or stock changes",
                        "Check landing pages for technical problems",
                        "Review external factors (season, market, competition)",
                        "Evaluate whether audience targeting is still relevant",
                    ],
                    severity=AlertSeverity.CRITICAL,
                ),
                details,
            )

        if roas_change <= -CRITICAL_THRESHOLD:
            logger.warning(
                f"Critical ROAS decrease for {tenant_config.name}",
                extra={"change_percent": change_percent},
            )
            return self.error_result(
                1,
                AlertData(
                    title="Google Ads: severe ROAS decrease",
                    short_description=f"ROAS {change_percent}% vs previous week {comparison}",
                    impact=(
                        "At the previous ROAS the same spend would have returned "
                        f"{format_currency(expected_revenue, currency)}, but only "
                        f"{format_currency(current['conversions_value'], currency)} was "
                        f"realised: {format_currency(lost_revenue, currency)} of potential "
                        "revenue missed."
                    ),
                    suggested_actions=[
                        "Find the campaigns with the largest ROAS drop",
                        "Check whether specific products or categories underperform",
                        "Check that bid strategies (tROAS/tCPA) are set correctly",
                        "Check for price changes or stock problems",
                        "Evaluate whether traffic quality changed",
                        "Compare with historical and seasonal patterns",
                    ],
                    severity=AlertSeverity.CRITICAL,
                ),
                details,
            )

        if roas_change <= -WARNING_THRESHOLD:
            logger.info(
                f"ROAS decrease warning for {tenant_config.name}",
                extra={"change_percent": change_percent},
            )
            return self.warning_result(
                1,
                AlertData(
                    title="Google Ads: ROAS decrease",
                    short_description=f"ROAS {change_percent}% vs previous week {comparison}",
                    impact=(
                        f"ROAS dropped from {previous['roas']:.2f} to {current['roas']:.2f}. "
                        "Not critical yet, but the trend deserves attention."
                    ),
                    suggested_actions=[
                        "Find the campaigns or product groups causing the drop",
                        "Check recent bid or targeting changes",
                        "Check whether CTR or conversion rate dropped",
                        "Watch the trend closely over the coming days",
                        "Compare with seasonal patterns from last year",
                    ],
                    severity=AlertSeverity.HIGH,
                ),
                details,
            )

        return self.ok_result(
            {
                "message": "No significant ROAS decrease",
                "current_roas": current["roas"],
                "previous_roas": previous["roas"],
                "roas_change_percent": change_percent,
            }
        )
