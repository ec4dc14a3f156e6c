from adsentry.checks.base_check import BaseCheck, get_field, micros_to_amount, to_float
from adsentry.models.alert import AlertData
from adsentry.models.severity import AlertSeverity
from adsentry.utils.formatting import format_currency

CURRENT_PERIOD_QUERY = """
    SELECT
      metrics.conversions,
      metrics.cost_micros
    FROM customer
    WHERE segments.date DURING LAST_7_DAYS
"""

# Covers both weeks; the previous week is this minus the current period.
FULL_PERIOD_QUERY = """
    SELECT
      metrics.conversions,
      metrics.cost_micros
    FROM customer
    WHERE segments.date DURING LAST_14_DAYS
"""

WARNING_THRESHOLD = 0.20
CRITICAL_THRESHOLD = 0.40
MIN_CONVERSIONS = 5


def aggregate_cpa(rows: list[dict]) -> dict:
    conversions = sum(to_float(get_field(row, "metrics.conversions")) for row in rows)
    cost = sum(micros_to_amount(get_field(row, "metrics.costMicros")) for row in rows)
    return {
        "conversions": conversions,
        "cost": cost,
        "cpa": cost / conversions if conversions > 0 else 0,
    }


class CpaIncreaseCheck(BaseCheck):
    """
    Week over week cost per acquisition increase.

    Both weeks need at least MIN_CONVERSIONS conversions; an increase of 20%
    is a warning and 40% is critical.
    """

    id = "cpa_increase"
    name = "CPA increase"
    description = "Detects significant increases in cost per conversion against the previous week"

    def run(self, platform_client, tenant_config, logger):
        logger.debug(f"Running {self.id} check for {tenant_config.name}")
        try:
            current = aggregate_cpa(platform_client.query(CURRENT_PERIOD_QUERY)["results"])
            full = aggregate_cpa(platform_client.query(FULL_PERIOD_QUERY)["results"])
        except Exception as e:
            logger.error(
                f"Error running {self.id} check",
                extra={"error": str(e), "tenant_name": tenant_config.name},
            )
            raise

        previous_conversions = full["conversions"] - current["conversions"]
        previous_cost = full["cost"] - current["cost"]
        previous = {
            "conversions": previous_conversions,
            "cost": previous_cost,
            "cpa": previous_cost / previous_conversions if previous_conversions > 0 else 0,
        }
        period_details = {
            "current_period": current,
            "previous_period": previous,
            "previous_period_source": "LAST_14_DAYS minus LAST_7_DAYS",
        }

        if current["conversions"] < MIN_CONVERSIONS:
            logger.debug(
                "Insufficient conversions in current period for CPA analysis",
                extra={"current_conversions": current["conversions"]},
            )
            return self.ok_result(
                {
                    "message": "Too few conversions for CPA analysis",
                    "current_conversions": current["conversions"],
                    "min_required": MIN_CONVERSIONS,
                }
            )
        if previous["conversions"] < MIN_CONVERSIONS:
            logger.debug(
                "Insufficient conversions in previous period for CPA comparison",
                extra={"previous_conversions": previous["conversions"]},
            )
            return self.ok_result(
                {
                    "message": "Too few conversions in the previous period for comparison",
                    "previous_conversions": previous["conversions"],
                    "min_required": MIN_CONVERSIONS,
                }
            )

        if previous["cpa"] == 0:
            return self.ok_result(
                {"message": "No spend in the previous period for comparison"}
            )

        cpa_change = (current["cpa"] - previous["cpa"]) / previous["cpa"]
        change_percent = round(cpa_change * 100)
        cpa_difference = current["cpa"] - previous["cpa"]
        period_details.update(
            {"cpa_change_percent": change_percent, "cpa_difference": cpa_difference}
        )
        currency = tenant_config.currency
        short_description = (
            f"CPA +{change_percent}% vs previous week "
            f"({format_currency(current['cpa'], currency)} vs "
            f"{format_currency(previous['cpa'], currency)})"
        )

        if cpa_change >= CRITICAL_THRESHOLD:
            logger.warning(
                f"Critical CPA increase for {tenant_config.name}",
                extra={"change_percent": change_percent},
            )
            extra_spend = cpa_difference * current["conversions"]
            return self.error_result(
                1,
                AlertData(
                    title="Google Ads: critical CPA increase",
                    short_description=short_description,
                    impact=(
                        f"Each conversion now costs {format_currency(cpa_difference, currency)} "
                        f"more than last week. Across {current['conversions']:.0f} conversions "
                        f"that is {format_currency(extra_spend, currency)} extra spend. "
                        "Immediate action is needed to prevent wasted budget."
                    ),
                    suggested_actions=[
                        "Find the campaigns and ad groups with the largest CPA increase",
                        "Check for quality score drops (keywords with QS < 6)",
                        "Check whether competition increased (impression share lost to rank)",
                        "Review recent audience or targeting changes",
                        "Consider pausing weak keywords or reallocating budget",
                        "Check that landing pages work and show relevant content",
                    ],
                    severity=AlertSeverity.CRITICAL,
                ),
                period_details,
            )

        if cpa_change >= WARNING_THRESHOLD:
            logger.info(
                f"CPA increase warning for {tenant_config.name}",
                extra={"change_percent": change_percent},
            )
            return self.warning_result(
                1,
                AlertData(
                    title="Google Ads: CPA increase",
                    short_description=short_description,
                    impact=(
                        "Cost per conversion rose from "
                        f"{format_currency(previous['cpa'], currency)} to "
                        f"{format_currency(current['cpa'], currency)}. Not critical yet, "
                        "but the trend can escalate quickly."
                    ),
                    suggested_actions=[
                        "Find the campaigns or keywords driving the CPA up",
                        "Check recent changes to campaign settings or bids",
                        "Check whether CTR dropped (possible ad fatigue)",
                        "Compare with seasonal patterns from last year",
                        "Watch the trend closely over the coming days",
                    ],
                    severity=AlertSeverity.HIGH,
                ),
                period_details,
            )

        logger.debug(
            f"No significant CPA increase for {tenant_config.name}",
            extra={"change_percent": change_percent},
        )
        return self.ok_result(
            {
                "message": "No significant CPA increase",
                "current_cpa": current["cpa"],
                "previous_cpa": previous["cpa"],
                "cpa_change_percent": change_percent,
            }
        )
