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

CURRENT_PERIOD_QUERY = """
    SELECT
      metrics.cost_micros,
      metrics.conversions,
      metrics.conversions_value,
      metrics.clicks,
      metrics.impressions
    FROM customer
    WHERE segments.date DURING LAST_7_DAYS
"""

FULL_PERIOD_QUERY = """
    SELECT
      metrics.cost_micros,
      metrics.conversions,
      metrics.conversions_value,
      metrics.clicks,
      metrics.impressions
    FROM customer
    WHERE segments.date DURING LAST_14_DAYS
"""

SPEND_INCREASE_WARNING = 0.30
SPEND_INCREASE_CRITICAL = 0.50
# results may trail spend growth by this much before it counts as waste
RESULT_GROWTH_TOLERANCE = 0.10
# at or below this result growth a critical spend increase is flat
FLAT_RESULT_GROWTH = 0.10
MIN_SPEND = 100

METRIC_KEYS = ("cost", "conversions", "conversions_value", "clicks", "impressions")


def aggregate_performance(rows: list[dict]) -> dict:
    return {
        "cost": sum(micros_to_amount(get_field(row, "metrics.costMicros")) for row in rows),
        "conversions": sum(to_float(get_field(row, "metrics.conversions")) for row in rows),
        "conversions_value": sum(
            to_float(get_field(row, "metrics.conversionsValue")) for row in rows
        ),
        "clicks": sum(to_int(get_field(row, "metrics.clicks")) for row in rows),
        "impressions": sum(to_int(get_field(row, "metrics.impressions")) for row in rows),
    }


def relative_change(current: float, previous: float) -> float:
    """Growth from nothing counts as +100%."""
    if previous > 0:
        return (current - previous) / previous
    return 1 if current > 0 else 0


class SpendWithoutValueCheck(BaseCheck):
    """
    Spend growing week over week without proportional conversions or value.

    Both weeks need at least MIN_SPEND. Results are compared through the better
    of conversion growth and value growth when conversion value is tracked.
    """

    id = "spend_without_value"
    name = "Spend without value"
    description = (
        "Detects spend increases without a proportional increase in conversions or value"
    )

    def run(self, platform_client, tenant_config, logger):
        logger.debug(f"Running {self.id} check for {tenant_config.name}")
        try:
            current = aggregate_performance(
                platform_client.query(CURRENT_PERIOD_QUERY)["results"]
            )
            full = aggregate_performance(platform_client.query(FULL_PERIOD_QUERY)["results"])
        except Exception as e:
            logger.error(
                f"Error running {self.id} check",
                extra={"error": str(e), "tenant_name": tenant_config.name},
            )
            raise

        previous = {key: full[key] - current[key] for key in METRIC_KEYS}

        if previous["cost"] < MIN_SPEND:
            logger.debug(
                "Insufficient spend in previous period for comparison",
                extra={"previous_spend": previous["cost"]},
            )
            return self.ok_result(
                {
                    "message": "Too little spend in the previous period for comparison",
                    "previous_spend": previous["cost"],
                    "min_required": MIN_SPEND,
                }
            )
        if current["cost"] < MIN_SPEND:
            logger.debug(
                "Insufficient spend in current period",
                extra={"current_spend": current["cost"]},
            )
            return self.ok_result(
                {
                    "message": "Too little spend in the current period for analysis",
                    "current_spend": current["cost"],
                    "min_required": MIN_SPEND,
                }
            )

        spend_change = (current["cost"] - previous["cost"]) / previous["cost"]
        conversion_change = relative_change(current["conversions"], previous["conversions"])
        value_change = relative_change(
            current["conversions_value"], previous["conversions_value"]
        )
        changes = {
            "spend_change_percent": round(spend_change * 100),
            "conversion_change_percent": round(conversion_change * 100),
            "value_change_percent": round(value_change * 100),
        }

        if spend_change < SPEND_INCREASE_WARNING:
            return self.ok_result({"message": "No significant spend increase", **changes})

        tracks_value = previous["conversions_value"] > 0 or current["conversions_value"] > 0
        result_growth = (
            max(conversion_change, value_change) if tracks_value else conversion_change
        )
        if result_growth >= spend_change - RESULT_GROWTH_TOLERANCE:
            return self.ok_result(
                {"message": "Spend increase with proportional result growth", **changes}
            )

        extra_spend = current["cost"] - previous["cost"]
        if previous["conversions"] > 0:
            expected_extra = previous["conversions"] * spend_change
            actual_extra = current["conversions"] - previous["conversions"]
            shortfall = max(0, expected_extra - actual_extra)
            wasted_spend = shortfall / previous["conversions"] * previous["cost"]
        else:
            wasted_spend = extra_spend * (1 - result_growth / spend_change)

        spend_percent = changes["spend_change_percent"]
        result_percent = round(result_growth * 100)
        currency = tenant_config.currency
        details = {
            "current_period": current,
            "previous_period": previous,
            "previous_period_source": "LAST_14_DAYS minus LAST_7_DAYS",
            **changes,
            "wasted_spend_estimate": wasted_spend,
            "growth_gap": round((spend_change - result_growth) * 100),
        }

        if spend_change >= SPEND_INCREASE_CRITICAL and result_growth <= FLAT_RESULT_GROWTH:
            logger.warning(
                f"Critical spend increase without value for {tenant_config.name}",
                extra={"spend_change_percent": spend_percent, "result_growth": result_percent},
            )
            return self.error_result(
                1,
                AlertData(
                    title="Google Ads: severe budget waste",
                    short_description=(
                        f"Spend +{spend_percent}%, results only +{result_percent}%"
                    ),
                    impact=(
                        f"Spend rose by {format_currency(extra_spend, currency)} "
                        f"(+{spend_percent}%) while results grew only {result_percent}%. "
                        f"Estimated waste: {format_currency(wasted_spend, currency)}."
                    ),
                    suggested_actions=[
                        "Stop scaling until the cause is found",
                        "Find the campaigns and ad groups behind the extra spend",
                        "Check for automatic bid increases",
                        "Review newly added keywords or audiences",
                        "Check whether traffic quality dropped",
                        "Verify that conversion tracking still works",
                    ],
                    severity=AlertSeverity.CRITICAL,
                ),
                details,
            )

        logger.info(
            f"Spend increase without proportional value for {tenant_config.name}",
            extra={"spend_change_percent": spend_percent, "result_growth": result_percent},
        )
        return self.warning_result(
            1,
            AlertData(
                title="Google Ads: spend increase without proportional results",
                short_description=f"Spend +{spend_percent}%, results +{result_percent}%",
                impact=(
                    f"Spend rose {spend_percent}% while results grew {result_percent}%. "
                    "The extra spend performs below the baseline. Estimated inefficient "
                    f"spend: {format_currency(wasted_spend, currency)}."
                ),
                suggested_actions=[
                    "Find the campaigns or targeting causing the extra spend",
                    "Compare the marginal CPA or ROAS of the new spend with the average",
                    "Check whether automated bidding scales too aggressively",
                    "Consider capping spend increases",
                ],
                severity=AlertSeverity.HIGH,
            ),
            details,
        )
