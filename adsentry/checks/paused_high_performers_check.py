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

PAUSED_CAMPAIGNS_QUERY = """
    SELECT
      campaign.id,
      campaign.name,
      campaign.status,
      metrics.impressions,
      metrics.clicks,
      metrics.conversions,
      metrics.cost_micros,
      metrics.conversions_value
    FROM campaign
    WHERE campaign.status = 'PAUSED'
      AND segments.date DURING LAST_30_DAYS
"""

ENABLED_CAMPAIGNS_QUERY = """
    SELECT
      campaign.id,
      campaign.name,
      metrics.conversions,
      metrics.cost_micros
    FROM campaign
    WHERE campaign.status = 'ENABLED'
      AND segments.date DURING LAST_30_DAYS
"""


def aggregate_paused_campaigns(rows: list[dict]) -> list[dict]:
    """Per campaign totals, highest revenue first."""
    campaigns = {}
    for row in rows:
        campaign_id = get_field(row, "campaign.id", "unknown")
        campaign = campaigns.setdefault(
            campaign_id,
            {
                "campaign_id": campaign_id,
                "campaign_name": get_field(row, "campaign.name", "Unknown campaign"),
                "status": get_field(row, "campaign.status", "UNKNOWN"),
                "conversions": 0.0,
                "revenue": 0.0,
                "cost": 0.0,
                "impressions": 0,
                "clicks": 0,
            },
        )
        campaign["conversions"] += to_float(get_field(row, "metrics.conversions"))
        campaign["revenue"] += to_float(get_field(row, "metrics.conversionsValue"))
        campaign["cost"] += micros_to_amount(get_field(row, "metrics.costMicros"))
        campaign["impressions"] += to_int(get_field(row, "metrics.impressions"))
        campaign["clicks"] += to_int(get_field(row, "metrics.clicks"))

    for campaign in campaigns.values():
        cost, conversions = campaign["cost"], campaign["conversions"]
        campaign["roas"] = campaign["revenue"] / cost if cost > 0 else 0
        campaign["cpa"] = cost / conversions if conversions > 0 else 0
    return sorted(campaigns.values(), key=lambda c: c["revenue"], reverse=True)


def is_high_performer(campaign: dict, enabled_avg_cpa: float) -> bool:
    if campaign["conversions"] < 1:
        return False
    good_roas = campaign["roas"] > 2
    good_cpa = enabled_avg_cpa > 0 and campaign["cpa"] < enabled_avg_cpa
    significant_volume = campaign["conversions"] >= 5 or campaign["revenue"] > 500
    return (good_roas or good_cpa) and significant_volume


class PausedHighPerformersCheck(BaseCheck):
    """
    Paused campaigns that were converting well over the last 30 days.

    This is an opportunity rather than a failure, so it reports a warning.
    """

    id = "paused_high_performers"
    name = "Paused high performers"
    description = "Detects paused campaigns that were performing well"

    def run(self, platform_client, tenant_config, logger):
        logger.debug(f"Running {self.id} check for {tenant_config.name}")
        try:
            paused_rows = platform_client.query(PAUSED_CAMPAIGNS_QUERY)["results"]
            if not paused_rows:
                logger.debug("No paused campaigns found")
                return self.ok_result({"message": "No paused campaigns found"})

            enabled_avg_cpa = 0
            try:
                enabled_rows = platform_client.query(ENABLED_CAMPAIGNS_QUERY)["results"]
            except Exception as e:
                logger.debug(
                    "Could not get enabled campaign comparison data",
                    extra={"error": str(e)},
                )
            else:
                enabled_conversions = sum(
                    to_float(get_field(row, "metrics.conversions")) for row in enabled_rows
                )
                enabled_cost = sum(
                    micros_to_amount(get_field(row, "metrics.costMicros"))
                    for row in enabled_rows
                )
                if enabled_conversions > 0:
                    enabled_avg_cpa = enabled_cost / enabled_conversions
        except Exception as e:
            logger.error(
                f"Error running {self.id} check",
                extra={"error": str(e), "tenant_name": tenant_config.name},
            )
            raise

        paused_campaigns = aggregate_paused_campaigns(paused_rows)
        high_performers = [
            campaign
            for campaign in paused_campaigns
            if is_high_performer(campaign, enabled_avg_cpa)
        ]
        if not high_performers:
            logger.debug("No high-performing paused campaigns found")
            return self.ok_result(
                {
                    "message": "No well performing paused campaigns found",
                    "total_paused_campaigns": len(paused_campaigns),
                }
            )

        count = len(high_performers)
        missed_revenue = sum(c["revenue"] for c in high_performers)
        total_conversions = sum(c["conversions"] for c in high_performers)
        avg_roas = sum(c["roas"] for c in high_performers) / count
        logger.warning(
            f"Found {count} paused high-performing campaigns",
            extra={
                "tenant_name": tenant_config.name,
                "missed_revenue": round(missed_revenue, 2),
            },
        )
        return self.warning_result(
            count,
            AlertData(
                title="Google Ads: well performing campaigns paused",
                short_description=(
                    f"{count} profitable campaign{'s' if count > 1 else ''} paused"
                ),
                impact=(
                    "The paused campaigns generated "
                    f"{format_currency(missed_revenue, tenant_config.currency)} revenue "
                    f"from {total_conversions:.0f} conversions (30 days). "
                    f"Average ROAS: {avg_roas:.1f}x"
                ),
                suggested_actions=[
                    "Check whether these campaigns were paused by accident",
                    "Check whether there is a valid reason for the pause",
                    "Consider re-enabling the campaigns",
                    "Check whether a seasonal pause was intended",
                    "Evaluate whether the budget is better spent elsewhere",
                ],
                severity=(
                    AlertSeverity.HIGH
                    if missed_revenue > 1000 or count > 2
                    else AlertSeverity.MEDIUM
                ),
                details={
                    "paused_high_performers_count": count,
                    "total_missed_revenue": round(missed_revenue, 2),
                    "total_conversions": round(total_conversions),
                    "avg_roas": round(avg_roas, 2),
                },
            ),
            {
                "campaigns": high_performers[:10],
                "total_count": count,
                "comparison_cpa": round(enabled_avg_cpa, 2) if enabled_avg_cpa > 0 else None,
            },
        )
